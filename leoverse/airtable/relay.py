"""Airtable relay: pull prompts, generate images, push attachments back.

Processing flow (`process_all`):
    1. List every record, following the `offset` continuation token.
    2. For each record, in listing order:
       - skip when the completed flag is already set;
       - skip (with a warning) when the prompt is missing or empty;
       - call the generation handler with the prompt;
       - read, validate, and upload the produced image file(s);
       - mark the record completed.
    3. Return total / processed / skipped counts.

Error handling strategy:
    Per-item failures (handler errors, validation, remote errors) are logged
    and counted as skipped; the batch always runs to the end. Listing failures
    abort the batch since there is nothing to iterate.

Consistency:
    Each attachment upload and the completion mark are separate remote writes.
    If any write fails after at least one upload succeeded, the record keeps
    the uploaded attachment(s) but still looks pending. That case raises
    `IncompleteAttachment`, is logged at warning level, and is reported in
    `RelaySummary.incomplete`.
"""

import base64
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Sequence, Union

from leoverse.airtable.validation import extension_for, validate_image
from leoverse.core.config import AirtableSettings
from leoverse.core.errors import IncompleteAttachment, LeoverseError, ValidationError
from leoverse.core.remote import EndpointKind, RemoteClient

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_PREFIX = "image_"

PathLike = Union[str, os.PathLike]
HandlerResult = Union[PathLike, Sequence[PathLike]]
Handler = Callable[[str], HandlerResult]


@dataclass(frozen=True)
class FieldNames:
    prompt: str = "Prompt"
    done: str = "Generated"

    @classmethod
    def from_settings(cls, settings: AirtableSettings) -> "FieldNames":
        return cls(prompt=settings.prompt_field, done=settings.done_field)


@dataclass(frozen=True)
class WorkItem:
    id: str
    prompt: str | None
    completed: bool
    fields: dict = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict, names: FieldNames) -> "WorkItem":
        fields = record.get("fields") or {}
        prompt = fields.get(names.prompt)
        return cls(
            id=str(record.get("id") or ""),
            prompt=prompt if isinstance(prompt, str) else None,
            completed=fields.get(names.done) is True,
            fields=fields,
        )


@dataclass
class RelaySummary:
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: dict = field(default_factory=dict)
    incomplete: list = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """True when items were attempted and none of them succeeded."""
        return bool(self.errors) and self.processed == 0


class DatastoreRelay:
    """Batch bridge between an Airtable table and a generation handler."""

    def __init__(
        self,
        client: RemoteClient,
        fields: FieldNames | None = None,
        image_prefix: str = DEFAULT_IMAGE_PREFIX,
    ):
        self.client = client
        self.fields = fields or FieldNames()
        self.image_prefix = image_prefix

    # =========================================================
    # LISTING
    # =========================================================

    def iter_records(self) -> Iterator[WorkItem]:
        offset = None
        page = 0
        while True:
            params = {"offset": offset} if offset else None
            data = self.client.call(EndpointKind.LIST_RECORDS, params=params)
            page += 1
            records = data.get("records") or []
            logger.debug("Listed page %d with %d records", page, len(records))
            for record in records:
                yield WorkItem.from_record(record, self.fields)

            offset = data.get("offset")
            if not offset:
                return

    def list_records(self) -> list[WorkItem]:
        return list(self.iter_records())

    def list_pending(self) -> list[WorkItem]:
        """Records that are neither completed nor missing a prompt, in listing order."""
        return [item for item in self.iter_records() if not item.completed and item.prompt]

    # =========================================================
    # BATCH PROCESSING
    # =========================================================

    def process_all(self, handler: Handler) -> RelaySummary:
        items = self.list_records()
        summary = RelaySummary(total=len(items))

        if not items:
            logger.info("No prompts found in Airtable")
            return summary

        for item in items:
            if item.completed:
                summary.skipped += 1
                logger.info("Skipping already processed record %s", item.id)
                continue

            if not item.prompt or not item.prompt.strip():
                summary.skipped += 1
                logger.warning("Record %s has no valid prompt field", item.id)
                continue

            logger.info("Processing record %s: %r", item.id, item.prompt)
            try:
                paths = self.resolve_images(handler(item.prompt))
                self.attach_images(item.id, paths)
            except IncompleteAttachment as exc:
                logger.warning("%s", exc)
                summary.incomplete.append(item.id)
                self._record_failure(summary, item, exc)
                continue
            except Exception as exc:
                logger.warning(
                    "Failed to process record %s: %s",
                    item.id,
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                self._record_failure(summary, item, exc)
                continue

            summary.processed += 1
            logger.info("Processed record %s", item.id)

        logger.info(
            "Processing completed. Total records: %d, Processed: %d, Skipped: %d",
            summary.total,
            summary.processed,
            summary.skipped,
        )
        return summary

    @staticmethod
    def _record_failure(summary: RelaySummary, item: WorkItem, exc: Exception) -> None:
        summary.skipped += 1
        summary.errors[item.id] = str(exc)

    def resolve_images(self, result: HandlerResult) -> list[Path]:
        """Normalize a handler result into an ordered list of image files.

        A sequence is taken as-is. A single path may be a file, or a directory
        that is scanned for files named `<image_prefix>*` (sorted by name).
        """
        if isinstance(result, (str, os.PathLike)):
            candidates = [Path(result)]
        else:
            candidates = [Path(p) for p in result]

        paths: list[Path] = []
        for path in candidates:
            if path.is_dir():
                matches = sorted(
                    p for p in path.iterdir()
                    if p.is_file() and p.name.startswith(self.image_prefix)
                )
                if not matches:
                    raise FileNotFoundError(f"No valid image file found in directory '{path}'")
                paths.extend(matches)
            elif path.is_file():
                paths.append(path)
            else:
                raise FileNotFoundError(f"Image file '{path}' does not exist")

        if not paths:
            raise FileNotFoundError("generation handler produced no files")
        return paths

    # =========================================================
    # UPLOAD
    # =========================================================

    def attach_images(self, record_id: str, paths: Sequence[PathLike]) -> None:
        """Validate every file, upload each as an attachment, then mark completed."""
        payloads = []
        for path in paths:
            data = Path(path).read_bytes()
            try:
                content_type = validate_image(data)
            except ValidationError as exc:
                raise ValidationError(f"{path}: {exc}") from exc
            payloads.append((data, content_type))

        uploaded = 0
        try:
            for data, content_type in payloads:
                logger.info("Uploading image to record %s (size: %d bytes)", record_id, len(data))
                self.upload_attachment(record_id, data, content_type)
                uploaded += 1
            self.mark_completed(record_id)
        except LeoverseError as exc:
            # Nothing written yet: the record is untouched and can be retried as-is.
            if not uploaded:
                raise
            raise IncompleteAttachment(record_id, exc) from exc

    def upload_attachment(self, record_id: str, data: bytes, content_type: str) -> dict:
        body = {
            "contentType": content_type,
            "file": base64.b64encode(data).decode("ascii"),
            "filename": f"generated_image.{extension_for(content_type)}",
        }
        return self.client.call(EndpointKind.UPLOAD_ATTACHMENT, body, record_id=record_id)

    def mark_completed(self, record_id: str) -> dict:
        body = {"records": [{"id": record_id, "fields": {self.fields.done: True}}]}
        return self.client.call(EndpointKind.UPDATE_RECORDS, body)

    def attach_for_prompt(self, prompt: str, image_path: PathLike) -> str:
        """Attach an existing image to the first record whose prompt matches exactly.

        Returns:
            The record id that received the attachment.

        Raises:
            LookupError: No record carries this prompt.
        """
        path = Path(image_path)
        if not path.is_file():
            raise FileNotFoundError(f"Image file '{path}' does not exist")

        for item in self.iter_records():
            if item.prompt == prompt:
                self.attach_images(item.id, [path])
                return item.id
        raise LookupError(f"no record found for prompt: {prompt}")
