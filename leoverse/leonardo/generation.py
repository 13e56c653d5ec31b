"""Leonardo generation orchestrator: submit, poll, fetch.

Processing flow:
    1. SUBMITTING: send `CreateSDGenerationJob` with the full parameter set and
       read back the generation id.
    2. POLLING: wait `poll_interval` on the cancel token, then query
       `GetAIGenerationFeedStatuses` filtered by the id and the terminal
       statuses. Repeat until a terminal status is seen.
    3. FETCHING: query `GetAIGenerationFeed` for the id and return the
       generated images in backend order.

Cancellation:
    The token is checked at every wait boundary, never mid-call. A cancel that
    fires during a wait raises `Canceled` without issuing another request.

Error handling strategy:
    - Missing/empty generation id -> `ProtocolError`
    - FAILED (or any unknown status) -> `GenerationFailed`
    - Transport/auth/remote errors from the client propagate unchanged.
    No step is retried.

Performance characteristics:
    Constant poll interval, no backoff, no internal deadline. Callers who need
    a bounded runtime arm `CancelToken.cancel_after`.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from leoverse.core.cancel import CancelToken
from leoverse.core.errors import Canceled, GenerationFailed, ProtocolError
from leoverse.core.remote import RemoteClient
from leoverse.leonardo import queries

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MODEL_ID = "6b645e3a-d64f-4341-a6d8-7a3690fbf042"


class GenerationState(str, Enum):
    SUBMITTING = "submitting"
    POLLING = "polling"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class GenerationParams:
    """Parameters for one `SDGenerationInput`.

    Defaults mirror the CLI's standard Phoenix landscape request.
    """

    prompt: str
    negative_prompt: str = ""
    model_id: str = DEFAULT_MODEL_ID
    width: int = 1472
    height: int = 832
    num_images: int = 4
    guidance_scale: float = 7.0
    preset_style: str = "LEONARDO"
    scheduler: str = "LEONARDO"
    sd_version: str = "PHOENIX"
    steps: int = 10
    public: bool = True
    high_contrast: bool = False
    photo_real: bool = False
    nsfw: bool = True
    contrast: float = 3.5
    enhance_prompt: bool = True
    weighting: float = 0.75

    def to_variables(self) -> dict:
        return {
            "arg1": {
                "prompt": self.prompt,
                "negative_prompt": self.negative_prompt,
                "modelId": self.model_id,
                "width": self.width,
                "height": self.height,
                "num_images": self.num_images,
                "guidance_scale": self.guidance_scale,
                "presetStyle": self.preset_style,
                "scheduler": self.scheduler,
                "sd_version": self.sd_version,
                "num_inference_steps": self.steps,
                "public": self.public,
                "highContrast": self.high_contrast,
                "photoReal": self.photo_real,
                "nsfw": self.nsfw,
                "contrast": self.contrast,
                "enhancePrompt": self.enhance_prompt,
                "weighting": self.weighting,
            }
        }


@dataclass(frozen=True)
class GeneratedImage:
    id: str
    url: str
    nsfw: bool = False
    typename: str = ""

    @classmethod
    def from_payload(cls, item: dict) -> "GeneratedImage":
        return cls(
            id=str(item.get("id") or ""),
            url=str(item.get("url") or ""),
            nsfw=bool(item.get("nsfw")),
            typename=str(item.get("__typename") or ""),
        )


class GenerationOrchestrator:
    """Drive one generation request to a terminal state.

    Args:
        client: Remote client with a configured session.
        poll_interval: Seconds between status polls.
        clock: Monotonic time source, used for elapsed-time reporting.
    """

    def __init__(
        self,
        client: RemoteClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.clock = clock
        self.state = GenerationState.SUBMITTING
        self.generation_id: str | None = None
        self.elapsed = 0.0

    def generate(self, params: GenerationParams, cancel: CancelToken | None = None) -> list[GeneratedImage]:
        """Submit `params`, poll to completion, and return the produced images."""
        cancel = cancel or CancelToken()
        started = self.clock()
        self.generation_id = None
        try:
            self._enter(GenerationState.SUBMITTING)
            generation_id = self.submit(params)
            self.generation_id = generation_id

            self._enter(GenerationState.POLLING)
            self.wait_for_completion(generation_id, cancel)

            self._enter(GenerationState.FETCHING)
            images = self.fetch_images(generation_id)
            self._enter(GenerationState.SUCCEEDED)
            return images
        except Canceled:
            self._enter(GenerationState.CANCELED)
            raise
        except GenerationFailed:
            self._enter(GenerationState.FAILED)
            raise
        finally:
            self.elapsed = self.clock() - started

    # =========================================================
    # STATES
    # =========================================================

    def submit(self, params: GenerationParams) -> str:
        logger.info("Creating generation job")
        data = self.client.graphql(
            queries.CREATE_GENERATION_OPERATION,
            queries.CREATE_GENERATION_QUERY,
            params.to_variables(),
        )
        job = data.get("sdGenerationJob") or {}
        generation_id = job.get("generationId") if isinstance(job, dict) else None
        if not generation_id:
            logger.debug("Empty generation id in response: %r", data)
            raise ProtocolError("backend returned an empty generation id")

        logger.info("Generation job created with ID: %s", generation_id)
        return str(generation_id)

    def wait_for_completion(self, generation_id: str, cancel: CancelToken) -> str:
        """Poll until a terminal status; return it, or raise on failure/cancel."""
        variables = {
            "where": {
                "status": {"_in": list(queries.TERMINAL_STATUSES)},
                "id": {"_in": [generation_id]},
            }
        }

        while True:
            if cancel.wait(self.poll_interval):
                raise Canceled(cancel.reason)

            data = self.client.graphql(queries.STATUS_OPERATION, queries.STATUS_QUERY, variables)
            generations = data.get("generations") or []
            if not generations:
                logger.debug("Generation %s not finished yet", generation_id)
                continue

            row = generations[0] if isinstance(generations, list) else None
            if not isinstance(row, dict):
                raise ProtocolError(f"malformed generation status row: {row!r}")
            status = str(row.get("status") or "")
            logger.info("Generation status: %s", status)

            if status == queries.STATUS_COMPLETE:
                return status
            if status in queries.IN_FLIGHT_STATUSES:
                continue
            raise GenerationFailed(status or "UNKNOWN", generation_id)

    def fetch_images(self, generation_id: str) -> list[GeneratedImage]:
        logger.info("Fetching generated images")
        variables = {"where": {"id": {"_eq": generation_id}}}
        data = self.client.graphql(queries.FEED_OPERATION, queries.FEED_QUERY, variables)

        generations = data.get("generations") or []
        if not generations:
            logger.warning("Feed for generation %s is empty", generation_id)
            return []

        images = [
            GeneratedImage.from_payload(item)
            for item in generations[0].get("generated_images") or []
            if isinstance(item, dict)
        ]
        logger.info("Found %d generated images", len(images))
        return images

    def _enter(self, state: GenerationState) -> None:
        self.state = state
        logger.debug("Generation state -> %s", state.value)
