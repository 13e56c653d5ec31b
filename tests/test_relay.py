import base64

import pytest

from leoverse.airtable.relay import DatastoreRelay, FieldNames, WorkItem
from leoverse.airtable.validation import MAX_ATTACHMENT_BYTES
from leoverse.core.errors import GenerationFailed, IncompleteAttachment, RemoteError
from leoverse.core.remote import EndpointKind

from conftest import PNG_BYTES, FakeAirtable


def record(record_id, prompt=None, generated=None):
    fields = {}
    if prompt is not None:
        fields["Prompt"] = prompt
    if generated is not None:
        fields["Generated"] = generated
    return {"id": record_id, "fields": fields}


def write_png(path, data=PNG_BYTES):
    path.write_bytes(data)
    return path


@pytest.fixture
def image_handler(tmp_path):
    calls = []

    def handler(prompt):
        calls.append(prompt)
        out = tmp_path / f"out-{len(calls)}"
        out.mkdir()
        return [write_png(out / "image_1.png")]

    handler.calls = calls
    return handler


def test_listing_follows_offset_until_exhausted():
    store = FakeAirtable([[record("r1", "a")], [record("r2", "b")], [record("r3", "c")]])
    relay = DatastoreRelay(store)

    items = relay.list_records()

    assert [i.id for i in items] == ["r1", "r2", "r3"]
    list_params = [c[2] for c in store.calls if c[0] is EndpointKind.LIST_RECORDS]
    assert list_params == [None, {"offset": "1"}, {"offset": "2"}]


def test_list_pending_excludes_completed_and_promptless():
    store = FakeAirtable([[record("r1", "a"), record("r2", "b", True), record("r3", ""), record("r4")]])
    assert [i.id for i in DatastoreRelay(store).list_pending()] == ["r1"]


def test_work_item_from_record_respects_field_names():
    names = FieldNames(prompt="Text", done="Done")
    item = WorkItem.from_record({"id": "r", "fields": {"Text": "hi", "Done": True}}, names)
    assert item.prompt == "hi"
    assert item.completed is True


def test_process_all_skips_completed_and_empty_prompts(image_handler):
    records = [
        record("r1", "one"),
        record("r2", "two", generated=True),
        record("r3", "three"),
        record("r4", "four"),
        record("r5", ""),
        record("r6", "six"),
    ]
    store = FakeAirtable([records[:3], records[3:]])

    summary = DatastoreRelay(store).process_all(image_handler)

    assert summary.total == 6
    assert summary.skipped >= 2
    assert summary.processed == 4
    assert image_handler.calls == ["one", "three", "four", "six"]
    assert store.completed_ids() == ["r1", "r3", "r4", "r6"]


def test_handler_error_skips_item_and_continues(tmp_path):
    def handler(prompt):
        if prompt == "bad":
            raise GenerationFailed("FAILED", "g1")
        return write_png(tmp_path / f"image_{prompt}.png")

    store = FakeAirtable([[record("r1", "bad"), record("r2", "good")]])
    summary = DatastoreRelay(store).process_all(handler)

    assert summary.total == 2
    assert summary.processed == 1
    assert summary.skipped == 1
    assert "r1" in summary.errors
    assert store.completed_ids() == ["r2"]
    assert not summary.all_failed


def test_every_item_failing_reports_all_failed():
    def handler(prompt):
        raise GenerationFailed("FAILED")

    store = FakeAirtable([[record("r1", "a"), record("r2", "b")]])
    summary = DatastoreRelay(store).process_all(handler)
    assert summary.all_failed
    assert summary.skipped == 2


def test_upload_body_is_base64_with_sniffed_type(image_handler):
    store = FakeAirtable([[record("r1", "one")]])
    DatastoreRelay(store).process_all(image_handler)

    record_id, body = store.uploads[0]
    assert record_id == "r1"
    assert body["contentType"] == "image/png"
    assert body["filename"] == "generated_image.png"
    assert base64.b64decode(body["file"]) == PNG_BYTES
    assert store.updates == [{"records": [{"id": "r1", "fields": {"Generated": True}}]}]


def test_upload_happens_before_marking_completed(image_handler):
    store = FakeAirtable([[record("r1", "one")]])
    DatastoreRelay(store).process_all(image_handler)
    kinds = [c[0] for c in store.calls if c[0] is not EndpointKind.LIST_RECORDS]
    assert kinds == [EndpointKind.UPLOAD_ATTACHMENT, EndpointKind.UPDATE_RECORDS]


def test_oversized_image_leaves_item_untouched(tmp_path):
    big = write_png(tmp_path / "image_1.png", PNG_BYTES + b"\x00" * MAX_ATTACHMENT_BYTES)
    store = FakeAirtable([[record("r1", "one")]])

    summary = DatastoreRelay(store).process_all(lambda prompt: [big])

    assert summary.processed == 0
    assert store.uploads == []
    assert store.updates == []


def test_non_image_payload_leaves_item_untouched(tmp_path):
    text = tmp_path / "image_1.png"
    text.write_bytes(b"definitely not an image")
    store = FakeAirtable([[record("r1", "one")]])

    summary = DatastoreRelay(store).process_all(lambda prompt: text)

    assert summary.skipped == 1
    assert store.uploads == []
    assert store.updates == []


def test_failed_completion_mark_is_reported_as_incomplete(image_handler):
    store = FakeAirtable([[record("r1", "one")]], fail_update=RemoteError(422, "bad field"))

    summary = DatastoreRelay(store).process_all(image_handler)

    assert len(store.uploads) == 1
    assert summary.incomplete == ["r1"]
    assert summary.processed == 0
    assert "not marked completed" in summary.errors["r1"]


def test_failed_second_upload_is_reported_as_incomplete(tmp_path):
    first = write_png(tmp_path / "image_1.png")
    second = write_png(tmp_path / "image_2.png")
    store = FakeAirtable([[record("r1", "one")]], fail_upload={2: RemoteError(500, "boom")})

    summary = DatastoreRelay(store).process_all(lambda prompt: [first, second])

    assert [u[0] for u in store.uploads] == ["r1"]
    assert store.updates == []
    assert summary.incomplete == ["r1"]
    assert summary.processed == 0
    assert "boom" in summary.errors["r1"]


def test_failed_first_upload_leaves_record_untouched(tmp_path):
    image = write_png(tmp_path / "image_1.png")
    store = FakeAirtable([[record("r1", "one")]], fail_upload={1: RemoteError(500, "boom")})

    summary = DatastoreRelay(store).process_all(lambda prompt: [image])

    assert store.uploads == []
    assert summary.incomplete == []
    assert "r1" in summary.errors


def test_attach_images_raises_incomplete_after_partial_upload(tmp_path):
    paths = [write_png(tmp_path / "image_1.png"), write_png(tmp_path / "image_2.png")]
    store = FakeAirtable([[]], fail_upload={2: RemoteError(503, "busy")})

    with pytest.raises(IncompleteAttachment) as info:
        DatastoreRelay(store).attach_images("r9", paths)

    assert info.value.record_id == "r9"
    assert isinstance(info.value.__cause__, RemoteError)


def test_directory_result_is_scanned_for_prefixed_files(tmp_path):
    out = tmp_path / "gen"
    out.mkdir()
    write_png(out / "image_2.png")
    write_png(out / "image_1.png")
    (out / "notes.txt").write_text("ignored")
    store = FakeAirtable([[record("r1", "one")]])

    summary = DatastoreRelay(store).process_all(lambda prompt: out)

    assert summary.processed == 1
    assert len(store.uploads) == 2


def test_directory_without_matches_is_skipped(tmp_path):
    out = tmp_path / "empty"
    out.mkdir()
    store = FakeAirtable([[record("r1", "one")]])
    summary = DatastoreRelay(store).process_all(lambda prompt: out)
    assert summary.skipped == 1
    assert store.uploads == []


def test_empty_table_returns_zero_summary():
    summary = DatastoreRelay(FakeAirtable([[]])).process_all(lambda prompt: [])
    assert (summary.total, summary.processed, summary.skipped) == (0, 0, 0)


def test_attach_for_prompt_targets_matching_record(tmp_path):
    image = write_png(tmp_path / "image.png")
    store = FakeAirtable([[record("r1", "cat")], [record("r2", "dog")]])

    record_id = DatastoreRelay(store).attach_for_prompt("dog", image)

    assert record_id == "r2"
    assert store.uploads[0][0] == "r2"
    assert store.completed_ids() == ["r2"]


def test_attach_for_prompt_without_match_raises_lookup_error(tmp_path):
    image = write_png(tmp_path / "image.png")
    store = FakeAirtable([[record("r1", "cat")]])
    with pytest.raises(LookupError):
        DatastoreRelay(store).attach_for_prompt("dog", image)
    assert store.uploads == []
