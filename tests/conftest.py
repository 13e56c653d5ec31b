import json

import pytest

from leoverse.core.config import AirtableSettings
from leoverse.core.remote import EndpointKind, RemoteClient
from leoverse.leonardo.session import Session

_MISSING = object()

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeResponse:
    def __init__(self, status_code=200, json_data=_MISSING, text=None, content=b"", chunk_size=7):
        self.status_code = status_code
        self._json = json_data
        self._text = text
        self.content = content
        self._chunk_size = chunk_size
        self.closed = False

    @property
    def text(self):
        if self._text is not None:
            return self._text
        if self._json is not _MISSING:
            return json.dumps(self._json)
        return self.content.decode("latin-1")

    def json(self):
        if self._json is _MISSING:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), self._chunk_size):
            yield self.content[i:i + self._chunk_size]

    def close(self):
        self.closed = True


class FakeHttp:
    """Stand-in for `requests.Session`.

    `responses` is a list consumed in order; entries may be `FakeResponse`
    objects or exceptions to raise. Alternatively `handler(method, url, kwargs)`
    computes the response.
    """

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []
        self.proxies = {}

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.handler is not None:
            result = self.handler(method, url, kwargs)
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


class GraphQLBackend:
    """Scripted Leonardo backend keyed by GraphQL operation name.

    Each script entry is a `data` dict, a `FakeResponse`, an exception, or a
    callable returning one of those.
    """

    def __init__(self, create=None, statuses=None, feed=None):
        self.scripts = {
            "CreateSDGenerationJob": list(create or []),
            "GetAIGenerationFeedStatuses": list(statuses or []),
            "GetAIGenerationFeed": list(feed or []),
        }
        self.operations = []
        self.bodies = []

    def __call__(self, method, url, kwargs):
        body = kwargs["json"]
        operation = body["operationName"]
        self.operations.append(operation)
        self.bodies.append(body)
        entry = self.scripts[operation].pop(0)
        if callable(entry):
            entry = entry()
        if isinstance(entry, (FakeResponse, Exception)):
            return entry
        return FakeResponse(200, {"data": entry})


def created(generation_id="gen-1"):
    return {"sdGenerationJob": {"generationId": generation_id, "__typename": "SDGenerationOutput"}}


def status(value, generation_id="gen-1"):
    return {"generations": [{"id": generation_id, "status": value, "__typename": "generations"}]}


def feed(urls, generation_id="gen-1"):
    return {
        "generations": [
            {
                "id": generation_id,
                "status": "COMPLETE",
                "generated_images": [
                    {"id": f"img-{i}", "url": url, "nsfw": False, "__typename": "generated_images"}
                    for i, url in enumerate(urls)
                ],
            }
        ]
    }


@pytest.fixture
def airtable_settings():
    return AirtableSettings(
        api_key="key123",
        base_id="appBase",
        table_name="Prompts",
        prompt_field="Prompt",
        done_field="Generated",
        image_field="Image",
    )


@pytest.fixture
def make_graphql_client():
    def _make(backend):
        http = FakeHttp(handler=backend)
        return RemoteClient(session=Session("tok"), http=http, graphql_url="https://example.test/graphql")

    return _make


class FakeAirtable:
    """In-memory datastore behind a `RemoteClient.call`-compatible interface.

    `fail_upload` maps an upload attempt number (1-based) to the exception it raises.
    """

    def __init__(self, pages, fail_update=None, fail_upload=None):
        self.pages = pages
        self.fail_update = fail_update
        self.fail_upload = dict(fail_upload or {})
        self.calls = []
        self.uploads = []
        self.updates = []
        self.upload_attempts = 0

    def call(self, kind, body=None, *, params=None, record_id=None):
        self.calls.append((kind, body, params, record_id))
        if kind is EndpointKind.LIST_RECORDS:
            index = int((params or {}).get("offset", 0) or 0)
            page = {"records": self.pages[index]}
            if index + 1 < len(self.pages):
                page["offset"] = str(index + 1)
            return page
        if kind is EndpointKind.UPLOAD_ATTACHMENT:
            self.upload_attempts += 1
            if self.upload_attempts in self.fail_upload:
                raise self.fail_upload[self.upload_attempts]
            self.uploads.append((record_id, body))
            return {"id": record_id, "fields": {}}
        if kind is EndpointKind.UPDATE_RECORDS:
            if self.fail_update is not None:
                raise self.fail_update
            self.updates.append(body)
            return {"records": body["records"]}
        raise AssertionError(f"unexpected kind {kind}")

    def completed_ids(self):
        return [r["id"] for body in self.updates for r in body["records"] if r["fields"].get("Generated")]
