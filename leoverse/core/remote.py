"""Authenticated HTTP transport for the generation backend and the datastore.

Architectural role:
    One `call(kind, body)` entry point used by the generation orchestrator
    (GraphQL) and the datastore relay (REST). Each endpoint kind knows its HTTP
    method, URL shape, and which credential it carries:

    - `GRAPHQL`: POST to the Leonardo GraphQL endpoint, `Cookie` header from
      the `Session`.
    - `LIST_RECORDS` / `UPDATE_RECORDS` / `UPLOAD_ATTACHMENT`: Airtable REST
      endpoints, `Authorization: Bearer <api key>`.

Retry behavior:
    None. Each call is attempted once with a per-call timeout; callers decide
    whether to try again.

Error handling strategy:
    - Missing credential -> `NotConfigured` (an `AuthError`)
    - 401/403, or GraphQL auth error codes -> `AuthError`
    - `requests` network exceptions -> `TransportError`
    - Other non-2xx -> `RemoteError(status_code, body)`
    - Undecodable JSON or other GraphQL `errors` -> `ProtocolError`

Security considerations:
    Credentials are never logged; debug logs include only the endpoint kind,
    URL, and status code.
"""

import logging
from enum import Enum
from typing import Any
from urllib.parse import urlparse

import requests

from leoverse.core.config import (
    AIRTABLE_API_URL,
    AIRTABLE_CONTENT_URL,
    DEFAULT_GRAPHQL_URL,
    GENERATION_REQUEST_TIMEOUT,
    AirtableSettings,
)
from leoverse.core.errors import (
    AuthError,
    NotConfigured,
    ProtocolError,
    RemoteError,
    TransportError,
)
from leoverse.leonardo.session import Session

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 403)
GRAPHQL_AUTH_CODES = {"invalid-jwt", "access-denied", "invalid-headers"}
PROXY_SCHEMES = {"http", "https", "socks5", "socks5h"}

LEONARDO_ORIGIN = "https://app.leonardo.ai"


class EndpointKind(str, Enum):
    GRAPHQL = "graphql"
    LIST_RECORDS = "list_records"
    UPDATE_RECORDS = "update_records"
    UPLOAD_ATTACHMENT = "upload_attachment"


class RemoteClient:
    """Session-aware request executor for both remote services.

    Args:
        session: Cookie store used for `GRAPHQL` calls.
        datastore: Airtable settings used for the REST kinds.
        http: `requests.Session`-compatible object (injected in tests).
        graphql_url: Generation backend endpoint.
        timeout: Per-call timeout for generation calls.
        proxy: Optional proxy URL applied to every scheme.
    """

    def __init__(
        self,
        session: Session | None = None,
        datastore: AirtableSettings | None = None,
        http: Any = None,
        graphql_url: str = DEFAULT_GRAPHQL_URL,
        timeout: float = GENERATION_REQUEST_TIMEOUT,
        proxy: str | None = None,
    ):
        self.session = session
        self.datastore = datastore
        self.http = http if http is not None else requests.Session()
        self.graphql_url = graphql_url
        self.timeout = timeout
        if proxy:
            self.http.proxies.update(proxy_mapping(proxy))

    # =========================================================
    # PUBLIC API
    # =========================================================

    def call(
        self,
        kind: EndpointKind,
        body: dict | None = None,
        *,
        params: dict | None = None,
        record_id: str | None = None,
    ) -> dict:
        """Execute one authenticated request and return the decoded JSON object."""
        method, url, headers, timeout = self._route(kind, record_id)

        try:
            response = self.http.request(
                method,
                url,
                headers=headers,
                json=body,
                params=params,
                timeout=timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"{kind.value} request to {url} failed: {exc}") from exc

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return self._parse(kind, response)

    def graphql(self, operation: str, query: str, variables: dict) -> dict:
        """Run one GraphQL operation and return its `data` object."""
        envelope = {
            "operationName": operation,
            "variables": variables,
            "query": query,
        }
        payload = self.call(EndpointKind.GRAPHQL, envelope)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProtocolError(f"{operation}: response has no data object")
        return data

    # =========================================================
    # ROUTING
    # =========================================================

    def _route(self, kind: EndpointKind, record_id: str | None):
        if kind is EndpointKind.GRAPHQL:
            if self.session is None:
                raise NotConfigured("no session configured for generation calls")
            headers = {
                "Cookie": self.session.get(),
                "Content-Type": "application/json",
                "Origin": LEONARDO_ORIGIN,
                "Referer": f"{LEONARDO_ORIGIN}/",
            }
            return "POST", self.graphql_url, headers, self.timeout

        store = self.datastore
        if store is None:
            raise NotConfigured("no datastore configured")
        if not store.api_key:
            raise NotConfigured("datastore API key is not set")

        headers = {
            "Authorization": f"Bearer {store.api_key}",
            "Content-Type": "application/json",
        }
        table_url = f"{AIRTABLE_API_URL}/{store.base_id}/{store.table_name}"

        if kind is EndpointKind.LIST_RECORDS:
            return "GET", table_url, headers, store.request_timeout
        if kind is EndpointKind.UPDATE_RECORDS:
            return "PATCH", table_url, headers, store.request_timeout
        if kind is EndpointKind.UPLOAD_ATTACHMENT:
            if not record_id:
                raise ValueError("record_id is required for attachment uploads")
            url = f"{AIRTABLE_CONTENT_URL}/{store.base_id}/{record_id}/{store.image_field}/uploadAttachment"
            return "POST", url, headers, store.request_timeout

        raise ValueError(f"Unknown endpoint kind: {kind}")

    # =========================================================
    # RESPONSE HANDLING
    # =========================================================

    def _parse(self, kind: EndpointKind, response) -> dict:
        status = response.status_code
        if status in AUTH_STATUSES:
            raise AuthError(f"{kind.value}: credential rejected (status {status})")
        if not 200 <= status < 300:
            raise RemoteError(status, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError(f"{kind.value}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise ProtocolError(f"{kind.value}: expected a JSON object, got {type(data).__name__}")

        if kind is EndpointKind.GRAPHQL and data.get("errors"):
            _raise_graphql_errors(data["errors"])

        return data


def _raise_graphql_errors(errors) -> None:
    messages = []
    auth = False
    for err in errors if isinstance(errors, list) else [errors]:
        if not isinstance(err, dict):
            messages.append(str(err))
            continue
        messages.append(str(err.get("message", err)))
        code = (err.get("extensions") or {}).get("code")
        if code in GRAPHQL_AUTH_CODES:
            auth = True

    text = "; ".join(messages)
    if auth:
        raise AuthError(f"graphql: credential rejected: {text}")
    raise ProtocolError(f"graphql errors: {text}")


def proxy_mapping(proxy: str) -> dict:
    """Validate a proxy URL and return a `requests` proxies mapping."""
    parsed = urlparse(proxy)
    if parsed.scheme not in PROXY_SCHEMES or not parsed.netloc:
        raise NotConfigured(f"invalid proxy URL: {proxy!r}")
    return {"http": proxy, "https": proxy}
