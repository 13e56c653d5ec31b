"""Error taxonomy shared by the remote client, orchestrator, downloader and relay.

Architectural role:
    Gives every layer a small, explicit set of failure types so callers can
    decide what to do (abort one generation, skip one relay item, or exit the
    process) without inspecting message strings.

Propagation model:
    - Inside one generation request every error aborts the request and bubbles
      up with its cause chained (`raise ... from exc`).
    - The relay catches `LeoverseError` (and `OSError`) per work item.
    - The CLI maps surviving errors onto process exit codes.
"""


class LeoverseError(Exception):
    """Base class for all errors raised by this package."""


class AuthError(LeoverseError):
    """Credential missing, empty, or rejected by the remote service."""


class NotConfigured(AuthError):
    """A required credential or setting was never provided."""


class TransportError(LeoverseError):
    """Network-level failure before an HTTP response was received."""


class RemoteError(LeoverseError):
    """Non-2xx response that is not auth-shaped.

    Attributes:
        status_code: HTTP status returned by the remote.
        body: Raw response text, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: str, message: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"remote returned status {status_code}: {body[:500]}")


class ProtocolError(LeoverseError):
    """Well-formed response that cannot be used (missing id, GraphQL errors, bad JSON)."""


class GenerationFailed(LeoverseError):
    """The backend moved a generation job to a failure terminal state."""

    def __init__(self, status: str, generation_id: str | None = None):
        self.status = status
        self.generation_id = generation_id
        super().__init__(f"generation {generation_id or '?'} failed with status: {status}")


class Canceled(LeoverseError):
    """Polling was aborted by the caller's cancel token or deadline."""

    def __init__(self, reason: str = "canceled"):
        self.reason = reason
        super().__init__(reason)


class FetchError(LeoverseError):
    """Downloading a generated asset failed (network or non-2xx)."""


class WriteError(LeoverseError, OSError):
    """Writing a downloaded asset to the local filesystem failed."""


class ValidationError(LeoverseError):
    """Upload payload rejected locally (empty, oversized, or not an image)."""


class IncompleteAttachment(LeoverseError):
    """Attachment(s) uploaded but the record could not be finished.

    Raised when a later upload or the completed-flag update fails after at
    least one upload went through.

    The record now carries an image while still looking pending; a later run
    will generate and attach again unless the flag is fixed by hand.
    """

    def __init__(self, record_id: str, cause: Exception):
        self.record_id = record_id
        super().__init__(
            f"record {record_id} has an uploaded attachment but was not marked completed: {cause}"
        )
