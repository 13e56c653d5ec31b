"""Runtime configuration for the Leonardo client and the Airtable relay.

Architectural role:
    Centralizes endpoint URLs, polling/timeout knobs, datastore credentials, and
    cookie lookup for `leoverse.api.cli`, which is the only place settings are
    instantiated and handed down to the lower layers.

Resolution:
    Values default from environment variables when a settings object is
    created (not at import time), so `.env` files loaded by the CLI and
    `monkeypatch.setenv` in tests are both honoured.

Relevant environment variables:
    - `LEONARDO_COOKIE`, `LEONARDO_COOKIE_FILE`, `LEONARDO_GRAPHQL_URL`
    - `POLL_INTERVAL`, `GENERATION_TIMEOUT`, `OUTPUT_DIR`
    - `AIRTABLE_API_KEY`, `AIRTABLE_BASE_ID`, `AIRTABLE_TABLE_NAME`
    - `AIRTABLE_PROMPT_FIELD`, `AIRTABLE_DONE_FIELD`, `AIRTABLE_IMAGE_FIELD`

Failure behavior:
    Missing datastore credentials surface as `NotConfigured` from
    `AirtableSettings.require`; a missing cookie is represented as `None` and
    rejected later by the session store. A non-numeric `POLL_INTERVAL` or
    `GENERATION_TIMEOUT` raises `NotConfigured` naming the variable.
"""

import os
from dataclasses import dataclass, field

from leoverse.core.errors import NotConfigured

DEFAULT_GRAPHQL_URL = "https://api.leonardo.ai/v1/graphql"
AIRTABLE_API_URL = "https://api.airtable.com/v0"
AIRTABLE_CONTENT_URL = "https://content.airtable.com/v0"

# Per-call ceilings; the poll loop itself is only bounded by GENERATION_TIMEOUT.
GENERATION_REQUEST_TIMEOUT = 300.0
DATASTORE_REQUEST_TIMEOUT = 30.0
DOWNLOAD_TIMEOUT = 60.0


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise NotConfigured(f"{name} must be a number of seconds, got {raw!r}") from None


@dataclass(frozen=True)
class LeonardoSettings:
    """Generation-side configuration."""

    cookie: str = field(default_factory=lambda: _env("LEONARDO_COOKIE"))
    cookie_file: str = field(default_factory=lambda: _env("LEONARDO_COOKIE_FILE", "cookie.txt"))
    graphql_url: str = field(default_factory=lambda: _env("LEONARDO_GRAPHQL_URL", DEFAULT_GRAPHQL_URL))
    poll_interval: float = field(default_factory=lambda: _env_float("POLL_INTERVAL", 5.0))
    generation_timeout: float = field(default_factory=lambda: _env_float("GENERATION_TIMEOUT", 0.0))
    output_dir: str = field(default_factory=lambda: _env("OUTPUT_DIR", "output"))
    request_timeout: float = GENERATION_REQUEST_TIMEOUT


@dataclass(frozen=True)
class AirtableSettings:
    """Datastore-side configuration."""

    api_key: str = field(default_factory=lambda: _env("AIRTABLE_API_KEY"))
    base_id: str = field(default_factory=lambda: _env("AIRTABLE_BASE_ID"))
    table_name: str = field(default_factory=lambda: _env("AIRTABLE_TABLE_NAME"))
    prompt_field: str = field(default_factory=lambda: _env("AIRTABLE_PROMPT_FIELD", "Prompt"))
    done_field: str = field(default_factory=lambda: _env("AIRTABLE_DONE_FIELD", "Generated"))
    image_field: str = field(default_factory=lambda: _env("AIRTABLE_IMAGE_FIELD", "Image"))
    request_timeout: float = DATASTORE_REQUEST_TIMEOUT

    def require(self) -> "AirtableSettings":
        """Return self, or raise `NotConfigured` naming every missing variable."""
        missing = [
            name
            for name, value in (
                ("AIRTABLE_API_KEY", self.api_key),
                ("AIRTABLE_BASE_ID", self.base_id),
                ("AIRTABLE_TABLE_NAME", self.table_name),
            )
            if not value
        ]
        if missing:
            raise NotConfigured(f"missing datastore settings: {', '.join(missing)}")
        return self


def load_cookie(path: str | None) -> str | None:
    """Load raw cookie material from a local file.

    Args:
        path: Cookie file path or `None`.

    Returns:
        Stripped file contents, or `None` when the path is unset, missing, or
        the file is empty. The content may be a bare token, a full cookie
        pair, or a JSON session blob; normalization is the session store's job.
    """
    if not path or not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        content = f.read().strip()
    return content or None


def resolve_cookie(flag_value: str | None, settings: LeonardoSettings) -> str | None:
    """Pick the cookie source: explicit flag, then environment, then cookie file."""
    if flag_value:
        return flag_value
    if settings.cookie:
        return settings.cookie
    return load_cookie(settings.cookie_file)
