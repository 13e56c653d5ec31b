"""In-memory session credential store for the Leonardo browser-session API.

Holds exactly one cookie string for the lifetime of the process. There is no
expiry tracking and no refresh; a rejected cookie surfaces as `AuthError` from
the remote client and must be replaced by the operator.
"""

import json
import logging

from leoverse.core.errors import NotConfigured

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "__Secure-next-auth.session-token"


class Session:
    """Single-credential cookie store.

    Accepted raw input forms:
        - bare token: `abc123` -> `<cookie_name>=abc123`
        - cookie pair(s): `name=value; other=1` kept verbatim
        - JSON session blob: `{"accessToken": "abc123", ...}` -> token extracted,
          then formatted like a bare token; a blob without a token leaves the
          store unset
    """

    def __init__(self, raw: str | None = None, cookie_name: str = DEFAULT_COOKIE_NAME):
        self.cookie_name = cookie_name
        self._cookie = ""
        if raw:
            self.set(raw)

    def get(self) -> str:
        if not self._cookie:
            raise NotConfigured("session cookie is not set")
        return self._cookie

    def set(self, raw: str) -> str:
        cookie = (raw or "").strip()

        token = _access_token(cookie)
        if token is not None:
            cookie = token.strip()

        if cookie and "=" not in cookie:
            cookie = f"{self.cookie_name}={cookie}"

        self._cookie = cookie
        logger.debug("Session cookie set (%d chars)", len(cookie))
        return cookie

    @property
    def is_set(self) -> bool:
        return bool(self._cookie)


def _access_token(raw: str) -> str | None:
    """Extract `accessToken` from a JSON session blob.

    Returns `None` when `raw` is not a JSON object (use it as-is), and an
    empty string when it is one without a usable token.
    """
    if not raw.startswith("{"):
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    token = data.get("accessToken")
    return token if isinstance(token, str) else ""
