import json

import pytest

from leoverse.core.errors import AuthError, NotConfigured
from leoverse.leonardo.session import DEFAULT_COOKIE_NAME, Session


def test_get_without_credential_raises_not_configured():
    session = Session()
    with pytest.raises(NotConfigured):
        session.get()


def test_not_configured_is_an_auth_error():
    with pytest.raises(AuthError):
        Session().get()


@pytest.mark.parametrize("token", ["abc123", "eyJhbGciOiJIUzI1NiJ9.payload.sig", "x"])
def test_bare_token_gets_cookie_name_prefix(token):
    session = Session()
    assert session.set(token) == f"{DEFAULT_COOKIE_NAME}={token}"
    assert session.get() == f"{DEFAULT_COOKIE_NAME}={token}"


def test_cookie_pair_is_kept_verbatim():
    raw = "__Secure-next-auth.session-token=abc; other=1"
    assert Session(raw).get() == raw


def test_json_session_blob_uses_access_token():
    blob = json.dumps({
        "user": {"name": "n", "email": "e", "sub": "s"},
        "expires": "2030-01-01T00:00:00Z",
        "accessToken": "tok-from-json",
        "accessTokenExpiry": 123,
    })
    session = Session(blob)
    assert session.get() == f"{DEFAULT_COOKIE_NAME}=tok-from-json"
    assert "accessToken" not in session.get()


def test_json_access_token_with_assignment_is_used_as_is():
    blob = json.dumps({"accessToken": "custom=value"})
    assert Session(blob).get() == "custom=value"


def test_json_blob_without_token_leaves_store_unset():
    session = Session(json.dumps({"user": {"name": "n"}}))
    assert not session.is_set
    with pytest.raises(NotConfigured):
        session.get()


def test_invalid_json_is_treated_as_raw_input():
    session = Session("{not json")
    assert session.get() == f"{DEFAULT_COOKIE_NAME}={{not json"


def test_whitespace_is_stripped_and_set_overwrites():
    session = Session("  first \n")
    assert session.get() == f"{DEFAULT_COOKIE_NAME}=first"
    session.set("second")
    assert session.get() == f"{DEFAULT_COOKIE_NAME}=second"


def test_custom_cookie_name():
    assert Session("abc", cookie_name="sid").get() == "sid=abc"
