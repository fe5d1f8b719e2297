"""Unit tests for auth/session.py -- SessionTransport.

Covers:
- attach() sets HttpOnly, SameSite=strict, Path=/ and Max-Age = token TTL
- Secure is off in local environments and on everywhere else
- clear() expires the cookie with the SAME attribute set as attach()
- read() prefers the cookie, falls back to Authorization: Bearer
"""

from types import SimpleNamespace

import pytest
from starlette.responses import Response

from auth.session import SessionTransport
from conftest import make_settings


def _set_cookie(response: Response) -> str:
    headers = [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]
    assert len(headers) == 1, headers
    return headers[0]


def _attributes(header: str) -> set[str]:
    """Cookie attributes without the name=value pair and expiry fields."""
    parts = [p.strip().lower() for p in header.split(";")[1:]]
    return {p for p in parts if not p.startswith(("max-age", "expires"))}


@pytest.fixture
def transport(settings) -> SessionTransport:
    return SessionTransport(settings)


@pytest.fixture
def prod_transport() -> SessionTransport:
    return SessionTransport(make_settings(debug=False, environment="production"))


class TestAttach:
    def test_cookie_attributes(self, transport):
        resp = Response()
        transport.attach(resp, "tok123")
        header = _set_cookie(resp)
        lowered = header.lower()
        assert header.startswith("token=tok123")
        assert "httponly" in lowered
        assert "samesite=strict" in lowered
        assert "path=/" in lowered
        assert "max-age=86400" in lowered

    def test_not_secure_in_local_environment(self, transport):
        resp = Response()
        transport.attach(resp, "tok123")
        assert "secure" not in _attributes(_set_cookie(resp))

    def test_secure_outside_local_environment(self, prod_transport):
        resp = Response()
        prod_transport.attach(resp, "tok123")
        assert "secure" in _attributes(_set_cookie(resp))

    def test_explicit_secure_override(self):
        transport = SessionTransport(make_settings(secure_cookies=True))
        resp = Response()
        transport.attach(resp, "tok123")
        assert "secure" in _attributes(_set_cookie(resp))

    def test_max_age_follows_token_ttl(self):
        transport = SessionTransport(make_settings(token_ttl_seconds=600))
        resp = Response()
        transport.attach(resp, "tok123")
        assert "max-age=600" in _set_cookie(resp).lower()


class TestClear:
    @pytest.mark.parametrize("fixture", ["transport", "prod_transport"])
    def test_clear_uses_same_attributes_as_attach(self, request, fixture):
        transport = request.getfixturevalue(fixture)
        attached, cleared = Response(), Response()
        transport.attach(attached, "tok123")
        transport.clear(cleared)
        assert _attributes(_set_cookie(cleared)) == _attributes(_set_cookie(attached))

    def test_clear_expires_cookie(self, transport):
        resp = Response()
        transport.clear(resp)
        header = _set_cookie(resp).lower()
        assert header.startswith("token=")
        assert "max-age=0" in header


class TestRead:
    def test_reads_cookie(self, transport):
        request = SimpleNamespace(cookies={"token": "from-cookie"}, headers={})
        assert transport.read(request) == "from-cookie"

    def test_cookie_wins_over_bearer(self, transport):
        request = SimpleNamespace(
            cookies={"token": "from-cookie"},
            headers={"Authorization": "Bearer from-header"},
        )
        assert transport.read(request) == "from-cookie"

    def test_bearer_fallback(self, transport):
        request = SimpleNamespace(cookies={}, headers={"Authorization": "Bearer from-header"})
        assert transport.read(request) == "from-header"

    @pytest.mark.parametrize("auth_header", ["", "Basic abc", "Bearer ", "bearer"])
    def test_absent(self, transport, auth_header):
        request = SimpleNamespace(cookies={}, headers={"Authorization": auth_header})
        assert transport.read(request) is None
