"""
auth/session.py -- Session token transport over an httpOnly cookie.

Cookie attributes (all non-negotiable):
  httponly=True      JS cannot read the cookie (XSS mitigation).
  samesite="strict"  never sent on cross-site requests (CSRF mitigation).
  secure             HTTPS-only everywhere except local environments
                     (Settings.cookie_secure).
  path="/"           scoped to the origin that set it.
  max_age            equals the token TTL so cookie and token expire together.

clear() deletes with the exact same attribute set as attach(). Browsers
match on name + path + domain and some clients also compare SameSite/Secure;
a delete that differs from the original set leaves the cookie behind.

Layer rule: no imports from api/ or admission/. Starlette's Request/Response
duck types are used; nothing FastAPI-specific is needed.
"""

from __future__ import annotations

from core.config import Settings

_BEARER_PREFIX = "Bearer "


class SessionTransport:
    """Attach, clear and read the session token on HTTP messages."""

    def __init__(self, settings: Settings) -> None:
        self.cookie_name = settings.session_cookie_name
        self.max_age = settings.token_ttl_seconds
        self.secure = settings.cookie_secure

    def cookie_options(self) -> dict:
        """Attribute set shared by attach() and clear()."""
        return {
            "path": "/",
            "httponly": True,
            "samesite": "strict",
            "secure": self.secure,
        }

    def attach(self, response, token: str) -> None:
        """Write the token as the session cookie on response."""
        response.set_cookie(
            self.cookie_name,
            value=token,
            max_age=self.max_age,
            **self.cookie_options(),
        )

    def clear(self, response) -> None:
        """Expire the session cookie on response."""
        response.delete_cookie(self.cookie_name, **self.cookie_options())

    def read(self, request) -> str | None:
        """Return the token presented by request, or None.

        The cookie wins. API clients that cannot hold cookies may send
        Authorization: Bearer <token> instead.
        """
        token = request.cookies.get(self.cookie_name)
        if token:
            return token
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith(_BEARER_PREFIX):
            return auth_header[len(_BEARER_PREFIX) :].strip() or None
        return None
