"""
api/middleware.py -- HTTP middleware that runs the admission pipeline.

Pattern: Interceptor. Every request, not just the auth endpoints, is turned
into an AdmissionRequest and classified before it reaches a route:

  bot / shield  -> 403 "Automated requests are not allowed"
  rateLimit     -> 429 "Rate limit exceeded" + Retry-After
  stage fault   -> 500, request NOT forwarded (fail closed)
  allow         -> call_next(request), response untouched

Bot and shield currently share one external response; the reason is kept
distinct in the Decision, the error code detail and the log line.

Role resolution: a valid session token contributes its role claim; no token
or an invalid one means "guest". Only InvalidTokenError downgrades to guest.
Any other failure while resolving identity is an admission fault.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from admission.errors import AdmissionError
from admission.models import AdmissionRequest, Decision, DenyReason
from api.models import ErrorDetail, ErrorResponse
from auth.errors import InvalidTokenError

logger = logging.getLogger("authgate.api")

_GUEST = "guest"

# Reason -> (status, code, message). Bot and shield converge on purpose.
_DENIAL_RESPONSES: dict[DenyReason, tuple[int, str, str]] = {
    DenyReason.BOT: (403, "forbidden", "Automated requests are not allowed"),
    DenyReason.SHIELD: (403, "forbidden", "Automated requests are not allowed"),
    DenyReason.RATE_LIMIT: (429, "rate_limited", "Rate limit exceeded"),
}


def resolve_role(request: Request) -> str:
    """Return the role claim of the request's session token, or "guest"."""
    state = request.app.state
    token = state.transport.read(request)
    if not token:
        return _GUEST
    try:
        return state.tokens.verify(token).claims.role
    except InvalidTokenError:
        return _GUEST


def build_admission_request(request: Request, role: str) -> AdmissionRequest:
    return AdmissionRequest(
        ip=request.client.host if request.client else "unknown",
        method=request.method,
        path=request.url.path,
        query_string=request.url.query,
        headers={k.lower(): v for k, v in request.headers.items()},
        role=role,
    )


def denial_response(decision: Decision) -> JSONResponse:
    status, code, message = _DENIAL_RESPONSES[decision.reason]
    response = JSONResponse(
        status_code=status,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, detail=decision.reason.value),
        ).model_dump(),
    )
    if decision.retry_after is not None:
        response.headers["Retry-After"] = str(decision.retry_after)
    return response


async def admission_guard(request: Request, call_next):
    """Classify the request and short-circuit on denial or fault."""
    try:
        try:
            role = resolve_role(request)
        except Exception as exc:
            raise AdmissionError("Could not resolve caller role") from exc
        decision = request.app.state.admission.classify(build_admission_request(request, role))
    except AdmissionError:
        logger.exception("Admission pipeline error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="admission_error",
                    message="Something went wrong with security middleware",
                )
            ).model_dump(),
        )

    if decision.denied:
        return denial_response(decision)
    return await call_next(request)
