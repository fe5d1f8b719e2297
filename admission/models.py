"""
admission/models.py -- Request snapshot and decision types for admission control.

AdmissionRequest is a plain, framework-free snapshot of what the stages may
look at. The API middleware builds it from the Starlette request; unit tests
build it directly.

Decision is the pipeline's only output. A denial always carries a reason
(bot, shield, rateLimit) even where two reasons share an HTTP response, so
logs and metrics can tell them apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DenyReason(str, Enum):
    BOT = "bot"
    SHIELD = "shield"
    RATE_LIMIT = "rateLimit"


@dataclass(frozen=True)
class AdmissionRequest:
    ip: str
    method: str
    path: str
    query_string: str = ""
    # Header names lowercased by the builder.
    headers: dict[str, str] = field(default_factory=dict)
    role: str = "guest"  # "admin", "user" or "guest"

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    rule: Optional[str] = None  # which signature / bucket triggered the denial
    retry_after: Optional[int] = None  # seconds, rate-limit denials only

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, rule: Optional[str] = None, retry_after: Optional[int] = None) -> "Decision":
        return cls(allowed=False, reason=reason, rule=rule, retry_after=retry_after)

    @property
    def denied(self) -> bool:
        return not self.allowed
