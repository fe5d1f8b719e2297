"""
admission/ratelimit.py -- Role-aware sliding-window rate limiting stage.

Built on the `limits` library (the engine underneath slowapi):

  MovingWindowRateLimiter keeps a log of hit timestamps per key and admits a
      hit only if fewer than `max` hits fall inside the last `window`
      seconds, measured from the hit itself. There is no fixed boundary to
      straddle, so a burst at the end of one minute plus a burst at the start
      of the next cannot double the effective rate.

  Storage comes from Settings.rate_limit_storage_uri. "memory://" (default)
      serializes check-and-record per key under a lock; "redis://..." does it
      in a server-side script, which is what a multi-instance deployment
      needs. Either way concurrent requests from one caller cannot both take
      the last slot.

Limits are a role -> item lookup table built once from Settings.role_limits
(validated at startup). Each (role, caller address) pair has its own
bucket. An unknown role at request time is a fault, not a default.
"""

from __future__ import annotations

import math
import time
from typing import Optional

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter

from admission.errors import AdmissionError
from admission.models import AdmissionRequest, Decision, DenyReason
from core.config import Settings


class RateLimitStage:
    name = "rate_limit"

    def __init__(self, settings: Settings, storage: Optional[Storage] = None) -> None:
        self.window_seconds = settings.rate_limit_window_seconds
        self._items: dict[str, RateLimitItem] = {
            role: RateLimitItemPerSecond(limit, self.window_seconds) for role, limit in settings.role_limits.items()
        }
        self.storage = storage if storage is not None else storage_from_string(settings.rate_limit_storage_uri)
        self.limiter = MovingWindowRateLimiter(self.storage)

    def limit_for(self, role: str) -> RateLimitItem:
        try:
            return self._items[role]
        except KeyError:
            raise AdmissionError(f"No rate limit configured for role {role!r}")

    def inspect(self, request: AdmissionRequest) -> Optional[Decision]:
        item = self.limit_for(request.role)
        bucket = f"{request.role}-rate-limit"
        if self.limiter.hit(item, bucket, request.ip):
            return None
        reset_time, _remaining = self.limiter.get_window_stats(item, bucket, request.ip)
        retry_after = max(1, math.ceil(reset_time - time.time()))
        return Decision.deny(DenyReason.RATE_LIMIT, rule=bucket, retry_after=retry_after)

    def reset(self) -> None:
        """Drop every counter. Used by tests and admin tooling."""
        self.storage.reset()
