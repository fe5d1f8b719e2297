"""
admission/pipeline.py -- Ordered, short-circuiting admission pipeline.

Pattern: Chain of Responsibility without callbacks. Each stage exposes
inspect(request) -> Decision | None; None means "continue". The pipeline
walks the stages in order and returns the first denial, or allow.

Order is fixed: bot -> shield -> rate limit. The first two are pure
inspections; only the rate limiter mutates shared state, so traffic that is
rejected anyway never spends rate-limit budget.

Fail closed: if a stage raises, classify() raises AdmissionError. The API
layer answers 500 -- a broken pipeline never waves traffic through.

Dry run: denials are still computed and logged, but evaluation carries on
to the next stage and the request is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional, Protocol

from admission.bots import BotStage
from admission.errors import AdmissionError
from admission.models import AdmissionRequest, Decision
from admission.ratelimit import RateLimitStage
from admission.shield import ShieldStage
from core.config import Settings

logger = logging.getLogger("authgate.admission")


class Stage(Protocol):
    name: str

    def inspect(self, request: AdmissionRequest) -> Optional[Decision]: ...


class AdmissionPipeline:
    def __init__(self, stages: Sequence[Stage], dry_run: bool = False) -> None:
        self.stages = list(stages)
        self.dry_run = dry_run

    def classify(self, request: AdmissionRequest) -> Decision:
        """Return the Decision for request. Raises AdmissionError on any stage fault."""
        for stage in self.stages:
            try:
                decision = stage.inspect(request)
            except AdmissionError:
                raise
            except Exception as exc:
                raise AdmissionError(f"Admission stage {stage.name!r} failed") from exc

            if decision is None or decision.allowed:
                continue

            logger.warning(
                "Request denied reason=%s rule=%s ip=%s method=%s path=%s user_agent=%r%s",
                decision.reason.value,
                decision.rule,
                request.ip,
                request.method,
                request.path,
                request.user_agent,
                " (dry run)" if self.dry_run else "",
            )
            if not self.dry_run:
                return decision
        return Decision.allow()


def build_pipeline(settings: Settings) -> AdmissionPipeline:
    """Assemble the standard bot -> shield -> rate-limit pipeline from settings."""
    return AdmissionPipeline(
        stages=[BotStage(settings), ShieldStage(), RateLimitStage(settings)],
        dry_run=settings.admission_dry_run,
    )
