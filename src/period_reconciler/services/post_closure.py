"""Verify a period closure and suggest the period that follows it.

The closure write may land after the caller asks, so verification polls
the period with a linear backoff under an overall timeout. Once the
period reads as closed, the next free range is computed from the
company periodicity.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID

from period_reconciler.calculators.intervals import next_range, suggest
from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator
from period_reconciler.calculators.types import (
    Period,
    PeriodState,
    Periodicity,
    SuggestedRange,
)
from period_reconciler.config import Settings
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClosureVerificationConfig:
    """
    Closure verification tuning.

    Attributes:
        max_retries: Reads of the period before giving up. Default 5.
        backoff_seconds: Base delay; attempt n waits n * backoff_seconds.
            Default 1 second.
        timeout_seconds: Overall budget for the verification. Default 10.
    """

    max_retries: int = 5
    backoff_seconds: float = 1.0
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> ClosureVerificationConfig:
        return cls(
            max_retries=settings.closure_max_retries,
            backoff_seconds=settings.closure_backoff_seconds,
            timeout_seconds=settings.closure_timeout_seconds,
        )


@dataclass
class PostClosureResult:
    """Outcome of a closure verification."""

    success: bool = False
    message: str = ""
    closed_period: Period | None = None
    next_period_suggestion: SuggestedRange | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str, error: str) -> PostClosureResult:
        self.success = False
        self.message = message
        self.error = error
        self.errors.append(error)
        return self


class ClosureNotVerified(Exception):
    """The period could not be read back as closed."""


class PostClosureDetectionService:
    """Confirms a closure then proposes the next period."""

    def __init__(
        self,
        store: PeriodStore,
        config: ClosureVerificationConfig | None = None,
        normalizer: NameNormalizer | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.store = store
        self.config = config or ClosureVerificationConfig()
        self.normalizer = normalizer or NameNormalizer(NameCache())
        self._sleep = sleep

    async def verify_closure_and_detect_next(
        self, period_id: UUID, company_id: UUID
    ) -> PostClosureResult:
        """Verify the period is closed and suggest its successor. Never raises."""
        result = PostClosureResult()

        try:
            closed = await asyncio.wait_for(
                self._wait_until_closed(period_id, company_id),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Closure verification of %s timed out", period_id)
            return result.fail(
                "The period closure could not be verified",
                f"Verification timed out after {self.config.timeout_seconds}s",
            )
        except ClosureNotVerified as e:
            logger.warning("Closure of %s not verified: %s", period_id, e)
            return result.fail("The period closure could not be verified", str(e))
        except Exception as e:
            logger.exception("Closure verification of %s failed", period_id)
            return result.fail("Critical error verifying the closure", str(e))

        result.closed_period = closed
        logger.info("Verified closure of period %s", closed.display_name)

        try:
            suggestion = await self._next_free_range(company_id, closed)
        except Exception as e:
            logger.exception("Next period detection failed for company %s", company_id)
            return result.fail("Closure verified but the next period could not be detected", str(e))

        if suggestion is None:
            return result.fail(
                "Closure verified but no free period was found",
                "Every candidate range within one cycle already exists",
            )

        result.success = True
        result.next_period_suggestion = suggestion
        result.message = f"Next period detected: {suggestion.display_name}"
        return result

    async def _wait_until_closed(self, period_id: UUID, company_id: UUID) -> Period:
        """Poll the company's period until it reads closed, backing off linearly."""
        retries = self.config.max_retries
        for attempt in range(1, retries + 1):
            try:
                period = await self.store.get_period(period_id)
            except Exception as e:
                logger.warning(
                    "Verification attempt %d/%d for %s failed: %s", attempt, retries, period_id, e
                )
                if attempt == retries:
                    raise ClosureNotVerified(str(e)) from e
                await self._sleep(self.config.backoff_seconds * attempt)
                continue

            if period is None or period.company_id != company_id:
                raise ClosureNotVerified(f"Period {period_id} not found")

            if period.state == PeriodState.CLOSED.value:
                return period

            if attempt == retries:
                raise ClosureNotVerified(
                    f"Period in state '{period.state}', expected '{PeriodState.CLOSED.value}'"
                )
            logger.debug(
                "Period %s still %s, retrying (%d/%d)", period_id, period.state, attempt, retries
            )
            await self._sleep(self.config.backoff_seconds * attempt)

        raise ClosureNotVerified("Maximum verification attempts reached")

    async def _next_free_range(
        self, company_id: UUID, closed: Period
    ) -> SuggestedRange | None:
        """First range after the closed period that is not stored yet.

        The walk is bounded by one cycle.
        """
        periodicity = Periodicity(await self.store.get_company_periodicity(company_id))
        candidate = next_range(closed.end_date, periodicity)
        limit = SequenceCalculator.cycle_length(periodicity, candidate.start.year)

        for _ in range(limit):
            existing = await self.store.find_period_by_range(
                company_id, candidate.start, candidate.end, periodicity
            )
            if existing is None:
                return suggest(candidate, periodicity, self.normalizer)
            logger.info("Range %s already exists, trying the next one", candidate)
            candidate = next_range(candidate.end, periodicity)
        return None
