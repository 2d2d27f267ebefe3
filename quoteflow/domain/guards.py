from __future__ import annotations

from dataclasses import dataclass
import logging
import math

from quoteflow.domain.contracts import LocalMemory
from quoteflow.domain.error_taxonomy import ErrorCode
from quoteflow.domain.models import FormDraft
from quoteflow.domain.validation import is_empty_or_whitespace

RATE_LIMIT_STORAGE_KEY = "quoteFlow:lastSubmitAt"

logger = logging.getLogger("quoteflow.submission")


@dataclass(frozen=True)
class GuardRejection:
    error_code: ErrorCode
    retry_after_seconds: int | None = None


@dataclass
class RateLimitMemory:
    """Timestamp of the last accepted submission on this device.

    Local memory may be unavailable; reads then behave as "never submitted"
    and writes are dropped.
    """

    memory: LocalMemory
    key: str = RATE_LIMIT_STORAGE_KEY

    def last_accepted_at(self) -> int | None:
        try:
            raw = self.memory.get(self.key)
        except Exception:
            logger.warning("rate limit memory unreadable, treating as empty", exc_info=True)
            return None
        if is_empty_or_whitespace(raw):
            return None
        try:
            parsed = int(raw.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None

    def remember(self, timestamp_ms: int) -> None:
        try:
            self.memory.set(self.key, str(timestamp_ms))
        except Exception:
            logger.warning("rate limit memory write failed", exc_info=True)


def honeypot_triggered(draft: FormDraft) -> bool:
    return not is_empty_or_whitespace(draft.honeypot)


def rate_limit_remaining_seconds(*, last_accepted_at: int | None, now_ms: int, window_ms: int) -> int | None:
    if last_accepted_at is None:
        return None
    elapsed = now_ms - last_accepted_at
    if elapsed >= window_ms:
        return None
    return math.ceil((window_ms - elapsed) / 1000)


def run_guards(
    draft: FormDraft,
    *,
    rate_limit: RateLimitMemory,
    now_ms: int,
    window_ms: int,
) -> GuardRejection | None:
    # Honeypot first so automated traffic fails the same way every time.
    if honeypot_triggered(draft):
        return GuardRejection(error_code="abuse_suspected")

    remaining = rate_limit_remaining_seconds(
        last_accepted_at=rate_limit.last_accepted_at(),
        now_ms=now_ms,
        window_ms=window_ms,
    )
    if remaining is not None:
        return GuardRejection(error_code="rate_limited", retry_after_seconds=remaining)
    return None
