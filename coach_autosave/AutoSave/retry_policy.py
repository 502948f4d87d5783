# retry_policy.py
# Description: Bounded exponential backoff for failed draft saves
#
# Imports
from dataclasses import dataclass
from typing import Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..exceptions import AutoSaveConfigError
#
########################################################################################################################
#
# Classes:

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 2000


@dataclass
class RetryState:
    """Consecutive failures seen by one controller. Private to that controller."""
    attempt: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def reset(self) -> None:
        self.attempt = 0


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a failed save: retry after ``delay_ms`` or give up."""
    retry: bool
    attempt: int
    delay_ms: Optional[int] = None

    @property
    def delay_seconds(self) -> Optional[float]:
        if self.delay_ms is None:
            return None
        return self.delay_ms / 1000.0


class RetryPolicy:
    """
    Decide whether a failed save is retried.

    ``attempt`` counts consecutive failures before the one being handled. The
    k-th failure is retried after ``base_delay_ms * 2**(k-1)`` as long as
    k < max_attempts; the max_attempts-th failure is final.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS, base_delay_ms: int = DEFAULT_BASE_DELAY_MS):
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
            raise AutoSaveConfigError("'max_attempts' must be an integer >= 1", option="max_attempts", value=max_attempts)
        if isinstance(base_delay_ms, bool) or not isinstance(base_delay_ms, int) or base_delay_ms < 0:
            raise AutoSaveConfigError("'base_delay_ms' must be a non-negative integer", option="base_delay_ms", value=base_delay_ms)
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        from ..config import get_autosave_config

        values = get_autosave_config()
        return cls(max_attempts=values['max_attempts'], base_delay_ms=values['base_delay_ms'])

    def new_state(self) -> RetryState:
        return RetryState(attempt=0, max_attempts=self.max_attempts)

    def backoff_ms(self, attempt: int) -> int:
        """Delay before the retry that follows ``attempt`` earlier failures."""
        return self.base_delay_ms * (2 ** attempt)

    def on_save_failed(self, attempt: int) -> RetryDecision:
        failures = attempt + 1
        if failures < self.max_attempts:
            delay_ms = self.backoff_ms(attempt)
            logger.debug(f"Scheduling auto-save retry {failures}/{self.max_attempts} in {delay_ms}ms")
            return RetryDecision(retry=True, attempt=failures, delay_ms=delay_ms)

        logger.debug(f"Auto-save retries exhausted after {failures} attempts")
        return RetryDecision(retry=False, attempt=failures)

#
# End of retry_policy.py
########################################################################################################################
