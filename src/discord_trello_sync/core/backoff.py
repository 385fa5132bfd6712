"""Poll cadence backoff after repeated tick failures."""

import structlog

log = structlog.get_logger()


class BackoffController:
    """Counts consecutive poll failures and slows the poll cadence.

    Each time the failure count reaches the threshold, the interval doubles
    and the count starts over. The interval never shrinks back; restoring it
    requires a restart.
    """

    def __init__(self, base_interval: float, failure_threshold: int = 5) -> None:
        if base_interval <= 0:
            raise ValueError("base_interval must be positive")
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")

        self._interval = base_interval
        self._threshold = failure_threshold
        self._failures = 0

    @property
    def interval(self) -> float:
        """Current seconds between poll ticks."""
        return self._interval

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def record_success(self) -> None:
        self._failures = 0

    def record_failure(self) -> bool:
        """Count a failed tick.

        Returns:
            True if this failure doubled the interval
        """
        self._failures += 1
        if self._failures < self._threshold:
            log.warning(
                "poll_failure_recorded",
                consecutive_failures=self._failures,
                threshold=self._threshold,
            )
            return False

        self._interval *= 2
        self._failures = 0
        log.warning("poll_interval_increased", interval_seconds=self._interval)
        return True
