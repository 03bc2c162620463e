"""
Rollout monitor: polls an instance refresh until it finishes or time runs out.

The monitor is a small state machine over RefreshStatus. All I/O is
injected (status fetch, clock, sleep) so the loop can be driven without
real AWS calls or wall-clock delays.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from backoff import FixedBackoff
from errors import RolloutFailedError, RolloutTimeoutError
from models import RefreshStatus, RolloutProgress

logger = logging.getLogger(__name__)


class MonitorAction(Enum):
    WAIT = "wait"
    SUCCEED = "succeed"
    FAIL = "fail"


def next_action(status: RefreshStatus) -> MonitorAction:
    """Decide what the monitor does after observing `status`."""
    if status is RefreshStatus.SUCCESSFUL:
        return MonitorAction.SUCCEED
    if status in (RefreshStatus.FAILED, RefreshStatus.CANCELLED):
        return MonitorAction.FAIL
    # Pending, InProgress and anything unrecognised keep the loop going.
    return MonitorAction.WAIT


class RolloutMonitor:
    """Waits for an instance refresh to reach a terminal status."""

    def __init__(
        self,
        refresh_id: str,
        fetch: Callable[[], RolloutProgress],
        timeout: float = 1800,
        backoff=None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            refresh_id: Instance refresh being watched
            fetch: Returns the current RolloutProgress of the refresh
            timeout: Wall-clock budget for the whole wait (seconds)
            backoff: Strategy with a delay(attempt) method; fixed 30s by default
            clock: Monotonic time source (time.monotonic by default)
            sleep: Sleep function (time.sleep by default)
        """
        self.refresh_id = refresh_id
        self.fetch = fetch
        self.timeout = timeout
        self.backoff = backoff or FixedBackoff(30.0)
        self.clock = clock or time.monotonic
        self.sleep = sleep or time.sleep

        self.state = RefreshStatus.PENDING
        self.polls = 0
        self.last_progress: Optional[RolloutProgress] = None

    def poll(self) -> MonitorAction:
        """Fetch the status once and apply the transition."""
        progress = self.fetch()
        self.polls += 1
        self.last_progress = progress
        self.state = progress.status

        pct = (
            f"{progress.percentage_complete}%"
            if progress.percentage_complete is not None
            else "?%"
        )
        shown = progress.raw_status or progress.status.value
        logger.info(f"Instance refresh status: {shown} ({pct} complete)")

        action = next_action(progress.status)
        if progress.status is RefreshStatus.UNKNOWN:
            logger.warning(
                f"Unknown refresh status: {progress.raw_status!r} "
                f"(refresh {self.refresh_id}); continuing to poll"
            )
        return action

    def wait(self) -> RolloutProgress:
        """
        Poll until the refresh succeeds, fails, or the timeout elapses.

        Returns:
            The final (Successful) RolloutProgress

        Raises:
            RolloutFailedError: Refresh reached Failed or Cancelled
            RolloutTimeoutError: Budget exhausted before a terminal status
        """
        logger.info(
            f"Waiting for instance refresh {self.refresh_id} to complete "
            f"(timeout: {self.timeout}s)..."
        )
        start = self.clock()
        attempt = 0

        while True:
            elapsed = self.clock() - start
            if elapsed >= self.timeout:
                logger.error("Timeout reached waiting for instance refresh completion")
                raise RolloutTimeoutError(
                    self.refresh_id, self.timeout, self.state.value
                )

            action = self.poll()

            if action is MonitorAction.SUCCEED:
                logger.info(
                    f"✓ Instance refresh completed successfully after {self.polls} poll(s)"
                )
                return self.last_progress

            if action is MonitorAction.FAIL:
                status = self.last_progress.raw_status or self.state.value
                reason = self.last_progress.status_reason
                logger.error(
                    f"Instance refresh failed with status: {status}"
                    + (f" ({reason})" if reason else "")
                )
                raise RolloutFailedError(self.refresh_id, status)

            remaining = self.timeout - (self.clock() - start)
            delay = min(self.backoff.delay(attempt), max(remaining, 0.0))
            attempt += 1
            if delay > 0:
                logger.debug(f"Next status check in {delay:.1f}s")
                self.sleep(delay)
