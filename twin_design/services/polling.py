"""Bounded status polling for queued provider jobs."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from twin_design.config import PipelineConfig
from twin_design.errors import TransformationCancelled
from twin_design.models import JobStatus, PollResult, PollState, QueuedJob, StatusSnapshot

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Optional[StatusSnapshot]]


@dataclass(frozen=True)
class PollingPolicy:
    interval: float = 5.0
    max_attempts: int = 60
    # Optional wall-clock budget in seconds, measured on the coordinator's clock.
    deadline: Optional[float] = None

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "PollingPolicy":
        return cls(interval=config.poll_interval, max_attempts=config.poll_max_attempts)


class JobPollingCoordinator:
    """Query the status endpoint at a fixed interval until the job settles.

    Polls are strictly sequential. ``sleep`` and ``clock`` are injectable so
    tests can run many ticks without waiting; by default the interval is spent
    waiting on ``cancel`` so an aborted caller stops the loop promptly.
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        policy: PollingPolicy | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        cancel: threading.Event | None = None,
    ) -> None:
        self.fetch_status = fetch_status
        self.policy = policy or PollingPolicy()
        self.clock = clock
        self.cancel = cancel
        self._sleep = sleep
        self._event = cancel or threading.Event()

    def _wait(self) -> bool:
        """Spend one interval; returns ``True`` when cancellation was requested."""

        if self._sleep is not None:
            self._sleep(self.policy.interval)
            return self.cancel is not None and self.cancel.is_set()
        return self._event.wait(self.policy.interval)

    def run(self, job: QueuedJob) -> PollResult:
        policy = self.policy
        started = self.clock()
        attempt = 0
        last: Optional[StatusSnapshot] = None
        history: list[str] = []

        while attempt < policy.max_attempts:
            if self._wait():
                logger.warning("Polling cancelled for job %s after %s attempts", job.job_id, attempt)
                raise TransformationCancelled(job.job_id, attempt)
            if policy.deadline is not None and self.clock() - started >= policy.deadline:
                logger.warning("Polling deadline of %ss reached for job %s", policy.deadline, job.job_id)
                break

            attempt += 1
            logger.info("Checking status (attempt %s/%s)...", attempt, policy.max_attempts)
            snapshot = self.fetch_status(job.job_id)
            state = job.advance(snapshot or StatusSnapshot())

            if snapshot is None:
                history.append("unparseable")
                continue

            last = snapshot
            history.append(snapshot.status or "unknown")
            logger.info("Status: %s", snapshot.status or "null")

            if state is JobStatus.COMPLETE:
                logger.info("Job %s complete with %s outputs", job.job_id, len(snapshot.output_images))
                return PollResult(PollState.COMPLETE, attempt, snapshot, history)
            if state is JobStatus.FAILED:
                logger.error("HomeDesigns.ai processing failed: %s", snapshot.status)
                return PollResult(PollState.FAILED, attempt, snapshot, history)

        logger.error("Timeout waiting for job %s after %s attempts", job.job_id, attempt)
        return PollResult(PollState.TIMED_OUT, attempt, last, history)
