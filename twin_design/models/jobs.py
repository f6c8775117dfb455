"""Provider-side job representations shared by the gateway and the poller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

FAILED_STATUSES = frozenset({"failed", "error"})


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


class PollState(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class JobAlreadyFinished(Exception): ...


@dataclass(frozen=True)
class StatusSnapshot:
    """One parsed answer from the provider's status endpoint."""

    status: Optional[str] = None
    input_image: Optional[str] = None
    output_images: Tuple[str, ...] = ()
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    raw: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.input_image) and bool(self.output_images)

    @property
    def is_failed(self) -> bool:
        return (self.status or "").strip().lower() in FAILED_STATUSES


@dataclass(frozen=True)
class ImmediateJob:
    """The provider answered synchronously with the artifact list inline."""

    output_images: Tuple[str, ...]
    input_image: Optional[str] = None
    raw: str = ""


@dataclass
class QueuedJob:
    """The provider accepted the job and must be polled for its outcome."""

    job_id: str
    status: JobStatus = JobStatus.SUBMITTED
    provider_status: Optional[str] = None

    def advance(self, snapshot: StatusSnapshot) -> JobStatus:
        if self.status.is_terminal:
            raise JobAlreadyFinished(self.job_id)
        if snapshot.is_complete:
            self.status = JobStatus.COMPLETE
        elif snapshot.is_failed:
            self.status = JobStatus.FAILED
        else:
            self.status = JobStatus.PROCESSING
        if snapshot.status:
            self.provider_status = snapshot.status
        return self.status


ExternalJob = Union[ImmediateJob, QueuedJob]


@dataclass
class PollResult:
    state: PollState
    attempts: int
    snapshot: Optional[StatusSnapshot] = None
    history: list[str] = field(default_factory=list)

    @property
    def last_status(self) -> str:
        if self.snapshot is not None and self.snapshot.status:
            return self.snapshot.status
        return "unknown"
