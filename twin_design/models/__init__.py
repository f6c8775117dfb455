"""Value types passed between the stages of a design job."""

from .assets import AssetInspection, PersistedArtifact, SourceAsset  # noqa: F401
from .jobs import (  # noqa: F401
    ExternalJob,
    ImmediateJob,
    JobAlreadyFinished,
    JobStatus,
    PollResult,
    PollState,
    QueuedJob,
    StatusSnapshot,
)

__all__ = [
    "AssetInspection",
    "ExternalJob",
    "ImmediateJob",
    "JobAlreadyFinished",
    "JobStatus",
    "PersistedArtifact",
    "PollResult",
    "PollState",
    "QueuedJob",
    "SourceAsset",
    "StatusSnapshot",
]
