from .bandwidth import (
    BandwidthReportResult,
    BandwidthSample,
    BandwidthStatus,
    BandwidthTrigger,
    FallbackSession,
    StutterSettings,
)
from .backends import CloudFile, CloudLink, CloudStatus, LocalFile
from .errors import (
    AuthFailureError,
    CacheUnavailableError,
    JobCancelledError,
    JobNotFoundError,
    NotFoundError,
    QuotaExceededError,
    ResolutionError,
    TransientNetworkError,
    ValidationFailureError,
)
from .jobs import CancellationToken, JobStatus, ResolutionJob
from .media import (
    Candidate,
    ContentRequest,
    ImmediateSource,
    JobHandle,
    MediaType,
    ResolutionTier,
    ResolvedLink,
    ResolveOutcome,
    SourceKind,
)

__all__ = [
    "AuthFailureError",
    "BandwidthReportResult",
    "BandwidthSample",
    "BandwidthStatus",
    "BandwidthTrigger",
    "CacheUnavailableError",
    "CloudFile",
    "CloudLink",
    "CloudStatus",
    "CancellationToken",
    "Candidate",
    "ContentRequest",
    "FallbackSession",
    "ImmediateSource",
    "JobCancelledError",
    "JobHandle",
    "JobNotFoundError",
    "JobStatus",
    "LocalFile",
    "MediaType",
    "NotFoundError",
    "QuotaExceededError",
    "ResolutionError",
    "ResolutionJob",
    "ResolutionTier",
    "ResolvedLink",
    "ResolveOutcome",
    "SourceKind",
    "StutterSettings",
    "TransientNetworkError",
    "ValidationFailureError",
]
