"""Source resolution use case.

ContentRequest -> resolved-link cache -> local index (gate + rank)
-> background cloud job (submit, poll, gate + rank, link, cache).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Optional, Protocol, TypeVar

import structlog

from resolvarr.domain.entities.backends import CloudStatus
from resolvarr.domain.entities.errors import (
    CacheUnavailableError,
    JobCancelledError,
    NotFoundError,
    ResolutionError,
    TransientNetworkError,
    ValidationFailureError,
)
from resolvarr.domain.entities.jobs import CancellationToken, JobStatus
from resolvarr.domain.entities.media import (
    Candidate,
    ContentRequest,
    ImmediateSource,
    JobHandle,
    ResolvedLink,
    ResolveOutcome,
    SourceKind,
)
from resolvarr.domain.ports.cloud_backend import CloudBackendPort
from resolvarr.domain.ports.local_index import LocalIndexPort
from resolvarr.domain.ports.resolved_link_repository import ResolvedLinkRepository

log = structlog.get_logger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its collaborators.
# ---------------------------------------------------------------------------


class _ResolverSettings(Protocol):
    min_audio_score: int
    fallback_bitrate_factor: float


class _JobSettings(Protocol):
    poll_interval_seconds: float
    max_poll_attempts: int
    max_transient_retries: int
    retry_backoff_seconds: float


class _Evaluation(Protocol):
    ranked: list[Candidate]
    rejected: int


class _CandidateEvaluator(Protocol):
    def evaluate(
        self,
        files: Any,
        request: ContentRequest,
        source_kind: SourceKind,
        *,
        max_bitrate_mbps: float | None = None,
    ) -> _Evaluation: ...


class _JobTable(Protocol):
    def create(self, content_info: ContentRequest) -> str: ...

    def update(self, job_id: str, **changes: Any) -> Any: ...

    def spawn(
        self, job_id: str, work: Callable[[str, CancellationToken], Awaitable[None]]
    ) -> Any: ...


class _BandwidthLookup(Protocol):
    def max_bitrate_mbps(self, user_id: str) -> float | None: ...


_VariantsFn = Callable[[str, Optional[int]], list[str]]


class SourceResolver:
    """Finds a playable source for a ContentRequest.

    Cache and local-index failures never fail a request. The cloud path
    always runs as a background job so the caller is never blocked on it.
    """

    def __init__(
        self,
        *,
        links: ResolvedLinkRepository,
        jobs: _JobTable,
        evaluator: _CandidateEvaluator,
        variants_fn: _VariantsFn,
        resolver_config: _ResolverSettings,
        job_config: _JobSettings,
        local_index: LocalIndexPort | None = None,
        cloud: CloudBackendPort | None = None,
        bandwidth: _BandwidthLookup | None = None,
    ) -> None:
        self._links = links
        self._jobs = jobs
        self._evaluator = evaluator
        self._variants_fn = variants_fn
        self._config = resolver_config
        self._job_config = job_config
        self._local = local_index
        self._cloud = cloud
        self._bandwidth = bandwidth

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    async def resolve(
        self, request: ContentRequest, *, user_id: str = "anonymous"
    ) -> ResolveOutcome:
        """Immediate source (cache or local index) or a cloud job handle.

        Raises:
            NotFoundError: Nothing local and no cloud backend configured.
        """
        cached = await self._cache_get(request)
        if cached is not None:
            return cached

        max_bitrate = self._max_bitrate(user_id)
        local = await self._best_local(request, max_bitrate)
        if local is not None:
            await self._cache_put(
                request, local.identifier, local.name, local.estimated_bitrate_mbps
            )
            log.info(
                "resolve_local_hit",
                content=request.describe(),
                file_name=local.name,
                tier=int(local.resolution_tier),
                audio_score=local.audio_score,
            )
            return ImmediateSource(
                stream_url=local.identifier,
                file_name=local.name,
                source_kind=SourceKind.LOCAL_INDEX,
                estimated_bitrate_mbps=local.estimated_bitrate_mbps,
            )

        if self._cloud is None:
            log.info("resolve_not_found", content=request.describe(), cloud=False)
            raise NotFoundError(f"no source found for {request.describe()}")

        job_id = self._jobs.create(request)

        async def _work(jid: str, token: CancellationToken) -> None:
            await self._run_cloud_job(jid, token, request, max_bitrate)

        self._jobs.spawn(job_id, _work)
        log.info("resolve_cloud_job_started", content=request.describe(), job_id=job_id)
        return JobHandle(job_id=job_id)

    def _max_bitrate(self, user_id: str) -> float | None:
        if self._bandwidth is None:
            return None
        return self._bandwidth.max_bitrate_mbps(user_id)

    async def _cache_get(self, request: ContentRequest) -> ImmediateSource | None:
        content_id, media_type, season, episode = request.cache_key
        try:
            link = await self._links.get(content_id, media_type, season, episode)
        except CacheUnavailableError as e:
            log.warning("resolved_link_cache_unavailable", op="get", error=e.message)
            return None
        if link is None:
            return None
        log.info("resolve_cache_hit", content=request.describe(), file_name=link.file_name)
        return ImmediateSource(
            stream_url=link.stream_url,
            file_name=link.file_name,
            source_kind=SourceKind.CACHE,
            estimated_bitrate_mbps=link.estimated_bitrate_mbps,
        )

    async def _cache_put(
        self,
        request: ContentRequest,
        stream_url: str,
        file_name: str,
        bitrate_mbps: float | None = None,
    ) -> None:
        try:
            await self._links.put(
                request, stream_url, file_name, estimated_bitrate_mbps=bitrate_mbps
            )
        except CacheUnavailableError as e:
            log.warning("resolved_link_cache_unavailable", op="put", error=e.message)

    async def _local_candidates(
        self, request: ContentRequest, max_bitrate: float | None
    ) -> list[Candidate]:
        if self._local is None:
            return []
        variants = self._variants_fn(request.title, request.year)
        try:
            files = await self._local.find(request, variants)
        except Exception:
            log.warning("local_index_error", content=request.describe(), exc_info=True)
            return []
        evaluation = self._evaluator.evaluate(
            [(f.stream_url, f.file_name, f.size_bytes) for f in files],
            request,
            SourceKind.LOCAL_INDEX,
            max_bitrate_mbps=max_bitrate,
        )
        if evaluation.rejected:
            log.info(
                "local_candidates_gated",
                content=request.describe(),
                rejected=evaluation.rejected,
                accepted=len(evaluation.ranked),
            )
        return evaluation.ranked

    async def _best_local(
        self, request: ContentRequest, max_bitrate: float | None
    ) -> Candidate | None:
        for candidate in await self._local_candidates(request, max_bitrate):
            if candidate.audio_score >= self._config.min_audio_score:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Cloud job
    # ------------------------------------------------------------------

    async def _with_retries(
        self,
        op: str,
        call: Callable[[], Awaitable[T]],
        token: CancellationToken,
    ) -> T:
        """Retry *call* on TransientNetworkError with exponential backoff."""
        attempt = 0
        while True:
            try:
                return await call()
            except TransientNetworkError as e:
                attempt += 1
                if attempt > self._job_config.max_transient_retries:
                    raise
                delay = self._job_config.retry_backoff_seconds * 2 ** (attempt - 1)
                log.warning(
                    "cloud_transient_error",
                    op=op,
                    attempt=attempt,
                    retry_in=delay,
                    error=e.message,
                )
                await token.sleep(delay)

    async def _await_files(
        self, job_id: str, remote_id: str, token: CancellationToken
    ) -> CloudStatus:
        assert self._cloud is not None
        cloud = self._cloud
        for _ in range(self._job_config.max_poll_attempts):
            status = await self._with_retries(
                "poll", lambda: cloud.poll(remote_id, token), token
            )
            if status.ready:
                return status
            if status.progress > 0:
                self._jobs.update(
                    job_id,
                    status=JobStatus.DOWNLOADING,
                    progress=status.progress,
                    message=f"Downloading... {status.progress}%",
                )
            await token.sleep(self._job_config.poll_interval_seconds)
        raise TransientNetworkError("cloud backend did not finish in time")

    async def _run_cloud_job(
        self,
        job_id: str,
        token: CancellationToken,
        request: ContentRequest,
        max_bitrate: float | None,
    ) -> None:
        assert self._cloud is not None
        cloud = self._cloud

        remote_id = await self._with_retries(
            "submit", lambda: cloud.submit(request, token), token
        )
        try:
            status = await self._await_files(job_id, remote_id, token)
            if not status.files:
                raise NotFoundError(f"cloud backend found nothing for {request.describe()}")

            evaluation = self._evaluator.evaluate(
                [(f.file_id, f.name, f.size_bytes) for f in status.files],
                request,
                SourceKind.CLOUD_BACKEND,
                max_bitrate_mbps=max_bitrate,
            )
            if not evaluation.ranked:
                raise ValidationFailureError(
                    f"{evaluation.rejected} file(s) found, all failed the quality gate"
                )

            attempted: list[str] = []
            last_error: ResolutionError | None = None
            for candidate in evaluation.ranked:
                attempted.append(candidate.name)
                self._jobs.update(
                    job_id,
                    attempted_sources=tuple(attempted),
                    message=f"Preparing {candidate.name}",
                )
                try:
                    link = await self._with_retries(
                        "link",
                        lambda c=candidate: cloud.link(remote_id, c.identifier, token),
                        token,
                    )
                except NotFoundError as e:
                    log.info("cloud_link_unavailable", job_id=job_id, file_name=candidate.name)
                    last_error = e
                    continue

                file_name = link.file_name or candidate.name
                bitrate = candidate.estimated_bitrate_mbps
                await self._cache_put(request, link.stream_url, file_name, bitrate)
                self._jobs.update(
                    job_id,
                    status=JobStatus.COMPLETED,
                    message="Ready",
                    result=ImmediateSource(
                        stream_url=link.stream_url,
                        file_name=file_name,
                        source_kind=SourceKind.CLOUD_BACKEND,
                        estimated_bitrate_mbps=bitrate,
                    ),
                )
                log.info("cloud_job_completed", job_id=job_id, file_name=file_name)
                return

            raise last_error or NotFoundError("no cloud file could be linked")
        except JobCancelledError:
            await cloud.cancel(remote_id)
            raise

    # ------------------------------------------------------------------
    # Fallback
    # ------------------------------------------------------------------

    async def recall(
        self,
        content_id: str,
        media_type: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> ResolvedLink | None:
        """Freshest cached row for the key; None on a miss or cache failure."""
        try:
            return await self._links.get(content_id, media_type, season, episode)
        except CacheUnavailableError as e:
            log.warning("resolved_link_cache_unavailable", op="recall", error=e.message)
            return None

    async def _current_bitrate(
        self,
        request: ContentRequest,
        candidates: list[Candidate],
        current_bitrate: float | None,
        current_file_name: str | None,
    ) -> float | None:
        if current_bitrate is not None and current_bitrate > 0:
            return current_bitrate
        if not current_file_name:
            return None
        for candidate in candidates:
            if candidate.name == current_file_name:
                return candidate.estimated_bitrate_mbps
        row = await self.recall(*request.cache_key)
        if row is not None and row.file_name == current_file_name:
            return row.estimated_bitrate_mbps
        return None

    async def find_alternate(
        self,
        request: ContentRequest,
        *,
        current_bitrate: float | None = None,
        current_file_name: str | None = None,
        user_id: str = "anonymous",
    ) -> ImmediateSource | None:
        """Lower-bitrate local alternative to the file currently playing.

        The playing file's bitrate is the explicit *current_bitrate*, else the
        estimate of *current_file_name* (local index or cached row). The
        alternate must stay below the smaller of ``current *
        fallback_bitrate_factor`` and the user's max bitrate. Returns None
        when neither bound is known or no file fits. Alternates are not
        cached.
        """
        candidates = await self._local_candidates(request, None)
        current = await self._current_bitrate(
            request, candidates, current_bitrate, current_file_name
        )
        bounds = [
            b
            for b in (
                current * self._config.fallback_bitrate_factor if current else None,
                self._max_bitrate(user_id),
            )
            if b is not None
        ]
        if not bounds:
            log.info("fallback_no_bitrate_cap", content=request.describe())
            return None
        cap = min(bounds)

        for candidate in candidates:
            if current_file_name and candidate.name == current_file_name:
                continue
            bitrate = candidate.estimated_bitrate_mbps
            if bitrate is None or bitrate >= cap:
                continue
            log.info(
                "fallback_alternate_found",
                content=request.describe(),
                file_name=candidate.name,
                bitrate_mbps=round(bitrate, 2),
                cap_mbps=round(cap, 2),
            )
            return ImmediateSource(
                stream_url=candidate.identifier,
                file_name=candidate.name,
                source_kind=SourceKind.LOCAL_INDEX,
                estimated_bitrate_mbps=bitrate,
            )

        log.info("fallback_no_alternate", content=request.describe(), cap_mbps=round(cap, 2))
        return None
