"""Turns raw backend files into gated, ranked candidates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import structlog

from resolvarr.domain.entities.media import Candidate, ContentRequest, SourceKind
from resolvarr.infrastructure.sources.audio_ranker import rank_candidates, score_audio
from resolvarr.infrastructure.sources.quality_gate import (
    DEFAULT_MIN_MB_PER_MINUTE,
    classify_resolution,
    estimate_bitrate_mbps,
    is_valid_source,
)

log = structlog.get_logger(__name__)

# (identifier, descriptive name, size in bytes)
RawFile = tuple[str, str, Optional[int]]


@dataclass(frozen=True)
class Evaluation:
    """Ranked survivors of the quality gate plus how many were rejected."""

    ranked: list[Candidate] = field(default_factory=list)
    rejected: int = 0

    @property
    def total(self) -> int:
        return len(self.ranked) + self.rejected


class CandidateEvaluator:
    """Classify, gate, score and rank files from either backend.

    ``default_runtime_minutes`` is used only to estimate bitrate when the
    request carries no runtime; the density gate sees the real runtime.
    """

    def __init__(
        self,
        *,
        min_mb_per_minute: Mapping[int, float] | None = None,
        default_runtime_minutes: Mapping[str, float] | None = None,
    ) -> None:
        self._density = dict(min_mb_per_minute or DEFAULT_MIN_MB_PER_MINUTE)
        self._default_runtime = dict(default_runtime_minutes or {})

    def evaluate(
        self,
        files: Iterable[RawFile],
        request: ContentRequest,
        source_kind: SourceKind,
        *,
        max_bitrate_mbps: float | None = None,
    ) -> Evaluation:
        runtime = request.runtime_minutes
        bitrate_runtime = runtime or self._default_runtime.get(request.media_type)

        accepted: list[Candidate] = []
        rejected = 0
        for order, (identifier, name, size) in enumerate(files):
            tier = classify_resolution(name)
            if not is_valid_source(size, tier, runtime, min_mb_per_minute=self._density):
                rejected += 1
                log.debug(
                    "candidate_rejected",
                    name=name,
                    size_bytes=size,
                    tier=int(tier),
                    runtime_minutes=runtime,
                )
                continue
            bitrate = estimate_bitrate_mbps(size, bitrate_runtime)
            accepted.append(
                Candidate(
                    identifier=identifier,
                    name=name,
                    size_bytes=size,
                    resolution_tier=tier,
                    audio_score=score_audio(name),
                    source_kind=source_kind,
                    order=order,
                    estimated_bitrate_mbps=bitrate,
                    over_bandwidth=(
                        max_bitrate_mbps is not None
                        and bitrate is not None
                        and bitrate > max_bitrate_mbps
                    ),
                )
            )
        return Evaluation(ranked=rank_candidates(accepted), rejected=rejected)
