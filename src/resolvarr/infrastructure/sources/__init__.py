from .audio_ranker import rank_candidates, score_audio
from .evaluator import CandidateEvaluator, Evaluation
from .quality_gate import classify_resolution, estimate_bitrate_mbps, is_valid_source
from .title_variants import generate_title_variants, normalize_title

__all__ = [
    "CandidateEvaluator",
    "Evaluation",
    "classify_resolution",
    "estimate_bitrate_mbps",
    "generate_title_variants",
    "is_valid_source",
    "normalize_title",
    "rank_candidates",
    "score_audio",
]
