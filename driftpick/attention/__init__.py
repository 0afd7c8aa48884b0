"""
Attention Module
Hit-testing of gaze points and per-target interest scoring
"""

from driftpick.attention.interest_scorer import (
    AttentionScorer,
    ScoringConfig,
    ScoringState,
    TargetRecord,
    compute_score,
    score_tier
)
from driftpick.attention.target_map import TargetMap, TargetRegion

__all__ = [
    'AttentionScorer',
    'ScoringConfig',
    'ScoringState',
    'TargetRecord',
    'compute_score',
    'score_tier',
    'TargetMap',
    'TargetRegion'
]
