"""
Attention / Interest Scorer

Consumes one (target identifier or None, timestamp) observation per frame and
maintains, per target:
- cumulative dwell time (ms)
- visit count (a visit starts after more than gap_threshold_ms away)
- an interest score in [0, 100]

Score = floor(time points + visit points)
  time points  = min(80, dwell / 4000 ms * 80)
  visit points = clamp((visits - 1) * 5, 0, 20)

Observations arriving more than gap_threshold_ms after the previous one
(dropped frames, tab switch, the very first observation) move the clock and
the current-target pointer but accrue nothing.
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from driftpick import constants as const

ScoreListener = Callable[[str, int], None]


@dataclass
class ScoringConfig:
    """Thresholds and point weights for interest scoring"""
    gap_threshold_ms: float = const.GAP_THRESHOLD_MS
    full_dwell_ms: float = const.FULL_DWELL_MS
    max_time_points: float = const.MAX_TIME_POINTS
    points_per_return_visit: float = const.POINTS_PER_RETURN_VISIT
    max_visit_points: float = const.MAX_VISIT_POINTS

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ScoringConfig":
        data = data or {}
        return cls(**{
            name: float(data[name])
            for name in cls.__dataclass_fields__
            if data.get(name) is not None
        })


@dataclass
class TargetRecord:
    """Accumulated attention for one target"""
    total_dwell_ms: float = 0.0
    last_seen_timestamp: Optional[float] = None
    visit_count: int = 0
    score: int = 0


@dataclass
class ScoringState:
    current_target: Optional[str] = None
    last_observation_timestamp: Optional[float] = None
    records: Dict[str, TargetRecord] = field(default_factory=dict)


def compute_score(record: TargetRecord, config: ScoringConfig) -> int:
    """Interest score in [0, 100] for a record"""
    time_score = min(
        config.max_time_points,
        (record.total_dwell_ms / config.full_dwell_ms) * config.max_time_points
    )
    visit_score = min(
        config.max_visit_points,
        (record.visit_count - 1) * config.points_per_return_visit
    )
    visit_score = max(0.0, visit_score)
    return int(math.floor(time_score + visit_score))


def score_tier(score: int) -> str:
    """Badge grade for a score: 'low' (<30), 'medium' (<60) or 'high'"""
    if score < const.TIER_MEDIUM_MIN:
        return "low"
    if score < const.TIER_HIGH_MIN:
        return "medium"
    return "high"


class AttentionScorer:
    """
    Per-target dwell / visit / interest tracking

    Listeners receive (identifier, score) after every recomputation. They are
    fire-and-forget: a failing listener is logged and never interrupts scoring.
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        listeners: Iterable[ScoreListener] = ()
    ):
        self.config = config or ScoringConfig()
        self.state = ScoringState()
        self._listeners: List[ScoreListener] = list(listeners)
        self.logger = logging.getLogger(__name__)

    @property
    def current_target(self) -> Optional[str]:
        return self.state.current_target

    @property
    def records(self) -> Dict[str, TargetRecord]:
        return self.state.records

    def add_listener(self, listener: ScoreListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: ScoreListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update(self, target: Optional[str], timestamp_ms: float):
        """
        Record one observation

        Args:
            target: Identifier of the target under the gaze, or None
            timestamp_ms: Observation time in milliseconds
        """
        state = self.state
        previous = state.last_observation_timestamp
        state.last_observation_timestamp = timestamp_ms
        state.current_target = target

        if previous is None:
            return
        delta = timestamp_ms - previous
        if delta < 0 or delta > self.config.gap_threshold_ms:
            self.logger.debug(f"Ignoring observation after {delta:.0f} ms gap")
            return

        if target is None:
            return

        record = state.records.get(target)
        if record is None:
            record = TargetRecord()
            state.records[target] = record

        if (record.last_seen_timestamp is None
                or timestamp_ms - record.last_seen_timestamp > self.config.gap_threshold_ms):
            record.visit_count += 1
            self.logger.debug(f"Visited {target} ({record.visit_count} times)")

        record.last_seen_timestamp = timestamp_ms
        record.total_dwell_ms += delta

        record.score = compute_score(record, self.config)
        self._notify(target, record.score)

    def _notify(self, target: str, score: int):
        for listener in list(self._listeners):
            try:
                listener(target, score)
            except Exception as e:
                self.logger.error(f"Score listener failed for {target}: {e}", exc_info=True)

    def get_score(self, target: str) -> Optional[int]:
        record = self.state.records.get(target)
        return record.score if record else None

    def ranked(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Targets ordered by score, then dwell time (highest first)"""
        items = sorted(
            self.state.records.items(),
            key=lambda item: (item[1].score, item[1].total_dwell_ms),
            reverse=True
        )
        if limit is not None:
            items = items[:limit]
        return [
            {'identifier': identifier, 'tier': score_tier(record.score), **asdict(record)}
            for identifier, record in items
        ]

    def snapshot(self) -> Dict[str, Any]:
        return {
            'current_target': self.state.current_target,
            'last_observation_timestamp': self.state.last_observation_timestamp,
            'targets': self.ranked(),
        }

    def reset(self):
        self.state = ScoringState()
