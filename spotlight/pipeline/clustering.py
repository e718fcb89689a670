"""Temporal clustering of detection events into highlight candidates.

A single sweep over sorted detection timestamps groups temporally adjacent
events. Runs shorter than the minimum number of distinct timestamps are
discarded as noise. Person-tracking results are folded in afterwards to
boost crowded moments.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG

logger = logging.getLogger(__name__)


@dataclass
class DetectionEvent:
    """A labeled detection at a point in the source video."""
    timestamp_ms: int
    label: str
    confidence: float  # 0-100


@dataclass
class PersonTrack:
    """A tracked person observed at a point in the source video."""
    person_index: int
    timestamp_ms: int


@dataclass
class HighlightCandidate:
    """A temporally bounded span believed to contain an exciting moment."""
    start_time: float  # seconds
    end_time: float  # seconds
    confidence: float
    labels: List[str] = field(default_factory=list)
    person_count: int = 0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def __repr__(self):
        return (
            f"HighlightCandidate({self.start_time:.2f}-{self.end_time:.2f}, "
            f"conf={self.confidence:.1f}, labels={self.labels})"
        )

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "confidence": self.confidence,
            "labels": list(self.labels),
            "person_count": self.person_count,
        }


def filter_interesting(
    events: Iterable[DetectionEvent],
    config: PipelineConfig,
) -> List[DetectionEvent]:
    """Keep allow-listed labels detected above the confidence threshold."""
    allowed = set(config.interesting_labels)
    return [
        e for e in events
        if e.label in allowed and e.confidence > config.min_detection_confidence
    ]


def group_by_timestamp(events: Iterable[DetectionEvent]) -> Dict[int, List[Tuple[str, float]]]:
    """Build timestamp -> [(label, confidence)] preserving event order."""
    grouped: Dict[int, List[Tuple[str, float]]] = {}
    for event in events:
        grouped.setdefault(event.timestamp_ms, []).append((event.label, event.confidence))
    return grouped


def split_into_runs(timestamps: List[int], gap_ms: int) -> List[List[int]]:
    """
    Split sorted timestamps wherever consecutive entries are more than gap_ms apart.

    Returns list of runs (each a list of timestamps).
    """
    runs: List[List[int]] = []
    current: List[int] = []
    last = None

    for ts in timestamps:
        if current and ts - last > gap_ms:
            runs.append(current)
            current = []
        current.append(ts)
        last = ts

    if current:
        runs.append(current)

    return runs


def build_candidate(
    run: List[int],
    grouped: Dict[int, List[Tuple[str, float]]],
) -> HighlightCandidate:
    """Aggregate one run of timestamps into a candidate."""
    confidences = [conf for ts in run for _, conf in grouped[ts]]

    labels: List[str] = []
    for ts in run:
        for label, _ in grouped[ts]:
            if label not in labels:
                labels.append(label)

    return HighlightCandidate(
        start_time=run[0] / 1000,
        end_time=run[-1] / 1000,
        confidence=float(np.mean(confidences)) if confidences else 0.0,
        labels=labels,
    )


def cluster_detections(
    events: Iterable[DetectionEvent],
    config: Optional[PipelineConfig] = None,
) -> List[HighlightCandidate]:
    """
    Group interesting detections into highlight candidates.

    Candidates are returned in discovery (chronological) order; see
    detect_candidates for the ranked output.
    """
    config = config or DEFAULT_PIPELINE_CONFIG

    grouped = group_by_timestamp(filter_interesting(events, config))
    if not grouped:
        return []

    timestamps = sorted(grouped)
    runs = split_into_runs(timestamps, config.cluster_gap_ms)

    candidates = [
        build_candidate(run, grouped)
        for run in runs
        if len(run) >= config.min_cluster_timestamps
    ]

    logger.debug(
        f"Clustered {len(timestamps)} timestamps into {len(runs)} runs, "
        f"{len(candidates)} kept"
    )
    return candidates


def apply_person_tracks(
    candidates: List[HighlightCandidate],
    tracks: Iterable[PersonTrack],
    config: Optional[PipelineConfig] = None,
) -> List[HighlightCandidate]:
    """
    Count distinct tracked people inside each candidate and boost crowded ones.

    Mutates and returns the candidates.
    """
    config = config or DEFAULT_PIPELINE_CONFIG
    tracks = list(tracks)

    for candidate in candidates:
        start_ms = candidate.start_time * 1000
        end_ms = candidate.end_time * 1000
        people = {
            t.person_index for t in tracks
            if start_ms <= t.timestamp_ms <= end_ms
        }
        candidate.person_count = len(people)

        if candidate.person_count > config.crowd_person_threshold:
            boosted = candidate.confidence * config.crowd_confidence_boost
            if config.confidence_cap is not None:
                boosted = min(boosted, config.confidence_cap)
            candidate.confidence = boosted

    return candidates


def detect_candidates(
    events: Iterable[DetectionEvent],
    tracks: Optional[Iterable[PersonTrack]] = None,
    config: Optional[PipelineConfig] = None,
) -> List[HighlightCandidate]:
    """
    Run clustering and the person-tracking pass.

    Returns candidates sorted by confidence (descending); ties keep
    discovery order.
    """
    config = config or DEFAULT_PIPELINE_CONFIG

    candidates = cluster_detections(events, config)
    apply_person_tracks(candidates, tracks or [], config)

    # sorted() is stable
    return sorted(candidates, key=lambda c: c.confidence, reverse=True)
