# Highlight pipeline
"""
Highlight Pipeline: detection events to ranked, enriched highlights

Pipeline stages:
1. Job polling: wait for remote label-detection and person-tracking jobs
2. Temporal clustering: group dense runs of interesting detections into
   highlight candidates, boosted by crowd presence
3. Enrichment merge: contextual language-model insights, then text
   analytics, with deterministic fallbacks per highlight
4. Ranking: per-viewer ordering by weighted preferences or an external
   recommender

``runner.run_highlight_pipeline`` ties stages 1-3 to persistence.
"""

from .clustering import DetectionEvent, PersonTrack, HighlightCandidate, detect_candidates
from .config import PipelineConfig, EnrichmentDefaults, DEFAULT_PIPELINE_CONFIG
from .enrichment import EnrichedHighlight, EnrichmentMergeLayer
from .poller import JobPoller, JobFailedError, JobTimeoutError, wait_for_job
from .ranking import RankingStrategy, RuleBasedRanker, RecommenderRanker, PersonalizedHighlight

__all__ = [
    "DetectionEvent",
    "PersonTrack",
    "HighlightCandidate",
    "detect_candidates",
    "PipelineConfig",
    "EnrichmentDefaults",
    "DEFAULT_PIPELINE_CONFIG",
    "EnrichedHighlight",
    "EnrichmentMergeLayer",
    "JobPoller",
    "JobFailedError",
    "JobTimeoutError",
    "wait_for_job",
    "RankingStrategy",
    "RuleBasedRanker",
    "RecommenderRanker",
    "PersonalizedHighlight",
]
