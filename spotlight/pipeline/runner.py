"""Segment pipeline runner.

Orchestrates detection, clustering, enrichment and persistence for one
source video segment.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from .clustering import HighlightCandidate, detect_candidates
from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .enrichment import EnrichedHighlight, EnrichmentMergeLayer
from .poller import JobPoller
from spotlight.utils.detection import parse_label_events, parse_person_tracks
from spotlight.utils.sources import extract_game_id, extract_game_type, parse_source_ref

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], Awaitable[None]]


@dataclass
class HighlightPipelineResult:
    """Result from one segment pipeline run."""
    source_id: str
    game_type: str
    candidates: List[HighlightCandidate]
    highlights: List[EnrichedHighlight]
    stored: int
    config: PipelineConfig

    @property
    def highlight_ids(self) -> List[str]:
        return [h.highlight_id for h in self.highlights]

    def summary(self) -> dict:
        """Compact result stored on the analysis job."""
        return {
            "source_id": self.source_id,
            "game_type": self.game_type,
            "candidate_count": len(self.candidates),
            "highlight_count": len(self.highlights),
            "stored": self.stored,
            "ai_enhanced": sum(1 for h in self.highlights if h.ai_enhanced),
            "text_analytics_enhanced": sum(1 for h in self.highlights if h.text_analytics_enhanced),
            "highlight_ids": self.highlight_ids,
        }


async def run_highlight_pipeline(
    source_ref: str,
    detection_client,
    enrichment: EnrichmentMergeLayer,
    store,
    poller: Optional[JobPoller] = None,
    config: Optional[PipelineConfig] = None,
    segment_id: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> HighlightPipelineResult:
    """
    Run the full highlight pipeline for one source video.

    Args:
        source_ref: ``s3://bucket/key`` or a local path
        detection_client: Detection/tracking collaborator
        enrichment: Enrichment merge layer
        store: HighlightStore used for persistence
        poller: Job poller (default limits if not provided)
        config: Pipeline configuration (uses defaults if not provided)
        segment_id: Owning segment, recorded on each stored highlight
        progress_callback: Optional async callback for progress updates

    Returns:
        HighlightPipelineResult

    Raises:
        InvalidSourceError: If the source reference is malformed
        JobFailedError: If a detection or tracking job fails
        JobTimeoutError: If a detection or tracking job never finishes
    """
    config = config or DEFAULT_PIPELINE_CONFIG
    poller = poller or JobPoller()

    async def report(progress: float, message: str):
        logger.info(f"[{progress:.0f}%] {message}")
        if progress_callback:
            await progress_callback(progress, message)

    source = parse_source_ref(source_ref)
    source_id = extract_game_id(source.key)
    game_type = extract_game_type(source.key)
    logger.info(f"Running highlight pipeline on {source.uri} (game {source_id}, {game_type})")

    # Stage 1: label detection
    await report(5, "Detecting labels...")
    label_job = await poller.run(
        lambda: detection_client.start_label_detection(source.uri),
        detection_client.get_label_detection,
        job_label="label detection",
    )
    events = parse_label_events(label_job.result)
    logger.info(f"Label detection returned {len(events)} events")

    # Stage 2: person tracking
    await report(30, "Tracking people...")
    person_job = await poller.run(
        lambda: detection_client.start_person_tracking(source.uri),
        detection_client.get_person_tracking,
        job_label="person tracking",
    )
    tracks = parse_person_tracks(person_job.result)
    logger.info(f"Person tracking returned {len(tracks)} observations")

    # Stage 3: clustering
    await report(50, "Clustering detections...")
    candidates = detect_candidates(events, tracks, config)
    logger.info(f"Found {len(candidates)} highlight candidates")

    # Stage 4: enrichment
    await report(60, f"Enriching {len(candidates)} highlights...")
    highlights = await enrichment.enrich(
        candidates,
        source_id=source_id,
        source_video=source.uri,
        game_type=game_type,
        created_at=datetime.utcnow(),
    )

    # Stage 5: persistence
    await report(90, "Saving highlights...")
    stored = 0
    if highlights:
        stored = await store.batch_put([h.to_dict() for h in highlights], segment_id=segment_id)

    await report(100, f"Found {len(highlights)} highlights")

    return HighlightPipelineResult(
        source_id=source_id,
        game_type=game_type,
        candidates=candidates,
        highlights=highlights,
        stored=stored,
        config=config,
    )
