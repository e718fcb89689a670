"""Highlight pipeline configuration."""
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_INTERESTING_LABELS = ("Ball", "Sports", "Goal", "Celebration", "Person", "Crowd")


@dataclass
class EnrichmentDefaults:
    """Values substituted when contextual enrichment is unavailable."""

    # Full fallback (call failed, unparseable, or no matching response item)
    play_type: str = "detected"
    title: str = "Auto-detected Highlight"
    target_audience: str = "general"
    excitement_divisor: float = 10.0  # excitement_level = confidence / divisor

    # Per-field defaults for a matched response item missing a field
    partial_play_type: str = "general"
    partial_title_template: str = "Highlight {number}"
    partial_target_audience: str = "general"

    # Gaming context defaults
    emotional_tone: str = "neutral"
    gameplay_type: str = "general"
    audience_appeal: str = "broad"

    def excitement_for(self, confidence: float) -> float:
        return confidence / self.excitement_divisor

    def to_dict(self) -> dict:
        return {
            "play_type": self.play_type,
            "title": self.title,
            "target_audience": self.target_audience,
            "excitement_divisor": self.excitement_divisor,
            "partial_play_type": self.partial_play_type,
            "partial_title_template": self.partial_title_template,
            "partial_target_audience": self.partial_target_audience,
            "emotional_tone": self.emotional_tone,
            "gameplay_type": self.gameplay_type,
            "audience_appeal": self.audience_appeal,
        }


@dataclass
class PipelineConfig:
    """Configuration for detection clustering, enrichment and ranking."""

    # Detection filtering
    interesting_labels: Tuple[str, ...] = DEFAULT_INTERESTING_LABELS
    min_detection_confidence: float = 85.0  # Strictly greater than

    # Temporal clustering
    cluster_gap_ms: int = 5000  # Gap above this starts a new cluster
    min_cluster_timestamps: int = 3  # Shorter runs are noise

    # Person tracking boost
    crowd_person_threshold: int = 5  # Boost applies when count exceeds this
    crowd_confidence_boost: float = 1.2
    confidence_cap: Optional[float] = 100.0  # None disables the clamp

    # Text analytics
    sentiment_confidence_threshold: float = 0.7
    entity_confidence_threshold: float = 0.5  # Min score for team/player entities
    appeal_moderate_threshold: int = 1
    appeal_high_threshold: int = 3

    # Excitement level range
    min_excitement_level: float = 1.0
    max_excitement_level: float = 10.0

    # Rule-based ranking multipliers
    team_weight_multiplier: float = 10.0
    player_weight_multiplier: float = 15.0
    play_type_weight_multiplier: float = 5.0
    sport_weight_multiplier: float = 3.0

    enrichment_defaults: EnrichmentDefaults = field(default_factory=EnrichmentDefaults)

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "interesting_labels": list(self.interesting_labels),
            "min_detection_confidence": self.min_detection_confidence,
            "cluster_gap_ms": self.cluster_gap_ms,
            "min_cluster_timestamps": self.min_cluster_timestamps,
            "crowd_person_threshold": self.crowd_person_threshold,
            "crowd_confidence_boost": self.crowd_confidence_boost,
            "confidence_cap": self.confidence_cap,
            "sentiment_confidence_threshold": self.sentiment_confidence_threshold,
            "entity_confidence_threshold": self.entity_confidence_threshold,
            "appeal_moderate_threshold": self.appeal_moderate_threshold,
            "appeal_high_threshold": self.appeal_high_threshold,
            "min_excitement_level": self.min_excitement_level,
            "max_excitement_level": self.max_excitement_level,
            "team_weight_multiplier": self.team_weight_multiplier,
            "player_weight_multiplier": self.player_weight_multiplier,
            "play_type_weight_multiplier": self.play_type_weight_multiplier,
            "sport_weight_multiplier": self.sport_weight_multiplier,
            "enrichment_defaults": self.enrichment_defaults.to_dict(),
        }


# Default configuration instance
DEFAULT_PIPELINE_CONFIG = PipelineConfig()
