"""Enrichment merge layer.

Attaches two independent, fallible enrichment stages to every highlight
candidate, in order:

1. Contextual stage: one batched call to a generative language model that
   returns excitement level, play type, title and target audience per
   highlight. Response items are joined to candidates by id, falling back
   to array position for items without an id.
2. Text-analytics stage: per-highlight sentiment, entity and key-phrase
   detection over the text produced by the contextual stage, plus a derived
   gaming context summary.

Either stage may fail; affected highlights receive deterministic defaults
and an ``*_enhanced=False`` marker. Every highlight leaves the layer fully
populated.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .clustering import HighlightCandidate
from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from spotlight.utils.language import extract_json

logger = logging.getLogger(__name__)


TONE_BY_SENTIMENT = {
    "POSITIVE": "excited",
    "NEGATIVE": "intense",
    "MIXED": "dramatic",
    "NEUTRAL": "neutral",
}

# Checked in order; first match wins
GAMEPLAY_KEYWORDS = (
    ("scoring", ("goal", "score", "touchdown", "dunk", "basket", "home run", "three-pointer")),
    ("defensive", ("save", "block", "tackle", "defense", "defence", "steal", "interception")),
    ("skill", ("skill", "dribble", "trick", "assist", "nutmeg", "crossover", "move")),
    ("celebration", ("celebration", "celebrate", "crowd", "fans", "cheer")),
)

SUPERLATIVES = (
    "amazing", "incredible", "epic", "unbelievable", "spectacular", "insane",
    "best", "greatest", "stunning", "legendary", "brilliant", "sensational",
)


@dataclass
class EnrichedHighlight:
    """A highlight candidate with identity and enrichment fields."""
    source_id: str
    source_video: str
    ordinal: int
    created_at: datetime
    start_time: float
    end_time: float
    confidence: float
    labels: List[str] = field(default_factory=list)
    person_count: int = 0
    sport: Optional[str] = None

    # Contextual stage
    excitement_level: Optional[float] = None
    play_type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    target_audience: Optional[str] = None
    ai_enhanced: bool = False

    # Text-analytics stage
    sentiment: Optional[Dict[str, Any]] = None
    entities: Optional[List[Dict[str, Any]]] = None
    key_phrases: Optional[List[Dict[str, Any]]] = None
    gaming_context: Optional[Dict[str, str]] = None
    teams: List[str] = field(default_factory=list)
    players: List[str] = field(default_factory=list)
    text_analytics_enhanced: bool = False

    enrichment_complete: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def highlight_id(self) -> str:
        return make_highlight_id(self.source_id, self.created_at, self.ordinal)

    @property
    def ref(self) -> str:
        """Identifier used to join contextual responses within one batch."""
        return f"h{self.ordinal}"

    @classmethod
    def from_candidate(
        cls,
        candidate: HighlightCandidate,
        ordinal: int,
        source_id: str,
        source_video: str,
        created_at: datetime,
        sport: Optional[str] = None,
    ) -> "EnrichedHighlight":
        return cls(
            source_id=source_id,
            source_video=source_video,
            ordinal=ordinal,
            created_at=created_at,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            confidence=candidate.confidence,
            labels=list(candidate.labels),
            person_count=candidate.person_count,
            sport=sport,
        )

    def to_dict(self) -> dict:
        return {
            "highlight_id": self.highlight_id,
            "source_id": self.source_id,
            "source_video": self.source_video,
            "ordinal": self.ordinal,
            "created_at": self.created_at.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "confidence": self.confidence,
            "labels": list(self.labels),
            "person_count": self.person_count,
            "sport": self.sport,
            "excitement_level": self.excitement_level,
            "play_type": self.play_type,
            "title": self.title,
            "description": self.description,
            "target_audience": self.target_audience,
            "ai_enhanced": self.ai_enhanced,
            "sentiment": self.sentiment,
            "entities": self.entities,
            "key_phrases": self.key_phrases,
            "gaming_context": self.gaming_context,
            "teams": list(self.teams),
            "players": list(self.players),
            "text_analytics_enhanced": self.text_analytics_enhanced,
            "enrichment_complete": self.enrichment_complete,
        }


def make_highlight_id(source_id: str, created_at: datetime, ordinal: int) -> str:
    """Deterministic highlight id for (source, creation timestamp, ordinal)."""
    stamp = created_at.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created_at.microsecond // 1000:03d}Z"
    return f"{source_id}-{stamp}-{ordinal}"


def clamp_excitement(value: float, config: PipelineConfig) -> float:
    return max(config.min_excitement_level, min(config.max_excitement_level, value))


def normalize_play_type(value: Any) -> Optional[str]:
    """Normalize a free-form play type ("Skill Move" -> "skill_move")."""
    if not isinstance(value, str) or not value.strip():
        return None
    return "_".join(value.strip().lower().replace("-", " ").split())


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _text_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# =============================================================================
# Contextual stage
# =============================================================================

def build_context(
    highlights: List[EnrichedHighlight],
    source_video: str,
    game_type: str,
) -> dict:
    """Segment-level context sent to the language model."""
    return {
        "videoSource": source_video,
        "gameType": game_type,
        "highlights": [
            {
                "id": h.ref,
                "startTime": h.start_time,
                "duration": h.duration,
                "labels": list(h.labels),
                "confidence": h.confidence,
            }
            for h in highlights
        ],
    }


def build_prompt(context: dict) -> str:
    return (
        "Analyze these sports video highlights and provide enhanced context:\n\n"
        f"Game Context: {json.dumps(context, indent=2)}\n\n"
        "For each highlight, provide:\n"
        "1. excitementLevel (1-10)\n"
        "2. playType (goal, save, dunk, celebration, skill_move, general, ...)\n"
        "3. title (a short recommended title)\n"
        "4. targetAudience (who will enjoy it most)\n"
        "5. description (optional, one sentence)\n\n"
        "Respond only with JSON of the form "
        '{"highlights": [{"id": ..., "excitementLevel": ..., "playType": ..., '
        '"title": ..., "targetAudience": ..., "description": ...}]} '
        "using the id given for each highlight."
    )


def parse_contextual_response(text: str) -> List[Any]:
    """
    Parse the language model output into a list of per-highlight items.

    Raises:
        ValueError: If the output is not JSON or has no highlights array
    """
    try:
        payload = json.loads(extract_json(text))
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Unparseable contextual response: {e}") from e

    if isinstance(payload, dict):
        items = payload.get("highlights")
    else:
        items = payload

    if not isinstance(items, list):
        raise ValueError("Contextual response has no highlights array")
    return items


def match_insights(
    highlights: List[EnrichedHighlight],
    items: List[Any],
) -> List[Optional[dict]]:
    """
    Join response items to highlights.

    Items carrying a known id are matched by id. An item without an id is
    matched to the highlight at the same array position. Anything else
    leaves the highlight unmatched (None).
    """
    refs = {h.ref for h in highlights}
    by_id = {}
    for item in items:
        if isinstance(item, dict) and item.get("id") in refs:
            by_id.setdefault(item["id"], item)

    matched: List[Optional[dict]] = []
    for index, highlight in enumerate(highlights):
        if highlight.ref in by_id:
            matched.append(by_id[highlight.ref])
        elif index < len(items) and isinstance(items[index], dict) and "id" not in items[index]:
            matched.append(items[index])
        else:
            matched.append(None)
    return matched


def apply_insight(
    highlight: EnrichedHighlight,
    insight: dict,
    number: int,
    config: PipelineConfig,
):
    """Merge one matched response item, defaulting missing fields."""
    defaults = config.enrichment_defaults

    excitement = _coerce_number(insight.get("excitementLevel"))
    if excitement is None:
        excitement = defaults.excitement_for(highlight.confidence)

    highlight.excitement_level = clamp_excitement(excitement, config)
    highlight.play_type = normalize_play_type(insight.get("playType")) or defaults.partial_play_type
    highlight.title = _text_or_none(insight.get("title")) or defaults.partial_title_template.format(number=number)
    highlight.target_audience = _text_or_none(insight.get("targetAudience")) or defaults.partial_target_audience
    highlight.description = _text_or_none(insight.get("description"))
    highlight.ai_enhanced = True


def apply_contextual_fallback(highlight: EnrichedHighlight, config: PipelineConfig):
    """Deterministic values when no contextual insight is available."""
    defaults = config.enrichment_defaults
    highlight.excitement_level = clamp_excitement(defaults.excitement_for(highlight.confidence), config)
    highlight.play_type = defaults.play_type
    highlight.title = defaults.title
    highlight.target_audience = defaults.target_audience
    highlight.ai_enhanced = False


class ContextualEnricher:
    """Batched contextual enrichment through a generative language model.

    The client must provide ``async invoke(prompt: str) -> str``.
    """

    def __init__(self, client, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or DEFAULT_PIPELINE_CONFIG

    async def enrich(
        self,
        highlights: List[EnrichedHighlight],
        source_video: str,
        game_type: str,
    ) -> List[EnrichedHighlight]:
        if not highlights:
            return highlights

        if self.client is None:
            for h in highlights:
                apply_contextual_fallback(h, self.config)
            return highlights

        try:
            prompt = build_prompt(build_context(highlights, source_video, game_type))
            logger.info(f"Requesting contextual enrichment for {len(highlights)} highlights")
            response_text = await self.client.invoke(prompt)
            items = parse_contextual_response(response_text)
        except Exception as e:
            logger.warning(f"Contextual enrichment failed, using fallbacks: {e}")
            for h in highlights:
                apply_contextual_fallback(h, self.config)
            return highlights

        matched = match_insights(highlights, items)
        for number, (highlight, insight) in enumerate(zip(highlights, matched), start=1):
            if insight is None:
                apply_contextual_fallback(highlight, self.config)
            else:
                apply_insight(highlight, insight, number, self.config)

        missing = sum(1 for m in matched if m is None)
        if missing:
            logger.warning(f"Contextual response missing {missing} of {len(highlights)} highlights")

        return highlights


# =============================================================================
# Text-analytics stage
# =============================================================================

def derive_emotional_tone(
    sentiment: Optional[dict],
    config: PipelineConfig,
) -> str:
    default = config.enrichment_defaults.emotional_tone
    if not sentiment:
        return default
    score = _coerce_number(sentiment.get("score"))
    if score is None or score < config.sentiment_confidence_threshold:
        return default
    return TONE_BY_SENTIMENT.get(str(sentiment.get("label", "")).upper(), default)


def derive_gameplay_type(
    entities: Optional[List[dict]],
    key_phrases: Optional[List[dict]],
    config: PipelineConfig,
) -> str:
    texts = [
        str(item.get("text", "")).lower()
        for item in (entities or []) + (key_phrases or [])
        if isinstance(item, dict)
    ]
    for gameplay_type, keywords in GAMEPLAY_KEYWORDS:
        if any(keyword in text for text in texts for keyword in keywords):
            return gameplay_type
    return config.enrichment_defaults.gameplay_type


def audience_appeal_score(key_phrases: Optional[List[dict]]) -> int:
    """One point per key phrase containing a superlative."""
    score = 0
    for phrase in key_phrases or []:
        if not isinstance(phrase, dict):
            continue
        words = str(phrase.get("text", "")).lower().split()
        if any(word.strip(".,!?") in SUPERLATIVES for word in words):
            score += 1
    return score


def derive_audience_appeal(
    key_phrases: Optional[List[dict]],
    config: PipelineConfig,
) -> str:
    score = audience_appeal_score(key_phrases)
    if score >= config.appeal_high_threshold:
        return "high"
    if score >= config.appeal_moderate_threshold:
        return "moderate"
    return config.enrichment_defaults.audience_appeal


def derive_gaming_context(highlight: EnrichedHighlight, config: PipelineConfig) -> Dict[str, str]:
    return {
        "emotional_tone": derive_emotional_tone(highlight.sentiment, config),
        "gameplay_type": derive_gameplay_type(highlight.entities, highlight.key_phrases, config),
        "audience_appeal": derive_audience_appeal(highlight.key_phrases, config),
    }


def entity_names(entities: Optional[List[dict]], entity_type: str, min_score: float) -> List[str]:
    names: List[str] = []
    for entity in entities or []:
        if not isinstance(entity, dict) or entity.get("type") != entity_type:
            continue
        score = _coerce_number(entity.get("score"))
        text = _text_or_none(entity.get("text"))
        if text and (score is None or score >= min_score) and text not in names:
            names.append(text)
    return names


class TextAnalyticsEnricher:
    """Per-highlight sentiment, entity and key-phrase enrichment.

    The client must provide async ``detect_sentiment``, ``detect_entities``
    and ``detect_key_phrases`` methods taking the text to analyze.
    """

    def __init__(self, client, config: Optional[PipelineConfig] = None, concurrency: int = 5):
        self.client = client
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.concurrency = max(1, concurrency)

    async def enrich(self, highlights: List[EnrichedHighlight]) -> List[EnrichedHighlight]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(highlight: EnrichedHighlight):
            async with semaphore:
                await self._enrich_one(highlight)

        await asyncio.gather(*(run_one(h) for h in highlights))
        return highlights

    async def _analyze(self, text: str):
        """Run the three analyses; raises on any call failure or malformed result."""
        results = await asyncio.gather(
            self.client.detect_sentiment(text),
            self.client.detect_entities(text),
            self.client.detect_key_phrases(text),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        sentiment, entities, key_phrases = results
        if sentiment is not None and not isinstance(sentiment, dict):
            raise ValueError(f"Unexpected sentiment result: {sentiment!r}")
        if entities is not None and not isinstance(entities, list):
            raise ValueError(f"Unexpected entities result: {entities!r}")
        if key_phrases is not None and not isinstance(key_phrases, list):
            raise ValueError(f"Unexpected key phrases result: {key_phrases!r}")
        return sentiment, entities, key_phrases

    def _apply_signals(self, highlight: EnrichedHighlight, sentiment, entities, key_phrases):
        min_score = self.config.entity_confidence_threshold
        highlight.sentiment = sentiment
        highlight.entities = entities
        highlight.key_phrases = key_phrases
        highlight.teams = entity_names(entities, "ORGANIZATION", min_score)
        highlight.players = entity_names(entities, "PERSON", min_score)
        highlight.gaming_context = derive_gaming_context(highlight, self.config)

    async def _enrich_one(self, highlight: EnrichedHighlight):
        text = " ".join(t for t in (highlight.title, highlight.description) if t)

        if self.client is not None and text:
            try:
                self._apply_signals(highlight, *await self._analyze(text))
                highlight.text_analytics_enhanced = True
                return
            except Exception as e:
                logger.warning(f"Text analytics failed for highlight {highlight.highlight_id}: {e}")

        self._apply_signals(highlight, None, None, None)
        highlight.text_analytics_enhanced = False


# =============================================================================
# Merge layer
# =============================================================================

def ensure_complete(highlight: EnrichedHighlight, config: PipelineConfig) -> EnrichedHighlight:
    """Fill any required field still unset and mark the record complete."""
    defaults = config.enrichment_defaults
    if highlight.excitement_level is None:
        highlight.excitement_level = clamp_excitement(defaults.excitement_for(highlight.confidence), config)
    if not highlight.play_type:
        highlight.play_type = defaults.play_type
    if not highlight.title:
        highlight.title = defaults.title
    if not highlight.target_audience:
        highlight.target_audience = defaults.target_audience
    if highlight.gaming_context is None:
        highlight.gaming_context = derive_gaming_context(highlight, config)
    highlight.enrichment_complete = True
    return highlight


class EnrichmentMergeLayer:
    """Runs the contextual and text-analytics stages over a candidate list."""

    def __init__(
        self,
        language_client=None,
        text_client=None,
        config: Optional[PipelineConfig] = None,
        text_concurrency: int = 5,
    ):
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.contextual = ContextualEnricher(language_client, self.config)
        self.text_analytics = TextAnalyticsEnricher(text_client, self.config, text_concurrency)

    def build_highlights(
        self,
        candidates: List[HighlightCandidate],
        source_id: str,
        source_video: str,
        sport: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> List[EnrichedHighlight]:
        """Assign identity to candidates in their current order."""
        created_at = created_at or datetime.utcnow()
        return [
            EnrichedHighlight.from_candidate(
                candidate,
                ordinal=index,
                source_id=source_id,
                source_video=source_video,
                created_at=created_at,
                sport=sport,
            )
            for index, candidate in enumerate(candidates)
        ]

    async def enrich(
        self,
        candidates: List[HighlightCandidate],
        source_id: str,
        source_video: str,
        game_type: str,
        created_at: Optional[datetime] = None,
    ) -> List[EnrichedHighlight]:
        """
        Enrich candidates into complete highlights.

        Args:
            candidates: Candidates from the clustering engine
            source_id: Game/source identifier
            source_video: Source video reference
            game_type: Inferred sport/category
            created_at: Creation timestamp used in highlight ids

        Returns:
            One complete EnrichedHighlight per candidate, in input order
        """
        highlights = self.build_highlights(candidates, source_id, source_video, game_type, created_at)
        if not highlights:
            return highlights

        await self.contextual.enrich(highlights, source_video, game_type)
        await self.text_analytics.enrich(highlights)

        for h in highlights:
            ensure_complete(h, self.config)

        enhanced = sum(1 for h in highlights if h.ai_enhanced)
        analyzed = sum(1 for h in highlights if h.text_analytics_enhanced)
        logger.info(
            f"Enriched {len(highlights)} highlights "
            f"({enhanced} contextual, {analyzed} text analytics)"
        )
        return highlights
