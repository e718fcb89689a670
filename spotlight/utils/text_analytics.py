"""Text analytics collaborator client (sentiment, entities, key phrases)."""
import logging
from typing import Any, Dict, List, Optional

from spotlight.config import settings
from spotlight.utils.http import CollaboratorError, request_json

logger = logging.getLogger(__name__)


def normalize_sentiment(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce a sentiment response to ``{label, score, scores}``.

    ``score`` is the score of the winning label.
    """
    label = str(payload.get("Sentiment") or payload.get("label") or "").upper()
    raw_scores = payload.get("SentimentScore") or payload.get("scores") or {}
    scores = {str(k).upper(): float(v) for k, v in raw_scores.items() if isinstance(v, (int, float))}
    if not label:
        raise CollaboratorError("Text analytics returned no sentiment label")
    return {"label": label, "score": scores.get(label, 0.0), "scores": scores}


def normalize_entities(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "text": e.get("Text") or e.get("text"),
            "type": str(e.get("Type") or e.get("type") or "OTHER").upper(),
            "score": float(e.get("Score", e.get("score", 0.0))),
        }
        for e in payload.get("Entities") or payload.get("entities") or []
        if isinstance(e, dict) and (e.get("Text") or e.get("text"))
    ]


def normalize_key_phrases(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "text": p.get("Text") or p.get("text"),
            "score": float(p.get("Score", p.get("score", 0.0))),
        }
        for p in payload.get("KeyPhrases") or payload.get("keyPhrases") or []
        if isinstance(p, dict) and (p.get("Text") or p.get("text"))
    ]


class TextAnalyticsClient:
    """Client for the hosted text analytics service."""

    def __init__(self, base_url: Optional[str] = None, language: Optional[str] = None):
        self.base_url = (base_url or settings.text_analytics_url).rstrip("/")
        self.language = language or settings.text_analytics_language

    async def _detect(self, operation: str, text: str) -> Dict[str, Any]:
        data = await request_json(
            "POST",
            f"{self.base_url}/{operation}",
            "text analytics",
            payload={"text": text, "languageCode": self.language},
        )
        if not isinstance(data, dict):
            raise CollaboratorError(f"Text analytics returned an invalid {operation} response")
        return data

    async def detect_sentiment(self, text: str) -> Dict[str, Any]:
        return normalize_sentiment(await self._detect("sentiment", text))

    async def detect_entities(self, text: str) -> List[Dict[str, Any]]:
        return normalize_entities(await self._detect("entities", text))

    async def detect_key_phrases(self, text: str) -> List[Dict[str, Any]]:
        return normalize_key_phrases(await self._detect("key-phrases", text))
