"""Generative language model collaborator client."""
import logging
from typing import Optional

from spotlight.config import settings
from spotlight.utils.http import CollaboratorError, request_json

logger = logging.getLogger(__name__)


def extract_json(response_text: str) -> str:
    """Extract the JSON document from model output.

    Handles markdown code blocks (```json ... ``` or ``` ... ```) and
    prose before or after the JSON.
    """
    if not response_text:
        return response_text

    cleaned = response_text.strip()

    if "```json" in cleaned:
        parts = cleaned.split("```json")
        if len(parts) > 1:
            cleaned = parts[1].split("```")[0].strip()
    elif "```" in cleaned:
        parts = cleaned.split("```")
        if len(parts) >= 3:
            cleaned = parts[1].strip()

    # Trim to the outermost brace or bracket
    starts = [pos for pos in (cleaned.find("{"), cleaned.find("[")) if pos != -1]
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if starts and end > min(starts):
        cleaned = cleaned[min(starts):end + 1]

    return cleaned


class LanguageModelClient:
    """Single-call client for the hosted generative model."""

    ANTHROPIC_VERSION = "bedrock-2023-05-31"

    def __init__(
        self,
        base_url: Optional[str] = None,
        model_id: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.language_model_url).rstrip("/")
        self.model_id = model_id or settings.language_model_id
        self.max_tokens = max_tokens or settings.language_model_max_tokens

    async def invoke(self, prompt: str) -> str:
        """
        Send one user prompt and return the model's text output.

        Raises:
            CollaboratorError: If the call fails or the response has no text
        """
        payload = {
            "modelId": self.model_id,
            "body": {
                "anthropic_version": self.ANTHROPIC_VERSION,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        }
        data = await request_json("POST", f"{self.base_url}/invoke", "language model", payload=payload)

        content = data.get("content") if isinstance(data, dict) else None
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if isinstance(text, str):
                return text

        raise CollaboratorError("Language model returned no text content")
