"""Source video reference helpers."""
import re
from dataclasses import dataclass
from typing import Optional


class InvalidSourceError(ValueError):
    """Raised for malformed source video references."""


@dataclass
class SourceRef:
    """A parsed source video reference."""
    uri: str
    bucket: Optional[str]  # None for local paths
    key: str

    @property
    def is_remote(self) -> bool:
        return self.bucket is not None


_BUCKET_URI = re.compile(r"^s3://([^/]+)/(.+)$")

GAME_TYPE_KEYWORDS = (
    ("soccer", ("soccer", "football")),
    ("basketball", ("basketball",)),
    ("tennis", ("tennis",)),
    ("hockey", ("hockey",)),
    ("baseball", ("baseball",)),
)


def parse_source_ref(source_ref: str) -> SourceRef:
    """
    Parse ``s3://bucket/key`` or a local file path.

    Raises:
        InvalidSourceError: If the reference is empty or malformed
    """
    if not source_ref or not source_ref.strip():
        raise InvalidSourceError("Missing source video reference")

    source_ref = source_ref.strip()
    if "://" in source_ref:
        match = _BUCKET_URI.match(source_ref)
        if not match:
            raise InvalidSourceError(f"Invalid source URL: {source_ref}")
        return SourceRef(uri=source_ref, bucket=match.group(1), key=match.group(2))

    return SourceRef(uri=source_ref, bucket=None, key=source_ref)


def extract_game_type(key: str) -> str:
    """Infer the sport from keywords in the object key."""
    key_lower = key.lower()
    for game_type, keywords in GAME_TYPE_KEYWORDS:
        if any(keyword in key_lower for keyword in keywords):
            return game_type
    return "general_sports"


def extract_game_id(key: str) -> str:
    """Game id from keys shaped like ``games/GAME_ID/video.mp4``."""
    parts = key.split("/")
    if len(parts) >= 2 and parts[1]:
        return parts[1]
    return "unknown-game"
