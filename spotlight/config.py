"""Application configuration."""
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "Spotlight"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/spotlight.db"
    store_batch_size: int = 25  # Highlights per write batch

    # Data directories
    data_dir: Path = Path("./data")
    clips_dir: Path = Path("./data/clips")
    thumbnails_dir: Path = Path("./data/thumbnails")

    # Detection / tracking collaborator
    detection_url: str = "http://localhost:9001"
    detection_min_confidence: float = 70.0
    job_poll_interval_sec: float = 5.0
    job_max_wait_sec: float = 3600.0

    # Generative language collaborator
    language_model_url: str = "http://localhost:9002"
    language_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    language_model_max_tokens: int = 2000

    # Text analytics collaborator
    text_analytics_url: str = "http://localhost:9003"
    text_analytics_language: str = "en"
    text_analytics_concurrency: int = 5

    # Transcoding collaborator
    transcoder_mode: Literal["http", "local"] = "http"
    transcoder_url: str = "http://localhost:9004"
    clip_destination: str = "s3://spotlight-highlights/clips/"
    media_base_url: str = "http://localhost:8000/media"
    auto_generate_clips: bool = True

    # Ranking strategy: "auto" uses the recommender when recommender_url is set
    ranking_strategy: Literal["auto", "rule_based", "recommender"] = "auto"
    recommender_url: Optional[str] = None

    # Shared HTTP settings for collaborators
    collaborator_timeout_sec: float = 30.0

    # FFmpeg settings (local transcoder)
    ffmpeg_path: str = "ffmpeg"
    export_video_codec: str = "libx264"
    export_video_preset: str = "veryfast"
    export_video_crf: int = 23
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "128k"
    clip_width: int = 1280
    clip_height: int = 720

    # Thumbnail settings
    thumbnail_width: int = 320
    thumbnail_height: int = 180

    # Frontend
    frontend_url: str = "http://localhost:5173"


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
