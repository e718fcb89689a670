"""Clip transcoding collaborators.

Two bindings share one contract: ``submit_clip_job(TranscodeRequest) -> job_id``
with completion reported out of band as a TranscodeEvent.

* HttpTranscoder submits to a remote job service; completion arrives
  through the clip events endpoint.
* LocalTranscoder renders with ffmpeg in a background task and hands the
  completion event to a registered handler.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from spotlight.config import settings
from spotlight.utils.ffmpeg import FFmpegError, export_clip, generate_thumbnail
from spotlight.utils.http import CollaboratorError, request_json
from spotlight.utils.sources import parse_source_ref

logger = logging.getLogger(__name__)

TIMECODE_FPS = 30

EVENT_COMPLETE = "COMPLETE"
EVENT_ERROR = "ERROR"


def seconds_to_timecode(seconds: float, fps: int = TIMECODE_FPS) -> str:
    """Format seconds as ``HH:MM:SS:FF``."""
    seconds = max(0.0, seconds)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    frames = int((seconds % 1) * fps)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}:{frames:02d}"


def clip_url_for(highlight_id: str, base_url: Optional[str] = None) -> str:
    return f"{(base_url or settings.media_base_url).rstrip('/')}/clips/{highlight_id}.mp4"


def thumbnail_url_for(highlight_id: str, base_url: Optional[str] = None) -> str:
    return f"{(base_url or settings.media_base_url).rstrip('/')}/thumbnails/{highlight_id}.jpg"


@dataclass
class TranscodeRequest:
    """A clip job scoped to one highlight's time range."""
    highlight_id: str
    source_ref: str
    start_time: float
    end_time: float
    destination: str
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def start_timecode(self) -> str:
        return seconds_to_timecode(self.start_time)

    @property
    def end_timecode(self) -> str:
        return seconds_to_timecode(self.end_time)

    def to_payload(self) -> dict:
        return {
            "sourceRef": self.source_ref,
            "startTimecode": self.start_timecode,
            "endTimecode": self.end_timecode,
            "destination": self.destination,
            "userMetadata": {"highlightId": self.highlight_id, **self.metadata},
        }


@dataclass
class TranscodeEvent:
    """Completion notice for a clip job."""
    job_id: str
    status: str  # COMPLETE | ERROR
    highlight_id: Optional[str] = None
    clip_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == EVENT_COMPLETE

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TranscodeEvent":
        """
        Build from ``{jobId, status}`` or an envelope with a ``detail`` object.

        Raises:
            ValueError: If the job id is missing
        """
        detail = payload.get("detail") if isinstance(payload.get("detail"), dict) else payload
        job_id = detail.get("jobId") or detail.get("job_id")
        if not job_id:
            raise ValueError("Missing job ID in transcoding event")
        metadata = detail.get("userMetadata") or {}
        return cls(
            job_id=str(job_id),
            status=str(detail.get("status") or "").upper(),
            highlight_id=metadata.get("highlightId") or detail.get("highlightId"),
            clip_url=detail.get("clipUrl"),
            thumbnail_url=detail.get("thumbnailUrl"),
            message=detail.get("errorMessage"),
        )


EventHandler = Callable[[TranscodeEvent], Awaitable[Any]]


class HttpTranscoder:
    """Submits clip jobs to a remote transcoding service."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.transcoder_url).rstrip("/")

    async def submit_clip_job(self, request: TranscodeRequest) -> str:
        logger.info(
            f"Submitting clip job for {request.highlight_id} "
            f"({request.start_timecode} - {request.end_timecode})"
        )
        data = await request_json("POST", f"{self.base_url}/jobs", "transcoder", payload=request.to_payload())
        job_id = data.get("jobId") if isinstance(data, dict) else None
        if not job_id:
            raise CollaboratorError("Transcoder did not return a job id")
        return str(job_id)


class LocalTranscoder:
    """Renders clips with ffmpeg and reports completion to a handler."""

    def __init__(
        self,
        on_event: Optional[EventHandler] = None,
        clips_dir: Optional[Path] = None,
        thumbnails_dir: Optional[Path] = None,
    ):
        self.on_event = on_event
        self.clips_dir = Path(clips_dir or settings.clips_dir)
        self.thumbnails_dir = Path(thumbnails_dir or settings.thumbnails_dir)
        self._tasks: Set[asyncio.Task] = set()

    def set_event_handler(self, handler: EventHandler):
        self.on_event = handler

    async def submit_clip_job(self, request: TranscodeRequest) -> str:
        source = parse_source_ref(request.source_ref)
        if source.is_remote:
            raise CollaboratorError("Local transcoder requires a local source path")

        job_id = f"local-{uuid.uuid4().hex}"
        task = asyncio.create_task(self._render(job_id, request, Path(source.key)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def _render(self, job_id: str, request: TranscodeRequest, source_path: Path):
        clip_path = self.clips_dir / f"{request.highlight_id}.mp4"
        thumbnail_path = self.thumbnails_dir / f"{request.highlight_id}.jpg"
        try:
            await export_clip(source_path, clip_path, request.start_time, request.end_time)
            await generate_thumbnail(clip_path, thumbnail_path, 0.0)
            event = TranscodeEvent(
                job_id=job_id,
                status=EVENT_COMPLETE,
                highlight_id=request.highlight_id,
                clip_url=clip_url_for(request.highlight_id),
                thumbnail_url=thumbnail_url_for(request.highlight_id),
            )
        except (FFmpegError, OSError) as e:
            logger.error(f"Local clip job {job_id} failed: {e}")
            event = TranscodeEvent(
                job_id=job_id,
                status=EVENT_ERROR,
                highlight_id=request.highlight_id,
                message=str(e),
            )

        if self.on_event is not None:
            await self.on_event(event)

    async def drain(self):
        """Wait for in-flight renders (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
