"""Detection and person-tracking collaborator client."""
import logging
from typing import Any, Dict, List, Optional

from spotlight.config import settings
from spotlight.pipeline.clustering import DetectionEvent, PersonTrack
from spotlight.pipeline.poller import AnalysisJobStatus, JobPollResult
from spotlight.utils.http import CollaboratorError, request_json

logger = logging.getLogger(__name__)


def parse_label_events(result: Dict[str, Any]) -> List[DetectionEvent]:
    """
    Convert a label-detection result into DetectionEvents.

    Accepts flat rows ``{name, confidence, timestampMillis}`` as well as
    nested ``{Timestamp, Label: {Name, Confidence}}`` rows.
    """
    events: List[DetectionEvent] = []
    for row in result.get("labels") or result.get("Labels") or []:
        if not isinstance(row, dict):
            continue
        label = row.get("Label") if isinstance(row.get("Label"), dict) else {}
        name = row.get("name") or label.get("Name")
        confidence = row.get("confidence", label.get("Confidence", row.get("Confidence")))
        timestamp = row.get("timestampMillis", row.get("Timestamp"))
        if name is None or confidence is None or timestamp is None:
            continue
        events.append(DetectionEvent(
            timestamp_ms=int(timestamp),
            label=str(name),
            confidence=float(confidence),
        ))
    return events


def parse_person_tracks(result: Dict[str, Any]) -> List[PersonTrack]:
    """
    Convert a person-tracking result into PersonTracks.

    Accepts flat rows ``{personIndex, timestampMillis}`` as well as nested
    ``{Timestamp, Person: {Index}}`` rows.
    """
    tracks: List[PersonTrack] = []
    for row in result.get("tracks") or result.get("Persons") or []:
        if not isinstance(row, dict):
            continue
        person = row.get("Person") if isinstance(row.get("Person"), dict) else {}
        index = row.get("personIndex", person.get("Index"))
        timestamp = row.get("timestampMillis", row.get("Timestamp"))
        if index is None or timestamp is None:
            continue
        tracks.append(PersonTrack(person_index=int(index), timestamp_ms=int(timestamp)))
    return tracks


def _to_poll_result(payload: Any) -> JobPollResult:
    if not isinstance(payload, dict):
        raise CollaboratorError("Detection service returned an invalid job status")
    status = AnalysisJobStatus.parse(payload.get("status") or payload.get("JobStatus") or "")
    message = payload.get("statusMessage") or payload.get("StatusMessage")
    return JobPollResult(status=status, result=payload, message=message)


class DetectionClient:
    """Client for the remote detection/tracking job service."""

    def __init__(self, base_url: Optional[str] = None, min_confidence: Optional[float] = None):
        self.base_url = (base_url or settings.detection_url).rstrip("/")
        self.min_confidence = min_confidence if min_confidence is not None else settings.detection_min_confidence

    async def _start(self, kind: str, video_ref: str, extra: Optional[dict] = None) -> str:
        payload = {"video": video_ref}
        if extra:
            payload.update(extra)
        data = await request_json("POST", f"{self.base_url}/{kind}/jobs", "detection service", payload=payload)
        job_id = data.get("jobId") if isinstance(data, dict) else None
        if not job_id:
            raise CollaboratorError(f"Detection service did not return a job id for {kind}")
        return str(job_id)

    async def _status(self, kind: str, job_id: str) -> JobPollResult:
        data = await request_json("GET", f"{self.base_url}/{kind}/jobs/{job_id}", "detection service")
        return _to_poll_result(data)

    async def start_label_detection(self, video_ref: str) -> str:
        return await self._start("labels", video_ref, {"minConfidence": self.min_confidence})

    async def get_label_detection(self, job_id: str) -> JobPollResult:
        return await self._status("labels", job_id)

    async def start_person_tracking(self, video_ref: str) -> str:
        return await self._start("persons", video_ref)

    async def get_person_tracking(self, job_id: str) -> JobPollResult:
        return await self._status("persons", job_id)
