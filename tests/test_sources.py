"""Tests for source references and detection result parsing."""
import pytest

from spotlight.pipeline.poller import AnalysisJobStatus
from spotlight.utils.detection import _to_poll_result, parse_label_events, parse_person_tracks
from spotlight.utils.http import CollaboratorError
from spotlight.utils.sources import (
    InvalidSourceError,
    extract_game_id,
    extract_game_type,
    parse_source_ref,
)


class TestParseSourceRef:
    """Tests for parse_source_ref."""

    def test_bucket_uri(self):
        ref = parse_source_ref(" s3://media/games/G1/match.mp4 ")
        assert ref.bucket == "media"
        assert ref.key == "games/G1/match.mp4"
        assert ref.is_remote

    def test_local_path(self):
        ref = parse_source_ref("/data/videos/match.mp4")
        assert ref.bucket is None
        assert not ref.is_remote

    @pytest.mark.parametrize("value", ["", "   ", "s3://media", "http://host/video.mp4"])
    def test_invalid(self, value):
        with pytest.raises(InvalidSourceError):
            parse_source_ref(value)


class TestGameMetadata:
    """Tests for game id and type inference."""

    def test_game_type_keywords(self):
        assert extract_game_type("games/1/Football-Final.mp4") == "soccer"
        assert extract_game_type("games/1/nba_basketball.mp4") == "basketball"
        assert extract_game_type("games/1/match.mp4") == "general_sports"

    def test_game_id(self):
        assert extract_game_id("games/G9/match.mp4") == "G9"
        assert extract_game_id("match.mp4") == "unknown-game"


class TestDetectionParsing:
    """Tests for detection and tracking result parsing."""

    def test_flat_and_nested_labels(self):
        events = parse_label_events({"labels": [
            {"name": "Ball", "confidence": 91.5, "timestampMillis": 1000},
            {"Timestamp": 2000, "Label": {"Name": "Goal", "Confidence": 97}},
            {"name": "Incomplete"},
            "garbage",
        ]})
        assert [(e.timestamp_ms, e.label, e.confidence) for e in events] == [
            (1000, "Ball", 91.5),
            (2000, "Goal", 97.0),
        ]

    def test_person_tracks(self):
        tracks = parse_person_tracks({"Persons": [
            {"Timestamp": 0, "Person": {"Index": 0}},
            {"personIndex": 4, "timestampMillis": 500},
            {"Timestamp": 600},
        ]})
        assert [(t.person_index, t.timestamp_ms) for t in tracks] == [(0, 0), (4, 500)]

    def test_empty_results(self):
        assert parse_label_events({}) == []
        assert parse_person_tracks({}) == []

    def test_poll_result(self):
        result = _to_poll_result({"JobStatus": "FAILED", "StatusMessage": "bad input"})
        assert result.status == AnalysisJobStatus.FAILED
        assert result.message == "bad input"

    def test_poll_result_rejects_non_dict(self):
        with pytest.raises(CollaboratorError):
            _to_poll_result(["SUCCEEDED"])
