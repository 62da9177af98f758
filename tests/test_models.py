"""Tests for diarization data models."""

import pytest

from campaign_scribe.diarization.models import (
    GroupingKey,
    SpeakerRecord,
    SpeakerRole,
    SpeechSegment,
    format_speaker_label,
)


class TestSpeechSegment:
    """Tests for SpeechSegment."""

    def test_to_dict(self) -> None:
        """Test converting segment to dictionary."""
        segment = SpeechSegment(text="I cast fireball", start=1.5, end=3.2)
        assert segment.to_dict() == {"text": "I cast fireball", "start": 1.5, "end": 3.2}

    def test_end_before_start_rejected(self) -> None:
        """End may not precede start when both are present."""
        with pytest.raises(ValueError):
            SpeechSegment(text="x", start=2.0, end=1.0)

    def test_missing_times_allowed(self) -> None:
        """Either timestamp may be missing."""
        segment = SpeechSegment(text="x", start=None, end=4.0)
        assert segment.duration is None

    def test_from_dict(self) -> None:
        """Stored form round-trips through from_dict."""
        segment = SpeechSegment.from_dict({"text": "Hi", "start": 0, "end": 1})
        assert segment == SpeechSegment(text="Hi", start=0.0, end=1.0)


class TestGroupingKey:
    """Tests for GroupingKey string form and parsing."""

    def test_identified_string(self) -> None:
        assert str(GroupingKey.identified(7, 12)) == "identified_7_12"
        assert str(GroupingKey.identified(7, None)) == "identified_7_"
        assert str(GroupingKey.identified(None, 3)) == "identified__3"

    def test_unidentified_string(self) -> None:
        assert str(GroupingKey.unidentified(2)) == "unidentified_speaker_2"

    @pytest.mark.parametrize(
        "key",
        [
            GroupingKey.identified(7, 12),
            GroupingKey.identified(7, None),
            GroupingKey.identified(None, 3),
            GroupingKey.unidentified(0),
        ],
    )
    def test_parse_reverses_str(self, key: GroupingKey) -> None:
        assert GroupingKey.parse(str(key)) == key

    @pytest.mark.parametrize(
        "value",
        ["", "speaker_1", "identified__", "identified_a_b", "unidentified_speaker_x"],
    )
    def test_parse_rejects_garbage(self, value: str) -> None:
        with pytest.raises(ValueError):
            GroupingKey.parse(value)

    def test_identified_requires_identity(self) -> None:
        with pytest.raises(ValueError):
            GroupingKey.identified(None, None)


class TestSpeakerRecord:
    """Tests for SpeakerRecord derived values."""

    def test_defaults(self) -> None:
        record = SpeakerRecord(recording_id=1, local_speaker_index=0)
        assert record.role is SpeakerRole.UNKNOWN
        assert record.identified is False
        assert record.segment_count == 0

    def test_total_speaking_time_skips_untimed(self) -> None:
        record = SpeakerRecord(
            recording_id=1,
            local_speaker_index=0,
            segments=(
                SpeechSegment("a", 0.0, 2.0),
                SpeechSegment("b", 5.0, 6.5),
                SpeechSegment("c", None, 9.0),
            ),
        )
        assert record.total_speaking_time == 3.5

    def test_with_identity_returns_copy(self) -> None:
        record = SpeakerRecord(recording_id=1, local_speaker_index=0)
        updated = record.with_identity(SpeakerRole.DM, 3, None)
        assert updated.role is SpeakerRole.DM
        assert updated.assigned_player_id == 3
        assert record.assigned_player_id is None


def test_format_speaker_label() -> None:
    """Character and player names are combined when both are known."""
    assert format_speaker_label(0, "Alice", "Elara") == "Elara (Alice)"
    assert format_speaker_label(0, None, "Elara") == "Elara"
    assert format_speaker_label(0, "Alice", None) == "Alice"
    assert format_speaker_label(3) == "Speaker 3"
