"""Data models for diarized speech, speaker records, and session-level views."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Optional

UNIDENTIFIED_PREFIX = "unidentified_speaker_"
IDENTIFIED_PREFIX = "identified_"


class SpeakerRole(str, Enum):
    """Role a voice plays at the table."""

    DM = "dm"
    PLAYER = "player"
    NPC = "npc"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SpeechSegment:
    """A piece of speech attributed to one speaker, with optional timestamps."""

    text: str
    start: Optional[float] = None
    end: Optional[float] = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError(
                f"Segment end ({self.end}) must not precede its start ({self.start})"
            )

    @property
    def duration(self) -> Optional[float]:
        """Length in seconds, or None when either timestamp is missing."""
        if self.start is None or self.end is None:
            return None
        return self.end - self.start

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpeechSegment:
        """Build a segment from its stored form (text/start/end)."""
        start = data.get("start")
        end = data.get("end")
        return cls(
            text=data.get("text") or "",
            start=float(start) if start is not None else None,
            end=float(end) if end is not None else None,
        )


@dataclass(frozen=True)
class GroupingKey:
    """
    Derived key deciding which speaker records count as the same person.

    Identified keys carry the (player, character) pair; unidentified keys
    carry the raw per-recording speaker index.
    """

    player_id: Optional[int] = None
    character_id: Optional[int] = None
    local_speaker_index: Optional[int] = None

    @classmethod
    def identified(
        cls, player_id: Optional[int], character_id: Optional[int]
    ) -> GroupingKey:
        """Key for a record with a player and/or character assigned."""
        if player_id is None and character_id is None:
            raise ValueError("An identified key needs a player or a character")
        return cls(player_id=player_id, character_id=character_id)

    @classmethod
    def unidentified(cls, local_speaker_index: int) -> GroupingKey:
        """Key for a record with no identity, scoped by raw speaker index."""
        return cls(local_speaker_index=local_speaker_index)

    @property
    def is_identified(self) -> bool:
        return self.local_speaker_index is None

    def __str__(self) -> str:
        if not self.is_identified:
            return f"{UNIDENTIFIED_PREFIX}{self.local_speaker_index}"
        player = "" if self.player_id is None else self.player_id
        character = "" if self.character_id is None else self.character_id
        return f"{IDENTIFIED_PREFIX}{player}_{character}"

    @classmethod
    def parse(cls, value: str) -> GroupingKey:
        """
        Parse the string form produced by ``str(key)``.

        Raises:
            ValueError: If the value is not a grouping key.
        """
        value = value.strip()
        if value.startswith(UNIDENTIFIED_PREFIX):
            index = value[len(UNIDENTIFIED_PREFIX) :]
            if not index.isdigit():
                raise ValueError(f"Invalid speaker index in grouping key: {value}")
            return cls.unidentified(int(index))
        if value.startswith(IDENTIFIED_PREFIX):
            parts = value[len(IDENTIFIED_PREFIX) :].split("_")
            if len(parts) != 2 or not all(p == "" or p.isdigit() for p in parts):
                raise ValueError(f"Invalid identity in grouping key: {value}")
            player, character = (int(p) if p else None for p in parts)
            return cls.identified(player, character)
        raise ValueError(f"Unrecognized grouping key: {value}")


@dataclass(frozen=True)
class SpeakerRecord:
    """One ASR-detected voice within one recording, with its identity assignment."""

    recording_id: int
    local_speaker_index: int
    role: SpeakerRole = SpeakerRole.UNKNOWN
    assigned_player_id: Optional[int] = None
    assigned_character_id: Optional[int] = None
    segments: tuple[SpeechSegment, ...] = ()
    recording_name: str = ""
    recording_order: int = 0

    @property
    def identified(self) -> bool:
        return (
            self.assigned_player_id is not None
            or self.assigned_character_id is not None
        )

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    @property
    def total_speaking_time(self) -> float:
        """Sum of segment durations, skipping segments without both timestamps."""
        return sum(s.duration for s in self.segments if s.duration is not None)

    def with_identity(
        self,
        role: SpeakerRole,
        player_id: Optional[int],
        character_id: Optional[int],
    ) -> SpeakerRecord:
        """Return a copy carrying the given role and identity."""
        return replace(
            self,
            role=role,
            assigned_player_id=player_id,
            assigned_character_id=character_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for API responses."""
        return {
            "recording_id": self.recording_id,
            "recording_name": self.recording_name,
            "speaker_index": self.local_speaker_index,
            "role": self.role.value,
            "player_id": self.assigned_player_id,
            "character_id": self.assigned_character_id,
            "segment_count": self.segment_count,
            "total_speaking_time": self.total_speaking_time,
            "segments": [s.to_dict() for s in self.segments],
        }


@dataclass
class SessionSpeaker:
    """Aggregate over every speaker record in a session that shares a grouping key."""

    grouping_key: GroupingKey
    role: SpeakerRole = SpeakerRole.UNKNOWN
    assigned_player_id: Optional[int] = None
    assigned_character_id: Optional[int] = None
    total_segment_count: int = 0
    recording_names: list[str] = field(default_factory=list)
    records: list[SpeakerRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for API responses."""
        return {
            "id": str(self.grouping_key),
            "role": self.role.value,
            "player_id": self.assigned_player_id,
            "character_id": self.assigned_character_id,
            "total_segments": self.total_segment_count,
            "recordings": list(self.recording_names),
        }


@dataclass(frozen=True)
class DisplayBlock:
    """A run of one speaker's segments merged for reading."""

    speaker_label: str
    text: str
    start: Optional[float]
    end: Optional[float]
    source_segment_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class ExtractionResult:
    """Normalized output of one ASR response."""

    speakers: dict[int, list[SpeechSegment]]
    transcript: str = ""
    confidence: Optional[float] = None
    source: str = "none"

    @property
    def speaker_count(self) -> int:
        return len(self.speakers)

    @property
    def segment_count(self) -> int:
        return sum(len(segments) for segments in self.speakers.values())


def format_speaker_label(
    local_speaker_index: int,
    player_name: Optional[str] = None,
    character_name: Optional[str] = None,
) -> str:
    """Human-readable name for a speaker: character and player when known."""
    if character_name and player_name:
        return f"{character_name} ({player_name})"
    if character_name:
        return character_name
    if player_name:
        return player_name
    return f"Speaker {local_speaker_index}"
