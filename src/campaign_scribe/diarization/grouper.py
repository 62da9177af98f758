"""Fold speaker records across a session's recordings into session-level speakers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from campaign_scribe.diarization.models import (
    GroupingKey,
    SessionSpeaker,
    SpeakerRecord,
)


class GroupingStrategy(ABC):
    """Decides which speaker records represent the same person."""

    @abstractmethod
    def key_for(self, record: SpeakerRecord) -> GroupingKey:
        """Return the grouping key of a speaker record."""


class IdentityOrIndexStrategy(GroupingStrategy):
    """
    Group by assigned identity, or by raw speaker index when unassigned.

    Known limitation: unidentified voices that share an index in different
    recordings are grouped together even when they are different people, and
    one person tagged with different indices in different recordings is split.
    """

    def key_for(self, record: SpeakerRecord) -> GroupingKey:
        if record.identified:
            return GroupingKey.identified(
                record.assigned_player_id, record.assigned_character_id
            )
        return GroupingKey.unidentified(record.local_speaker_index)


def session_order(record: SpeakerRecord) -> tuple[int, int, int]:
    """Sort key: recording upload order, then recording, then speaker index."""
    return (record.recording_order, record.recording_id, record.local_speaker_index)


class SessionSpeakerGrouper:
    """Builds SessionSpeaker aggregates from a session's speaker records."""

    def __init__(self, strategy: Optional[GroupingStrategy] = None) -> None:
        """
        Initialize the grouper.

        Args:
            strategy: Grouping strategy (default: IdentityOrIndexStrategy).
        """
        self.strategy = strategy or IdentityOrIndexStrategy()

    def group(self, records: Iterable[SpeakerRecord]) -> list[SessionSpeaker]:
        """
        Group records sharing a grouping key.

        Records are visited by recording order, then speaker index. Aggregates
        are returned in the order their key was first seen. Display fields
        (role, player, character) come from the last record visited in each
        group.

        Args:
            records: Speaker records of every recording in one session.

        Returns:
            One SessionSpeaker per distinct grouping key.
        """
        groups: dict[GroupingKey, SessionSpeaker] = {}
        for record in sorted(records, key=session_order):
            key = self.strategy.key_for(record)
            speaker = groups.get(key)
            if speaker is None:
                speaker = SessionSpeaker(grouping_key=key)
                groups[key] = speaker

            speaker.records.append(record)
            speaker.total_segment_count += record.segment_count
            speaker.role = record.role
            speaker.assigned_player_id = record.assigned_player_id
            speaker.assigned_character_id = record.assigned_character_id

            name = record.recording_name or "Unknown Recording"
            if name not in speaker.recording_names:
                speaker.recording_names.append(name)

        return list(groups.values())

    def matching(
        self, records: Iterable[SpeakerRecord], key: GroupingKey
    ) -> list[SpeakerRecord]:
        """Return the records whose current grouping key equals ``key``."""
        return [r for r in records if self.strategy.key_for(r) == key]
