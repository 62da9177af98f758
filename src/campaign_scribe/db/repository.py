"""Repository layer: sessions, recordings, and speaker records as immutable snapshots."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from campaign_scribe.db.models import (
    Character,
    GameSession,
    Player,
    Recording,
    SpeakerRow,
)
from campaign_scribe.diarization.grouper import SessionSpeakerGrouper
from campaign_scribe.diarization.models import (
    ExtractionResult,
    SessionSpeaker,
    SpeakerRecord,
    SpeakerRole,
    SpeechSegment,
    format_speaker_label,
)
from campaign_scribe.diarization.propagator import (
    IdentityAssignment,
    IdentityUpdatePropagator,
    NotFoundError,
    PropagationResult,
    validate_identity,
)

logger = logging.getLogger(__name__)


class SpeakerRecordRepository:
    """Repository for players, characters, sessions, recordings, and speaker records."""

    def __init__(self, session: Session) -> None:
        """Initialize with a SQLAlchemy session."""
        self.session = session

    # ---------- Players and characters ----------

    def create_player(self, name: str) -> Player:
        """Create a new player."""
        player = Player(name=name)
        self.session.add(player)
        self.session.commit()
        self.session.refresh(player)
        return player

    def create_character(self, player_id: int, name: str) -> Character:
        """Create a character owned by player_id."""
        if self.session.get(Player, player_id) is None:
            raise NotFoundError(f"Player not found: {player_id}")
        character = Character(player_id=player_id, name=name)
        self.session.add(character)
        self.session.commit()
        self.session.refresh(character)
        return character

    def get_character_owner(self, character_id: int) -> Optional[int]:
        """Return the owning player id of a character, or None if it does not exist."""
        character = self.session.get(Character, character_id)
        return character.player_id if character else None

    def player_exists(self, player_id: int) -> bool:
        """True when a player with this id exists."""
        return self.session.get(Player, player_id) is not None

    def make_propagator(self) -> IdentityUpdatePropagator:
        """Propagator validating ids and character ownership against this database."""
        return IdentityUpdatePropagator(
            self.get_character_owner, player_exists=self.player_exists
        )

    # ---------- Sessions and recordings ----------

    def create_game_session(self, title: str) -> GameSession:
        """Create a new game session."""
        game_session = GameSession(title=title)
        self.session.add(game_session)
        self.session.commit()
        self.session.refresh(game_session)
        return game_session

    def get_game_session(self, session_id: int) -> GameSession | None:
        """Return game session by id or None."""
        return self.session.get(GameSession, session_id)

    def create_recording(
        self,
        game_session_id: int,
        name: str,
        recording_order: int | None = None,
    ) -> Recording:
        """
        Create a recording in a session.

        Without an explicit recording_order the recording goes after the last
        one of the session.
        """
        if self.get_game_session(game_session_id) is None:
            raise NotFoundError(f"Game session not found: {game_session_id}")
        if recording_order is None:
            current_max = (
                self.session.query(func.max(Recording.recording_order))
                .filter(Recording.game_session_id == game_session_id)
                .scalar()
            )
            recording_order = int(current_max or 0) + 1
        recording = Recording(
            game_session_id=game_session_id,
            name=name,
            recording_order=recording_order,
        )
        self.session.add(recording)
        self.session.commit()
        self.session.refresh(recording)
        return recording

    def get_recording(self, recording_id: int) -> Recording | None:
        """Return recording by id or None."""
        return self.session.get(Recording, recording_id)

    # ---------- Speaker records ----------

    def store_extraction(
        self, recording_id: int, result: ExtractionResult
    ) -> list[SpeakerRecord]:
        """
        Replace a recording's speaker records with a fresh extraction.

        Every speaker starts with role "unknown" and no identity. Runs in one
        transaction: on failure nothing is changed.
        """
        recording = self.get_recording(recording_id)
        if recording is None:
            raise NotFoundError(f"Recording not found: {recording_id}")
        try:
            self.session.query(SpeakerRow).filter(
                SpeakerRow.recording_id == recording_id
            ).delete(synchronize_session="fetch")
            self.session.flush()
            self.session.expire(recording, ["speakers"])

            for speaker_index, segments in sorted(result.speakers.items()):
                self.session.add(
                    SpeakerRow(
                        recording_id=recording_id,
                        speaker_index=speaker_index,
                        speaker_type=SpeakerRole.UNKNOWN.value,
                        segments=[s.to_dict() for s in segments],
                    )
                )
            recording.transcript = result.transcript
            recording.confidence = result.confidence
            recording.diarization_source = result.source
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.debug(
            "Stored %d speaker(s) for recording %s from %s",
            result.speaker_count,
            recording_id,
            result.source,
        )
        return self.list_speaker_records_for_recording(recording_id)

    def list_speaker_records_for_recording(
        self, recording_id: int
    ) -> list[SpeakerRecord]:
        """Return a recording's speaker records ordered by speaker index."""
        rows = (
            self.session.query(SpeakerRow, Recording)
            .join(Recording, SpeakerRow.recording_id == Recording.id)
            .filter(SpeakerRow.recording_id == recording_id)
            .order_by(SpeakerRow.speaker_index)
            .all()
        )
        return [_to_record(row, recording) for row, recording in rows]

    def list_speaker_records_for_session(self, session_id: int) -> list[SpeakerRecord]:
        """Return all speaker records of a session, by recording order then index."""
        rows = (
            self.session.query(SpeakerRow, Recording)
            .join(Recording, SpeakerRow.recording_id == Recording.id)
            .filter(Recording.game_session_id == session_id)
            .order_by(
                Recording.recording_order, Recording.id, SpeakerRow.speaker_index
            )
            .all()
        )
        return [_to_record(row, recording) for row, recording in rows]

    def save_speaker_record(self, record: SpeakerRecord) -> SpeakerRecord:
        """
        Write one speaker record, keyed by (recording_id, local_speaker_index).

        Raises:
            ValidationError: If the player or character does not exist, or the
                character does not belong to the player.
            NotFoundError: If the recording does not exist.
        """
        validate_identity(
            record.assigned_player_id,
            record.assigned_character_id,
            self.get_character_owner,
            self.player_exists,
        )
        if self.get_recording(record.recording_id) is None:
            raise NotFoundError(f"Recording not found: {record.recording_id}")
        try:
            self._write(record)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return next(
            r
            for r in self.list_speaker_records_for_recording(record.recording_id)
            if r.local_speaker_index == record.local_speaker_index
        )

    def apply_identity_update(
        self,
        session_id: int,
        assignment: IdentityAssignment,
        propagator: IdentityUpdatePropagator | None = None,
    ) -> PropagationResult:
        """
        Apply an identity assignment to every record of the session's group.

        All-or-nothing: validation happens before any write and all matching
        records are committed together.

        Raises:
            NotFoundError: If the session does not exist.
            ValidationError: If the assignment is invalid.
        """
        if self.get_game_session(session_id) is None:
            raise NotFoundError(f"Game session not found: {session_id}")
        propagator = propagator or self.make_propagator()
        records = self.list_speaker_records_for_session(session_id)
        result = propagator.apply(records, assignment)
        if result.is_noop:
            return result
        try:
            for record in result.updated:
                self._write(record)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result

    def _write(self, record: SpeakerRecord) -> None:
        """Upsert a speaker row from a record snapshot (no commit)."""
        row = (
            self.session.query(SpeakerRow)
            .filter(
                SpeakerRow.recording_id == record.recording_id,
                SpeakerRow.speaker_index == record.local_speaker_index,
            )
            .first()
        )
        if row is None:
            row = SpeakerRow(
                recording_id=record.recording_id,
                speaker_index=record.local_speaker_index,
            )
            self.session.add(row)
        row.speaker_type = record.role.value
        row.player_id = record.assigned_player_id
        row.character_id = record.assigned_character_id
        row.segments = [s.to_dict() for s in record.segments]

    # ---------- Session views ----------

    def get_session_speakers(
        self,
        session_id: int,
        grouper: SessionSpeakerGrouper | None = None,
    ) -> list[SessionSpeaker]:
        """Group all speaker records of a session into session speakers."""
        grouper = grouper or SessionSpeakerGrouper()
        return grouper.group(self.list_speaker_records_for_session(session_id))

    def get_session_stats(
        self,
        session_id: int,
        session_speakers: list[SessionSpeaker] | None = None,
    ) -> dict[str, Any]:
        """
        Counts for a session page: recordings, transcribed recordings,
        identified speaker records, and unique session speakers.
        """
        recordings = (
            self.session.query(Recording)
            .filter(Recording.game_session_id == session_id)
            .all()
        )
        records = self.list_speaker_records_for_session(session_id)
        if session_speakers is None:
            session_speakers = SessionSpeakerGrouper().group(records)
        return {
            "total_recordings": len(recordings),
            "transcribed_recordings": sum(1 for r in recordings if r.is_transcribed),
            "identified_speakers": sum(
                1 for r in records if r.assigned_player_id is not None
            ),
            "total_unique_speakers": len(session_speakers),
        }

    def get_speaker_labels(
        self, records: Iterable[SpeakerRecord]
    ) -> dict[tuple[int, int], str]:
        """Display labels keyed by (recording_id, speaker index)."""
        records = list(records)
        player_names, character_names = self.get_names(
            (r.assigned_player_id for r in records),
            (r.assigned_character_id for r in records),
        )
        return {
            (r.recording_id, r.local_speaker_index): format_speaker_label(
                r.local_speaker_index,
                player_names.get(r.assigned_player_id),
                character_names.get(r.assigned_character_id),
            )
            for r in records
        }

    def get_names(
        self,
        player_ids: Iterable[Optional[int]],
        character_ids: Iterable[Optional[int]],
    ) -> tuple[dict[int, str], dict[int, str]]:
        """Return (player names, character names) for the given ids."""
        return (
            self._names(Player, set(player_ids)),
            self._names(Character, set(character_ids)),
        )

    def _names(self, model: Any, ids: set[Optional[int]]) -> dict[int, str]:
        wanted = [i for i in ids if i is not None]
        if not wanted:
            return {}
        rows = self.session.query(model.id, model.name).filter(model.id.in_(wanted))
        return {row_id: name for row_id, name in rows}


def _to_record(row: SpeakerRow, recording: Recording) -> SpeakerRecord:
    """Snapshot a speaker row into an immutable SpeakerRecord."""
    return SpeakerRecord(
        recording_id=row.recording_id,
        local_speaker_index=row.speaker_index,
        role=SpeakerRole(row.speaker_type),
        assigned_player_id=row.player_id,
        assigned_character_id=row.character_id,
        segments=tuple(SpeechSegment.from_dict(s) for s in row.segments or []),
        recording_name=recording.name,
        recording_order=recording.recording_order,
    )
