"""SQLAlchemy models for players, characters, sessions, recordings, and speakers."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Player(Base):
    """A person at the table; may own several characters."""

    __tablename__ = "player"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    characters = relationship(
        "Character", back_populates="player", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for API responses."""
        return {"id": self.id, "name": self.name}


class Character(Base):
    """A character played by exactly one player."""

    __tablename__ = "character"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(
        Integer, ForeignKey("player.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    player = relationship("Player", back_populates="characters")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for API responses."""
        return {"id": self.id, "player_id": self.player_id, "name": self.name}


class GameSession(Base):
    """One game-play event; may hold several recordings."""

    __tablename__ = "game_session"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    recordings = relationship(
        "Recording",
        back_populates="game_session",
        cascade="all, delete-orphan",
        order_by="Recording.recording_order",
    )


class Recording(Base):
    """One uploaded audio recording and its transcript summary."""

    __tablename__ = "recording"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_session_id = Column(
        Integer, ForeignKey("game_session.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    recording_order = Column(Integer, nullable=False, default=1)
    transcript = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)
    diarization_source = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    game_session = relationship("GameSession", back_populates="recordings")
    speakers = relationship(
        "SpeakerRow",
        back_populates="recording",
        cascade="all, delete-orphan",
        order_by="SpeakerRow.speaker_index",
    )

    @property
    def is_transcribed(self) -> bool:
        return self.diarization_source is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for API responses."""
        return {
            "id": self.id,
            "game_session_id": self.game_session_id,
            "name": self.name,
            "recording_order": self.recording_order,
            "transcript": self.transcript,
            "confidence": self.confidence,
            "diarization_source": self.diarization_source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SpeakerRow(Base):
    """One ASR-detected voice in a recording (speaker_index from the ASR engine)."""

    __tablename__ = "speaker"
    __table_args__ = (
        UniqueConstraint("recording_id", "speaker_index", name="uq_recording_speaker"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recording_id = Column(
        Integer, ForeignKey("recording.id", ondelete="CASCADE"), nullable=False
    )
    speaker_index = Column(Integer, nullable=False)
    player_id = Column(
        Integer, ForeignKey("player.id", ondelete="SET NULL"), nullable=True
    )
    character_id = Column(
        Integer, ForeignKey("character.id", ondelete="SET NULL"), nullable=True
    )
    speaker_type = Column(String(16), nullable=False, default="unknown")
    segments = Column(JSON, nullable=False, default=list)

    recording = relationship("Recording", back_populates="speakers")
