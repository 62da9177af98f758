"""Database layer: models, session, and speaker record repository."""

from campaign_scribe.db.base import get_engine, get_session_factory, init_db
from campaign_scribe.db.models import (
    Base,
    Character,
    GameSession,
    Player,
    Recording,
    SpeakerRow,
)
from campaign_scribe.db.repository import SpeakerRecordRepository

__all__ = [
    "Base",
    "Character",
    "GameSession",
    "Player",
    "Recording",
    "SpeakerRecordRepository",
    "SpeakerRow",
    "get_engine",
    "get_session_factory",
    "init_db",
]
