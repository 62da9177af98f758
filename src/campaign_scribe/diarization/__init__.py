"""Diarization normalization and cross-recording speaker identity resolution."""

from campaign_scribe.diarization.models import (
    DisplayBlock,
    ExtractionResult,
    GroupingKey,
    SessionSpeaker,
    SpeakerRecord,
    SpeakerRole,
    SpeechSegment,
    format_speaker_label,
)
from campaign_scribe.diarization.extractor import ExtractionError, SegmentExtractor
from campaign_scribe.diarization.grouper import (
    GroupingStrategy,
    IdentityOrIndexStrategy,
    SessionSpeakerGrouper,
)
from campaign_scribe.diarization.propagator import (
    IdentityAssignment,
    IdentityUpdatePropagator,
    NotFoundError,
    PropagationResult,
    ValidationError,
    validate_identity,
)
from campaign_scribe.diarization.coalescer import SegmentCoalescer

__all__ = [
    "DisplayBlock",
    "ExtractionError",
    "ExtractionResult",
    "GroupingKey",
    "GroupingStrategy",
    "IdentityAssignment",
    "IdentityOrIndexStrategy",
    "IdentityUpdatePropagator",
    "NotFoundError",
    "PropagationResult",
    "SegmentCoalescer",
    "SegmentExtractor",
    "SessionSpeaker",
    "SessionSpeakerGrouper",
    "SpeakerRecord",
    "SpeakerRole",
    "SpeechSegment",
    "ValidationError",
    "format_speaker_label",
    "validate_identity",
]
