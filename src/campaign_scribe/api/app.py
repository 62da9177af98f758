"""FastAPI application: transcription intake, session speakers, display blocks."""

from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from campaign_scribe.api.loader import load_asr_response
from campaign_scribe.db import SpeakerRecordRepository, init_db
from campaign_scribe.db.base import get_db
from campaign_scribe.diarization import (
    ExtractionError,
    GroupingKey,
    IdentityAssignment,
    NotFoundError,
    SegmentCoalescer,
    SegmentExtractor,
    SessionSpeaker,
    SpeakerRole,
    ValidationError,
    format_speaker_label,
)

app = FastAPI(title="Campaign Scribe", version="0.1.0")

DEFAULT_PAUSE_THRESHOLD = 2.0


@app.on_event("startup")
def startup() -> None:
    """Ensure DB tables exist on startup."""
    init_db()


def get_repo_from_db(db: Annotated[Session, Depends(get_db)]) -> SpeakerRecordRepository:
    """Dependency: repository from request-scoped DB session."""
    return SpeakerRecordRepository(db)


Repo = Annotated[SpeakerRecordRepository, Depends(get_repo_from_db)]


def _require_recording(repo: SpeakerRecordRepository, recording_id: int) -> None:
    if repo.get_recording(recording_id) is None:
        raise HTTPException(status_code=404, detail="Recording not found")


def _require_session(repo: SpeakerRecordRepository, session_id: int) -> None:
    if repo.get_game_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")


def _extract_and_store(
    repo: SpeakerRecordRepository, recording_id: int, raw: bytes
) -> dict[str, Any]:
    """Run the extractor on a raw ASR response and replace the recording's speakers."""
    try:
        result = SegmentExtractor().extract(raw)
    except ExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    records = repo.store_extraction(recording_id, result)
    labels = repo.get_speaker_labels(records)
    return {
        "recording_id": recording_id,
        "source": result.source,
        "transcript": result.transcript,
        "confidence": result.confidence,
        "speakers_count": result.speaker_count,
        "speakers": [
            {**r.to_dict(), "label": labels[(r.recording_id, r.local_speaker_index)]}
            for r in records
        ],
    }


# ---------- Recordings ----------


@app.post("/api/recordings/{recording_id}/transcription")
async def submit_transcription(
    recording_id: int, request: Request, repo: Repo
) -> dict:
    """Extract speakers from a raw ASR response body and store them."""
    _require_recording(repo, recording_id)
    raw = await request.body()
    return _extract_and_store(repo, recording_id, raw)


class RegisterTranscriptionRequest(BaseModel):
    """Request body for register transcription."""

    source_uri: str


@app.post("/api/recordings/{recording_id}/transcription/register")
def register_transcription(
    recording_id: int,
    body: RegisterTranscriptionRequest,
    repo: Repo,
) -> dict:
    """Load an ASR response from S3 or file, extract speakers, and store them."""
    _require_recording(repo, recording_id)
    try:
        raw = load_asr_response(body.source_uri)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _extract_and_store(repo, recording_id, raw)


@app.get("/api/recordings/{recording_id}/speakers")
def list_recording_speakers(recording_id: int, repo: Repo) -> list[dict]:
    """Speaker records of one recording, with display labels."""
    _require_recording(repo, recording_id)
    records = repo.list_speaker_records_for_recording(recording_id)
    labels = repo.get_speaker_labels(records)
    return [
        {**r.to_dict(), "label": labels[(r.recording_id, r.local_speaker_index)]}
        for r in records
    ]


@app.get("/api/recordings/{recording_id}/blocks")
def recording_blocks(
    recording_id: int,
    repo: Repo,
    pause_threshold: Annotated[float, Query(ge=0)] = DEFAULT_PAUSE_THRESHOLD,
    interleaved: bool = True,
) -> dict:
    """
    Display blocks for a recording.

    interleaved=true merges all speakers into one conversation timeline;
    otherwise blocks are returned per speaker.
    """
    _require_recording(repo, recording_id)
    records = repo.list_speaker_records_for_recording(recording_id)
    labels = repo.get_speaker_labels(records)
    coalescer = SegmentCoalescer()

    if interleaved:
        # key by speaker index; two speakers may share a label
        by_speaker = {str(r.local_speaker_index): r.segments for r in records}
        display = {
            str(r.local_speaker_index): labels[(r.recording_id, r.local_speaker_index)]
            for r in records
        }
        timeline = coalescer.flatten_timeline(by_speaker)
        blocks = coalescer.coalesce_timeline(timeline, pause_threshold)
        return {
            "pause_threshold": pause_threshold,
            "blocks": [
                {**b.to_dict(), "speaker_label": display[b.speaker_label]}
                for b in blocks
            ],
        }

    speakers = []
    for r in records:
        label = labels[(r.recording_id, r.local_speaker_index)]
        blocks = coalescer.coalesce(list(r.segments), pause_threshold, label)
        speakers.append(
            {
                "speaker_index": r.local_speaker_index,
                "label": label,
                "blocks": [b.to_dict() for b in blocks],
            }
        )
    return {"pause_threshold": pause_threshold, "speakers": speakers}


# ---------- Sessions ----------


def _session_speaker_dict(
    speaker: SessionSpeaker,
    player_names: dict[int, str],
    character_names: dict[int, str],
) -> dict[str, Any]:
    key = speaker.grouping_key
    player_name = player_names.get(speaker.assigned_player_id)
    character_name = character_names.get(speaker.assigned_character_id)
    if key.is_identified and not (player_name or character_name):
        label = "Unknown Speaker"
    else:
        label = format_speaker_label(
            key.local_speaker_index or 0, player_name, character_name
        )
    return {
        **speaker.to_dict(),
        "label": label,
        "player_name": player_name,
        "character_name": character_name,
    }


@app.get("/api/sessions/{session_id}/speakers")
def list_session_speakers(session_id: int, repo: Repo) -> dict:
    """Session-level speakers grouped across all recordings, plus counts."""
    _require_session(repo, session_id)
    session_speakers = repo.get_session_speakers(session_id)
    player_names, character_names = repo.get_names(
        (s.assigned_player_id for s in session_speakers),
        (s.assigned_character_id for s in session_speakers),
    )
    return {
        "session_speakers": [
            _session_speaker_dict(s, player_names, character_names)
            for s in session_speakers
        ],
        "stats": repo.get_session_stats(session_id, session_speakers),
    }


class UpdateSessionSpeakerRequest(BaseModel):
    """Request body: new role and identity for one session speaker group."""

    role: SpeakerRole = SpeakerRole.UNKNOWN
    player_id: int | None = None
    character_id: int | None = None


@app.put("/api/sessions/{session_id}/speakers/{group_id}")
def update_session_speaker(
    session_id: int,
    group_id: str,
    body: UpdateSessionSpeakerRequest,
    repo: Repo,
) -> dict:
    """Apply an identity to every speaker record currently in the group."""
    try:
        key = GroupingKey.parse(group_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    assignment = IdentityAssignment(
        grouping_key=key,
        role=body.role,
        player_id=body.player_id,
        character_id=body.character_id,
    )
    try:
        result = repo.apply_identity_update(session_id, assignment)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"field": e.field, "message": e.message},
        ) from e
    return {"ok": True, "grouping_key": str(key), "updated": len(result.updated)}
