"""
Extract speakers from raw ASR responses and write per-speaker stats to parquet.

Reads TRANSCRIPTS_S3_PREFIX (or TRANSCRIPTS_PREFIX) from the environment:
- If value is an s3:// URI: lists *_asr.json in S3, writes
  <stem>_speaker_stats.parquet to the same S3 prefix.
- If value is a local path or file:// URI: lists *_asr.json in that
  directory, writes <stem>_speaker_stats.parquet to the same directory.

Invoked as python -m campaign_scribe.batch.stats_job.
"""

from __future__ import annotations

import math
import os
import sys
from io import BytesIO
from pathlib import Path
from typing import Any

import boto3  # type: ignore[import-untyped]
import pyarrow as pa  # type: ignore[import-untyped]
import pyarrow.parquet as pq  # type: ignore[import-untyped]

from campaign_scribe.api.loader import parse_s3_uri
from campaign_scribe.diarization import (
    ExtractionError,
    ExtractionResult,
    SegmentCoalescer,
    SegmentExtractor,
    format_speaker_label,
)

ASR_SUFFIX = "_asr.json"


def _compute_speaker_stats(result: ExtractionResult) -> list[dict[str, Any]]:
    """
    Aggregate per-speaker stats from an extraction.

    A turn is a contiguous run of one speaker in the time-ordered conversation.

    Returns:
        List of dicts with speaker_index, total_seconds, segment_count,
        word_count, wpm, turn_count, longest_turn_sec, is_first_speaker,
        share_words; ordered by speaker index.
    """
    if not result.speakers:
        return []

    labels = {format_speaker_label(i): i for i in result.speakers}
    coalescer = SegmentCoalescer()
    timeline = coalescer.flatten_timeline(
        {format_speaker_label(i): segs for i, segs in result.speakers.items()}
    )
    turns = coalescer.coalesce_timeline(timeline, math.inf)

    turn_durations: dict[int, list[float]] = {i: [] for i in result.speakers}
    for turn in turns:
        duration = (
            turn.end - turn.start
            if turn.start is not None and turn.end is not None
            else 0.0
        )
        turn_durations[labels[turn.speaker_label]].append(duration)

    word_counts = {
        i: sum(len(s.text.split()) for s in segs)
        for i, segs in result.speakers.items()
    }
    total_words = sum(word_counts.values())
    first_speaker = labels[turns[0].speaker_label] if turns else None

    out: list[dict[str, Any]] = []
    for speaker_index, segments in sorted(result.speakers.items()):
        total_sec = sum(s.duration for s in segments if s.duration is not None)
        word_count = word_counts[speaker_index]
        turn_durs = turn_durations[speaker_index]
        out.append(
            {
                "speaker_index": speaker_index,
                "total_seconds": total_sec,
                "segment_count": len(segments),
                "word_count": word_count,
                "wpm": (word_count / (total_sec / 60.0)) if total_sec > 0 else None,
                "turn_count": len(turn_durs),
                "longest_turn_sec": max(turn_durs) if turn_durs else None,
                "is_first_speaker": speaker_index == first_speaker,
                "share_words": (word_count / total_words) if total_words else None,
            }
        )
    return out


def _rows_to_parquet_table(rows: list[dict[str, Any]]) -> pa.Table:
    """Build a pyarrow table from stat rows (shared by S3 and local write)."""
    if not rows:
        return pa.table({})
    return pa.table(
        {
            "speaker_index": pa.array(
                [r["speaker_index"] for r in rows], type=pa.int64()
            ),
            "total_seconds": pa.array(
                [r["total_seconds"] for r in rows], type=pa.float64()
            ),
            "segment_count": pa.array(
                [r["segment_count"] for r in rows], type=pa.int64()
            ),
            "word_count": pa.array([r["word_count"] for r in rows], type=pa.int64()),
            "wpm": pa.array([r.get("wpm") for r in rows], type=pa.float64()),
            "turn_count": pa.array(
                [r.get("turn_count") for r in rows], type=pa.int64()
            ),
            "longest_turn_sec": pa.array(
                [r.get("longest_turn_sec") for r in rows], type=pa.float64()
            ),
            "is_first_speaker": pa.array(
                [r.get("is_first_speaker", False) for r in rows], type=pa.bool_()
            ),
            "share_words": pa.array(
                [r.get("share_words") for r in rows], type=pa.float64()
            ),
        }
    )


def _stats_for_payload(raw: bytes, name: str) -> list[dict[str, Any]] | None:
    """Extract and compute stats; None (with a warning) when the payload is bad."""
    try:
        result = SegmentExtractor().extract(raw)
    except ExtractionError as e:
        print(f"Warning: failed to extract {name}: {e}", file=sys.stderr)
        return None
    return _compute_speaker_stats(result)


def _run_s3(prefix: str) -> int:
    """
    List ASR responses under S3 prefix, compute speaker stats, write parquet to S3.

    Args:
        prefix: S3 URI (e.g. s3://bucket/sessions/42).

    Returns:
        Number of parquet files written.
    """
    bucket, prefix_key = parse_s3_uri(prefix)
    if not prefix_key.endswith("/"):
        prefix_key += "/"
    client = boto3.client("s3")
    paginator = client.get_paginator("list_objects_v2")
    count = 0
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix_key):
        for obj in page.get("Contents") or []:
            key = obj["Key"]
            if not key.endswith(ASR_SUFFIX):
                continue
            stem = key.rsplit("/", 1)[-1][: -len(ASR_SUFFIX)]
            body = client.get_object(Bucket=bucket, Key=key)["Body"].read()
            rows = _stats_for_payload(body, key)
            if not rows:
                continue
            buf = BytesIO()
            pq.write_table(_rows_to_parquet_table(rows), buf)
            parquet_key = prefix_key + stem + "_speaker_stats.parquet"
            client.put_object(Bucket=bucket, Key=parquet_key, Body=buf.getvalue())
            count += 1
            print(f"Wrote {parquet_key}")
    return count


def _run_local(dir_path: Path) -> int:
    """
    List *_asr.json in dir, compute speaker stats, write parquet locally.

    Args:
        dir_path: Directory containing ASR response files.

    Returns:
        Number of parquet files written.
    """
    if not dir_path.is_dir():
        print(f"Error: not a directory: {dir_path}", file=sys.stderr)
        return 0
    count = 0
    for path in sorted(dir_path.glob(f"*{ASR_SUFFIX}")):
        stem = path.name[: -len(ASR_SUFFIX)]
        rows = _stats_for_payload(path.read_bytes(), str(path))
        if not rows:
            continue
        out_path = dir_path / f"{stem}_speaker_stats.parquet"
        pq.write_table(_rows_to_parquet_table(rows), out_path)
        count += 1
        print(f"Wrote {out_path}")
    return count


def run(prefix: str) -> int:
    """
    List ASR responses under prefix, compute speaker stats, write parquet.

    Prefix may be an S3 URI (s3://bucket/key) or a local path (file:///path or
    /path). For local paths, reads and writes in that directory.

    Returns:
        Number of parquet files written (0 on error or no files).
    """
    prefix = prefix.strip()
    if prefix.startswith("s3://"):
        return _run_s3(prefix)
    if prefix.startswith("file://"):
        dir_path = Path(prefix[7:])
    else:
        dir_path = Path(prefix)
    return _run_local(dir_path.resolve())


def main() -> None:
    """Entry point: read TRANSCRIPTS_S3_PREFIX or TRANSCRIPTS_PREFIX from env."""
    prefix = (
        os.environ.get("TRANSCRIPTS_S3_PREFIX")
        or os.environ.get("TRANSCRIPTS_PREFIX")
        or ""
    ).strip()
    if not prefix:
        print(
            "Error: TRANSCRIPTS_S3_PREFIX or TRANSCRIPTS_PREFIX must be set",
            file=sys.stderr,
        )
        sys.exit(1)
    n = run(prefix)
    print(f"Done. Wrote {n} parquet file(s).")


if __name__ == "__main__":
    main()
