"""Command-line interface for previewing diarized ASR output."""

import argparse
import sys
from pathlib import Path
from typing import NoReturn


def _format_time(seconds: float | None) -> str:
    """Format seconds as M:SS, or -:-- when unknown."""
    if seconds is None:
        return "-:--"
    m = int(seconds) // 60
    s = int(seconds) % 60
    return f"{m}:{s:02d}"


def main(argv: list[str] | None = None) -> NoReturn:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Normalize a raw ASR response into speaker display blocks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Interleaved conversation, 2 second pauses split blocks
  python -m campaign_scribe.diarization response.json

  # Longer pauses allowed before splitting
  python -m campaign_scribe.diarization response.json --pause-threshold 5

  # One block list per speaker instead of a conversation
  python -m campaign_scribe.diarization response.json --per-speaker
        """,
    )

    parser.add_argument(
        "response_path",
        type=str,
        help="Path to a raw ASR response (JSON)",
    )

    parser.add_argument(
        "--pause-threshold",
        type=float,
        default=2.0,
        help="Largest pause in seconds that still merges segments (default: 2.0)",
    )

    parser.add_argument(
        "--per-speaker",
        action="store_true",
        help="Group blocks by speaker instead of printing one timeline",
    )

    args = parser.parse_args(argv)

    response_path = Path(args.response_path)
    if not response_path.is_file():
        print(f"Error: Response file not found: {response_path}", file=sys.stderr)
        sys.exit(1)

    if args.pause_threshold < 0:
        print("Error: --pause-threshold must not be negative", file=sys.stderr)
        sys.exit(1)

    from campaign_scribe.diarization import (
        ExtractionError,
        SegmentCoalescer,
        SegmentExtractor,
        format_speaker_label,
    )

    try:
        result = SegmentExtractor().extract(response_path.read_bytes())
    except ExtractionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    coalescer = SegmentCoalescer()
    labelled = {
        format_speaker_label(index): segments
        for index, segments in sorted(result.speakers.items())
    }

    print(f"Source: {result.source}")
    print(f"Speakers found: {result.speaker_count}")
    print(f"Total segments: {result.segment_count}")
    if result.confidence is not None:
        print(f"Confidence: {result.confidence:.2f}")
    print("=" * 60)

    if args.per_speaker:
        for label, segments in labelled.items():
            print(f"\n{label}")
            print("-" * 60)
            for block in coalescer.coalesce(segments, args.pause_threshold, label):
                print(
                    f"[{_format_time(block.start)}-{_format_time(block.end)}] "
                    f"{block.text}"
                )
    else:
        timeline = coalescer.flatten_timeline(labelled)
        for block in coalescer.coalesce_timeline(timeline, args.pause_threshold):
            print(
                f"[{_format_time(block.start)}] {block.speaker_label}: {block.text}"
            )

    sys.exit(0)
