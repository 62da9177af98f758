"""Merge temporally adjacent segments into display blocks."""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional, Sequence

from campaign_scribe.diarization.models import DisplayBlock, SpeechSegment


class _BlockBuilder:
    """Accumulates segments for one display block."""

    def __init__(self, speaker_label: str, segment: SpeechSegment) -> None:
        self.speaker_label = speaker_label
        self.texts = [segment.text] if segment.text else []
        self.start = segment.start
        self.end = segment.end
        self.count = 1

    def add(self, segment: SpeechSegment) -> None:
        if segment.text:
            self.texts.append(segment.text)
        self.end = segment.end
        self.count += 1

    def build(self) -> DisplayBlock:
        return DisplayBlock(
            speaker_label=self.speaker_label,
            text=" ".join(self.texts),
            start=self.start,
            end=self.end,
            source_segment_count=self.count,
        )


class SegmentCoalescer:
    """Turns ordered segments into display blocks split at long pauses."""

    def coalesce(
        self,
        segments: Sequence[SpeechSegment],
        pause_threshold_seconds: float,
        speaker_label: str = "",
    ) -> list[DisplayBlock]:
        """
        Merge one speaker's segments whose gap is within the threshold.

        Segments are taken in the given order; an out-of-order segment is
        appended as-is. A missing timestamp on either side of a gap merges.

        Args:
            segments: One speaker's segments, already sorted by start time.
            pause_threshold_seconds: Largest gap (seconds) that still merges.
            speaker_label: Label put on every produced block.

        Returns:
            Display blocks in input order.
        """
        return self.coalesce_timeline(
            [(speaker_label, segment) for segment in segments],
            pause_threshold_seconds,
        )

    def coalesce_timeline(
        self,
        entries: Iterable[tuple[str, SpeechSegment]],
        pause_threshold_seconds: float,
    ) -> list[DisplayBlock]:
        """
        Merge an interleaved (speaker_label, segment) feed.

        Consecutive entries merge only when they share a speaker label and
        their gap is within the threshold (or unknown).

        Args:
            entries: Labelled segments in global time order.
            pause_threshold_seconds: Largest gap (seconds) that still merges.

        Returns:
            Display blocks in input order.
        """
        _check_threshold(pause_threshold_seconds)
        blocks: list[DisplayBlock] = []
        current: Optional[_BlockBuilder] = None

        for label, segment in entries:
            if current is not None and current.speaker_label == label and _within_pause(
                current.end, segment.start, pause_threshold_seconds
            ):
                current.add(segment)
                continue
            if current is not None:
                blocks.append(current.build())
            current = _BlockBuilder(label, segment)

        if current is not None:
            blocks.append(current.build())
        return blocks

    def flatten_timeline(
        self, speakers: Mapping[str, Sequence[SpeechSegment]]
    ) -> list[tuple[str, SpeechSegment]]:
        """
        Flatten per-speaker segment lists into one feed sorted by start time.

        Segments without a start keep their relative order after all timed
        segments.
        """
        entries = [
            (label, segment)
            for label, segments in speakers.items()
            for segment in segments
        ]
        return sorted(
            entries,
            key=lambda e: (e[1].start is None, e[1].start or 0.0),
        )


def _within_pause(
    previous_end: Optional[float],
    next_start: Optional[float],
    threshold: float,
) -> bool:
    if previous_end is None or next_start is None:
        return True
    return next_start - previous_end <= threshold


def _check_threshold(threshold: float) -> None:
    if math.isnan(threshold) or threshold < 0:
        raise ValueError(
            f"pause_threshold_seconds must be zero or positive, got {threshold}"
        )
