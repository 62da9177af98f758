"""Normalize raw ASR responses into per-speaker segment lists."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from typing import Any, Optional, Union

from campaign_scribe.diarization.models import ExtractionResult, SpeechSegment

logger = logging.getLogger(__name__)

DEFAULT_SPEAKER_INDEX = 0


class ExtractionError(Exception):
    """Exception raised when an ASR response cannot be parsed at all."""

    pass


class SegmentExtractor:
    """
    Picks the speaker-tagged representation with more diarization resolution.

    An ASR response may carry a coarse representation (sentences grouped into
    paragraphs) and a fine one (individual words), each tagged with speaker
    indices. Word-level tags are used only when they report strictly more
    distinct speakers than the sentence-level ones.
    """

    def extract(
        self, response: Union[Mapping[str, Any], str, bytes]
    ) -> ExtractionResult:
        """
        Extract per-speaker segments from one ASR response.

        Args:
            response: Decoded response mapping, or its JSON text/bytes.

        Returns:
            ExtractionResult mapping speaker index to ordered segments.

        Raises:
            ExtractionError: If the response is not well-formed structured data.
        """
        document = self._decode(response)
        alternative = self._find_alternative(document)

        sentences = self._sentences(alternative)
        words = self._words(alternative)

        coarse_speakers = {speaker for speaker, _ in sentences}
        fine_speakers = {self._speaker_index(w.get("speaker")) for w in words}

        if words and len(fine_speakers) > len(coarse_speakers):
            logger.debug(
                "Using word-level diarization (%d speakers vs %d in paragraphs)",
                len(fine_speakers),
                len(coarse_speakers),
            )
            tagged = self._merge_word_runs(words)
            source = "words"
        else:
            tagged = [
                (speaker, self._segment(s.get("text"), s.get("start"), s.get("end")))
                for speaker, s in sentences
            ]
            source = "paragraphs" if sentences else "none"

        speakers: dict[int, list[SpeechSegment]] = {}
        for speaker, segment in tagged:
            speakers.setdefault(speaker, []).append(segment)

        transcript = alternative.get("transcript")
        return ExtractionResult(
            speakers=speakers,
            transcript=transcript if isinstance(transcript, str) else "",
            confidence=self._as_float(alternative.get("confidence")),
            source=source,
        )

    def _decode(self, response: Union[Mapping[str, Any], str, bytes]) -> Mapping:
        """Turn the raw response into a mapping or fail with ExtractionError."""
        if isinstance(response, Mapping):
            return response
        if isinstance(response, (bytes, bytearray)):
            try:
                response = response.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ExtractionError(f"ASR response is not UTF-8 text: {e}") from e
        if not isinstance(response, str):
            raise ExtractionError(
                f"Unsupported ASR response type: {type(response).__name__}"
            )
        try:
            document = json.loads(response)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"ASR response is not valid JSON: {e}") from e
        except ValueError as e:
            # integer literals past the interpreter digit limit
            raise ExtractionError(f"ASR response has an unreadable number: {e}") from e
        if not isinstance(document, dict):
            raise ExtractionError("ASR response must be a JSON object")
        return document

    def _find_alternative(self, document: Mapping) -> Mapping:
        """
        Return the document holding transcript/words/paragraphs.

        Accepts either the bare alternative or the full provider envelope
        (results.channels[0].alternatives[0]).
        """
        if "results" not in document:
            return document
        results = document.get("results")
        channels = results.get("channels") if isinstance(results, Mapping) else None
        channel = _first_mapping(channels)
        alternatives = channel.get("alternatives") if channel else None
        return _first_mapping(alternatives) or {}

    def _sentences(self, alternative: Mapping) -> list[tuple[int, Mapping]]:
        """Flatten paragraphs into (speaker, sentence) pairs."""
        paragraphs: Any = alternative.get("paragraphs")
        if isinstance(paragraphs, Mapping):
            paragraphs = paragraphs.get("paragraphs")
        pairs: list[tuple[int, Mapping]] = []
        for paragraph in _mappings(paragraphs):
            paragraph_speaker = paragraph.get("speaker")
            for sentence in _mappings(paragraph.get("sentences")):
                speaker = sentence.get("speaker")
                if speaker is None:
                    speaker = paragraph_speaker
                pairs.append((self._speaker_index(speaker), sentence))
        return pairs

    def _words(self, alternative: Mapping) -> list[Mapping]:
        return list(_mappings(alternative.get("words")))

    def _merge_word_runs(
        self, words: list[Mapping]
    ) -> list[tuple[int, SpeechSegment]]:
        """Merge consecutive words of the same speaker into one segment per run."""
        runs: list[tuple[int, list[Mapping]]] = []
        for word in words:
            speaker = self._speaker_index(word.get("speaker"))
            if runs and runs[-1][0] == speaker:
                runs[-1][1].append(word)
            else:
                runs.append((speaker, [word]))

        merged: list[tuple[int, SpeechSegment]] = []
        for speaker, run in runs:
            tokens = [self._word_text(w) for w in run]
            text = " ".join(t for t in tokens if t)
            merged.append(
                (speaker, self._segment(text, run[0].get("start"), run[-1].get("end")))
            )
        return merged

    def _word_text(self, word: Mapping) -> str:
        text = word.get("punctuated_word")
        if not isinstance(text, str) or not text.strip():
            text = word.get("word")
        return text.strip() if isinstance(text, str) else ""

    def _segment(self, text: Any, start: Any, end: Any) -> SpeechSegment:
        """Build a segment, dropping an end time that precedes the start."""
        start_s = self._as_float(start)
        end_s = self._as_float(end)
        if start_s is not None and end_s is not None and end_s < start_s:
            end_s = None
        return SpeechSegment(
            text=text.strip() if isinstance(text, str) else "",
            start=start_s,
            end=end_s,
        )

    @staticmethod
    def _speaker_index(value: Any) -> int:
        """Coerce a speaker tag to a non-negative int, defaulting to 0."""
        if isinstance(value, bool):
            return DEFAULT_SPEAKER_INDEX
        if isinstance(value, int):
            return value if value >= 0 else DEFAULT_SPEAKER_INDEX
        if isinstance(value, float) and value.is_integer() and value >= 0:
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return DEFAULT_SPEAKER_INDEX

    @staticmethod
    def _as_float(value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            return None
        try:
            number = float(value)
        except (ValueError, OverflowError):
            return None
        return number if math.isfinite(number) else None


def _mappings(value: Any) -> list[Mapping]:
    """Return the mapping items of a list, or [] when value is not a list."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _first_mapping(value: Any) -> Optional[Mapping]:
    items = _mappings(value)
    return items[0] if items else None
