"""Tests for the ASR segment extractor."""

import json
import sys

import pytest

from campaign_scribe.diarization.extractor import ExtractionError, SegmentExtractor


def _sentence(text, speaker, start, end):
    return {"text": text, "speaker": speaker, "start": start, "end": end}


def _word(word, speaker, start, end):
    return {"word": word, "speaker": speaker, "start": start, "end": end}


@pytest.fixture
def extractor():
    return SegmentExtractor()


class TestCoarsePath:
    """Sentence/paragraph representation."""

    def test_mirrors_sentences_losslessly(self, extractor) -> None:
        """Only paragraphs: one segment per sentence, text and times verbatim."""
        response = {
            "transcript": "Roll for initiative. I got a twelve. Nice.",
            "confidence": 0.93,
            "paragraphs": {
                "paragraphs": [
                    {
                        "sentences": [
                            _sentence("Roll for initiative.", 0, 0.0, 1.5),
                            _sentence("I got a twelve.", 1, 1.8, 3.0),
                        ]
                    },
                    {"sentences": [_sentence("Nice.", 0, 3.2, 3.6)]},
                ]
            },
        }
        result = extractor.extract(response)

        assert result.source == "paragraphs"
        assert result.segment_count == 3
        assert [s.text for s in result.speakers[0]] == [
            "Roll for initiative.",
            "Nice.",
        ]
        assert result.speakers[1][0].text == "I got a twelve."
        assert result.speakers[1][0].start == 1.8
        assert result.speakers[1][0].end == 3.0
        assert result.transcript == "Roll for initiative. I got a twelve. Nice."
        assert result.confidence == 0.93

    def test_missing_speaker_defaults_to_zero(self, extractor) -> None:
        """A sentence with no speaker (and none on its paragraph) is speaker 0."""
        response = {"paragraphs": [{"sentences": [{"text": "Hello", "start": 0, "end": 1}]}]}
        result = extractor.extract(response)
        assert list(result.speakers) == [0]

    def test_sentence_inherits_paragraph_speaker(self, extractor) -> None:
        """Provider responses tag paragraphs; sentences inherit that speaker."""
        response = {
            "paragraphs": {
                "paragraphs": [
                    {"speaker": 2, "sentences": [{"text": "Hi", "start": 0, "end": 1}]}
                ]
            }
        }
        result = extractor.extract(response)
        assert list(result.speakers) == [2]


class TestFinePath:
    """Word-level representation."""

    def test_words_used_when_more_speakers(self, extractor) -> None:
        """Words report 2 speakers, paragraphs 1: runs of words become segments."""
        response = {
            "paragraphs": {
                "paragraphs": [
                    {"sentences": [_sentence("I attack. Miss.", 0, 0.0, 2.0)]}
                ]
            },
            "words": [
                _word("I", 0, 0.0, 0.2),
                _word("attack.", 0, 0.3, 0.8),
                _word("Miss.", 1, 1.2, 2.0),
            ],
        }
        result = extractor.extract(response)

        assert result.source == "words"
        assert result.speaker_count == 2
        assert result.speakers[0][0].text == "I attack."
        assert result.speakers[0][0].start == 0.0
        assert result.speakers[0][0].end == 0.8
        assert result.speakers[1][0].text == "Miss."

    def test_fine_speaker_count_equals_distinct_word_speakers(self, extractor) -> None:
        """Output speaker count matches the word path's distinct speakers."""
        words = [
            _word("a", 0, 0, 1),
            _word("b", 1, 1, 2),
            _word("c", 2, 2, 3),
            _word("d", 0, 3, 4),
            _word("e", 1, 4, 5),
        ]
        result = extractor.extract({"words": words})
        assert result.speaker_count == 3
        # speaker 0 has two separate runs
        assert [s.text for s in result.speakers[0]] == ["a", "d"]

    def test_equal_counts_prefer_paragraphs(self, extractor) -> None:
        """Words must report strictly more speakers to win."""
        response = {
            "paragraphs": [{"sentences": [_sentence("Hello there.", 0, 0, 1)]}],
            "words": [_word("Hello", 0, 0, 0.5), _word("there.", 0, 0.5, 1)],
        }
        result = extractor.extract(response)
        assert result.source == "paragraphs"
        assert result.speakers[0][0].text == "Hello there."

    def test_punctuated_word_preferred(self, extractor) -> None:
        """punctuated_word is used when the provider supplies it."""
        words = [
            {**_word("hello", 0, 0, 1), "punctuated_word": "Hello,"},
            {**_word("bob", 1, 1, 2), "punctuated_word": "Bob."},
        ]
        result = extractor.extract({"words": words})
        assert result.speakers[0][0].text == "Hello,"
        assert result.speakers[1][0].text == "Bob."

    def test_words_joined_with_single_space(self, extractor) -> None:
        """Whitespace around words is trimmed before joining."""
        words = [
            _word(" we ", 0, 0, 1),
            _word("", 0, 1, 1.2),
            _word("rest", 0, 1.2, 2),
            _word("ok", 1, 2, 3),
        ]
        result = extractor.extract({"words": words})
        assert result.speakers[0][0].text == "we rest"


class TestEnvelopeAndMalformedInput:
    """Provider envelope, JSON input, and degradation of bad fields."""

    def test_full_envelope(self, extractor) -> None:
        """results.channels[0].alternatives[0] is located automatically."""
        alternative = {
            "transcript": "Hi",
            "confidence": 0.5,
            "paragraphs": {"paragraphs": [{"sentences": [_sentence("Hi", 0, 0, 1)]}]},
        }
        response = {"results": {"channels": [{"alternatives": [alternative]}]}}
        result = extractor.extract(response)
        assert result.transcript == "Hi"
        assert result.speakers[0][0].text == "Hi"

    def test_envelope_without_alternatives(self, extractor) -> None:
        """A truncated envelope degrades to an empty result."""
        result = extractor.extract({"results": {"channels": []}})
        assert result.speakers == {}
        assert result.source == "none"
        assert result.transcript == ""
        assert result.confidence is None

    def test_json_text_and_bytes(self, extractor) -> None:
        """JSON str and bytes are decoded."""
        response = {"words": [_word("a", 0, 0, 1), _word("b", 1, 1, 2)]}
        assert extractor.extract(json.dumps(response)).speaker_count == 2
        assert extractor.extract(json.dumps(response).encode()).speaker_count == 2

    def test_invalid_json_raises(self, extractor) -> None:
        """Unparseable input is an ExtractionError."""
        with pytest.raises(ExtractionError, match="not valid JSON"):
            extractor.extract("{not json")

    def test_non_object_raises(self, extractor) -> None:
        """A JSON array is not an ASR response."""
        with pytest.raises(ExtractionError, match="JSON object"):
            extractor.extract("[1, 2, 3]")

    def test_invalid_utf8_raises(self, extractor) -> None:
        """Undecodable bytes are an ExtractionError."""
        with pytest.raises(ExtractionError):
            extractor.extract(b"\xff\xfe\x00")

    def test_malformed_optional_fields_degrade(self, extractor) -> None:
        """Wrong types in optional fields never raise."""
        response = {
            "transcript": 42,
            "confidence": "high",
            "paragraphs": {
                "paragraphs": [
                    "not a paragraph",
                    {"sentences": "nope"},
                    {
                        "sentences": [
                            {"text": None, "speaker": "x", "start": "a", "end": None},
                            {"text": "Backwards", "speaker": 1, "start": 5, "end": 2},
                        ]
                    },
                ]
            },
            "words": "not a list",
        }
        result = extractor.extract(response)
        assert result.transcript == ""
        assert result.confidence is None
        assert result.speakers[0][0].text == ""
        assert result.speakers[0][0].start is None
        backwards = result.speakers[1][0]
        assert backwards.start == 5.0
        assert backwards.end is None

    def test_empty_response(self, extractor) -> None:
        """An empty object yields no speakers."""
        result = extractor.extract({})
        assert result.speakers == {}
        assert result.speaker_count == 0

    def test_huge_timestamp_degrades(self, extractor) -> None:
        """A timestamp too large for a float becomes None."""
        huge = "1" + "0" * 400
        raw = (
            '{"words": [{"word": "a", "speaker": 0, "start": '
            + huge
            + ', "end": 2}]}'
        )
        segment = extractor.extract(raw).speakers[0][0]
        assert segment.start is None
        assert segment.end == 2.0

    def test_non_finite_times_degrade(self, extractor) -> None:
        """NaN and Infinity are accepted by the JSON decoder but not kept."""
        raw = (
            '{"confidence": NaN, "paragraphs": [{"sentences": ['
            '{"text": "a", "speaker": 0, "start": NaN, "end": Infinity},'
            '{"text": "b", "speaker": 0, "start": "-inf", "end": 3}'
            "]}]}"
        )
        result = extractor.extract(raw)
        assert result.confidence is None
        first, second = result.speakers[0]
        assert (first.start, first.end) == (None, None)
        assert (second.start, second.end) == (None, 3.0)

    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits"),
        reason="interpreter has no integer digit limit",
    )
    def test_number_past_digit_limit_raises(self, extractor) -> None:
        """An integer literal the decoder refuses is an ExtractionError."""
        raw = '{"words": [{"word": "a", "start": ' + "9" * 5000 + "}]}"
        with pytest.raises(ExtractionError):
            extractor.extract(raw)
