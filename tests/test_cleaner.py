"""Test caption normalization."""
import pytest

from ingestion.cleaner import EmptyTranscript, clean_text, normalize_captions
from ingestion.models import RawCaption


def test_output_sorted_by_start():
    captions = [
        RawCaption(start=30, dur=5, text="third"),
        RawCaption(start=0, dur=5, text="first"),
        RawCaption(start="12.5", dur="5", text="second"),
    ]
    segments = normalize_captions(captions)

    assert [s.text for s in segments] == ["first", "second", "third"]
    assert [s.start_sec for s in segments] == sorted(s.start_sec for s in segments)


def test_string_numbers_are_coerced():
    segments = normalize_captions([{"start": " 1.5 ", "dur": "2", "text": "hi"}])

    assert segments[0].start_sec == 1.5
    assert segments[0].end_sec == 3.5


def test_invalid_entries_dropped():
    captions = [
        {"start": "abc", "dur": 1, "text": "bad start"},
        {"start": 1, "dur": None, "text": "bad dur"},
        {"start": 2, "dur": 1, "text": "   \n  "},
        {"start": float("inf"), "dur": 1, "text": "infinite"},
        {"start": 3, "dur": 1, "text": "kept"},
    ]
    segments = normalize_captions(captions)

    assert [s.text for s in segments] == ["kept"]


def test_negative_values_clamped():
    segments = normalize_captions([{"start": -4, "dur": -2, "text": "clamped"}])

    assert segments[0].start_sec == 0
    assert segments[0].end_sec == 0
    assert segments[0].end_sec >= segments[0].start_sec


def test_duration_key_accepted():
    segments = normalize_captions([{"start": 1, "duration": 4, "text": "yt style"}])

    assert segments[0].end_sec == 5


def test_whitespace_collapsed():
    assert clean_text("  a\n\nb\t c  ") == "a b c"


def test_empty_transcript_raises():
    with pytest.raises(EmptyTranscript):
        normalize_captions([{"start": 0, "dur": 1, "text": ""}])

    with pytest.raises(EmptyTranscript):
        normalize_captions([])
