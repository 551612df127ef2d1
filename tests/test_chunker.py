"""Test transcript chunking and slicing."""
from ingestion.chunker import (
    TranscriptChunker,
    extract_transcript_slice,
    format_chunks_for_llm,
    format_segments_for_llm,
    total_duration,
)
from ingestion.models import TranscriptChunk, TranscriptSegment


def seg(start, end, text="words"):
    return TranscriptSegment(start_sec=start, end_sec=end, text=text)


def test_hard_cap_closes_chunk():
    """No chunk may grow past the max duration."""
    segments = [seg(i * 10, i * 10 + 10, f"s{i}") for i in range(20)]
    chunker = TranscriptChunker(target_seconds=45, max_seconds=75, pause_seconds=1.5)
    chunks = chunker.chunk(segments)

    assert all(c.end_sec - c.start_sec <= 75 for c in chunks)
    assert chunks[0].end_sec == 70
    assert chunks[1].start_sec == 70


def test_soft_target_needs_a_pause():
    """Past the target, a chunk closes only at a natural pause."""
    segments = [seg(0, 20), seg(20, 40), seg(40, 50), seg(52, 60), seg(60, 70)]
    chunks = TranscriptChunker(target_seconds=45, max_seconds=75, pause_seconds=1.5).chunk(segments)

    assert len(chunks) == 2
    assert (chunks[0].start_sec, chunks[0].end_sec) == (0, 50)
    assert (chunks[1].start_sec, chunks[1].end_sec) == (52, 70)


def test_chunk_text_joins_segments():
    chunks = TranscriptChunker().chunk([seg(0, 1, "hello"), seg(1, 2, "world")])

    assert len(chunks) == 1
    assert chunks[0].text == "hello world"


def test_empty_input():
    assert TranscriptChunker().chunk([]) == []


def test_slice_keeps_overlapping_segments():
    segments = [seg(0, 10, "a"), seg(10, 20, "b"), seg(20, 30, "c"), seg(30, 40, "d")]
    sliced = extract_transcript_slice(segments, 15, 30)

    assert [s.text for s in sliced] == ["b", "c"]


def test_slice_boundaries_are_half_open():
    segments = [seg(0, 10, "a"), seg(10, 20, "b")]

    assert [s.text for s in extract_transcript_slice(segments, 10, 20)] == ["b"]
    assert extract_transcript_slice(segments, 20, 30) == []


def test_total_duration_rounds_up():
    assert total_duration([seg(0, 10), seg(10, 599.2)]) == 600
    assert total_duration([]) == 0


def test_llm_formatting():
    chunks = [TranscriptChunk(start_sec=0.4, end_sec=45, text="one"), TranscriptChunk(start_sec=45.9, end_sec=80, text="two")]
    segments = [seg(3.7, 5, "x"), seg(61.2, 62, "y")]

    assert format_chunks_for_llm(chunks) == "[0s] one\n\n[45s] two"
    assert format_segments_for_llm(segments) == "[3s] x\n[61s] y"
