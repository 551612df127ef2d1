"""Transcript chunking, slicing and LLM formatting."""
import math
from typing import List

import tiktoken

from utils.logger import setup_logger
from ingestion.models import TranscriptChunk, TranscriptSegment
import config

logger = setup_logger(__name__)


class TranscriptChunker:
    """Greedily aggregates segments into coarse time chunks for chaptering."""

    def __init__(
        self,
        target_seconds: float = config.CHUNK_TARGET_SECONDS,
        max_seconds: float = config.CHUNK_MAX_SECONDS,
        pause_seconds: float = config.CHUNK_PAUSE_SECONDS
    ):
        """Initialize chunker.

        Args:
            target_seconds: Soft target; a chunk may close here on a natural pause
            max_seconds: Hard cap on chunk duration
            pause_seconds: Minimum caption gap that counts as a natural pause
        """
        self.target_seconds = target_seconds
        self.max_seconds = max_seconds
        self.pause_seconds = pause_seconds

        self._tokenizer = None

    def chunk(self, segments: List[TranscriptSegment]) -> List[TranscriptChunk]:
        """Chunk ordered segments.

        A chunk is closed before adding the next segment when the resulting
        duration would exceed max_seconds, or when it would reach
        target_seconds and the gap to the next segment is a natural pause.

        Args:
            segments: Normalized, ordered segments

        Returns:
            List of TranscriptChunks
        """
        chunks: List[TranscriptChunk] = []
        current = None

        for seg in segments:
            if current is None:
                current = TranscriptChunk(start_sec=seg.start_sec, end_sec=seg.end_sec, text=seg.text)
                continue

            would_end = max(current.end_sec, seg.end_sec)
            would_duration = would_end - current.start_sec
            has_break = (seg.start_sec - current.end_sec) >= self.pause_seconds

            if would_duration > self.max_seconds or (would_duration >= self.target_seconds and has_break):
                chunks.append(current)
                current = TranscriptChunk(start_sec=seg.start_sec, end_sec=seg.end_sec, text=seg.text)
                continue

            current.text = f"{current.text} {seg.text}".strip()
            current.end_sec = would_end

        if current is not None:
            chunks.append(current)

        logger.info(f"Chunked {len(segments)} segments into {len(chunks)} chunks")
        return chunks

    @property
    def tokenizer(self):
        # cl100k_base is close enough for every routed model
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    def count_tokens(self, text: str) -> int:
        """Estimate the token count of an LLM input."""
        return len(self.tokenizer.encode(text))


def total_duration(segments: List[TranscriptSegment]) -> int:
    """Whole-second duration of the transcript (ceil of the last end)."""
    if not segments:
        return 0
    return math.ceil(segments[-1].end_sec)


def extract_transcript_slice(
    segments: List[TranscriptSegment],
    start_sec: float,
    end_sec: float
) -> List[TranscriptSegment]:
    """Return every segment overlapping [start_sec, end_sec)."""
    s = max(0.0, start_sec)
    e = max(s, end_sec)
    return [seg for seg in segments if seg.end_sec > s and seg.start_sec < e]


def format_chunks_for_llm(chunks: List[TranscriptChunk]) -> str:
    return "\n\n".join(f"[{math.floor(c.start_sec)}s] {c.text}" for c in chunks)


def format_segments_for_llm(segments: List[TranscriptSegment]) -> str:
    return "\n".join(f"[{math.floor(s.start_sec)}s] {s.text}" for s in segments)
