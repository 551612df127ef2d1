"""Semantic chapter segmentation using an LLM."""
from typing import List, Optional

from pydantic import BaseModel

from utils.logger import setup_logger
from utils.json_utils import try_parse_json
from extraction.models import Chapter, ChatResult, TokenUsage
from extraction.validators import ChapterValidator
from extraction import prompts
from execution.api_clients import BaseChatClient, JSON_OBJECT
import config

logger = setup_logger(__name__)


class ChapteringError(Exception):
    """Raised when the chapter set cannot be produced."""
    pass


class MalformedChapterResponse(ChapteringError):
    """Response is not JSON or not shaped like {chapters: [...]}"""
    pass


class InsufficientChapters(ChapteringError):
    pass


class OverlappingChapters(ChapteringError):
    pass


class ChapteringResult(BaseModel):
    chapters: List[Chapter]
    usage: Optional[TokenUsage] = None
    merges: int = 0


def merge_pair(left: Chapter, right: Chapter) -> Chapter:
    """Merge two adjacent chapters into one spanning both."""
    return Chapter(
        id=left.id,
        title=f"{left.title}: {right.title}",
        start_sec=left.start_sec,
        end_sec=right.end_sec,
        thesis=f"{left.thesis} {right.thesis}".strip(),
        primary_keyword=left.primary_keyword or right.primary_keyword,
        secondary_keywords=list(dict.fromkeys(left.secondary_keywords + right.secondary_keywords))[
            :config.MAX_SECONDARY_KEYWORDS
        ],
    )


def merge_shortest(chapters: List[Chapter]) -> List[Chapter]:
    """One repair step: fold the shortest chapter into its left neighbour.

    The first chapter has no left neighbour and is folded into its right one.
    Ties go to the earliest chapter.
    """
    if len(chapters) < 2:
        return list(chapters)

    shortest = min(range(len(chapters)), key=lambda i: chapters[i].duration)
    left = shortest - 1 if shortest > 0 else 0
    right = left + 1

    merged = merge_pair(chapters[left], chapters[right])
    result = chapters[:left] + [merged] + chapters[right + 1:]
    return sorted(result, key=lambda c: c.start_sec)


def repair_chapter_count(chapters: List[Chapter], max_chapters: int = config.MAX_CHAPTERS) -> List[Chapter]:
    """Merge greedily, shortest first, until at most max_chapters remain."""
    while len(chapters) > max_chapters:
        before = len(chapters)
        chapters = merge_shortest(chapters)
        logger.info(f"Merged shortest chapter: {before} -> {len(chapters)} chapters")
    return chapters


def snap_to_timeline(
    chapters: List[Chapter],
    total_duration_sec: float,
    end_snap_sec: float = config.CHAPTER_END_SNAP_SEC
) -> List[Chapter]:
    """Force the first start to 0; snap the last end to the duration when close."""
    chapters = list(chapters)
    chapters[0] = chapters[0].model_copy(update={"start_sec": 0.0})
    last = chapters[-1]
    if abs(last.end_sec - total_duration_sec) <= end_snap_sec:
        chapters[-1] = last.model_copy(update={"end_sec": float(total_duration_sec)})
    return chapters


class ChapterSegmenter:
    """Proposes, validates and repairs semantic chapters for a transcript."""

    def __init__(
        self,
        client: BaseChatClient,
        model: str,
        max_chapters: int = config.MAX_CHAPTERS,
        min_chapters: int = config.MIN_CHAPTERS,
        overlap_tolerance_sec: float = config.CHAPTER_OVERLAP_TOLERANCE_SEC,
        end_snap_sec: float = config.CHAPTER_END_SNAP_SEC
    ):
        """Initialize segmenter.

        Args:
            client: Chat client
            model: Model id for chaptering
            max_chapters: Hard cap enforced by merging
            min_chapters: Fewer valid chapters than this is fatal
            overlap_tolerance_sec: Allowed end/start overlap between neighbours
            end_snap_sec: Snap distance for the last chapter's end
        """
        self.client = client
        self.model = model
        self.max_chapters = max_chapters
        self.min_chapters = min_chapters
        self.overlap_tolerance_sec = overlap_tolerance_sec
        self.end_snap_sec = end_snap_sec

    async def generate(
        self,
        transcript_with_timestamps: str,
        total_duration_sec: float,
        video_title: str = ""
    ) -> ChapteringResult:
        """Ask the model for chapters and turn the answer into a valid chapter set.

        Args:
            transcript_with_timestamps: Chunked transcript text
            total_duration_sec: Video length in seconds
            video_title: Optional video title for context

        Returns:
            ChapteringResult

        Raises:
            MalformedChapterResponse, InsufficientChapters, OverlappingChapters
        """
        result = await self.request(transcript_with_timestamps, total_duration_sec, video_title)
        chapters = self.parse(result.content, total_duration_sec)
        return ChapteringResult(chapters=chapters, usage=result.usage)

    async def request(
        self,
        transcript_with_timestamps: str,
        total_duration_sec: float,
        video_title: str = ""
    ) -> ChatResult:
        """Raw chaptering call, before any validation."""
        messages = prompts.chapter_messages(
            transcript_with_timestamps,
            video_title,
            total_duration_sec,
            self.max_chapters,
            self.end_snap_sec,
        )
        return await self.client.chat_complete(
            self.model,
            messages,
            temperature=config.CHAPTERS_TEMPERATURE,
            max_tokens=2000,
            response_format=JSON_OBJECT,
        )

    def parse(self, content: str, total_duration_sec: float) -> List[Chapter]:
        """Validate and repair a raw chaptering response."""
        payload = try_parse_json(content)
        if payload is None:
            logger.error(f"Could not parse chaptering JSON. First 500 chars: {(content or '')[:500]}")
            raise MalformedChapterResponse("Failed to parse chaptering JSON")

        chapters, validation = ChapterValidator.validate_payload(payload)
        if not validation.is_valid:
            raise MalformedChapterResponse("; ".join(validation.errors))
        for warning in validation.warnings:
            logger.warning(f"Dropped chapter candidate: {warning}")

        if len(chapters) < self.min_chapters:
            raise InsufficientChapters(
                f"Chaptering produced too few chapters ({len(chapters)} valid, need {self.min_chapters})"
            )

        chapters = sorted(chapters, key=lambda c: c.start_sec)
        overlap = ChapterValidator.find_overlap(chapters, self.overlap_tolerance_sec)
        if overlap is not None:
            a, b = chapters[overlap], chapters[overlap + 1]
            raise OverlappingChapters(
                f"Chaptering produced overlapping chapters: '{a.id}' ends at {a.end_sec}s, "
                f"'{b.id}' starts at {b.start_sec}s"
            )

        raw_count = len(chapters)
        chapters = repair_chapter_count(chapters, self.max_chapters)
        chapters = snap_to_timeline(chapters, total_duration_sec, self.end_snap_sec)

        logger.info(f"Chaptering complete: {raw_count} valid candidates -> {len(chapters)} chapters")
        return chapters
