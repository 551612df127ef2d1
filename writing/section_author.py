"""Section author: drafts and revises intro, chapter sections and conclusion."""
from typing import List, Optional

from utils.logger import setup_logger
from extraction.models import Chapter, ChatMessage, DraftPiece, WordBudget
from ingestion.models import VideoMetadata
from execution.api_clients import BaseChatClient
from writing import prompts
import config

logger = setup_logger(__name__)

SECTION_MAX_TOKENS = 4000
FRAME_MAX_TOKENS = 1200


def compute_word_budget(
    chapter_count: int,
    overall_target_words: int = config.OVERALL_TARGET_WORDS,
    intro_target_words: int = config.INTRO_TARGET_WORDS,
    conclusion_target_words: int = config.CONCLUSION_TARGET_WORDS,
    min_section_words_total: int = config.MIN_SECTION_WORDS_TOTAL
) -> WordBudget:
    """Split the overall word target between intro, sections and conclusion.

    Sections share at least `min_section_words_total` words even when the
    overall target leaves less than that after intro and conclusion.
    """
    remaining = max(min_section_words_total, overall_target_words - intro_target_words - conclusion_target_words)
    per_section = round(remaining / max(1, chapter_count))
    return WordBudget(
        overall_target_words=overall_target_words,
        intro_target_words=intro_target_words,
        per_section_target_words=per_section,
        conclusion_target_words=conclusion_target_words,
    )


class SectionAuthor:
    """Writes article parts with the writer model.

    Every call shares the same system prompt; the user prompt carries the
    part-specific material (transcript slice, outline, previous draft).
    """

    def __init__(self, client: BaseChatClient, model: str, budget: Optional[WordBudget] = None):
        self.client = client
        self.model = model
        self.budget = budget or compute_word_budget(1)

    async def _write(self, user_prompt: str, max_tokens: int, label: str) -> DraftPiece:
        messages = [
            ChatMessage(role="system", content=prompts.writer_system_prompt()),
            ChatMessage(role="user", content=user_prompt),
        ]
        result = await self.client.chat_complete(
            self.model,
            messages,
            temperature=config.WRITER_TEMPERATURE,
            max_tokens=max_tokens,
        )
        content = result.content.strip()
        logger.debug(f"Wrote {label}: {len(content.split())} words")
        return DraftPiece(content=content, usage=result.usage)

    async def write_introduction(
        self,
        article_title: str,
        chapters: List[Chapter],
        video: VideoMetadata
    ) -> DraftPiece:
        prompt = prompts.introduction_prompt(
            article_title,
            chapters,
            video,
            self.budget.overall_target_words,
            self.budget.intro_target_words,
        )
        return await self._write(prompt, FRAME_MAX_TOKENS, "introduction")

    async def write_section(
        self,
        chapter: Chapter,
        transcript_slice: str,
        video: VideoMetadata
    ) -> DraftPiece:
        """Draft one chapter section from its transcript slice.

        Args:
            chapter: Chapter being written
            transcript_slice: Timestamped transcript lines inside the chapter
            video: Video title/description for SEO context

        Returns:
            DraftPiece starting with "## {chapter.title}"
        """
        prompt = prompts.section_prompt(
            chapter,
            transcript_slice,
            video,
            self.budget.overall_target_words,
            self.budget.per_section_target_words,
        )
        return await self._write(prompt, SECTION_MAX_TOKENS, f"section {chapter.id}")

    async def write_conclusion(self, article_title: str, chapters: List[Chapter]) -> DraftPiece:
        prompt = prompts.conclusion_prompt(
            article_title,
            chapters,
            self.budget.overall_target_words,
            self.budget.conclusion_target_words,
        )
        return await self._write(prompt, FRAME_MAX_TOKENS, "conclusion")

    async def revise_introduction_with_feedback(
        self,
        article_title: str,
        chapters: List[Chapter],
        video: VideoMetadata,
        original_intro: str,
        feedback_markdown: str
    ) -> DraftPiece:
        prompt = prompts.revise_introduction_prompt(
            article_title,
            chapters,
            video,
            self.budget.overall_target_words,
            self.budget.intro_target_words,
            original_intro,
            feedback_markdown,
        )
        return await self._write(prompt, FRAME_MAX_TOKENS, "revised introduction")

    async def revise_section_with_feedback(
        self,
        chapter: Chapter,
        transcript_slice: str,
        video: VideoMetadata,
        original_section: str,
        feedback_markdown: str
    ) -> DraftPiece:
        """Rewrite one section given the v1 text and the editorial critique."""
        prompt = prompts.revise_section_prompt(
            chapter,
            transcript_slice,
            video,
            self.budget.overall_target_words,
            self.budget.per_section_target_words,
            original_section,
            feedback_markdown,
        )
        return await self._write(prompt, SECTION_MAX_TOKENS, f"revised section {chapter.id}")

    async def revise_conclusion_with_feedback(
        self,
        article_title: str,
        chapters: List[Chapter],
        original_conclusion: str,
        feedback_markdown: str
    ) -> DraftPiece:
        prompt = prompts.revise_conclusion_prompt(
            article_title,
            chapters,
            self.budget.overall_target_words,
            self.budget.conclusion_target_words,
            original_conclusion,
            feedback_markdown,
        )
        return await self._write(prompt, FRAME_MAX_TOKENS, "revised conclusion")
