"""
Article generation pipeline.

Runs one job end to end: captions -> chapters -> draft -> critique ->
revision -> final Markdown. Progress is persisted at every phase change and
every LLM call is recorded in the job's cost log.
"""

import asyncio
import time
from typing import List, Optional

from pydantic import BaseModel

from assembly.markdown_assembler import SourceVideo, assemble_markdown, slugify
from execution.api_clients import BaseChatClient
from extraction.chapter_segmenter import ChapterSegmenter
from extraction.models import Chapter, DraftPiece, JobPhase, TokenUsage
from generation.cost_tracker import CostTracker
from generation.plan_policy import PlanPolicy
from ingestion.captions import CaptionFetcher, CaptionSource
from ingestion.chunker import (
    TranscriptChunker,
    extract_transcript_slice,
    format_chunks_for_llm,
    format_segments_for_llm,
    total_duration,
)
from ingestion.cleaner import normalize_captions
from ingestion.models import TranscriptSegment, VideoMetadata
from ingestion.youtube import parse_youtube_url
from monitoring.progress_tracker import ProgressTracker
from utils.logger import setup_logger
from writing.critique import CritiqueStage
from writing.section_author import SectionAuthor, compute_word_budget

logger = setup_logger(__name__)


class GenerationRequest(BaseModel):
    video_url: str
    lang: str = "en"
    user_id: str
    plan: str = "free"


def article_title_for(video: Optional[VideoMetadata], video_id: str) -> str:
    title = (video.title if video else "").strip()
    return title or f"YouTube Article ({video_id})"


class ArticleGenerationJob:
    """One run of the pipeline for one job record."""

    def __init__(
        self,
        db,
        client: BaseChatClient,
        caption_source: CaptionSource,
        job_id: str,
        request: GenerationRequest,
        policy: PlanPolicy,
        chunker: Optional[TranscriptChunker] = None
    ):
        """
        Args:
            db: Database instance (storage.database.Database)
            client: Chat client for every LLM stage
            caption_source: Caption and metadata source
            job_id: Job UUID (the record must already exist)
            request: What to generate
            policy: Plan policy resolved when the job was created
            chunker: Transcript chunker for the chaptering input
        """
        self.db = db
        self.client = client
        self.caption_source = caption_source
        self.job_id = job_id
        self.request = request
        self.models = policy.models
        self.plan = policy.plan
        self.chunker = chunker or TranscriptChunker()
        self.progress = ProgressTracker(db, job_id)
        self.costs = CostTracker()

    def _record_cost(self, step: str, model: str, usage: Optional[TokenUsage]) -> None:
        cost = self.costs.push_cost(step, model, usage)
        tokens = usage.total_tokens if usage else "n/a"
        cost_label = f"${cost:.4f}" if cost is not None else "unknown"
        logger.info(f"[{self.job_id}] {step} model={model} tokens={tokens} cost={cost_label}")

    async def _fetch_inputs(self, video_id: str):
        """Captions and video metadata in parallel. Metadata failures degrade to None."""
        fetcher = CaptionFetcher(self.caption_source)
        captions_result, metadata = await asyncio.gather(
            fetcher.fetch(video_id, self.request.lang),
            self.caption_source.fetch_video_metadata(video_id, self.request.lang),
            return_exceptions=True,
        )
        if isinstance(captions_result, BaseException):
            raise captions_result
        if isinstance(metadata, BaseException):
            logger.warning(f"[{self.job_id}] Video metadata unavailable: {metadata}")
            metadata = None
        return captions_result, metadata

    async def run(self) -> None:
        """Execute the pipeline. Exceptions propagate to the caller's error boundary.

        On failure the cost of the calls made so far is still written to the record.
        """
        try:
            await self._run()
        except Exception:
            self._save_partial_cost()
            raise

    def _save_partial_cost(self) -> None:
        if not self.costs.calls:
            return
        cost = self.costs.summary()
        try:
            self.db.patch_job_meta(self.job_id, {"generationCost": cost.model_dump(by_alias=True, mode="json")})
        except Exception:
            logger.exception(f"[{self.job_id}] Could not save partial cost report")
            return
        logger.info(f"[{self.job_id}] Saved partial cost: ${cost.total_usd:.4f} over {len(cost.calls)} calls")

    async def _run(self) -> None:
        started = time.monotonic()
        request = self.request
        models = self.models

        self.progress.set_phase(JobPhase.FETCHING, "Fetching captions + metadata")
        video_id = parse_youtube_url(request.video_url)

        self.db.patch_job_meta(self.job_id, {
            "models": {
                "chapters": models.chapters_model,
                "writer": models.writer_model,
                "feedback": models.feedback_model,
                "revisionWriter": models.writer_model,
                "plan": self.plan,
            }
        })
        await self.costs.resolve_pricing(models.distinct_ids(), self.client.get_pricing)

        captions, metadata = await self._fetch_inputs(video_id)
        video = metadata or VideoMetadata()
        segments = normalize_captions(captions.captions)
        duration = total_duration(segments)
        logger.info(f"[{self.job_id}] {len(segments)} segments, {duration}s (lang={captions.used_lang})")

        # Chaptering
        self.progress.set_phase(JobPhase.CHAPTERING, "Generating semantic chapters")
        chunks = self.chunker.chunk(segments)
        transcript_text = format_chunks_for_llm(chunks)
        estimated_tokens = self.chunker.count_tokens(transcript_text)
        logger.info(f"[{self.job_id}] Chaptering input: {len(chunks)} chunks, ~{estimated_tokens} tokens")

        segmenter = ChapterSegmenter(self.client, models.chapters_model)
        # Billed whether or not the answer validates
        raw_chapters = await segmenter.request(transcript_text, duration, video.title)
        self._record_cost("chapters", models.chapters_model, raw_chapters.usage)
        chapters = segmenter.parse(raw_chapters.content, duration)

        article_title = article_title_for(metadata, video_id)
        self.db.update_job_title(self.job_id, article_title, slugify(article_title))

        budget = compute_word_budget(len(chapters))
        author = SectionAuthor(self.client, models.writer_model, budget)
        slices = [self._slice_text(segments, chapter) for chapter in chapters]
        source = SourceVideo(url=request.video_url, title=video.title, description=video.description)

        # Writing v1
        self.progress.set_phase(JobPhase.WRITING_V1, "Writing draft")
        intro_v1 = await author.write_introduction(article_title, chapters, video)
        self._record_cost("write:intro:v1", models.writer_model, intro_v1.usage)

        sections_v1: List[DraftPiece] = []
        for chapter, slice_text in zip(chapters, slices):
            piece = await author.write_section(chapter, slice_text, video)
            self._record_cost(f"write:section:v1:{chapter.id}", models.writer_model, piece.usage)
            sections_v1.append(piece)

        conclusion_v1 = await author.write_conclusion(article_title, chapters)
        self._record_cost("write:conclusion:v1", models.writer_model, conclusion_v1.usage)

        draft_markdown = assemble_markdown(
            article_title,
            intro_v1.content,
            chapters,
            [s.content for s in sections_v1],
            conclusion_v1.content,
            source,
        )

        # Critique
        self.progress.set_phase(JobPhase.FEEDBACK, "Reviewing draft")
        critique = await CritiqueStage(self.client, models.feedback_model).get_draft_feedback(
            article_title, video, draft_markdown
        )
        self._record_cost("feedback", models.feedback_model, critique.usage)

        # Writing v2
        self.progress.set_phase(JobPhase.WRITING_V2, "Rewriting final article")
        intro = await author.revise_introduction_with_feedback(
            article_title, chapters, video, intro_v1.content, critique.content
        )
        self._record_cost("write:intro:v2", models.writer_model, intro.usage)

        sections: List[DraftPiece] = []
        for chapter, slice_text, original in zip(chapters, slices, sections_v1):
            piece = await author.revise_section_with_feedback(
                chapter, slice_text, video, original.content, critique.content
            )
            self._record_cost(f"write:section:v2:{chapter.id}", models.writer_model, piece.usage)
            sections.append(piece)

        conclusion = await author.revise_conclusion_with_feedback(
            article_title, chapters, conclusion_v1.content, critique.content
        )
        self._record_cost("write:conclusion:v2", models.writer_model, conclusion.usage)

        # Assemble + save
        self.progress.set_phase(JobPhase.ASSEMBLING, "Assembling Markdown")
        markdown = assemble_markdown(
            article_title,
            intro.content,
            chapters,
            [s.content for s in sections],
            conclusion.content,
            source,
        )

        self.progress.set_phase(JobPhase.SAVING, "Saving")
        cost = self.costs.summary()
        self.progress.complete(markdown, {
            "chapters": [c.model_dump(by_alias=True) for c in chapters],
            "generationCost": cost.model_dump(by_alias=True, mode="json"),
            "wordBudget": budget.model_dump(by_alias=True),
            "transcript": {
                "lang": captions.used_lang or request.lang,
                "segments": len(segments),
                "chunks": len(chunks),
                "totalDurationSec": duration,
                "estimatedTokens": estimated_tokens,
            },
        })

        logger.info(
            f"[{self.job_id}] Article complete in {time.monotonic() - started:.1f}s "
            f"(${cost.total_usd:.4f}, {cost.unknown_calls} calls with unknown cost)"
        )

    @staticmethod
    def _slice_text(segments: List[TranscriptSegment], chapter: Chapter) -> str:
        return format_segments_for_llm(extract_transcript_slice(segments, chapter.start_sec, chapter.end_sec))
