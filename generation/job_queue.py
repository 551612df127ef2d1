"""
Generation job service.

Entry point for the rest of the application: starts detached generation
jobs, answers status polls from the durable record and hands out finished
articles. Job records live in SQLite, so polling works from any process.
"""

import time
from typing import List, Optional, Tuple

from execution.api_clients import BaseChatClient
from execution.job_executor import BackgroundJobRunner
from execution.rate_limiter import GenerationRateLimiter, LimitState
from extraction.models import (
    GenerationProgress,
    JobPhase,
    JobRecord,
    JobStatus,
    JobStatusView,
    StartJobResult,
    utc_now_iso,
)
from generation.pipeline import ArticleGenerationJob, GenerationRequest
from generation.plan_policy import PlanPolicy, get_plan_policy
from ingestion.captions import CaptionSource
from ingestion.youtube import parse_youtube_url
from monitoring.progress_tracker import ProgressTracker
from storage.database import Database, JobNotFound
from utils.logger import setup_logger

logger = setup_logger(__name__)


class JobNotReady(RuntimeError):
    """The job exists but has no finished article yet."""

    def __init__(self, job_id: str, status: JobStatus):
        super().__init__(f"Article not ready (status: {status.value})")
        self.job_id = job_id
        self.status = status


class JobAlreadyClaimed(RuntimeError):
    """The job is already being run, or has finished."""

    def __init__(self, job_id: str, status: JobStatus):
        if status == JobStatus.DRAFT:
            message = f"Job {job_id} is already being run"
        else:
            message = f"Job {job_id} is already {status.value}"
        super().__init__(message)
        self.job_id = job_id
        self.status = status


def result_filename(job: JobRecord) -> str:
    return f"{job.slug or 'article'}.md"


class JobService:
    """Start, poll and fetch article generation jobs."""

    def __init__(
        self,
        db: Database,
        client: BaseChatClient,
        caption_source: CaptionSource,
        runner: Optional[BackgroundJobRunner] = None,
        rate_limiter: Optional[GenerationRateLimiter] = None
    ):
        """
        Args:
            db: Record store
            client: Chat client shared by every job
            caption_source: Caption and metadata source
            runner: Background runner; defaults to one that records failures in db
            rate_limiter: Quota checker; defaults to the durable counter in db
        """
        self.db = db
        self.client = client
        self.caption_source = caption_source
        self.runner = runner or BackgroundJobRunner(self.record_failure)
        self.rate_limiter = rate_limiter or GenerationRateLimiter(db)

    def record_failure(self, job_id: str, message: str) -> None:
        ProgressTracker(self.db, job_id).fail(message)

    def _build_job(self, job_id: str, request: GenerationRequest, policy: PlanPolicy) -> ArticleGenerationJob:
        return ArticleGenerationJob(self.db, self.client, self.caption_source, job_id, request, policy)

    def create_job(self, video_url: str, lang: str, user_id: str, plan: str) -> Tuple[StartJobResult, Optional[GenerationRequest], PlanPolicy]:
        """Reuse the user's draft job or create a new one, consuming quota.

        The draft lookup, the quota check and the insert share one write
        transaction, so two concurrent starts cannot both create a job.

        Raises:
            InvalidVideoUrl: video_url is not a YouTube video
            RateLimitExceeded: plan quota used up; no job is created
        """
        video_url = (video_url or "").strip()
        lang = (lang or "").strip() or "en"
        video_id = parse_youtube_url(video_url)
        policy = get_plan_policy(plan)
        request = GenerationRequest(video_url=video_url, lang=lang, user_id=user_id, plan=policy.plan)

        with self.db.transaction() as conn:
            existing = self.db.get_in_progress_job(user_id, conn=conn)
            if existing:
                logger.info(f"Reusing in-progress job {existing.id} for user {user_id}")
                return StartJobResult(job_id=existing.id, reused=True), None, policy

            limit: LimitState = self.rate_limiter.consume(conn, user_id, policy)
            now = utc_now_iso()
            progress = GenerationProgress(phase=JobPhase.FETCHING, message="Queued", started_at=now, updated_at=now)
            job_id = self.db.insert_job(
                conn,
                user_id=user_id,
                video_url=video_url,
                video_id=video_id,
                title=f"Generating ({video_id})",
                slug=f"generating-{video_id}-{int(time.time() * 1000)}",
                meta={
                    "generationProgress": progress.model_dump(by_alias=True, mode="json", exclude_none=True),
                    "generationRequest": {"videoUrl": video_url, "lang": lang, "plan": policy.plan},
                    "generationLimit": limit.model_dump(
                        by_alias=True, mode="json", include={"plan", "limit", "window", "label", "reset_at"}
                    ),
                },
            )

        logger.info(f"Created job {job_id} for user {user_id} ({limit.used}/{limit.label})")
        return StartJobResult(job_id=job_id, reused=False), request, policy

    def start_generation_job(self, video_url: str, lang: str, user_id: str, plan: str = "free") -> StartJobResult:
        """Create (or reuse) a job and run it in the background.

        A reused draft that no runner has claimed yet (queued with `create_job`
        alone) is claimed and run here; one that is already running is left to
        its runner. Must be called from a running event loop; returns as soon
        as the record exists.
        """
        result, _, _ = self.create_job(video_url, lang, user_id, plan)
        try:
            pipeline = self.prepare_run(result.job_id)
        except JobAlreadyClaimed:
            logger.info(f"Job {result.job_id} already has a runner; not starting another")
            return result
        self.runner.submit(result.job_id, pipeline.run)
        return result

    def prepare_run(self, job_id: str) -> ArticleGenerationJob:
        """Claim a draft job and build its pipeline.

        Raises:
            JobNotFound
            JobAlreadyClaimed: another runner has it, or it is no longer a draft
        """
        job = self.db.claim_job(job_id)
        if job is None:
            current = self.get_job(job_id)
            raise JobAlreadyClaimed(job_id, current.status)

        stored = job.meta.get("generationRequest", {})
        request = GenerationRequest(
            video_url=job.video_url,
            lang=stored.get("lang", "en"),
            user_id=job.user_id,
            plan=stored.get("plan", "free"),
        )
        return self._build_job(job_id, request, get_plan_policy(request.plan))

    async def run_job(self, job_id: str) -> None:
        """Run a queued draft job in the foreground behind the same error boundary.

        Raises:
            JobNotFound
            JobAlreadyClaimed
        """
        pipeline = self.prepare_run(job_id)
        await self.runner.submit(job_id, pipeline.run)

    def get_job(self, job_id: str) -> JobRecord:
        job = self.db.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def poll_status(self, job_id: str) -> JobStatusView:
        """Pure read of the persisted record."""
        job = self.get_job(job_id)
        progress = job.progress
        return JobStatusView(
            job_id=job.id,
            status=job.status,
            phase=progress.phase if progress else None,
            message=progress.message if progress else "",
            title=job.title,
            progress=progress,
        )

    def fetch_result(self, job_id: str) -> Tuple[str, str]:
        """Return (filename, markdown) for a finished job.

        Raises:
            JobNotFound
            JobNotReady: status is not complete
        """
        job = self.get_job(job_id)
        if job.status != JobStatus.COMPLETE:
            raise JobNotReady(job_id, job.status)
        return result_filename(job), job.markdown or ""

    def current_job(self, user_id: str) -> Optional[JobRecord]:
        return self.db.get_in_progress_job(user_id)

    def list_jobs(self, user_id: str, limit: int = 20) -> List[JobRecord]:
        return self.db.list_jobs_for_user(user_id, limit)

    def usage(self, user_id: str, plan: str) -> LimitState:
        return self.rate_limiter.usage(user_id, get_plan_policy(plan))

    async def aclose(self) -> None:
        await self.runner.wait()
        await self.client.aclose()
