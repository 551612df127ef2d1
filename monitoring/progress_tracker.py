"""
Job progress state machine.

Every transition is written to the job record before the pipeline moves on,
so a poller always reads the phase the job is actually in. Phases only move
forward; failed is reachable from any non-terminal phase.
"""

from typing import Any, Dict, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from extraction.models import GenerationProgress, JobPhase, JobStatus, utc_now_iso
from utils.logger import setup_logger

logger = setup_logger(__name__)

PHASE_ORDER = [
    JobPhase.FETCHING,
    JobPhase.CHAPTERING,
    JobPhase.WRITING_V1,
    JobPhase.FEEDBACK,
    JobPhase.WRITING_V2,
    JobPhase.ASSEMBLING,
    JobPhase.SAVING,
    JobPhase.COMPLETE,
]
TERMINAL_PHASES = {JobPhase.COMPLETE, JobPhase.FAILED}


class InvalidTransition(RuntimeError):
    pass


def phase_index(phase: JobPhase) -> int:
    return PHASE_ORDER.index(phase)


def _stored_phase(meta: Dict[str, Any]) -> Optional[JobPhase]:
    raw = (meta.get("generationProgress") or {}).get("phase")
    return JobPhase(raw) if raw else None


def check_transition(current: Optional[JobPhase], target: JobPhase) -> None:
    """Raise InvalidTransition unless current -> target moves forward (or stays)."""
    if current in TERMINAL_PHASES:
        raise InvalidTransition(f"Job already {current.value}; cannot move to {target.value}")
    if target == JobPhase.FAILED or current is None:
        return
    if phase_index(target) < phase_index(current):
        raise InvalidTransition(f"Cannot move backwards from {current.value} to {target.value}")


class ProgressTracker:
    """Persists generationProgress for one job."""

    def __init__(self, db, job_id: str):
        """
        Args:
            db: Database instance (storage.database.Database)
            job_id: Job UUID
        """
        self.db = db
        self.job_id = job_id

    def _next_progress(self, meta: Dict[str, Any], phase: JobPhase, message: str, **extra) -> Dict[str, Any]:
        check_transition(_stored_phase(meta), phase)
        now = utc_now_iso()
        previous = meta.get("generationProgress") or {}
        progress = GenerationProgress(
            phase=phase,
            message=message,
            started_at=previous.get("startedAt") or now,
            updated_at=now,
            **extra,
        )
        return {**meta, "generationProgress": progress.model_dump(by_alias=True, mode="json", exclude_none=True)}

    def set_phase(self, phase: JobPhase, message: str = "") -> None:
        self.db.update_job(self.job_id, lambda meta: self._next_progress(meta, phase, message))
        logger.info(f"[{self.job_id}] {phase.value}: {message}")

    def complete(self, markdown: str, meta_patch: Dict[str, Any]) -> None:
        """Write the final article, its metadata and the terminal progress in one update."""
        def finish(meta: Dict[str, Any]) -> Dict[str, Any]:
            meta = {**meta, **meta_patch}
            return self._next_progress(meta, JobPhase.COMPLETE, "Complete", completed_at=utc_now_iso())

        self.db.update_job(self.job_id, finish, markdown=markdown, status=JobStatus.COMPLETE)
        logger.info(f"[{self.job_id}] complete")

    def fail(self, message: str) -> None:
        """Record the terminal failed state. A job that already finished is left as is."""
        job = self.db.get_job(self.job_id)
        if job is None or job.status != JobStatus.DRAFT:
            logger.warning(f"[{self.job_id}] not recording failure; job is {job.status.value if job else 'missing'}")
            return
        self.db.update_job(
            self.job_id,
            lambda meta: self._next_progress(meta, JobPhase.FAILED, message),
            status=JobStatus.FAILED,
        )
        logger.error(f"[{self.job_id}] failed: {message}")


class ProgressDisplay:
    """Rich progress bar driven by polled job phases."""

    def __init__(self, console):
        self.console = console

    def create_progress(self):
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console
        )

    @staticmethod
    def total_steps() -> int:
        return len(PHASE_ORDER) - 1

    @staticmethod
    def completed_steps(phase: Optional[JobPhase]) -> int:
        if phase is None or phase == JobPhase.FAILED:
            return 0
        return phase_index(phase)

    @staticmethod
    def describe(phase: Optional[JobPhase], message: str) -> str:
        label = phase.value if phase else "queued"
        return f"{label}: {message}" if message else label
