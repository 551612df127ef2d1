"""SQLite record store for article generation jobs."""
import sqlite3
import json
import uuid
from pathlib import Path
from typing import Optional, List, Dict, Any, Callable
from contextlib import contextmanager

from utils.logger import setup_logger
from extraction.models import JobRecord, JobStatus, utc_now_iso
import config

logger = setup_logger(__name__)

MetaUpdater = Callable[[Dict[str, Any]], Dict[str, Any]]

# Set in meta once a runner has taken a draft job
CLAIM_KEY = "runnerClaimedAt"


class JobNotFound(LookupError):
    """No job record with the given id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class Database:
    """Manages SQLite database operations."""

    JOB_COLUMNS = ("title", "slug", "markdown", "status")

    def __init__(self, db_path: Path = config.DB_PATH):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self):
        """Create tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        with self._get_connection() as conn:
            conn.executescript(schema_sql)

        logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections (autocommit mode)."""
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """Write transaction holding the database write lock from the start.

        BEGIN IMMEDIATE serializes concurrent writers, so a read inside the
        block cannot go stale before the block's own writes commit.
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> JobRecord:
        data = dict(row)
        data["meta"] = json.loads(data.pop("meta_json") or "{}")
        return JobRecord(**data)

    # ==================== Jobs ====================

    def insert_job(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        video_url: str,
        video_id: str,
        title: str,
        slug: str,
        meta: Dict[str, Any]
    ) -> str:
        """Insert a draft job inside an open transaction.

        Returns:
            Job UUID
        """
        job_id = str(uuid.uuid4())
        now = utc_now_iso()
        conn.execute(
            """
            INSERT INTO articles (id, user_id, video_url, video_id, title, slug, markdown, status, meta_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, '', ?, ?, ?, ?)
            """,
            (job_id, user_id, video_url, video_id, title, slug, JobStatus.DRAFT.value, json.dumps(meta), now, now)
        )
        logger.info(f"Inserted job {job_id} for user {user_id} (video {video_id})")
        return job_id

    def get_job(self, job_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[JobRecord]:
        """Retrieve a job record.

        Args:
            job_id: Job UUID
            conn: Optional open connection to read through

        Returns:
            JobRecord or None
        """
        if conn is not None:
            row = conn.execute("SELECT * FROM articles WHERE id = ?", (job_id,)).fetchone()
            return self._row_to_job(row) if row else None

        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM articles WHERE id = ?", (job_id,)).fetchone()
            return self._row_to_job(row) if row else None

    def get_in_progress_job(self, user_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[JobRecord]:
        """Most recent draft job for a user, if any."""
        query = "SELECT * FROM articles WHERE user_id = ? AND status = 'draft' ORDER BY created_at DESC LIMIT 1"
        if conn is not None:
            row = conn.execute(query, (user_id,)).fetchone()
            return self._row_to_job(row) if row else None

        with self._get_connection() as conn:
            row = conn.execute(query, (user_id,)).fetchone()
            return self._row_to_job(row) if row else None

    def list_jobs_for_user(self, user_id: str, limit: int = 20) -> List[JobRecord]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM articles WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
                (user_id, limit)
            ).fetchall()
            return [self._row_to_job(row) for row in rows]

    def update_job(self, job_id: str, updater: Optional[MetaUpdater] = None, **columns: Any) -> JobRecord:
        """Atomic read-modify-write of one job row.

        Args:
            job_id: Job UUID
            updater: Receives the current meta dict, returns the new one
            **columns: Column values to set in the same write (title, slug, markdown, status)

        Returns:
            Updated JobRecord

        Raises:
            JobNotFound
        """
        unknown = set(columns) - set(self.JOB_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown job columns: {sorted(unknown)}")

        with self.transaction() as conn:
            job = self.get_job(job_id, conn=conn)
            if job is None:
                raise JobNotFound(job_id)

            meta = updater(dict(job.meta)) if updater else job.meta
            values = {k: (v.value if isinstance(v, JobStatus) else v) for k, v in columns.items()}
            values["meta_json"] = json.dumps(meta)
            values["updated_at"] = utc_now_iso()

            assignments = ", ".join(f"{k} = :{k}" for k in values)
            conn.execute(f"UPDATE articles SET {assignments} WHERE id = :id", {**values, "id": job_id})
            return self.get_job(job_id, conn=conn)

    def patch_job_meta(self, job_id: str, patch: Dict[str, Any], **columns: Any) -> JobRecord:
        """Shallow-merge `patch` into the job's meta without clobbering sibling keys."""
        return self.update_job(job_id, lambda meta: {**meta, **patch}, **columns)

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        """Mark a draft job as taken by a runner.

        Compare-and-set under the write lock: only the first caller gets the
        job back; later callers (or any caller once the job left draft) get None.

        Raises:
            JobNotFound
        """
        with self.transaction() as conn:
            job = self.get_job(job_id, conn=conn)
            if job is None:
                raise JobNotFound(job_id)
            if job.status != JobStatus.DRAFT or job.meta.get(CLAIM_KEY):
                return None

            meta = {**job.meta, CLAIM_KEY: utc_now_iso()}
            conn.execute(
                "UPDATE articles SET meta_json = ?, updated_at = ? WHERE id = ?",
                (json.dumps(meta), utc_now_iso(), job_id)
            )
            logger.info(f"Job {job_id} claimed by a runner")
            return self.get_job(job_id, conn=conn)

    def set_job_status(self, job_id: str, status: JobStatus) -> JobRecord:
        return self.update_job(job_id, status=status)

    def update_job_title(self, job_id: str, title: str, slug: str) -> JobRecord:
        return self.update_job(job_id, title=title, slug=slug)

    # ==================== Generation counters ====================

    def get_generation_count(
        self,
        user_id: str,
        window_start: str,
        conn: Optional[sqlite3.Connection] = None
    ) -> int:
        query = "SELECT count FROM generation_counters WHERE user_id = ? AND window_start = ?"
        if conn is not None:
            row = conn.execute(query, (user_id, window_start)).fetchone()
            return row["count"] if row else 0

        with self._get_connection() as conn:
            row = conn.execute(query, (user_id, window_start)).fetchone()
            return row["count"] if row else 0

    def increment_generation_count(self, conn: sqlite3.Connection, user_id: str, window_start: str) -> int:
        """Add one generation to the user's window counter inside an open transaction.

        Returns:
            New count
        """
        conn.execute(
            """
            INSERT INTO generation_counters (user_id, window_start, count, updated_at)
            VALUES (?, ?, 1, ?)
            ON CONFLICT(user_id, window_start) DO UPDATE SET
                count = count + 1,
                updated_at = excluded.updated_at
            """,
            (user_id, window_start, utc_now_iso())
        )
        return self.get_generation_count(user_id, window_start, conn=conn)
