"""Test the SQLite record store."""
import pytest

from extraction.models import JobStatus
from storage.database import CLAIM_KEY, JobNotFound


def insert(db, user_id="user-1", meta=None):
    with db.transaction() as conn:
        return db.insert_job(conn, user_id, "https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ",
                             "Generating", "generating", meta or {})


def test_insert_and_get(db):
    job_id = insert(db, meta={"generationRequest": {"lang": "en"}})
    job = db.get_job(job_id)

    assert job.status == JobStatus.DRAFT
    assert job.video_id == "dQw4w9WgXcQ"
    assert job.markdown == ""
    assert job.meta["generationRequest"] == {"lang": "en"}


def test_patch_preserves_sibling_keys(db):
    job_id = insert(db, meta={"generationRequest": {"lang": "en"}, "generationLimit": {"used": 1}})

    job = db.patch_job_meta(job_id, {"models": {"writerModel": "a/b"}}, title="New Title")

    assert job.title == "New Title"
    assert set(job.meta) == {"generationRequest", "generationLimit", "models"}


def test_status_and_title_updates(db):
    job_id = insert(db)

    db.update_job_title(job_id, "Real Title", "real-title")
    job = db.set_job_status(job_id, JobStatus.COMPLETE)

    assert (job.title, job.slug, job.status) == ("Real Title", "real-title", JobStatus.COMPLETE)


def test_unknown_column_rejected(db):
    job_id = insert(db)

    with pytest.raises(ValueError):
        db.update_job(job_id, user_id="someone-else")


def test_missing_job(db):
    assert db.get_job("nope") is None
    with pytest.raises(JobNotFound):
        db.patch_job_meta("nope", {"a": 1})


def test_failed_transaction_rolls_back(db):
    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            db.insert_job(conn, "user-1", "u", "v", "t", "s", {})
            raise RuntimeError("boom")

    assert db.list_jobs_for_user("user-1") == []


def test_in_progress_job_is_latest_draft(db):
    done = insert(db)
    db.set_job_status(done, JobStatus.COMPLETE)
    assert db.get_in_progress_job("user-1") is None

    draft = insert(db)
    insert(db, user_id="user-2")

    assert db.get_in_progress_job("user-1").id == draft
    assert len(db.list_jobs_for_user("user-1")) == 2


def test_generation_counters(db):
    assert db.get_generation_count("user-1", "2026-10-01T00:00:00Z") == 0

    with db.transaction() as conn:
        db.increment_generation_count(conn, "user-1", "2026-10-01T00:00:00Z")
        count = db.increment_generation_count(conn, "user-1", "2026-10-01T00:00:00Z")

    assert count == 2
    assert db.get_generation_count("user-1", "2026-10-01T00:00:00Z") == 2
    assert db.get_generation_count("user-1", "2026-11-01T00:00:00Z") == 0


def test_claim_job_once(db):
    job_id = insert(db)

    claimed = db.claim_job(job_id)

    assert claimed.meta[CLAIM_KEY]
    assert claimed.status == JobStatus.DRAFT
    assert db.claim_job(job_id) is None


def test_claim_job_skips_finished_and_missing(db):
    job_id = insert(db)
    db.set_job_status(job_id, JobStatus.FAILED)

    assert db.claim_job(job_id) is None
    with pytest.raises(JobNotFound):
        db.claim_job("nope")
