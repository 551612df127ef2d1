"""Test Pydantic models."""
import pytest
from pydantic import ValidationError

import config
from extraction.models import (
    Chapter,
    GenerationProgress,
    JobPhase,
    JobRecord,
    JobStatus,
    PlanModels,
    TokenUsage,
)


def test_chapter_serializes_camel_case():
    chapter = Chapter(
        id="c1",
        title="Intro",
        start_sec=0,
        end_sec=90,
        thesis="A claim.",
        primary_keyword="testing",
        secondary_keywords=["pytest"],
    )
    dumped = chapter.model_dump(by_alias=True)

    assert dumped["startSec"] == 0
    assert dumped["primaryKeyword"] == "testing"
    assert dumped["secondaryKeywords"] == ["pytest"]
    assert chapter.duration == 90


def test_chapter_accepts_camel_case_input():
    chapter = Chapter.model_validate({
        "id": "c2", "title": "T", "startSec": 10, "endSec": 20,
        "thesis": "x", "primaryKeyword": "k",
    })

    assert chapter.start_sec == 10
    assert chapter.secondary_keywords == []


def test_chapter_keyword_cap():
    def chapter(keyword_count):
        return Chapter(
            id="c1", title="T", start_sec=0, end_sec=1, thesis="x", primary_keyword="k",
            secondary_keywords=[f"k{i}" for i in range(keyword_count)],
        )

    assert len(chapter(config.MAX_SECONDARY_KEYWORDS).secondary_keywords) == config.MAX_SECONDARY_KEYWORDS
    with pytest.raises(ValidationError):
        chapter(config.MAX_SECONDARY_KEYWORDS + 1)


def test_distinct_model_ids_keep_order():
    models = PlanModels(chapters_model="a/x", writer_model="b/y", feedback_model="b/y")

    assert models.distinct_ids() == ["a/x", "b/y"]


def test_token_usage_aliases():
    usage = TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3)

    assert usage.model_dump(by_alias=True) == {"promptTokens": 1, "completionTokens": 2, "totalTokens": 3}


def test_job_record_progress_view():
    progress = GenerationProgress(phase=JobPhase.WRITING_V1, message="Writing draft", started_at="t0")
    job = JobRecord(
        id="j1",
        user_id="u1",
        video_url="https://youtu.be/dQw4w9WgXcQ",
        video_id="dQw4w9WgXcQ",
        status=JobStatus.DRAFT,
        meta={"generationProgress": progress.model_dump(by_alias=True, mode="json")},
        created_at="t0",
        updated_at="t0",
    )

    assert job.progress.phase == JobPhase.WRITING_V1
    assert job.progress.started_at == "t0"


def test_job_record_without_progress():
    job = JobRecord(id="j1", user_id="u1", video_url="u", video_id="v", created_at="t", updated_at="t")

    assert job.progress is None
