"""Pydantic models for the article generation pipeline."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone

from ingestion.models import CamelModel
import config


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobStatus(str, Enum):
    """Lifecycle of a job record. complete and failed are terminal."""
    DRAFT = "draft"
    COMPLETE = "complete"
    FAILED = "failed"


class JobPhase(str, Enum):
    """Progress phases, in pipeline order."""
    FETCHING = "fetching"
    CHAPTERING = "chaptering"
    WRITING_V1 = "writing_v1"
    FEEDBACK = "feedback"
    WRITING_V2 = "writing_v2"
    ASSEMBLING = "assembling"
    SAVING = "saving"
    COMPLETE = "complete"
    FAILED = "failed"


# ==================== Chapters ====================

class Chapter(CamelModel):
    """A validated semantic section of the video."""
    id: str
    title: str
    start_sec: float
    end_sec: float
    thesis: str
    primary_keyword: str
    secondary_keywords: List[str] = Field(default_factory=list, max_length=config.MAX_SECONDARY_KEYWORDS)

    @property
    def duration(self) -> float:
        return self.end_sec - self.start_sec


class ValidationResult(BaseModel):
    """Outcome of validating an LLM chapter payload."""
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ==================== LLM calls ====================

class ChatMessage(BaseModel):
    role: str  # system | user | assistant
    content: str


class TokenUsage(CamelModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatResult(BaseModel):
    """Text returned by a chat completion plus its token usage, when reported."""
    content: str
    usage: Optional[TokenUsage] = None


class DraftPiece(BaseModel):
    """One authored intro/section/conclusion."""
    content: str
    usage: Optional[TokenUsage] = None


class PlanModels(CamelModel):
    """Model ids routed to each pipeline stage."""
    chapters_model: str
    writer_model: str
    feedback_model: str

    def distinct_ids(self) -> List[str]:
        return list(dict.fromkeys([self.chapters_model, self.writer_model, self.feedback_model]))


# ==================== Cost ====================

class ModelPricing(CamelModel):
    """Per-token pricing for one model."""
    prompt_usd_per_token: float
    completion_usd_per_token: float
    request_usd: float = 0.0
    raw: Optional[Dict[str, Any]] = None


class CostCall(CamelModel):
    """One LLM invocation in the cost log. cost_usd is None when unknown."""
    step: str
    model: str
    usage: Optional[TokenUsage] = None
    cost_usd: Optional[float] = None


class CostBreakdown(CamelModel):
    chapters: float = 0.0
    writing_v1: float = 0.0
    feedback: float = 0.0
    writing_v2: float = 0.0


class GenerationCost(CamelModel):
    """Aggregated cost report stored on the job record."""
    currency: str = "USD"
    total_usd: float
    unknown_calls: int
    breakdown_usd: CostBreakdown
    pricing: Dict[str, Optional[ModelPricing]] = Field(default_factory=dict)
    calls: List[CostCall] = Field(default_factory=list)
    computed_at: str = Field(default_factory=utc_now_iso)


# ==================== Job record ====================

class WordBudget(CamelModel):
    overall_target_words: int
    intro_target_words: int
    per_section_target_words: int
    conclusion_target_words: int


class GenerationProgress(CamelModel):
    phase: JobPhase
    message: str = ""
    started_at: Optional[str] = None
    updated_at: str = Field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None


class JobStatusView(CamelModel):
    """What a poller sees."""
    job_id: str
    status: JobStatus
    phase: Optional[JobPhase] = None
    message: str = ""
    title: str = ""
    progress: Optional[GenerationProgress] = None


class StartJobResult(CamelModel):
    job_id: str
    reused: bool


class JobRecord(BaseModel):
    """One row of the articles table; meta is the decoded metaJson blob."""
    id: str
    user_id: str
    video_url: str
    video_id: str
    title: str = ""
    slug: str = ""
    markdown: str = ""
    status: JobStatus = JobStatus.DRAFT
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str

    @property
    def progress(self) -> Optional[GenerationProgress]:
        raw = self.meta.get("generationProgress")
        return GenerationProgress.model_validate(raw) if raw else None
