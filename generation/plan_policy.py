"""
Plan policy table.

One lookup per job resolves the models routed to each stage and the
generation quota for the user's plan.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel

from extraction.models import PlanModels
import config


class LimitWindow(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PlanPolicy(BaseModel):
    plan: str
    models: PlanModels
    limit: int
    window: LimitWindow


CHAPTERS_MODEL = "google/gemini-2.0-flash-001"
KIMI_MODEL = "moonshotai/kimi-k2-thinking"
GPT_MODEL = "openai/gpt-5.2"

PLAN_POLICIES: Dict[str, PlanPolicy] = {
    "free": PlanPolicy(
        plan="free",
        models=PlanModels(chapters_model=CHAPTERS_MODEL, writer_model=KIMI_MODEL, feedback_model=KIMI_MODEL),
        limit=4,
        window=LimitWindow.MONTHLY,
    ),
    "pro": PlanPolicy(
        plan="pro",
        models=PlanModels(chapters_model=CHAPTERS_MODEL, writer_model=GPT_MODEL, feedback_model=KIMI_MODEL),
        limit=2,
        window=LimitWindow.DAILY,
    ),
    "premium": PlanPolicy(
        plan="premium",
        models=PlanModels(chapters_model=CHAPTERS_MODEL, writer_model=GPT_MODEL, feedback_model=KIMI_MODEL),
        limit=5,
        window=LimitWindow.DAILY,
    ),
}


def get_plan_policy(plan: str) -> PlanPolicy:
    """Resolve a plan to its policy, applying per-stage model overrides from the environment.

    Unknown plans are treated as free.
    """
    policy = PLAN_POLICIES.get((plan or "").strip().lower(), PLAN_POLICIES["free"])
    models = policy.models.model_copy(update={
        "chapters_model": config.MODEL_CHAPTERS or policy.models.chapters_model,
        "writer_model": config.MODEL_WRITER or policy.models.writer_model,
        "feedback_model": config.MODEL_FEEDBACK or policy.models.feedback_model,
    })
    return policy.model_copy(update={"models": models})


def get_models_for_plan(plan: str) -> PlanModels:
    return get_plan_policy(plan).models


def format_limit_label(limit: int, window: LimitWindow) -> str:
    unit = {LimitWindow.DAILY: "day", LimitWindow.WEEKLY: "week", LimitWindow.MONTHLY: "month"}[window]
    return f"{limit}/{unit}"
