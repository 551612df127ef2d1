"""Pydantic models for ingestion module."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional, Union


class CamelModel(BaseModel):
    """Base model that serializes to the camelCase keys stored in job records."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawCaption(BaseModel):
    """A caption entry as returned by the caption source.

    Numeric fields may arrive as strings and are coerced by the normalizer.
    """
    start: Union[float, str, None] = None
    dur: Union[float, str, None] = None
    text: Any = ""


class TranscriptSegment(CamelModel):
    """One normalized caption entry."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    start_sec: float
    end_sec: float
    text: str


class TranscriptChunk(CamelModel):
    """Coarse aggregation of consecutive segments, used as chaptering input."""
    start_sec: float
    end_sec: float
    text: str


class VideoMetadata(BaseModel):
    """Title/description of the source video."""
    title: str = ""
    description: str = ""


class CaptionAttempt(BaseModel):
    """One caption fetch attempt for a language candidate."""
    lang: str
    attempt: int
    ok: bool
    count: Optional[int] = None
    error: Optional[str] = None


class CaptionFetchResult(BaseModel):
    """Captions plus a record of how they were obtained."""
    captions: List[RawCaption]
    used_lang: str
    tried_langs: List[str] = Field(default_factory=list)
    attempts: List[CaptionAttempt] = Field(default_factory=list)
