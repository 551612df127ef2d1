"""Caption cleaning and normalization utilities."""
import math
import re
from typing import Any, Iterable, List, Mapping, Union

from ingestion.models import RawCaption, TranscriptSegment


class EmptyTranscript(ValueError):
    """Raised when no usable caption text survives normalization."""
    user_facing = True


def clean_text(text: Any) -> str:
    """Collapse all internal whitespace (including newlines) to single spaces.

    Args:
        text: Raw caption text

    Returns:
        Cleaned text
    """
    return re.sub(r'\s+', ' ', str(text or '')).strip()


def to_number(value: Any) -> float:
    """Coerce a caption numeric field to a float, NaN when not finite."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        n = float(value)
    elif isinstance(value, str):
        try:
            n = float(value.strip())
        except ValueError:
            return math.nan
    else:
        return math.nan
    return n if math.isfinite(n) else math.nan


def normalize_captions(
    captions: Iterable[Union[RawCaption, Mapping[str, Any]]]
) -> List[TranscriptSegment]:
    """Convert raw caption entries into an ordered list of segments.

    Entries whose start/dur cannot be coerced to finite numbers, or whose text
    is empty after whitespace collapse, are dropped.

    Args:
        captions: Raw caption entries ({start, dur, text})

    Returns:
        Segments sorted ascending by start_sec

    Raises:
        EmptyTranscript: If no segments remain
    """
    segments = []

    for raw in captions or []:
        entry = raw.model_dump() if isinstance(raw, RawCaption) else dict(raw)
        start = to_number(entry.get('start'))
        dur = to_number(entry.get('dur', entry.get('duration')))
        text = clean_text(entry.get('text'))
        if math.isnan(start) or math.isnan(dur) or not text:
            continue

        start_sec = max(0.0, start)
        end_sec = max(start_sec, start_sec + max(0.0, dur))
        segments.append(TranscriptSegment(start_sec=start_sec, end_sec=end_sec, text=text))

    # sorted() is stable, so equal starts keep caption order
    segments = sorted(segments, key=lambda s: s.start_sec)

    if not segments:
        raise EmptyTranscript("Transcript is empty after normalization.")

    return segments
