"""LLM prompt templates for chapter segmentation."""
import math
from typing import List

from extraction.models import ChatMessage
import config


def chapter_system_prompt(
    total_duration_sec: float,
    max_chapters: int = config.MAX_CHAPTERS,
    end_snap_sec: float = config.CHAPTER_END_SNAP_SEC
) -> str:
    """System prompt encoding the hard structural constraints on chapters.

    Args:
        total_duration_sec: Video length in seconds
        max_chapters: Hard upper bound on chapter count
        end_snap_sec: How far the last end may sit from the video end

    Returns:
        Formatted prompt string
    """
    end = math.floor(total_duration_sec)
    preferred_min = max(2, max_chapters - 2)

    return f"""You are an expert content strategist. Your task is to segment a YouTube transcript into semantic chapters based on topic shifts and narrative structure.

Hard requirements:
- Chapters MUST be based on meaning/topic shifts, not arbitrary time windows.
- Chapters MUST cover the full timeline from 0s to the end with no gaps > 10 seconds.
- Chapters MUST NOT overlap.
- Prefer {preferred_min}-{max_chapters} chapters (MAX {max_chapters}). Never output more than {max_chapters} chapters.
- Each chapter title must be specific and content-accurate.
- Extract SEO keyword targets per chapter.
- Every field is required.

Output format:
- Respond with VALID JSON ONLY.
- JSON must match this exact schema:
{{
  "chapters": [
    {{
      "id": "c1",
      "title": "Clear, specific section title",
      "startSec": 0,
      "endSec": 123,
      "thesis": "One sentence stating the core claim of this section",
      "primaryKeyword": "primary keyword phrase",
      "secondaryKeywords": ["keyword 1", "keyword 2"]
    }}
  ]
}}

Constraints:
- startSec/endSec are numbers in seconds.
- The first chapter must start at 0.
- The last chapter must end at {end} (or within {end_snap_sec:g} seconds of the end).
- Minimum chapter length: 60 seconds unless the video is very short.
- secondaryKeywords: 3-8 items, no duplicates.
"""


def chapter_user_prompt(transcript_with_timestamps: str, video_title: str, total_duration_sec: float) -> str:
    return f"""Video title: {video_title or 'Unknown'}
Total duration (seconds): {math.floor(total_duration_sec)}

Transcript (with timestamps):
{transcript_with_timestamps}"""


def chapter_messages(
    transcript_with_timestamps: str,
    video_title: str,
    total_duration_sec: float,
    max_chapters: int = config.MAX_CHAPTERS,
    end_snap_sec: float = config.CHAPTER_END_SNAP_SEC
) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=chapter_system_prompt(total_duration_sec, max_chapters, end_snap_sec)),
        ChatMessage(role="user", content=chapter_user_prompt(transcript_with_timestamps, video_title, total_duration_sec)),
    ]
