"""
Chapter payload validation.

LLM JSON is untrusted input: it is schema-checked field by field before any
of it becomes a Chapter.
"""

from typing import Any, List, Tuple

from extraction.models import Chapter, ValidationResult
from utils.json_utils import is_finite_number, is_record
import config


class ChapterValidator:
    """Structural checks on a raw `{chapters: [...]}` payload."""

    REQUIRED_TEXT_FIELDS = ["id", "title", "thesis", "primaryKeyword"]

    @staticmethod
    def normalize_keywords(value: Any, limit: int = config.MAX_SECONDARY_KEYWORDS) -> List[str]:
        """Trimmed, non-empty, de-duplicated string keywords, at most `limit`."""
        if not isinstance(value, list):
            return []
        keywords = [v.strip() for v in value if isinstance(v, str) and v.strip()]
        return list(dict.fromkeys(keywords))[:limit]

    @staticmethod
    def validate_chapter(raw: Any, index: int) -> Tuple[Chapter | None, List[str]]:
        """Validate one candidate chapter.

        Returns:
            (chapter, []) when valid, (None, errors) otherwise
        """
        if not is_record(raw):
            return None, [f"chapters[{index}] is not an object"]

        errors = []
        text = {}
        for field in ChapterValidator.REQUIRED_TEXT_FIELDS:
            value = raw.get(field)
            text[field] = value.strip() if isinstance(value, str) else ""
            if not text[field]:
                errors.append(f"chapters[{index}] missing required field: {field}")

        start, end = raw.get("startSec"), raw.get("endSec")
        if not is_finite_number(start) or not is_finite_number(end):
            errors.append(f"chapters[{index}] startSec/endSec must be finite numbers")
        elif end <= start:
            errors.append(f"chapters[{index}] endSec ({end}) must be greater than startSec ({start})")

        if errors:
            return None, errors

        return Chapter(
            id=text["id"],
            title=text["title"],
            start_sec=float(start),
            end_sec=float(end),
            thesis=text["thesis"],
            primary_keyword=text["primaryKeyword"],
            secondary_keywords=ChapterValidator.normalize_keywords(raw.get("secondaryKeywords")),
        ), []

    @staticmethod
    def validate_payload(payload: Any) -> Tuple[List[Chapter], ValidationResult]:
        """Validate every candidate; invalid ones are dropped, not fatal.

        Returns:
            (valid chapters in input order, result). result.is_valid is False
            when the top-level shape is wrong.
        """
        if not is_record(payload) or not isinstance(payload.get("chapters"), list):
            return [], ValidationResult(
                is_valid=False,
                errors=["Chaptering model did not return { chapters: [...] }"],
            )

        chapters = []
        warnings = []
        for index, raw in enumerate(payload["chapters"]):
            chapter, errors = ChapterValidator.validate_chapter(raw, index)
            if chapter is None:
                warnings.extend(errors)
            else:
                chapters.append(chapter)

        return chapters, ValidationResult(is_valid=True, warnings=warnings)

    @staticmethod
    def find_overlap(
        chapters: List[Chapter],
        tolerance: float = config.CHAPTER_OVERLAP_TOLERANCE_SEC
    ) -> int | None:
        """Index i of the first pair with chapters[i].end > chapters[i+1].start + tolerance.

        Expects chapters sorted by start.
        """
        for i in range(len(chapters) - 1):
            if chapters[i].end_sec > chapters[i + 1].start_sec + tolerance:
                return i
        return None
