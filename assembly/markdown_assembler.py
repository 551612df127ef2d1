"""Markdown assembly for the final article."""
import re
from typing import List, Optional

from pydantic import BaseModel

from extraction.models import Chapter

FALLBACK_H1 = "# YouTube Article"
FALLBACK_SLUG = "youtube-to-blog"

_QUOTES = re.compile(r"['\"]")
_NON_SLUG = re.compile(r"[^a-z0-9]+")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


class SourceVideo(BaseModel):
    url: str = ""
    title: str = ""
    description: str = ""


def slugify(text: str) -> str:
    slug = _NON_SLUG.sub("-", _QUOTES.sub("", (text or "").lower())).strip("-")
    return slug or FALLBACK_SLUG


def format_h1_title(title: str) -> str:
    title = (title or "").strip()
    return f"# {title}" if title else FALLBACK_H1


def assemble_markdown(
    article_title: str,
    intro: str,
    chapters: List[Chapter],
    sections: List[str],
    conclusion: str,
    video: Optional[SourceVideo] = None
) -> str:
    """Join the article pieces into one normalized Markdown document.

    Sections are expected to carry their own ``##`` heading. Empty pieces are
    skipped, runs of 3+ newlines collapse to a blank line, and the document
    ends with exactly one newline, so assembling the same pieces twice yields
    identical bytes.

    Args:
        article_title: H1 text
        intro: Introduction Markdown (no heading)
        chapters: Chapters, used for the outline
        sections: One Markdown section per chapter, in chapter order
        conclusion: Conclusion Markdown starting with ``## Conclusion``
        video: Source video shown in the metadata lines

    Returns:
        Markdown string
    """
    parts = [format_h1_title(article_title)]

    if video and (video.url or video.title):
        meta = []
        if video.url:
            meta.append(f"Source: {video.url}")
        if video.title:
            meta.append(f"Video title: {video.title}")
        parts.append("\n".join(meta))

    parts.append((intro or "").strip())

    if chapters:
        outline = "\n".join(f"- {c.title}" for c in chapters).strip()
        parts.append(f"## Outline\n{outline}")

    for section in sections or []:
        section = (section or "").strip()
        if section:
            parts.append(section)

    parts.append((conclusion or "").strip())

    markdown = "\n\n".join(p for p in parts if p)
    return _EXTRA_BLANK_LINES.sub("\n\n", markdown).strip() + "\n"
