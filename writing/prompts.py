"""LLM prompt templates for article authoring and critique."""
import math
from typing import List

from extraction.models import Chapter
from ingestion.models import VideoMetadata


def writer_system_prompt() -> str:
    """Contract shared by every authoring call (draft and revision)."""
    return """You are an expert technical editor and SEO strategist. Your job is to REFORM, STRUCTURE, and OPTIMIZE the provided video transcript content into a high-quality long-form article.

Core instruction:
- Do NOT try to expand beyond what is given. Do NOT add new topics.
- Your primary value is: clarity, structure, flow, terminology precision, and SEO optimization.
- You may add light connective tissue (1-2 sentences at a time) only to improve coherence.

Non-negotiable rules:
- Tone: authoritative, educational, analytical.
- Style: text-heavy; long, flowing paragraphs.
- Do NOT be conversational. No filler. No rhetorical questions. No second-person coaching.
- No emojis.
- Avoid excessive bullet points. Bullets are allowed ONLY for technical specs or distinct procedural steps.
- Use proper Markdown headers with ## and ###.

SEO requirements (hard):
- The output MUST be SEO-optimized for the video's actual topic.
- Use the video title/description as ground truth context for SEO targeting.
- Infer search intent (informational/commercial/transactional) and write to it.
- Integrate the provided primary/secondary keywords naturally AND add close variants and relevant entities that are explicitly present in the transcript.
- Prefer descriptive, keyword-relevant H2/H3 headings. Avoid generic headings.
- Never keyword-stuff; keep readability and semantic coherence.

Faithfulness (hard):
- Do not invent facts. If something is not in the transcript slice, do not assert it as true.
- You may rephrase, reorder, deduplicate, and tighten.

Output requirements:
- Output ONLY Markdown.
- No code fences unless absolutely necessary.
- No preamble.
"""


def _budget_block(overall_target_words: int, label: str, target_words: int, plan_hint: str) -> str:
    return f"""Overall article constraint:
- The finished article MUST be approximately {overall_target_words} words total.

{label} constraint:
- Target length for {label.lower()}: approximately {target_words} words (+/-10%).
- Before writing, internally plan {plan_hint}.
"""


def _video_block(video: VideoMetadata) -> str:
    return f"""Video title: {video.title or 'Unknown'}
Video description: {video.description or ''}"""


def _revision_block(original: str, feedback_markdown: str) -> str:
    return f"""Previous draft of this part:
{original}

Editorial review of the full draft:
{feedback_markdown}

Revision requirements:
- Apply every fix from the review that concerns this part; keep what the review lists as strengths.
- Stay faithful to the source material; the review never licenses new facts.
- Do NOT mention the review, feedback, a previous draft, a transcript, or that this text was revised.
"""


def section_prompt(
    chapter: Chapter,
    transcript_slice: str,
    video: VideoMetadata,
    overall_target_words: int,
    target_words: int
) -> str:
    keywords = ", ".join(chapter.secondary_keywords)
    return f"""{_budget_block(overall_target_words, "This section", target_words, "how to hit the word budget while staying faithful to the transcript")}
Write the section for this chapter.

Chapter metadata:
- Title: {chapter.title}
- Thesis: {chapter.thesis}
- Start: {math.floor(chapter.start_sec)}s
- End: {math.floor(chapter.end_sec)}s
- Primary keyword: {chapter.primary_keyword}
- Secondary keywords: {keywords}

{_video_block(video)}

Transcript slice (with timestamps):
{transcript_slice}

Formatting requirements:
- Start with "## {chapter.title}".
- Include multiple ### subheadings where appropriate.
- Output ONLY Markdown.
"""


def introduction_prompt(
    article_title: str,
    chapters: List[Chapter],
    video: VideoMetadata,
    overall_target_words: int,
    target_words: int
) -> str:
    chapter_list = "\n".join(
        f"{i}. {c.title} (primary keyword: {c.primary_keyword})" for i, c in enumerate(chapters, start=1)
    )
    return f"""{_budget_block(overall_target_words, "Introduction", target_words, "how to set up the full article while respecting the word budget")}
Write a compelling introduction for a long-form article titled:
{article_title}

Video context:
- Video title: {video.title or 'Unknown'}
- Video description: {video.description or ''}

Planned structure (for your awareness):
{chapter_list}

Requirements:
- Output Markdown only.
- Do NOT use a header for the introduction.
- Prefer long, flowing paragraphs.
"""


def conclusion_prompt(
    article_title: str,
    chapters: List[Chapter],
    overall_target_words: int,
    target_words: int
) -> str:
    chapter_list = "\n".join(f"- {c.title}: {c.thesis}" for c in chapters)
    return f"""{_budget_block(overall_target_words, "Conclusion", target_words, "how to synthesize the core ideas without repeating")}
Write a synthesized conclusion for the article titled:
{article_title}

Key sections and theses:
{chapter_list}

Requirements:
- Output Markdown only.
- Start with "## Conclusion".
- Prefer long, flowing paragraphs.
- No fluff.
"""


def revise_section_prompt(
    chapter: Chapter,
    transcript_slice: str,
    video: VideoMetadata,
    overall_target_words: int,
    target_words: int,
    original_section: str,
    feedback_markdown: str
) -> str:
    return (
        section_prompt(chapter, transcript_slice, video, overall_target_words, target_words)
        + "\n"
        + _revision_block(original_section, feedback_markdown)
        + "\nRewrite the section now."
    )


def revise_introduction_prompt(
    article_title: str,
    chapters: List[Chapter],
    video: VideoMetadata,
    overall_target_words: int,
    target_words: int,
    original_intro: str,
    feedback_markdown: str
) -> str:
    return (
        introduction_prompt(article_title, chapters, video, overall_target_words, target_words)
        + "\n"
        + _revision_block(original_intro, feedback_markdown)
        + "\nRewrite the introduction now."
    )


def revise_conclusion_prompt(
    article_title: str,
    chapters: List[Chapter],
    overall_target_words: int,
    target_words: int,
    original_conclusion: str,
    feedback_markdown: str
) -> str:
    return (
        conclusion_prompt(article_title, chapters, overall_target_words, target_words)
        + "\n"
        + _revision_block(original_conclusion, feedback_markdown)
        + "\nRewrite the conclusion now."
    )


def critique_system_prompt() -> str:
    return """You are a senior editor reviewing a long-form, SEO-focused article draft.

Your task is to REVIEW the draft, not to rewrite it.

Rules:
- Do NOT rewrite the draft or produce a new version of it.
- Do NOT mention that the draft was generated automatically or by a model.
- Be concrete: quote or name the exact heading/paragraph each point refers to.
- Judge faithfulness: flag claims that read as invented or unsupported.

Output ONLY Markdown with exactly these sections, in this order:

## Strengths
## Weaknesses
## Specific fixes
## SEO notes
## Clarity notes
"""


def critique_prompt(article_title: str, video: VideoMetadata, draft_markdown: str) -> str:
    return f"""Article title: {article_title}

Video context:
- Video title: {video.title or 'Unknown'}
- Video description: {video.description or ''}

Draft to review:
{draft_markdown}
"""
