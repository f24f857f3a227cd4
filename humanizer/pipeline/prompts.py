"""Build the system and user prompts for every Claude task."""

from __future__ import annotations

from typing import Iterable, Optional

from humanizer.config import EXCERPT_CHARS, INSIGHT_CHUNK_CHARS, MAX_PROMPT_EXCERPTS


def truncate(text: str, limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


# ── Article generation ────────────────────────────────────────────────────


def build_system_prompt(persona=None, location=None, vehicle=None) -> str:
    """Writer instructions, framed by whichever humanization elements are present."""
    parts = [
        "You are an expert article writer specializing in creating high-quality, engaging content "
        "that feels naturally written by a human."
    ]
    if persona is not None:
        parts.append(f"Write from the perspective of {persona.display_name}, a {persona.profession}.")
    if location is not None:
        parts.append(f"Include context relevant to {location.full_name} in Brazil.")
    if vehicle is not None:
        parts.append(f"Your content should display knowledge about {vehicle.full_description}.")
    parts.append(
        "The content should be well-structured, informative, and conversational, "
        "as if written by a real person with expertise in the subject matter."
    )
    return " ".join(parts)


def discussion_excerpts(discussions: Iterable, limit: int = MAX_PROMPT_EXCERPTS,
                        chars: int = EXCERPT_CHARS) -> list[dict]:
    """Turn discussions into {title, content} excerpts for the article prompt."""
    return [
        {"title": d.title, "content": truncate(d.content, chars)}
        for d in list(discussions)[:limit]
    ]


def build_user_prompt(context: str, keywords: list[str], insights: Optional[list[dict]] = None) -> str:
    sections = [
        _build_topic(context),
        _build_keyword_section(keywords),
        _build_insight_section(insights or []),
        _build_instructions(),
    ]
    return "\n".join(s for s in sections if s)


def _build_topic(context: str) -> str:
    return f"""Generate a comprehensive article about the following topic:

TOPIC: {context}
"""


def _build_keyword_section(keywords: list[str]) -> str:
    if not keywords:
        return ""
    return f"KEY TERMS TO INCLUDE: {', '.join(keywords)}\n"


def _build_insight_section(insights: list[dict]) -> str:
    if not insights:
        return ""
    lines = []
    for i, insight in enumerate(insights[:MAX_PROMPT_EXCERPTS], 1):
        title = insight.get("title") or insight.get("source_title") or "Discussion"
        content = truncate(insight.get("content") or insight.get("insight") or "", EXCERPT_CHARS)
        lines.append(f'{i}. "{title}" - {content}')
    return f"""INCORPORATE THESE INSIGHTS FROM REAL DISCUSSIONS:
{chr(10).join(lines)}
"""


def _build_instructions() -> str:
    return """INSTRUCTIONS:
1. Start with a markdown H1 title (# Title) followed by an engaging introduction
2. Include appropriate headers to structure the content
3. Write detailed, informative paragraphs
4. Include a meaningful conclusion
5. Ensure the article sounds natural and conversational
6. Use Brazilian Portuguese language conventions and terminology"""


# ── Persona context (humanization) ────────────────────────────────────────


def build_persona_context(persona, location=None) -> str:
    lines = [f"Name: {persona.display_name}", f"Profession: {persona.profession}"]
    if location is not None:
        lines += [
            f"Location: {location.full_name}",
            f"Region: {location.region}",
            f"Traffic Pattern: {location.traffic_pattern.value}",
        ]
    else:
        lines.append(f"Location: {persona.location}")
    if persona.preferred_vehicles:
        lines.append(f"Preferred Vehicles: {', '.join(persona.preferred_vehicles)}")
    return "\n".join(lines)


HUMANIZE_SYSTEM_PROMPT = (
    "You are a content humanizer. Your task is to rewrite the provided content from the "
    "perspective of the described persona, making it sound more natural and human-written. "
    "Maintain the original meaning and core information but adjust the tone and style."
)


def build_humanize_prompt(content: str, persona, location=None, preserve_structure: bool = True) -> str:
    keep = "Maintain the original structure including headers, lists, and paragraphs. " if preserve_structure else ""
    return f"""PERSONA INFORMATION:
{build_persona_context(persona, location)}

CONTENT TO HUMANIZE:
{content}

Rewrite this content from the perspective of the described persona. {keep}Make it sound like a real person with the given characteristics wrote it."""


# ── Analysis ──────────────────────────────────────────────────────────────

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert content analyst specializing in SEO optimization and readability. "
    "Provide detailed analysis of the content with concrete suggestions for improvement. "
    "Respond with a single JSON object and nothing else."
)


def build_analysis_prompt(content: str, keywords: list[str]) -> str:
    return f"""Analyze the following content for readability, SEO, and engagement. Focus on these keywords: {', '.join(keywords)}.

CONTENT TO ANALYZE:
{content}

Provide analysis as a JSON object with these keys: readability_score, keyword_usage, content_structure, seo_recommendations, improvement_suggestions."""


# ── Titles ────────────────────────────────────────────────────────────────

TITLES_SYSTEM_PROMPT = "You are an expert copywriter specializing in creating engaging article titles."


def build_titles_prompt(content: str, current_title: str = "", count: int = 5) -> str:
    current = ""
    if current_title:
        current = (f' The current title is: "{current_title}". '
                   "Your suggestions should be different but maintain the essence.")
    return f"""Based on the content below, generate {count} alternative titles that are engaging, SEO-friendly, and accurately reflect the content.{current}

CONTENT:
{truncate(content, 2000)}

Provide exactly {count} titles in a numbered list format."""


# ── Insight extraction ────────────────────────────────────────────────────

INSIGHTS_SYSTEM_PROMPT = (
    "You are a discussion analyst. Extract the most relevant insights from forum discussions "
    "related to a specific context. Focus on unique, valuable information. "
    "Respond with a single JSON object and nothing else."
)


def build_insights_prompt(discussions: list, context: str, max_insights: int) -> str:
    blocks = [
        f"[Discussion {i}: {d.title}]\n{truncate(d.content, INSIGHT_CHUNK_CHARS)}"
        for i, d in enumerate(discussions, 1)
    ]
    return f"""CONTEXT:
{context}

FORUM DISCUSSIONS:
{chr(10).join(blocks)}

Extract up to {max_insights} key insights from these discussions that are relevant to the context. For each insight, include:
1. insight: the insight itself
2. source: the discussion number it came from
3. relevance_score: 0-100
4. explanation: a brief explanation of why it's relevant

Respond as a JSON object: {{"insights": [{{"insight": "...", "source": 1, "relevance_score": 80, "explanation": "..."}}]}}"""


# ── FAQ ───────────────────────────────────────────────────────────────────

FAQ_SYSTEM_PROMPT = (
    "You are a FAQ specialist. Generate concise, relevant FAQs based on article content. "
    "Respond with a single JSON object and nothing else."
)


def build_faq_prompt(content: str, count: int = 5, include_answers: bool = True) -> str:
    answers = " with answers" if include_answers else ""
    fields = "a 'question' field and an 'answer' field" if include_answers else "a 'question' field"
    return f"""Based on the following article content, generate {count} frequently asked questions{answers} that readers might have.

ARTICLE CONTENT:
{truncate(content, 3000)}

Generate exactly {count} questions{answers} as a JSON object {{"faqs": [...]}}. Each item should have {fields}."""


# ── Guideline verification ────────────────────────────────────────────────

VERIFY_SYSTEM_PROMPT = (
    "You are a content reviewer specialized in checking content against guidelines. "
    "Your analysis must be thorough, fair, and focused on constructive feedback. "
    "Respond with a single JSON object and nothing else."
)


def build_verify_prompt(content: str, guidelines: list[str]) -> str:
    if guidelines:
        numbered = "\n".join(f"{i}. {g}" for i, g in enumerate(guidelines, 1))
        checks = f"SPECIFIC GUIDELINES TO CHECK:\n{numbered}"
    else:
        checks = ("Check against standard content quality guidelines including accuracy, originality, "
                  "readability, grammar, formatting consistency, and appropriate tone.")
    return f"""Verify the following content against quality guidelines and provide detailed feedback.

CONTENT TO VERIFY:
{content}

{checks}

Provide a detailed analysis as a JSON object including:
1. overall_compliance (0-100 score)
2. issues (array of specific problems found)
3. recommendations (specific suggestions to fix issues)
4. strengths (positive aspects of the content)"""
