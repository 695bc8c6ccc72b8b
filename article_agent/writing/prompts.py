"""Prompt synthesis: turn tool-effect results into the model's next instruction."""

from __future__ import annotations

from typing import Iterable, List, Optional

from article_agent.models import ArticleSection, PlannedSection, PlanRecorded, SectionWritten
from article_agent.schemas import WordRange
from article_agent.utils.text_cleaner import last_paragraph_excerpt

STYLE_RULES: List[str] = [
    "Write in a conversational, narrative voice that speaks directly to the reader.",
    "Keep paragraphs short: two to four sentences each.",
    "Never use em-dashes. Use commas, parentheses or a new sentence instead.",
    "Avoid walls of text; break long explanations up with subheadings or short lists.",
    "Cover related terms and questions naturally for semantic SEO; never stuff keywords.",
]

AGENT_INSTRUCTIONS = (
    "You are an autonomous article writer running inside an automated pipeline. "
    "Nobody reads your chat replies and nobody will answer questions. "
    "Work only through tools: first research the guidelines, then call plan_article "
    "exactly once, then call write_section once per planned section, in order. "
    "Never write article prose outside of write_section. "
    "Never stop to ask for confirmation; keep calling tools until the section "
    "with is_last=true has been written."
)

CORRECTIVE_NUDGE = (
    "This is an automated workflow and no one will reply to messages. "
    "Do not wait for confirmation. Continue immediately by calling the next tool: "
    "plan_article if the plan is not recorded yet, otherwise write_section for the next section."
)

NO_PREVIOUS_SECTIONS = "No previous sections have been written yet."


def format_style_rules(rules: Iterable[str]) -> str:
    return "\n".join(f"- {rule}" for rule in rules)


def build_priming_prompt(
    outline: str,
    word_range: WordRange,
    style_rules: Iterable[str] = STYLE_RULES,
    web_search_enabled: bool = True,
) -> str:
    """First user message of a run: the outline plus the plan-first instructions."""
    research_step = (
        "Use file_search to find the project's writing and SEO guidelines"
        + (", and web_search for any facts or statistics the outline lacks." if web_search_enabled else ".")
    )
    return (
        "Write a complete article from the research outline below.\n\n"
        "RESEARCH OUTLINE:\n"
        f"{outline}\n\n"
        "WRITING STYLE RULES (mandatory):\n"
        f"{format_style_rules(style_rules)}\n\n"
        "STEPS:\n"
        f"1. {research_step}\n"
        "2. For every section, extract DETAILED content requirements from the outline: "
        "the specific points, data, examples and sources it must cover, not just a title.\n"
        "3. Call plan_article with the headline, the target word range, every section "
        "(title, est_words, order, content_requirements) and your writing style notes.\n"
        "Do NOT write any article text before plan_article has been called.\n\n"
        f"Target length: {word_range.min}-{word_range.max} words in total."
    )


def section_instruction(
    section: PlannedSection,
    total_sections: int,
    style_rules: Iterable[str] = STYLE_RULES,
    excerpt: str = "",
) -> str:
    """Instruction for writing one planned section."""
    is_last = section.order >= total_sections
    parts = [
        f"Now write section {section.order} of {total_sections}: \"{section.title}\".",
        f"Target length: about {section.est_words} words.",
    ]
    if section.content_requirements:
        parts.append(f"Content requirements:\n{section.content_requirements}")
    if excerpt:
        parts.append(
            "The previous section ended with:\n"
            f"\"{excerpt}\"\n"
            "Open with a smooth transition from that point."
        )
    parts.append(f"Style reminders:\n{format_style_rules(style_rules)}")
    parts.append(
        f"Start the section with the heading '## {section.title}'. "
        f"Call write_section with is_last={'true' if is_last else 'false'}."
    )
    return "\n\n".join(parts)


def plan_confirmation(plan: PlanRecorded, style_rules: Iterable[str] = STYLE_RULES) -> str:
    total = len(plan.planned_sections)
    return (
        f"Plan recorded: {total} sections, target {plan.word_range.min}-{plan.word_range.max} words.\n\n"
        + section_instruction(plan.first_section, total, style_rules)
    )


def continuation_prompt(
    written: SectionWritten,
    style_rules: Iterable[str] = STYLE_RULES,
    excerpt_chars: int = 300,
) -> str:
    """Tool output after a non-final section: what was saved and what comes next."""
    session = written.session
    saved = (
        f"Section {written.section.section_number} \"{written.section.title}\" saved "
        f"({written.section.word_count} words). "
        f"Progress: {session.completed_sections} of {session.total_sections} sections, "
        f"{session.current_word_count} words so far."
    )
    excerpt = last_paragraph_excerpt(written.section.content, excerpt_chars)
    if written.next_section is None:
        return (
            f"{saved}\n\n"
            "All planned sections are written. Write a short closing section that wraps "
            "up the article and call write_section with is_last=true."
        )
    return f"{saved}\n\n" + section_instruction(
        written.next_section, session.total_sections, style_rules, excerpt=excerpt
    )


def final_confirmation(total_sections: int) -> str:
    return f"Article complete: all {total_sections} sections have been saved and assembled."


def previous_sections_context(sections: List[ArticleSection]) -> str:
    if not sections:
        return NO_PREVIOUS_SECTIONS
    return "\n\n".join(f"## {s.title}\n\n{s.content}" for s in sections)


def tool_result_summary(output: Optional[str], limit: int = 200) -> str:
    """Short single-line preview of a tool output for progress events."""
    text = " ".join((output or "").split())
    return text if len(text) <= limit else text[: limit - 3] + "..."
