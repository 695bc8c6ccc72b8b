"""Final article assembly with heading normalization."""

import re
from typing import Iterable, List, Tuple

from article_agent.models import ArticleSection

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_NON_WORD_RE = re.compile(r"[^\w\s]")

SECTION_SEPARATOR = "\n\n"


def normalize_title(text: str) -> str:
    """Case- and punctuation-insensitive comparison key."""
    return " ".join(_NON_WORD_RE.sub(" ", text.lower()).split())


def normalize_section_heading(title: str, content: str) -> str:
    """
    Ensure the section starts with exactly one canonical H2 heading.

    A leading heading whose text matches the title is kept when it is an H2,
    otherwise rewritten to H2. Anything else gets the canonical heading prepended.
    """
    body = (content or "").strip()
    canonical = f"## {title.strip()}"
    if not body:
        return canonical

    first_line, _, rest = body.partition("\n")
    match = _HEADING_RE.match(first_line.strip())
    if match and normalize_title(match.group(2)) == normalize_title(title):
        if len(match.group(1)) == 2:
            return body
        return f"{canonical}\n{rest}" if rest else canonical
    return f"{canonical}\n\n{body}"


def assemble_sections(sections: Iterable[ArticleSection]) -> Tuple[str, int, int]:
    """
    Join completed sections in order.

    Returns:
        (full article, section count, total words from the stored per-section counts)
    """
    ordered: List[ArticleSection] = sorted(sections, key=lambda s: s.section_number)
    blocks = [normalize_section_heading(s.title, s.content) for s in ordered]
    total_words = sum(s.word_count for s in ordered)
    return SECTION_SEPARATOR.join(blocks), len(ordered), total_words
