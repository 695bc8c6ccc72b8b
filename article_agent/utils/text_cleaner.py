"""
Text helpers shared by the tools and the assembler.

Word counting, control-character stripping, and the paragraph excerpt used
to give the model transition context between sections.
"""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def word_count(text: str) -> int:
    """Whitespace-token count."""
    if not text:
        return 0
    return len(text.split())


def sanitize_text(text: str) -> str:
    """
    Strip control characters that break storage or JSON transport.

    Tab, newline and carriage return are kept.
    """
    if not text:
        return ""
    return _CONTROL_CHARS.sub("", text)


def last_paragraph_excerpt(markdown: str, max_chars: int = 300) -> str:
    """
    Return the tail of the final non-heading paragraph, trimmed to max_chars.

    Args:
        markdown: Section body
        max_chars: Maximum excerpt length

    Returns:
        Excerpt text, prefixed with an ellipsis when truncated
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT.split(markdown or "") if p.strip()]
    body = [p for p in paragraphs if not p.startswith("#")]
    if not body:
        return ""
    last = " ".join(body[-1].split())
    if len(last) <= max_chars:
        return last
    tail = last[-max_chars:]
    # Start on a word boundary
    space = tail.find(" ")
    if 0 <= space < len(tail) - 1:
        tail = tail[space + 1 :]
    return f"...{tail}"
