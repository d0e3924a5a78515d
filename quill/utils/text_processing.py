"""
Text processing utilities for formatting and display.
"""

import re
from pathlib import Path
from typing import Iterable, Optional

# Control characters except tab and newline
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def truncate_display(text: str, max_len: int) -> str:
    """
    Truncate text for display with ellipsis if needed.

    Args:
        text: Text to truncate
        max_len: Maximum length including ellipsis

    Returns:
        Original text if within max_len, otherwise truncated with "..."

    Example:
        >>> truncate_display("short", 10)
        'short'
        >>> truncate_display("this is a very long string", 10)
        'this is...'
    """
    if max_len <= 3:
        return text[:max_len]
    return text if len(text) <= max_len else text[: max_len - 3] + "..."


def collapse_whitespace(text: str) -> str:
    """Collapse newlines and runs of whitespace to single spaces and strip the ends."""
    return re.sub(r"\s+", " ", text).strip()


def set_max_consecutive_blank_lines(content: str, max_consecutive: int = 1) -> str:
    """
    Normalize consecutive blank lines to a maximum number.

    Args:
        content: The text content to normalize
        max_consecutive: Maximum number of consecutive blank lines to allow.
                        Use 0 to remove all blank lines (default: 1)

    Returns:
        Content with normalized blank lines

    Example:
        >>> set_max_consecutive_blank_lines("text\\n\\n\\n\\nmore", max_consecutive=1)
        'text\\n\\nmore'
    """
    if max_consecutive == 0:
        pattern = r"\n\s*\n(\s*\n)*"
    else:
        pattern = r"\n\s*\n(\s*\n)+"

    return re.sub(pattern, "\n" * (max_consecutive + 1), content)


def sanitize_excerpt(
    text: str,
    max_len: int,
    redact_paths: Optional[Iterable[Path]] = None,
) -> str:
    """
    Produce a bounded, display-safe excerpt of compiler diagnostics.

    Strips control characters, replaces any of the given filesystem paths with
    a placeholder, and keeps the tail of the text (compilers report the fatal
    error last).

    Args:
        text: Raw diagnostic text
        max_len: Maximum length of the excerpt (including the leading "...")
        redact_paths: Paths to hide from the excerpt (workspace, cache roots)

    Returns:
        Sanitized excerpt, at most max_len characters

    Example:
        >>> sanitize_excerpt("error in /tmp/job-1/texput.tex", 100, [Path("/tmp/job-1")])
        'error in <redacted>/texput.tex'
    """
    cleaned = _CONTROL_CHARS.sub("", text)
    for path in redact_paths or []:
        cleaned = cleaned.replace(str(path), "<redacted>")
    cleaned = cleaned.strip()

    if len(cleaned) <= max_len:
        return cleaned
    if max_len <= 3:
        return cleaned[-max_len:] if max_len > 0 else ""
    return "..." + cleaned[-(max_len - 3):]
