"""
LaTeX escaping for user-supplied text.

Every string that originates from the user passes through escape_latex() before
it is interpolated into the document. Substitution is single-pass so the
backslashes introduced for one character are never re-escaped by another rule.
"""

import re
from typing import Any

from quill.utils.text_processing import collapse_whitespace

# Structural metacharacters and their literal forms
LATEX_SPECIAL_CHARS = {
    "\\": r"\textbackslash{}",
    "{": r"\{",
    "}": r"\}",
    "%": r"\%",
    "&": r"\&",
    "$": r"\$",
    "_": r"\_",
    "#": r"\#",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}

_ESCAPE_PATTERN = re.compile("|".join(re.escape(char) for char in LATEX_SPECIAL_CHARS))

_UNESCAPE = {escaped: char for char, escaped in LATEX_SPECIAL_CHARS.items()}
# Longest forms first so "\textbackslash{}" is never read as "\t..."
_UNESCAPE_PATTERN = re.compile(
    "|".join(re.escape(escaped) for escaped in sorted(_UNESCAPE, key=len, reverse=True))
)

# Characters hyperref needs escaped inside \href{...}
_URL_SPECIAL_CHARS = {"%": r"\%", "#": r"\#"}
_URL_DROP = re.compile(r"[\\{}\s]")


def escape_latex(text: Any) -> str:
    """
    Escape text for safe interpolation into a LaTeX document body.

    Newlines and whitespace runs collapse to single spaces. None renders as "".

    Example:
        >>> escape_latex("R&D: 50% of $budget_total")
        'R\\\\&D: 50\\\\% of \\\\$budget\\\\_total'
    """
    if text is None:
        return ""
    text = collapse_whitespace(str(text))
    return _ESCAPE_PATTERN.sub(lambda m: LATEX_SPECIAL_CHARS[m.group(0)], text)


def unescape_latex(text: str) -> str:
    """Invert escape_latex() (whitespace collapsing is not reversible)."""
    return _UNESCAPE_PATTERN.sub(lambda m: _UNESCAPE[m.group(0)], text)


def escape_url(url: Any) -> str:
    """
    Prepare a URL for the first argument of \\href.

    Whitespace, backslashes and braces are dropped (they cannot appear in a
    valid URL and would break the argument); % and # are backslash-escaped.
    """
    if url is None:
        return ""
    url = _URL_DROP.sub("", str(url))
    return "".join(_URL_SPECIAL_CHARS.get(char, char) for char in url)


def extract_handle(profile_url: Any) -> str:
    """
    Reduce a profile URL to its final path segment.

    Example:
        >>> extract_handle("https://github.com/octocat/")
        'octocat'
    """
    if not profile_url:
        return ""
    return str(profile_url).strip().rstrip("/").split("/")[-1]
