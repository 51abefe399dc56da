"""Edit-distance text matching used by the keyword trigger."""

from __future__ import annotations

import re
from typing import List

# Quoted or code-formatted text is not held against the author
_IGNORED_SPANS = (
    re.compile(r"```[\s\S]*?```"),
    re.compile(r"`[^`]+`"),
    re.compile(r'"[^"]*"'),
    re.compile(r"'[^']*'"),
)

DEFAULT_SENSITIVITY = 0.8


def sanitize(content: str) -> str:
    """Strip fenced code blocks, inline code and quoted substrings, in that order."""
    for pattern in _IGNORED_SPANS:
        content = pattern.sub("", content)
    return content


def levenshtein(a: str, b: str) -> int:
    """Classic full-matrix edit distance between two whole strings."""
    rows, cols = len(a), len(b)
    dp: List[List[int]] = [[0] * (cols + 1) for _ in range(rows + 1)]

    for i in range(rows + 1):
        dp[i][0] = i
    for j in range(cols + 1):
        dp[0][j] = j

    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            if a[i - 1] == b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1]
            else:
                dp[i][j] = 1 + min(
                    dp[i - 1][j],      # deletion
                    dp[i][j - 1],      # insertion
                    dp[i - 1][j - 1],  # substitution
                )

    return dp[rows][cols]


def similarity(a: str, b: str) -> float:
    """Normalised similarity in ``[0, 1]``: 1 for two empty strings, 0 if only one is empty."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein(a, b) / longest


def fuzzy_match(content: str, keyword: str, sensitivity: float = DEFAULT_SENSITIVITY) -> bool:
    """
    Decide whether ``content`` matches ``keyword``.

    True when the keyword occurs in the content as a case-insensitive literal
    substring, or when the whole lowercased content is at least
    ``sensitivity`` similar to the lowercased keyword.

    Args:
        content: Text to inspect, usually already passed through :func:`sanitize`.
        keyword: Keyword configured on the rule.
        sensitivity: Minimum similarity for an approximate match.
    """
    normalized_content = content.lower()
    normalized_keyword = keyword.lower()

    if normalized_keyword in normalized_content:
        return True
    return similarity(normalized_content, normalized_keyword) >= sensitivity
