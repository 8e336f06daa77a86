"""Prompt-injection filtering for user text embedded in model instructions.

The pattern list is a denylist and will miss novel phrasings; it is a
best-effort layer on top of the delimited prompt template, not a security
boundary. Callers depend on the ``ContentSanitizer`` protocol so a stronger
classifier can replace ``RegexContentSanitizer`` without touching them.
"""

from __future__ import annotations

import re
from typing import Protocol

FILTERED_MARKER = "[filtered]"
TRUNCATION_MARKER = "... [truncated]"
MAX_CONTENT_LENGTH = 10_000

_INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"ignore\s+(previous|prior|above|all)\s+(instructions|prompts|rules|directions)",
        r"disregard\s+(previous|prior|above|all)\s+(instructions|prompts|rules|directions)",
        r"forget\s+(previous|prior|above|all)\s+(instructions|prompts|rules|directions)",
        r"(new|updated|different)\s+(instructions|prompts|rules|directions)",
        r"you\s+are\s+(now|a|an)\s+\w+",
        r"your\s+new\s+(role|task|purpose|job)",
        r"act\s+as\s+(a|an)\s+\w+",
        r"pretend\s+(to\s+be|you\s+are)",
        r"system\s*:\s*",
        r"assistant\s*:\s*",
        r"user\s*:\s*",
    )
)


class ContentSanitizer(Protocol):
    def sanitize(self, text: str) -> str: ...


class RegexContentSanitizer:
    """Replace known injection phrasings with a marker and cap the length."""

    def __init__(
        self,
        patterns: tuple[re.Pattern[str], ...] = _INJECTION_PATTERNS,
        *,
        max_length: int = MAX_CONTENT_LENGTH,
        marker: str = FILTERED_MARKER,
        truncation_marker: str = TRUNCATION_MARKER,
    ) -> None:
        self._patterns = patterns
        self._max_length = max_length
        self._marker = marker
        self._truncation_marker = truncation_marker

    def sanitize(self, text: str) -> str:
        if not text:
            return ""
        sanitized = text
        for pattern in self._patterns:
            sanitized = pattern.sub(self._marker, sanitized)
        if len(sanitized) > self._max_length:
            sanitized = sanitized[: self._max_length] + self._truncation_marker
        return sanitized


_default_sanitizer = RegexContentSanitizer()


def sanitize(text: str) -> str:
    """Sanitize ``text`` with the default denylist."""
    return _default_sanitizer.sanitize(text)
