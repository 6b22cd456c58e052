"""Neutralize instruction-like text inside externally authored content.

Book notes and portfolio fields are written by people other than the current
user and end up inside model prompts. Matches of the instruction signatures
are wrapped in 【】 so the model reads them as quoted data. Nothing is removed.
"""

import re
from typing import Iterable

OPEN_BRACKET = "【"
CLOSE_BRACKET = "】"

# Already-quoted spans are left untouched
_QUOTED_SPAN = re.compile(f"({OPEN_BRACKET}[^{OPEN_BRACKET}{CLOSE_BRACKET}]*{CLOSE_BRACKET})")


class Sanitizer:
    """Wraps instruction-like substrings in visually distinct brackets."""

    def __init__(self, patterns: Iterable[re.Pattern]):
        self.patterns = list(patterns)

    def sanitize(self, text: str) -> str:
        """
        Bracket every instruction-like span in text.

        Idempotent: spans that are already bracketed are skipped, so running
        the sanitizer twice gives the same result as running it once.
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            result = self._wrap_outside_quotes(pattern, result)
        return result

    def _wrap_outside_quotes(self, pattern: re.Pattern, text: str) -> str:
        parts = _QUOTED_SPAN.split(text)
        wrapped = []
        for part in parts:
            if _QUOTED_SPAN.fullmatch(part):
                wrapped.append(part)
            else:
                wrapped.append(pattern.sub(self._bracket, part))
        return "".join(wrapped)

    @staticmethod
    def _bracket(match: re.Match) -> str:
        if not match.group(0):
            return match.group(0)
        return f"{OPEN_BRACKET}{match.group(0)}{CLOSE_BRACKET}"
