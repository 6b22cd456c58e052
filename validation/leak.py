"""Detects replies that leak prompt or internal details."""

import logging
import re
from typing import Iterable

from utils.text import truncate_for_log
from .base import ValidationInput, ValidationResult, Validator

logger = logging.getLogger(__name__)


class LeakValidator(Validator):
    """Fails replies that match leak signatures or echo an injection."""

    def __init__(
        self,
        patterns: Iterable[re.Pattern] = (),
        keywords: Iterable[str] = (),
        echo_phrases: Iterable[str] = ()
    ):
        self.patterns = list(patterns)
        self.keywords = [k.lower() for k in keywords]
        self.echo_phrases = [p.lower() for p in echo_phrases]

    def validate(self, data: ValidationInput) -> ValidationResult:
        response = data.response
        response_lower = response.lower()

        for pattern in self.patterns:
            match = pattern.search(response)
            if match:
                logger.warning(f"[{self.name}] Leak detected (pattern): {truncate_for_log(match.group(0))}")
                return ValidationResult.fail("potential system prompt leak detected")

        for keyword in self.keywords:
            if keyword in response_lower:
                logger.warning(f"[{self.name}] Leak detected (keyword): {keyword}")
                return ValidationResult.fail("potential internal information leak detected")

        if self._echoes_injection(data.question, response):
            logger.warning(f"[{self.name}] Leak detected: injection echo")
            return ValidationResult.fail("prompt injection attempt echoed in response")

        return ValidationResult.ok()

    def _echoes_injection(self, question: str, response: str) -> bool:
        """A known injection phrase present in both question and reply."""
        question_lower = question.lower()
        response_lower = response.lower()
        return any(
            phrase in question_lower and phrase in response_lower
            for phrase in self.echo_phrases
        )
