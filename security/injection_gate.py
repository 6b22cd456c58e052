"""Hard gate rejecting known prompt-injection attempts."""

import logging
import re
from typing import Iterable

from schemas.chat import ChatReply, Emotion
from .normalizer import fold

logger = logging.getLogger(__name__)

REFUSAL_MESSAGES = {
    "ja": "その質問にはお答えできないよ。本についておしゃべりしよう！",
    "en": "I can't answer that one. Let's talk about books instead!",
}

REFUSAL_SUGGESTIONS = {
    "ja": ["おすすめの本は？", "最近読んだ本は？"],
    "en": ["Any book recommendations?", "What did you read recently?"],
}


class InjectionGate:
    """Matches folded user text against the injection signatures.

    Runs before any paid call. A match short-circuits the pipeline with a
    benign canned reply instead of an error, so the attacker gets no signal.
    """

    def __init__(self, patterns: Iterable[re.Pattern]):
        self.patterns = list(patterns)

    def is_injection_attempt(self, message: str) -> bool:
        """True when any signature matches the message."""
        for pattern in self.patterns:
            if pattern.search(message):
                logger.warning("[SECURITY] Injection attempt blocked")
                return True
        return False

    def check(self, message: str) -> bool:
        """True means blocked. Lookalike characters are folded before matching."""
        return self.is_injection_attempt(fold(message))

    def refusal(self, language: str, session_id: str = "") -> ChatReply:
        """Canned reply returned for blocked messages."""
        lang = language if language in REFUSAL_MESSAGES else "en"
        return ChatReply(
            response=REFUSAL_MESSAGES[lang],
            emotion=Emotion.IDLE,
            suggestions=list(REFUSAL_SUGGESTIONS[lang]),
            session_id=session_id,
        )
