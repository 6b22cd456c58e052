"""Extract control tags from generated text."""

import re

from pydantic import BaseModel, Field

from schemas.chat import Emotion

DEFAULT_EMOTION = Emotion.TALKING

EMOTION_PATTERN = re.compile(
    r"\[EMOTION:(" + "|".join(e.value for e in Emotion) + r")\]"
)
SUGGESTIONS_PATTERN = re.compile(r"\[SUGGESTIONS:([^\]]+)\]")


class ParsedResponse(BaseModel):
    """Generated text split into body and control fields."""
    response: str
    emotion: Emotion = DEFAULT_EMOTION
    suggestions: list[str] = Field(default_factory=list)


def extract_emotion(text: str) -> Emotion:
    """Mood from [EMOTION:xxx]; unknown or missing means talking."""
    match = EMOTION_PATTERN.search(text)
    if match:
        return Emotion(match.group(1))
    return DEFAULT_EMOTION


def extract_suggestions(text: str) -> list[str]:
    """Follow-up questions from [SUGGESTIONS:a|b|c], blanks dropped."""
    match = SUGGESTIONS_PATTERN.search(text)
    if not match:
        return []
    return [part.strip() for part in match.group(1).split("|") if part.strip()]


def clean_response(text: str) -> str:
    """Remove all mood and suggestion tags from the body."""
    result = EMOTION_PATTERN.sub("", text)
    result = SUGGESTIONS_PATTERN.sub("", result)
    return result.strip()


def parse_response(text: str) -> ParsedResponse:
    """
    Split raw model output into body, mood and suggestions.

    Never raises. A malformed tag (unknown mood, unclosed bracket) is treated
    as absent and left in the body as plain text.
    """
    text = text or ""
    return ParsedResponse(
        response=clean_response(text),
        emotion=extract_emotion(text),
        suggestions=extract_suggestions(text),
    )
