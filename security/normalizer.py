"""User input canonicalization."""

import unicodedata

from errors import InputRejectedError, MessageTooLongError

DEFAULT_FORM = "NFC"
MATCHING_FORM = "NFKC"


def normalize(text: str, form: str = DEFAULT_FORM, max_length: int = 250) -> str:
    """
    Rewrite user text to a single canonical Unicode form.

    The result is what the model and the session history see. Signature
    matching works on ``fold(result)`` instead.

    Args:
        text: Raw user message
        form: Unicode normalization form (NFC, NFKC, ...)
        max_length: Maximum number of characters after normalization

    Returns:
        Canonical, stripped text

    Raises:
        InputRejectedError: Nothing is left after stripping
        MessageTooLongError: The canonical text exceeds max_length
    """
    canonical = unicodedata.normalize(form, text).strip()
    if not canonical:
        raise InputRejectedError("Message is empty")
    if len(canonical) > max_length:
        raise MessageTooLongError(f"Message is too long (max {max_length} characters)")
    return canonical


def fold(text: str) -> str:
    """Compatibility-fold fullwidth and other lookalike characters for matching."""
    return unicodedata.normalize(MATCHING_FORM, text)
