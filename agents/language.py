"""Response language resolution."""

from typing import Iterable, Optional

SUPPORTED_LANGUAGES = ("ja", "en")
DEFAULT_LANGUAGE = "en"


def normalize_language(lang: str) -> str:
    """Base language code: "ja-JP" -> "ja", "EN_us" -> "en"."""
    return lang.strip().replace("_", "-").split("-")[0].lower()


def parse_accept_language(header: str, supported: Iterable[str] = SUPPORTED_LANGUAGES) -> str:
    """
    First supported language in an Accept-Language header.

    Example: "fr-FR,ja;q=0.9,en;q=0.8" -> "ja". Entries are taken in header
    order; quality values are ignored.
    """
    supported = set(supported)
    for part in header.split(","):
        lang = normalize_language(part.split(";")[0])
        if lang in supported:
            return lang
    return ""


def resolve_language(
    requested: Optional[str],
    accept_language: Optional[str],
    supported: Iterable[str] = SUPPORTED_LANGUAGES,
    default: str = DEFAULT_LANGUAGE
) -> str:
    """
    Pick the reply language.

    Priority: request body field, then Accept-Language header, then default.
    """
    supported = tuple(supported)
    if requested:
        lang = normalize_language(requested)
        if lang in supported:
            return lang

    if accept_language:
        lang = parse_accept_language(accept_language, supported)
        if lang:
            return lang

    return default
