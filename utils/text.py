"""Small text helpers shared across the pipeline."""


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Cut text to max_len characters, appending suffix when cut."""
    if len(text) > max_len:
        return text[:max_len] + suffix
    return text


def truncate_for_log(text: str, max_len: int = 50) -> str:
    """Shorten user or model text before it goes into a log line."""
    return truncate(text.replace("\n", " "), max_len)
