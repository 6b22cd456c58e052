"""Per-conversation record of books already recommended."""

import threading
from typing import Callable, Dict, Iterable, List


class RecommendationMemory:
    """Ordered, deduplicated book ids per conversation.

    Keyed by conversation id only, so entries survive compaction. Ids the
    catalog does not know are dropped on merge.
    """

    def __init__(self, is_known_id: Callable[[str], bool]):
        self._is_known_id = is_known_id
        self._entries: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> List[str]:
        with self._lock:
            return list(self._entries.get(conversation_id, []))

    def merge(self, conversation_id: str, book_ids: Iterable[str]) -> List[str]:
        """Add ids in order of first appearance; returns the updated list."""
        with self._lock:
            current = self._entries.setdefault(conversation_id, [])
            for book_id in book_ids:
                if book_id not in current and self._is_known_id(book_id):
                    current.append(book_id)
            return list(current)
