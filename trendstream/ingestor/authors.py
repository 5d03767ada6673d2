"""Per-run cache of message authors."""
from typing import Dict

from trendstream.core.domain import Author


class AuthorCache:
    """Authors seen during one ingestion run, by handle."""

    def __init__(self):
        self._authors: Dict[str, Author] = {}

    def __len__(self) -> int:
        return len(self._authors)

    def __contains__(self, handle: str) -> bool:
        return handle in self._authors

    def add(self, author: Author) -> bool:
        """Remember ``author``; True when the handle was not cached yet."""
        if not author.handle or author.handle in self._authors:
            return False
        self._authors[author.handle] = author
        return True
