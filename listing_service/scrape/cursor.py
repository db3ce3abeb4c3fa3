"""Page number to continuation token mapping."""

from __future__ import annotations


class PaginationCursor:
    """Tokens needed to request each page after the first.

    The entry for page ``n + 1`` is written after page ``n`` was fetched and
    extracted.  Unknown pages resolve to ``None`` ("no token").
    """

    def __init__(self) -> None:
        self._tokens: dict[int, str] = {}

    def put(self, page: int, token: str) -> None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        self._tokens[page] = token

    def get(self, page: int) -> str | None:
        return self._tokens.get(page)

    def clear(self) -> None:
        self._tokens.clear()

    def __len__(self) -> int:
        return len(self._tokens)
