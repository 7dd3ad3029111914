"""Cursor-driven paginator over the keys of a store.

Errors never escape the paginator while it is being advanced. A failed page
fetch ends the iteration and is kept for the caller to inspect afterwards::

    paginator = client.new_list_kv_store_keys_paginator(
        ListKVStoreKeysInput(store_id=store_id, limit=100)
    )
    while paginator.advance():
        for key in paginator.keys():
            ...
    if paginator.error() is not None:
        raise paginator.error()

Exhaustion alone does not mean success; always check error() after the loop.
"""

from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING

from edgekv.exceptions import EdgeKVError
from edgekv.models import ListKVStoreKeysInput
from edgekv.observability import get_logger

if TYPE_CHECKING:
    from edgekv.client import Client

logger = get_logger(__name__)


class PaginatorState(str, Enum):
    """Where a paginator is in its walk over the listing."""

    FRESH = "fresh"
    HAS_MORE = "has_more"
    TERMINAL = "terminal"
    FAILED = "failed"


class ListKVStoreKeysPaginator:
    """Lazily fetches a store's key listing one page per advance() call.

    Not safe for concurrent use; create one paginator per consumer.
    """

    def __init__(self, client: "Client", input: ListKVStoreKeysInput) -> None:
        self._client = client
        self._input = input
        self._cursor = input.cursor
        self._keys: list[str] = []
        self._error: EdgeKVError | None = None
        self._state = PaginatorState.FRESH

    @property
    def state(self) -> PaginatorState:
        """Current state. TERMINAL and FAILED are final."""
        return self._state

    @property
    def cursor(self) -> str:
        """Continuation cursor for the next fetch (opaque)."""
        return self._cursor

    def advance(self) -> bool:
        """Fetch the next page.

        Returns:
            True if a page was fetched and keys() holds it, False when the
            listing is exhausted or a fetch failed (see error()).
        """
        if self._state in (PaginatorState.TERMINAL, PaginatorState.FAILED):
            return False

        page_input = self._input.model_copy(update={"cursor": self._cursor})
        try:
            page = self._client.list_kv_store_keys(page_input)
        except EdgeKVError as e:
            self._error = e
            self._keys = []
            self._state = PaginatorState.FAILED
            logger.warning(
                "Key listing aborted",
                context={"store_id": self._input.store_id},
                error=e,
            )
            return False

        self._keys = list(page.data)
        self._cursor = page.meta.next_cursor or ""
        if self._cursor:
            self._state = PaginatorState.HAS_MORE
        else:
            self._state = PaginatorState.TERMINAL
            logger.debug(
                "Key listing exhausted",
                context={"store_id": self._input.store_id},
            )
        return True

    def keys(self) -> list[str]:
        """Keys of the most recent successful fetch; empty after a failure."""
        return list(self._keys)

    def error(self) -> EdgeKVError | None:
        """The error that ended the iteration, or None."""
        return self._error

    def pages(self) -> Iterator[list[str]]:
        """Yield each page's keys until exhaustion or failure.

        Check error() once the generator is done.
        """
        while self.advance():
            yield self.keys()
