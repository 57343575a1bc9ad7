"""Page-by-page retrieval for full-set fetchers.

A fetcher is a callable taking a ``PageRequest`` and returning a ``Page``.
Offset-based services read ``request.index``/``request.offset``; cursor-based
services read ``request.cursor`` and return the next cursor on the page.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from .errors import MigrationError
from .options import DEFAULT_MAX_PER_PAGE

logger = logging.getLogger(__name__)

T = TypeVar("T")


def clamp_per_page(per_page: int, max_per_page: int = DEFAULT_MAX_PER_PAGE) -> int:
    """Clamp a requested page size to ``1..max_per_page``."""
    return max(1, min(per_page, max_per_page))


@contextmanager
def page_context(kind: str, index: int) -> Iterator[None]:
    """Attach the entity kind and page index to a MigrationError raised inside."""
    try:
        yield
    except MigrationError as e:
        e.entity_kind = e.entity_kind or kind
        if e.page is None:
            e.page = index
        raise


@dataclass(frozen=True)
class PageRequest:
    """Position of the page to fetch.

    Attributes:
        index: 1-based page number
        per_page: Page size, already clamped
        cursor: Continuation token from the previous page, if any
    """

    index: int
    per_page: int
    cursor: str | None = None

    @property
    def offset(self) -> int:
        return (self.index - 1) * self.per_page


@dataclass
class Page(Generic[T]):
    """One page of results in remote order."""

    items: list[T] = field(default_factory=list)
    is_end: bool = False
    cursor: str | None = None


class PaginationState(str, Enum):
    START = "start"
    FETCHING = "fetching"
    ACCUMULATING = "accumulating"
    DONE = "done"
    FAILED = "failed"


class Paginator(Generic[T]):
    """Drive a fetcher until the remote signals the end of results.

    An empty page and an explicit ``is_end`` are both terminal. Pages are
    requested strictly in increasing order and errors are never retried:
    a ``MigrationError`` leaves with the entity kind and page index attached.
    """

    def __init__(
        self,
        kind: str,
        fetch_page: Callable[[PageRequest], Page[T]],
        per_page: int = DEFAULT_MAX_PER_PAGE,
        max_per_page: int = DEFAULT_MAX_PER_PAGE,
    ) -> None:
        self.kind = kind
        self.per_page = clamp_per_page(per_page, max_per_page)
        self.state = PaginationState.START
        self._fetch_page = fetch_page

    def pages(self) -> Iterator[Page[T]]:
        """Yield pages until exhaustion."""
        request = PageRequest(index=1, per_page=self.per_page)
        while True:
            self.state = PaginationState.FETCHING
            try:
                with page_context(self.kind, request.index):
                    page = self._fetch_page(request)
            except MigrationError as e:
                self.state = PaginationState.FAILED
                logger.debug("Fetching %s page %d failed: %s", self.kind, request.index, e)
                raise

            if not page.items:
                self.state = PaginationState.DONE
                return

            self.state = PaginationState.ACCUMULATING
            logger.debug(
                "Fetched %d %s on page %d", len(page.items), self.kind, request.index
            )
            yield page

            if page.is_end:
                self.state = PaginationState.DONE
                return
            request = PageRequest(
                index=request.index + 1, per_page=self.per_page, cursor=page.cursor
            )

    def collect(self) -> list[T]:
        """Concatenate every page in request order."""
        items: list[T] = []
        for page in self.pages():
            items.extend(page.items)
        return items
