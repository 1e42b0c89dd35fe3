"""
Base class and page builders for container loaders.

A loader knows how to fetch ONE page of one kind of list (saved tracks,
an album's tracks, followed artists, ...) for one parent id. It is
value-like: the container controller creates a fresh instance for every
(re)load and tags all messages with the instance's epoch.

Pagination shapes:
    NumericCursor   "offset/limit/total/next" pages. The next cursor is
                    offset + limit while the payload has a next link.
    OpaqueCursor    "cursors.after" pages (followed artists). total may
                    be missing, in which case it is 0 (unknown).
    UnitCursor      plain lists returned in one go; total = len(items).
"""

import copy
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Generic, TypeVar

from spot_browser.core.exceptions import DecodeError
from spot_browser.spotify.models import (
    EntityId,
    EntityKind,
    NumericCursor,
    OpaqueCursor,
    Page,
    PageCursor,
    ParentId,
    Params,
)
from spot_browser.spotify.transport import Transport

T = TypeVar("T")

DEFAULT_PAGE_LIMIT = 20

_epoch_counter = itertools.count(1)
_epoch_lock = threading.Lock()


def next_epoch() -> int:
    """Process-wide, never repeating epoch token."""
    with _epoch_lock:
        return next(_epoch_counter)


class ContainerLoader(ABC, Generic[T]):
    """
    Typed, restartable producer of pages for one parent.

    Class attributes:
        NAME: Display name used in status lines and logs.
        PAGE_LIMIT: Items requested per page.
        CURSOR: Pagination shape (NumericCursor, OpaqueCursor or UnitCursor).
        PARENT_KIND: Required EntityKind of an EntityId parent, Params for
                     parameterised loaders, or None for global feeds.
        ROUND_THUMBS: Rows are shown with circular thumbnails (artists).
    """

    NAME: ClassVar[str] = "items"
    PAGE_LIMIT: ClassVar[int] = DEFAULT_PAGE_LIMIT
    CURSOR: ClassVar[type] = NumericCursor
    PARENT_KIND: ClassVar[EntityKind | type | None] = None
    ROUND_THUMBS: ClassVar[bool] = False

    def __init__(self, parent_id: ParentId = None) -> None:
        self._check_parent(parent_id)
        self.parent_id = parent_id
        self.epoch = next_epoch()

    def _check_parent(self, parent_id: ParentId) -> None:
        expected = self.PARENT_KIND
        if expected is None:
            if parent_id is not None:
                raise ValueError(f"{self.NAME} loader takes no parent id, got {parent_id!r}")
        elif expected is Params:
            if not isinstance(parent_id, Params):
                raise ValueError(f"{self.NAME} loader needs Params, got {parent_id!r}")
        elif not isinstance(parent_id, EntityId) or parent_id.kind != expected:
            raise ValueError(f"{self.NAME} loader needs a {expected.value} id, got {parent_id!r}")

    @property
    def entity_id(self) -> str:
        """The opaque id of an EntityId parent."""
        if not isinstance(self.parent_id, EntityId):
            raise TypeError(f"{self.NAME} loader has no entity id, parent is {self.parent_id!r}")
        return self.parent_id.id

    def init_cursor(self) -> PageCursor:
        return self.CURSOR()

    def renewed(self) -> "ContainerLoader[T]":
        """Same loader and parent, new epoch (used by Reload)."""
        clone = copy.copy(self)
        clone.epoch = next_epoch()
        return clone

    @abstractmethod
    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[T]:
        """
        Fetch and decode one page.

        Raises:
            ApiError: Whatever the transport raised, or DecodeError when
                      the payload does not have the expected shape.
        """

    def decode(self, build: Callable[[], Page[T]]) -> Page[T]:
        """Run a page builder, turning shape errors into DecodeError."""
        try:
            return build()
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise DecodeError(
                f"Unexpected {self.NAME} payload: {e!r}",
                details={"loader": self.NAME, "parent_id": str(self.parent_id)}
            ) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(parent_id={self.parent_id!r}, epoch={self.epoch})"


def offset_page(payload: dict[str, Any], parse: Callable[[Any], T], limit: int) -> Page[T]:
    """Build a page from an offset-paginated payload."""
    offset = payload.get("offset") or 0
    page_limit = payload.get("limit") or limit
    items = [parse(entry) for entry in payload["items"] if entry is not None]
    next_cursor = NumericCursor(offset + page_limit) if payload.get("next") else None
    return Page(items=items, total=payload.get("total") or 0, num_offset=offset, next=next_cursor)


def cursor_page(payload: dict[str, Any], parse: Callable[[Any], T], cursor: OpaqueCursor) -> Page[T]:
    """Build a page from a cursor-paginated payload."""
    items = [parse(entry) for entry in payload["items"] if entry is not None]
    after = (payload.get("cursors") or {}).get("after")
    next_cursor = None
    if payload.get("next") and after:
        next_cursor = OpaqueCursor(after, position=cursor.position + len(items))
    return Page(items=items, total=payload.get("total") or 0, num_offset=cursor.position, next=next_cursor)


def list_page(entries: list[Any], parse: Callable[[Any], T]) -> Page[T]:
    """Build a single, final page from a plain list."""
    items = [parse(entry) for entry in entries if entry is not None]
    return Page(items=items, total=len(items), num_offset=0, next=None)


def expect_cursor(cursor: PageCursor, kind: type) -> Any:
    if not isinstance(cursor, kind):
        raise TypeError(f"expected {kind.__name__}, got {cursor!r}")
    return cursor
