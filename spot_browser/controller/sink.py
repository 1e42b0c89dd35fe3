"""
Row sinks: where a container controller puts its items.

RowSink is the contract a UI list widget has to fulfil. It is owned by
exactly one controller and only ever touched from the UI executor.

    append(item) -> handle     stable handle for later mutation
    set_thumb(handle, image)   may arrive after the row, in any order
    set_features(handle, f)    audio features for track rows
    clear()                    drop every row; old handles become invalid

Mutating an invalid (cleared) handle is silently ignored.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator

from spot_browser.spotify.models import TrackFeatures


class RowSink(ABC):
    """Abstract append-only row store with late mutation."""

    @abstractmethod
    def append(self, item: Any) -> int:
        """Append a row and return its handle."""

    @abstractmethod
    def set_thumb(self, handle: int, image: Any) -> None:
        pass

    @abstractmethod
    def set_features(self, handle: int, features: TrackFeatures) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def item(self, handle: int) -> Any | None:
        pass

    @abstractmethod
    def selected_handles(self) -> list[int]:
        pass

    @abstractmethod
    def select(self, handles: list[int]) -> None:
        pass

    @abstractmethod
    def set_filter(self, query: str | None) -> None:
        """Show only rows whose display key contains query (None shows all)."""

    def find_uri(self, uri: str) -> int | None:
        """Handle of the first row whose item has this uri."""
        return None


@dataclass
class Row:
    handle: int
    item: Any
    thumb: Any = None
    features: TrackFeatures | None = None


class ListRowSink(RowSink):
    """
    In-memory sink backed by an insertion-ordered dict.

    Used by the CLI and by tests; a GUI adapter would wrap a list model
    with the same behavior.
    """

    def __init__(self) -> None:
        self._rows: dict[int, Row] = {}
        self._handles = itertools.count(1)
        self._selection: list[int] = []
        self._query: str | None = None

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows.values())

    @property
    def items(self) -> list[Any]:
        return [row.item for row in self._rows.values()]

    @property
    def query(self) -> str | None:
        return self._query

    def row(self, handle: int) -> Row | None:
        return self._rows.get(handle)

    def append(self, item: Any) -> int:
        handle = next(self._handles)
        self._rows[handle] = Row(handle=handle, item=item)
        return handle

    def set_thumb(self, handle: int, image: Any) -> None:
        row = self._rows.get(handle)
        if row is not None:
            row.thumb = image

    def set_features(self, handle: int, features: TrackFeatures) -> None:
        row = self._rows.get(handle)
        if row is not None:
            row.features = features

    def clear(self) -> None:
        self._rows.clear()
        self._selection = []

    def item(self, handle: int) -> Any | None:
        row = self._rows.get(handle)
        return row.item if row else None

    def selected_handles(self) -> list[int]:
        return [h for h in self._selection if h in self._rows]

    def select(self, handles: list[int]) -> None:
        self._selection = [h for h in handles if h in self._rows]

    def set_filter(self, query: str | None) -> None:
        self._query = query or None

    def visible_rows(self) -> list[Row]:
        if not self._query:
            return list(self._rows.values())
        needle = self._query.casefold()
        return [row for row in self._rows.values() if needle in _display_key(row.item).casefold()]

    def find_uri(self, uri: str) -> int | None:
        for row in self._rows.values():
            if getattr(row.item, "uri", None) == uri:
                return row.handle
        return None


def _display_key(item: Any) -> str:
    key = getattr(item, "display_key", None)
    if callable(key):
        return key()
    return str(getattr(item, "name", item))
