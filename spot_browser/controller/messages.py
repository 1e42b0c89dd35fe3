"""
Messages exchanged with a ContainerController.

Commands flow into the controller (from the UI, or from the controller
itself via the worker pool); UI events flow out to the listener.
Everything is a small frozen dataclass so it can be posted across
threads by value.
"""

from dataclasses import dataclass, field
from typing import Any

from spot_browser.core.exceptions import ApiError
from spot_browser.spotify.models import Page, PageCursor, ParentId


# -- commands ----------------------------------------------------------

@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class Load:
    parent_id: ParentId = None


@dataclass(frozen=True)
class Reload:
    pass


@dataclass(frozen=True)
class LoadPage:
    cursor: PageCursor
    epoch: int


@dataclass(frozen=True)
class NewPage:
    page: Page
    epoch: int


@dataclass(frozen=True)
class LoadThumb:
    url: str
    handle: int
    epoch: int


@dataclass(frozen=True)
class ActivateChosenItems:
    pass


@dataclass(frozen=True)
class Search:
    query: str


@dataclass(frozen=True)
class CancelSearch:
    pass


@dataclass(frozen=True)
class GoToItem:
    uri: str


Command = (
    Clear | Load | Reload | LoadPage | NewPage | LoadThumb
    | ActivateChosenItems | Search | CancelSearch | GoToItem
)


# -- UI events ---------------------------------------------------------

@dataclass(frozen=True)
class LoadTotals:
    """Aggregates of everything appended in the current epoch."""
    items: int = 0
    duration_ms: int = 0
    duration_exact: bool = True


@dataclass(frozen=True)
class ItemsAppended:
    count: int
    epoch: int


@dataclass(frozen=True)
class Progress:
    """fraction is None while the total is unknown (pulse)."""
    fraction: float | None
    epoch: int


@dataclass(frozen=True)
class RetryScheduled:
    seconds: float
    epoch: int


@dataclass(frozen=True)
class Done:
    totals: LoadTotals
    epoch: int


@dataclass(frozen=True)
class LoadFailed:
    error: ApiError
    epoch: int


@dataclass(frozen=True)
class ActivateItem:
    id: str | None
    name: str


@dataclass(frozen=True)
class ActivateItems:
    items: tuple[Any, ...] = field(default_factory=tuple)


UiEvent = (
    ItemsAppended | Progress | RetryScheduled | Done | LoadFailed
    | ActivateItem | ActivateItems
)
