"""
Controller module for spot-browser.

    - container: ContainerController, drives a loader into a row sink
    - retry: RetryPolicy and its decisions
    - sink: RowSink contract and the in-memory ListRowSink
    - messages: Commands accepted by the controller and UI events it emits
"""

from spot_browser.controller.container import DEFAULT_THUMB_SIZE, ContainerController, LoadState
from spot_browser.controller.messages import (
    ActivateChosenItems,
    ActivateItem,
    ActivateItems,
    CancelSearch,
    Clear,
    Done,
    GoToItem,
    ItemsAppended,
    Load,
    LoadFailed,
    LoadPage,
    LoadThumb,
    LoadTotals,
    NewPage,
    Progress,
    Reload,
    RetryScheduled,
    Search,
)
from spot_browser.controller.retry import Forward, Repeat, RetryPolicy, WaitRetry
from spot_browser.controller.sink import ListRowSink, Row, RowSink

__all__ = [
    "DEFAULT_THUMB_SIZE",
    "ContainerController",
    "LoadState",
    "ActivateChosenItems",
    "ActivateItem",
    "ActivateItems",
    "CancelSearch",
    "Clear",
    "Done",
    "GoToItem",
    "ItemsAppended",
    "Load",
    "LoadFailed",
    "LoadPage",
    "LoadThumb",
    "LoadTotals",
    "NewPage",
    "Progress",
    "Reload",
    "RetryScheduled",
    "Search",
    "Forward",
    "Repeat",
    "RetryPolicy",
    "WaitRetry",
    "ListRowSink",
    "Row",
    "RowSink",
]
