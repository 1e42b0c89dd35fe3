"""
Container controller: drives one loader page by page into one row sink.

Threading:
    Every method of ContainerController runs on the UI executor. Page
    fetches, thumbnail loads and feature lookups run on the worker pool
    and come back as callbacks posted to the UI executor.

Epochs:
    Each Load/Reload installs a loader instance with a fresh epoch. Every
    message produced for that loader carries the epoch, and a message
    whose epoch is not the current one is dropped without side effects.
    In-flight work is never aborted; its reply is simply ignored.

Pagination:
    At most one page request is outstanding per epoch. The next
    LoadPage is only issued after the previous NewPage was applied, so
    pages land in the sink in upstream order.

State per epoch:  IDLE -> LOADING -> DONE | ABORTED
"""

import functools
import time
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable

from spot_browser.controller.messages import (
    ActivateChosenItems,
    ActivateItem,
    ActivateItems,
    CancelSearch,
    Clear,
    Command,
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
    UiEvent,
)
from spot_browser.controller.retry import RetryDecision, RetryPolicy, WaitRetry
from spot_browser.controller.sink import RowSink
from spot_browser.core.exceptions import ApiError
from spot_browser.core.executor import WorkerPool
from spot_browser.core.logger import get_logger
from spot_browser.loaders.base import ContainerLoader
from spot_browser.loaders.images import ImageCache, best_thumb
from spot_browser.spotify.models import Page, PageCursor, ParentId, PlaylistEntry, Track, TrackFeatures
from spot_browser.spotify.transport import Transport
from spot_browser.utils import format_totals

logger = get_logger(__name__)


DEFAULT_THUMB_SIZE = 64
GO_TO_ITEM_RETRY_DELAY = 0.5


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    DONE = "done"
    ABORTED = "aborted"


class ContainerController:
    """
    Loads pages of one container into a RowSink.

    Args:
        loader_factory: ParentId -> ContainerLoader. Usually the loader
                        class itself, or a functools.partial binding
                        extra constructor arguments.
        transport: Web API transport used by the loaders.
        sink: Row sink exclusively owned by this controller.
        pool: Worker pool whose results are posted to the UI executor.
        listener: Receives UI events on the UI executor.
        image_cache: Thumbnail cache; None disables thumbnails.
        retry_policy: Policy wrapping every page fetch.
        sleep: Used by the retry policy for WaitRetry delays.
        thumb_size: Target edge length passed to best_thumb().
        fetch_features: Fill audio features into track rows.

    Example:
        controller = ContainerController(SavedTracksLoader, transport, sink, pool, listener)
        controller.handle(Load(None))
        ui.run_until(lambda: controller.state is LoadState.DONE)
    """

    def __init__(
        self,
        loader_factory: Callable[[ParentId], ContainerLoader],
        transport: Transport,
        sink: RowSink,
        pool: WorkerPool,
        listener: Callable[[UiEvent], None] | None = None,
        image_cache: ImageCache | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        thumb_size: int = DEFAULT_THUMB_SIZE,
        fetch_features: bool = False
    ) -> None:
        self._loader_factory = loader_factory
        self._transport = transport
        self.sink = sink
        self._pool = pool
        self._listener = listener
        self._image_cache = image_cache
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._thumb_size = thumb_size
        self._fetch_features = fetch_features

        self.loader: ContainerLoader | None = None
        self.epoch: int | None = None
        self.state = LoadState.IDLE
        self.totals = LoadTotals()
        self.status = ""
        self._progress: float | None = None
        self._outstanding = 0
        self._cleared = False
        self.pages_requested = 0
        self.max_outstanding = 0

    # -- public API ----------------------------------------------------

    @property
    def parent_id(self) -> ParentId:
        return self.loader.parent_id if self.loader else None

    @property
    def progress(self) -> float | None:
        """Last reported fraction, None while the total is unknown."""
        return self._progress

    @property
    def outstanding_pages(self) -> int:
        return self._outstanding

    @property
    def is_loading(self) -> bool:
        return self.state is LoadState.LOADING

    def handle(self, command: Command) -> None:
        """Dispatch one command. Must be called on the UI executor."""
        handler = self._dispatch.get(type(command))
        if handler is None:
            logger.error(f"Unknown controller command: {command!r}")
            return
        handler(self, command)

    def load(self, parent_id: ParentId = None) -> None:
        self.handle(Load(parent_id))

    def reload(self) -> None:
        self.handle(Reload())

    def clear(self) -> None:
        self.handle(Clear())

    # -- commands ------------------------------------------------------

    def _on_clear(self, command: Clear) -> None:
        self.sink.clear()
        self._cleared = True
        self.totals = LoadTotals()
        self.status = ""

    def _on_load(self, command: Load) -> None:
        if self.loader is not None and self.loader.parent_id == command.parent_id and not self._cleared:
            logger.debug(f"Load({command.parent_id}) ignored: already the current parent")
            return
        self._start(self._loader_factory(command.parent_id))

    def _on_reload(self, command: Reload) -> None:
        if self.loader is None:
            logger.debug("Reload ignored: nothing loaded yet")
            return
        self._start(self.loader.renewed())

    def _start(self, loader: ContainerLoader) -> None:
        self.loader = loader
        self.epoch = loader.epoch
        self._cleared = False
        self.sink.clear()
        self.totals = LoadTotals()
        self.state = LoadState.LOADING
        self.status = f"Loading {loader.NAME}..."
        self._progress = None
        self._outstanding = 0
        self.pages_requested = 0
        self.max_outstanding = 0
        logger.debug(f"Loading {loader!r}")
        self.handle(LoadPage(loader.init_cursor(), loader.epoch))

    def _on_load_page(self, command: LoadPage) -> None:
        if command.epoch != self.epoch:
            logger.debug(f"Dropping stale LoadPage for epoch {command.epoch}")
            return
        if self._outstanding:
            logger.error(f"LoadPage for epoch {command.epoch} while a page is outstanding")
            return

        self._outstanding += 1
        self.pages_requested += 1
        self.max_outstanding = max(self.max_outstanding, self._outstanding)
        self._pool.ask(
            self._fetch_page,
            functools.partial(self._on_page_fetched, command.epoch),
            self.loader,
            command.cursor,
            command.epoch,
        )

    def _fetch_page(self, loader: ContainerLoader, cursor: PageCursor, epoch: int) -> Page:
        """Runs on a worker thread."""
        return self._retry_policy.run(
            lambda: loader.load_page(self._transport, cursor),
            sleep=self._sleep,
            name=loader.NAME,
            on_decision=functools.partial(self._report_decision, epoch),
            still_wanted=lambda: self.epoch == epoch,
        )

    def _report_decision(self, epoch: int, decision: RetryDecision) -> None:
        """Runs on a worker thread."""
        if isinstance(decision, WaitRetry):
            self._pool.ui.post(self._emit_if_current, RetryScheduled(decision.seconds, epoch))

    def _emit_if_current(self, event: Any) -> None:
        if getattr(event, "epoch", None) == self.epoch:
            self._emit(event)

    def _on_page_fetched(self, epoch: int, future: Future) -> None:
        if epoch != self.epoch:
            logger.debug(f"Dropping stale page reply for epoch {epoch}")
            return
        self._outstanding -= 1

        try:
            page = future.result()
        except ApiError as e:
            self._abort(e)
            return
        except Exception as e:
            logger.error(f"Loading {self.loader.NAME} crashed: {e}", exc_info=True)
            self._abort(ApiError(f"Unexpected error: {e}"))
            return

        self.handle(NewPage(page, epoch))

    def _abort(self, error: ApiError) -> None:
        self.state = LoadState.ABORTED
        self.status = f"Failed to load {self.loader.NAME}: {error.message}"
        logger.error(self.status)
        self._emit(LoadFailed(error, self.epoch))

    def _on_new_page(self, command: NewPage) -> None:
        if command.epoch != self.epoch:
            logger.debug(f"Dropping stale NewPage for epoch {command.epoch}")
            return

        page = command.page
        epoch = command.epoch
        appended: list[tuple[int, Any]] = []
        for item in page.items:
            appended.append((self.sink.append(item), item))

        self.totals = LoadTotals(
            items=self.totals.items + len(page.items),
            duration_ms=self.totals.duration_ms + page.duration_ms,
            duration_exact=self.totals.duration_exact and page.duration_exact,
        )
        self._emit(ItemsAppended(len(page.items), epoch))
        self._report_progress(page.progress(), epoch)

        if self._image_cache is not None:
            for handle, item in appended:
                url = best_thumb(getattr(item, "images", ()), self._thumb_size)
                if url:
                    self.handle(LoadThumb(url, handle, epoch))

        if self._fetch_features:
            self._request_features(appended, epoch)

        if page.next is not None:
            self.handle(LoadPage(page.next, epoch))
        else:
            self._finish(epoch)

    def _report_progress(self, fraction: float | None, epoch: int) -> None:
        if fraction is not None:
            fraction = min(1.0, max(0.0, fraction))
            if self._progress is not None:
                fraction = max(fraction, self._progress)
            self._progress = fraction
        self._emit(Progress(fraction, epoch))

    def _finish(self, epoch: int) -> None:
        if self._progress is None or self._progress < 1.0:
            self._progress = 1.0
            self._emit(Progress(1.0, epoch))
        self.state = LoadState.DONE
        self.status = format_totals(self.totals.items, self.totals.duration_ms, self.totals.duration_exact)
        logger.info(f"Loaded {self.loader.NAME}: {self.status}")
        self._emit(Done(self.totals, epoch))

    def _on_load_thumb(self, command: LoadThumb) -> None:
        if command.epoch != self.epoch or self._image_cache is None:
            return
        self._pool.ask(
            self._image_cache.get,
            functools.partial(self._on_thumb_loaded, command.epoch, command.handle),
            command.url,
        )

    def _on_thumb_loaded(self, epoch: int, handle: int, future: Future) -> None:
        if epoch != self.epoch:
            return
        try:
            image = future.result()
        except Exception as e:
            logger.debug(f"Thumbnail for row {handle} failed: {e}")
            return
        if image is not None:
            self.sink.set_thumb(handle, image)

    def _request_features(self, appended: list[tuple[int, Any]], epoch: int) -> None:
        by_id: dict[str, list[int]] = {}
        for handle, item in appended:
            track = item.track if isinstance(item, PlaylistEntry) else item
            if isinstance(track, Track) and track.id:
                by_id.setdefault(track.id, []).append(handle)
        if not by_id:
            return
        self._pool.ask(
            self._transport.audio_features,
            functools.partial(self._on_features_loaded, epoch, by_id),
            list(by_id),
        )

    def _on_features_loaded(self, epoch: int, by_id: dict[str, list[int]], future: Future) -> None:
        if epoch != self.epoch:
            return
        try:
            payload = future.result()
            features = [TrackFeatures.from_spotify_api(entry) for entry in payload if entry]
        except Exception as e:
            logger.warning(f"Failed to load track features: {e}")
            return
        for entry in features:
            for handle in by_id.get(entry.id, ()):
                self.sink.set_features(handle, entry)

    def _on_activate(self, command: ActivateChosenItems) -> None:
        handles = self.sink.selected_handles()
        items = [item for item in (self.sink.item(h) for h in handles) if item is not None]
        if not items:
            return
        if len(items) == 1:
            item = items[0]
            self._emit(ActivateItem(getattr(item, "id", None), getattr(item, "name", "")))
        else:
            self._emit(ActivateItems(tuple(items)))

    def _on_search(self, command: Search) -> None:
        self.sink.set_filter(command.query)

    def _on_cancel_search(self, command: CancelSearch) -> None:
        self.sink.set_filter(None)

    def _on_go_to_item(self, command: GoToItem) -> None:
        if self.is_loading:
            self._pool.ui.post_delayed(GO_TO_ITEM_RETRY_DELAY, self.handle, command)
            return
        handle = self.sink.find_uri(command.uri)
        if handle is not None:
            self.sink.select([handle])

    # -- events --------------------------------------------------------

    def _emit(self, event: UiEvent) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception as e:
            logger.error(f"UI listener failed on {type(event).__name__}: {e}", exc_info=True)

    _dispatch: dict[type, Callable[["ContainerController", Any], None]] = {
        Clear: _on_clear,
        Load: _on_load,
        Reload: _on_reload,
        LoadPage: _on_load_page,
        NewPage: _on_new_page,
        LoadThumb: _on_load_thumb,
        ActivateChosenItems: _on_activate,
        Search: _on_search,
        CancelSearch: _on_cancel_search,
        GoToItem: _on_go_to_item,
    }
