"""
Command-line interface for spot-browser.

This module implements the CLI using Click, and is the concrete UI of
the loading pipeline: it owns the UI executor loop, feeds a container
controller and prints the rows it collected. rich-click is used for the
output colors.

Commands:
    spot-browser authorize                  Log in through the browser
    spot-browser logout                     Forget the cached token
    spot-browser browse KIND [ID]           Load and print one container
    spot-browser enqueue URI...             Add tracks to the playback queue
    spot-browser config show                Print the current settings
    spot-browser config set KEY VALUE       Change one setting

Usage:
    # First run: store the app credentials, then log in
    spot-browser config set client_id <id>
    spot-browser config set client_secret <secret>
    spot-browser authorize

    # Library containers
    spot-browser browse saved-tracks
    spot-browser browse playlist-tracks 37i9dQZF1DXcBWIGoYBM5M --features
    spot-browser browse followed-artists --filter "the "

    # Recommendations take parameters instead of an id
    spot-browser browse recommendations -p seed_genres=jazz,soul -p target_tempo=120

Configuration:
    Settings live in ~/.spot-browser/settings.yaml. SPOTIFY_CLIENT_ID and
    SPOTIFY_CLIENT_SECRET (environment or .env) override the file. The
    redirect URI registered for the app must be one of
    http://127.0.0.1:8000/callback ... http://127.0.0.1:8010/callback.

Exit codes:
    1  configuration error or unexpected failure
    2  authorization error
    3  Web API error
    4  other spot-browser error
    130  interrupted
"""

import functools
import sys
import threading
import time
import webbrowser
from dataclasses import asdict, dataclass, replace
from typing import Callable

import rich_click as click
from rich.console import Console
from rich.table import Table

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli browse": [
        {
            "name": "Container",
            "options": ["--param"],
        },
        {
            "name": "Output",
            "options": ["--features", "--thumbs", "--filter", "--help"],
        },
    ],
}

from spot_browser import __version__
from spot_browser.controller import (
    DEFAULT_THUMB_SIZE,
    ContainerController,
    Done,
    ItemsAppended,
    ListRowSink,
    LoadFailed,
    LoadState,
    Progress,
    RetryPolicy,
    RetryScheduled,
    Search,
)
from spot_browser.core import (
    ApiError,
    ApiErrorEvent,
    AuthError,
    AuthErrorEvent,
    BusEvent,
    ConfigError,
    EventBus,
    Paths,
    Settings,
    SpotBrowserError,
    UiExecutor,
    WorkerPool,
    get_logger,
    init_event_bus,
    load_settings,
    save_settings,
    setup_logging,
    shutdown_event_bus,
    shutdown_logging,
)
from spot_browser.core.config import FIELD_TYPES
from spot_browser.core.progress import LoadProgressBar
from spot_browser.loaders import (
    LOADERS,
    ContainerLoader,
    ImageCache,
    ImageConverter,
    QueueTracksLoader,
    ThumbDiskCache,
)
from spot_browser.spotify import (
    AuthState,
    EntityId,
    OAuthCallbackListener,
    Params,
    PlaybackQueue,
    TokenRefresher,
    TokenStore,
    Transport,
)
from spot_browser.utils import humanize_time

logger = get_logger(__name__)


# Seconds between two looks at the token store while waiting for the callback
AUTHORIZE_POLL_INTERVAL = 0.2


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """
    spot-browser: Browse your Spotify library from the terminal.

    \b
    FIRST RUN:
        spot-browser config set client_id <id>
        spot-browser config set client_secret <secret>
        spot-browser authorize

    \b
    BROWSING:
        spot-browser browse saved-tracks
        spot-browser browse album-tracks <album-id>
        spot-browser browse recommendations -p seed_genres=jazz
    """
    if version:
        click.echo(f"spot-browser {__version__}")
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.option(
    "--timeout",
    type=int,
    default=300,
    show_default=True,
    help="Seconds to wait for the browser login"
)
@click.option(
    "--no-browser",
    is_flag=True,
    help="Only print the login URL"
)
def authorize(timeout: int, no_browser: bool) -> None:
    """Log in to Spotify and cache the token."""
    _run(functools.partial(_authorize, timeout, no_browser))


@cli.command()
def logout() -> None:
    """Forget the cached token."""
    def action(paths: Paths, settings: Settings, bus: EventBus) -> None:
        TokenStore(paths.token_cache_file).reset()
        click.echo("Logged out")

    _run(action)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(k for k in LOADERS if k != "queue")))
@click.argument("entity_id", required=False, metavar="[ID]")
@click.option(
    "--param", "-p",
    "params",
    multiple=True,
    metavar="<key=value>",
    help="Parameter for parameterised containers (recommendations)"
)
@click.option(
    "--features",
    is_flag=True,
    help="Also load tempo/energy for track rows"
)
@click.option(
    "--thumbs/--no-thumbs",
    default=True,
    show_default=True,
    help="Fetch cover thumbnails into the local thumbnail cache"
)
@click.option(
    "--filter", "query",
    type=str,
    default=None,
    metavar="<text>",
    help="Only print rows containing this text"
)
def browse(
    kind: str,
    entity_id: str | None,
    params: tuple[str, ...],
    features: bool,
    thumbs: bool,
    query: str | None
) -> None:
    """Load one container and print its rows."""
    loader_cls = LOADERS[kind]
    parent_id = _parent_id(loader_cls, entity_id, params)
    _run(functools.partial(_browse, loader_cls, parent_id, features, thumbs, query))


@cli.command()
@click.argument("uris", nargs=-1, required=True)
def enqueue(uris: tuple[str, ...]) -> None:
    """Add tracks to the playback queue and print the queue."""
    _run(functools.partial(_enqueue, uris))


@cli.group()
def config() -> None:
    """Show or change settings."""


@config.command("show")
def config_show() -> None:
    """Print the current settings."""
    paths = Paths.default()
    try:
        settings = load_settings(paths.settings_file, strict=True)
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    click.echo(f"Settings file: {paths.settings_file}")
    for key, value in asdict(settings).items():
        if key == "client_secret" and value:
            value = value[:4] + "*" * max(0, len(value) - 4)
        click.echo(f"  {key}: {value}")


@config.command("set")
@click.argument("key", type=click.Choice(sorted(FIELD_TYPES)))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Change one setting."""
    paths = Paths.default()
    settings = load_settings(paths.settings_file, use_env=False)
    try:
        converted = _convert_setting(key, value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VALUE") from e
    path = save_settings(replace(settings, **{key: converted}), paths.settings_file)
    click.echo(f"Saved {key} to {path}")


# =============================================================================
# Command bodies
# =============================================================================

def _run(action: Callable[[Paths, Settings, EventBus], None]) -> None:
    """
    Run a command body with logging, the event bus and error reporting set up.

    Args:
        action: Receives paths, settings and the event bus.

    Raises:
        SystemExit: On errors (with the exit codes documented above).
    """
    try:
        paths = Paths.default()
        settings = load_settings(paths.settings_file)
        setup_logging(paths.log_dir)
        logger.debug(f"spot-browser {__version__} starting")
        bus = init_event_bus()
        action(paths, settings, bus)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except AuthError as e:
        click.echo(f"Authorization error: {e.message}", err=True)
        click.echo("Run `spot-browser authorize` to log in again", err=True)
        logger.error(f"Authorization error: {e.message}", exc_info=True)
        sys.exit(2)

    except ApiError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotBrowserError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_event_bus()
        shutdown_logging()


def _authorize(timeout: int, no_browser: bool, paths: Paths, settings: Settings, bus: EventBus) -> None:
    _require_credentials(settings)
    token_store = TokenStore(paths.token_cache_file)
    listener = OAuthCallbackListener(token_store)
    listener.start()
    try:
        url = token_store.configure(settings.client_id, settings.client_secret)
        click.echo("Open this URL to log in:\n")
        click.echo(f"  {url}\n")
        if not no_browser:
            webbrowser.open(url)

        deadline = time.monotonic() + timeout
        while token_store.state is AuthState.AWAITING_CODE:
            if time.monotonic() >= deadline:
                raise AuthError(
                    "Timed out waiting for the login callback",
                    details={"redirect_uri": listener.redirect_uri, "timeout": timeout}
                )
            time.sleep(AUTHORIZE_POLL_INTERVAL)
    finally:
        listener.stop()

    click.echo(f"Logged in, token cached in {paths.token_cache_file}")


def _browse(
    loader_factory: Callable[..., ContainerLoader],
    parent_id: EntityId | Params | None,
    features: bool,
    thumbs: bool,
    query: str | None,
    paths: Paths,
    settings: Settings,
    bus: EventBus
) -> None:
    token_store = _open_token_store(paths, settings)
    transport = Transport(token_store)
    image_cache = _thumb_cache(loader_factory, paths) if thumbs else None
    _show_table(_load(loader_factory, parent_id, transport, token_store, settings, bus, features, query, image_cache))


def _enqueue(uris: tuple[str, ...], paths: Paths, settings: Settings, bus: EventBus) -> None:
    token_store = _open_token_store(paths, settings)
    transport = Transport(token_store)
    queue = PlaybackQueue(transport)
    queue.enqueue(uris)
    loader_factory = functools.partial(QueueTracksLoader, queue=queue)
    _show_table(_load(loader_factory, None, transport, token_store, settings, bus, False, None))


def _thumb_cache(loader_factory: Callable[..., ContainerLoader], paths: Paths) -> ImageCache:
    """Thumbnail cache for one loader: square covers, round artist pictures."""
    round_thumbs = getattr(getattr(loader_factory, "func", loader_factory), "ROUND_THUMBS", False)
    variant = f"{DEFAULT_THUMB_SIZE}{'-round' if round_thumbs else ''}"
    return ImageCache(
        ImageConverter(resize=DEFAULT_THUMB_SIZE, round=round_thumbs),
        disk_cache=ThumbDiskCache(paths.thumb_cache_dir, variant=variant),
    )


def _load(
    loader_factory: Callable[..., ContainerLoader],
    parent_id: EntityId | Params | None,
    transport: Transport,
    token_store: TokenStore,
    settings: Settings,
    bus: EventBus,
    features: bool,
    query: str | None,
    image_cache: ImageCache | None = None
) -> "_Result":
    """
    Drive one ContainerController to completion on this thread.

    Bus events are handed over to the UI executor. The first
    AuthErrorEvent of a load asks the refresher for a new token right
    away; a further one, or one raised by a failing refresher, ends the
    load.

    Returns:
        The filled sink together with the controller's status line.

    Raises:
        AuthError: If the token could not be repaired.
        ApiError: If the load was aborted.
    """
    refresher = TokenRefresher(
        token_store,
        bus=bus,
        refresh_immediately=token_store.state is AuthState.AUTHORIZED_STALE,
    )
    ui = UiExecutor()
    pool = WorkerPool(ui)
    sink = ListRowSink()
    failure: list[ApiError] = []
    auth_failure: list[AuthErrorEvent] = []
    refresh_requested = False
    cancelled = threading.Event()

    def sleep(seconds: float) -> None:
        """Retry delay on a worker thread, cut short when the load is given up."""
        if cancelled.wait(seconds):
            raise SpotBrowserError("Load cancelled")

    with LoadProgressBar(_loader_name(loader_factory)) as bar:
        def notify(event: BusEvent) -> None:
            if settings.show_notifications:
                bar.log(f"[yellow]{event.message}[/yellow]")

        def on_auth_error(event: AuthErrorEvent) -> None:
            nonlocal refresh_requested
            notify(event)
            if refresher.failures or refresh_requested:
                auth_failure.append(event)
                cancelled.set()
                return
            refresh_requested = True
            pool.spawn(refresher.tick)

        def on_bus_event(event: BusEvent) -> None:
            # Publishing thread
            if isinstance(event, AuthErrorEvent):
                ui.post(on_auth_error, event)
            else:
                ui.post(notify, event)

        def on_event(event) -> None:
            if isinstance(event, Progress):
                bar.update(event.fraction, items=len(sink))
            elif isinstance(event, ItemsAppended):
                bar.update(controller.progress, items=len(sink))
            elif isinstance(event, RetryScheduled):
                bar.waiting(event.seconds)
            elif isinstance(event, LoadFailed):
                failure.append(event.error)
            elif isinstance(event, Done):
                bar.update(1.0, items=event.totals.items)

        subscription = bus.subscribe(BusEvent, on_bus_event, weak=False)
        controller = ContainerController(
            loader_factory,
            transport,
            sink,
            pool,
            listener=on_event,
            image_cache=image_cache,
            retry_policy=RetryPolicy(bus),
            sleep=sleep,
            fetch_features=features,
        )

        refresher.start()
        try:
            controller.load(parent_id)
            ui.run_until(
                lambda: auth_failure
                or (controller.state in (LoadState.DONE, LoadState.ABORTED) and not pool.in_flight)
            )
        finally:
            cancelled.set()
            refresher.stop()
            pool.shutdown(wait=False)
            bus.unsubscribe(subscription)
            if image_cache is not None:
                image_cache.shutdown()

    if auth_failure:
        raise AuthError(
            f"Authorization failed while loading {_loader_name(loader_factory)}: {auth_failure[0].message}"
        )
    if failure:
        raise failure[0]
    if query:
        controller.handle(Search(query))
    return _Result(sink, controller.status, features)


@dataclass
class _Result:
    sink: ListRowSink
    status: str
    features: bool


def _show_table(result: _Result) -> None:
    console = Console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name", overflow="fold")
    table.add_column("Duration", justify="right")
    if result.features:
        table.add_column("BPM", justify="right")
        table.add_column("Energy", justify="right")

    for index, row in enumerate(result.sink.visible_rows(), start=1):
        item = row.item
        duration_ms = getattr(item, "duration_ms", 0)
        cells = [str(index), item.display_key(), humanize_time(duration_ms) if duration_ms else ""]
        if result.features:
            if row.features is not None:
                cells += [str(row.features.bpm), f"{row.features.energy:.2f}"]
            else:
                cells += ["", ""]
        table.add_row(*cells)

    console.print(table)
    console.print(result.status)


# =============================================================================
# Helpers
# =============================================================================

def _require_credentials(settings: Settings) -> None:
    if not settings.has_credentials:
        raise ConfigError(
            "Spotify client credentials are not set. "
            "Use `spot-browser config set client_id ...` and `... client_secret ...`"
        )


def _open_token_store(paths: Paths, settings: Settings) -> TokenStore:
    _require_credentials(settings)
    token_store = TokenStore(paths.token_cache_file)
    token_store.set_credentials(settings.client_id, settings.client_secret)
    if not token_store.state.is_authorized:
        raise AuthError("Not logged in")
    return token_store


def _parent_id(
    loader_cls: type[ContainerLoader],
    entity_id: str | None,
    params: tuple[str, ...]
) -> EntityId | Params | None:
    """Build the parent id a loader class expects from the command line."""
    expected = loader_cls.PARENT_KIND
    if expected is None:
        if entity_id or params:
            raise click.UsageError(f"{loader_cls.NAME} takes no ID or parameters")
        return None
    if expected is Params:
        if entity_id:
            raise click.UsageError(f"{loader_cls.NAME} takes --param options, not an ID")
        return Params.from_mapping(_parse_params(params))
    if not entity_id:
        raise click.UsageError(f"{loader_cls.NAME} needs an ID ({expected.value})")
    return EntityId(expected, _strip_entity_id(entity_id))


def _parse_params(params: tuple[str, ...]) -> dict[str, str]:
    parsed = {}
    for param in params:
        key, sep, value = param.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {param!r}", param_hint="--param")
        parsed[key.strip()] = value.strip()
    return parsed


def _strip_entity_id(value: str) -> str:
    """
    Accept a bare id, a spotify: uri or an open.spotify.com URL.

    Example:
        >>> _strip_entity_id("https://open.spotify.com/album/4aawyAB9vmqN3uQ7FjRGTy?si=x")
        '4aawyAB9vmqN3uQ7FjRGTy'
    """
    value = value.strip().split("?", 1)[0].rstrip("/")
    if value.startswith("spotify:"):
        return value.rsplit(":", 1)[-1]
    if "open.spotify.com/" in value:
        return value.rsplit("/", 1)[-1]
    return value


def _convert_setting(key: str, value: str) -> str | bool:
    if FIELD_TYPES[key] is bool:
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value.strip()


def _loader_name(loader_factory: Callable[..., ContainerLoader]) -> str:
    func = getattr(loader_factory, "func", loader_factory)
    return getattr(func, "NAME", "items")


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-browser` from the command
    line. It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
