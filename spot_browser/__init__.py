"""
spot-browser: Browse a Spotify library from the terminal.

This package implements the content loading pipeline of a music
streaming client: authorization, paged loading of library containers
into row sinks, thumbnail caching and retry handling.

Architecture:
    One UI executor thread owns all controller state and every row sink.
    Blocking work (Web API calls, image decoding, token exchange) runs on
    a worker pool and reports back through posted callbacks.

    core/        - Configuration, logging, exceptions, event bus, executors
    spotify/     - Transport, token store, OAuth callback listener,
                   token refresher, playback queue, data models
    loaders/     - One loader per container kind, image cache
    controller/  - Container controller, retry policy, row sinks
    utils/       - Formatting helpers
    cli.py       - Command-line interface

Usage:
    Command Line:
        spot-browser authorize
        spot-browser browse saved-tracks
        spot-browser browse playlist-tracks 37i9dQZF1DXcBWIGoYBM5M

    Python API:
        from spot_browser.core import UiExecutor, WorkerPool
        from spot_browser.controller import ContainerController, ListRowSink
        from spot_browser.loaders import SavedTracksLoader

Dependencies:
    - spotipy: Spotify Web API client
    - requests: Token exchange and image downloads
    - Pillow: Thumbnail decoding and shaping
    - PyYAML, python-dotenv: Settings
    - rich-click, rich: CLI and progress bars
    - tqdm: Progress-bar-safe console logging
"""

__version__ = "0.1.0"
__author__ = "spot-browser contributors"
