"""
Spotify module for spot-browser.

Everything that talks to the Spotify accounts service or Web API:
    - models: Parent ids, page cursors, pages and item dataclasses
    - transport: One method per Web API endpoint, typed ApiError failures
    - token_store: Shared OAuth credentials/token with disk persistence
    - login_server: Local listener receiving the OAuth redirect
    - refresher: Periodic background token refresh
    - queue: Client-side mirror of the playback queue
    - scopes: OAuth scope names
"""

from spot_browser.spotify.login_server import OAuthCallbackListener, parse_callback_request
from spot_browser.spotify.models import (
    Album,
    Artist,
    Category,
    EntityId,
    EntityKind,
    Episode,
    ImageRef,
    NumericCursor,
    OpaqueCursor,
    Page,
    Params,
    Playlist,
    PlaylistEntry,
    Show,
    Track,
    TrackFeatures,
    UnitCursor,
)
from spot_browser.spotify.queue import PlaybackQueue
from spot_browser.spotify.refresher import TokenRefresher
from spot_browser.spotify.scopes import BROWSER_SCOPES, Scope
from spot_browser.spotify.token_store import AuthState, Token, TokenStore
from spot_browser.spotify.transport import Transport

__all__ = [
    "OAuthCallbackListener",
    "parse_callback_request",
    "Album",
    "Artist",
    "Category",
    "EntityId",
    "EntityKind",
    "Episode",
    "ImageRef",
    "NumericCursor",
    "OpaqueCursor",
    "Page",
    "Params",
    "Playlist",
    "PlaylistEntry",
    "Show",
    "Track",
    "TrackFeatures",
    "UnitCursor",
    "PlaybackQueue",
    "TokenRefresher",
    "BROWSER_SCOPES",
    "Scope",
    "AuthState",
    "Token",
    "TokenStore",
    "Transport",
]
