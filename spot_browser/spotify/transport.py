"""
Thin HTTP transport to the Spotify Web API.

Transport wraps a spotipy.Spotify client whose bearer token is read from
the TokenStore on every request. Each public method maps to exactly one
upstream endpoint and returns the decoded JSON payload; turning payloads
into typed pages is the loaders' job.

Error mapping (every failure becomes exactly one ApiError subclass):
    HTTP 401                        -> UnauthorizedError
    HTTP 429 (+ Retry-After)        -> RateLimitedError(retry_after)
    connection/TLS/timeout errors   -> TransportError
    empty or non-JSON body          -> DecodeError
    anything else                   -> OtherApiError

The transport never retries, refreshes or sleeps: spotipy is built with
requests_session=False so no urllib3 retry adapter is mounted, and the
retry policy wrapping each page task decides what happens next.
"""

from typing import Any, Callable

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from spot_browser.core.exceptions import (
    ApiError,
    DecodeError,
    OtherApiError,
    RateLimitedError,
    TransportError,
    UnauthorizedError,
)
from spot_browser.core.logger import get_logger
from spot_browser.spotify.token_store import TokenStore

logger = get_logger(__name__)


REQUEST_TIMEOUT = 20

# Upstream caps for batched id lookups
MAX_TRACK_IDS = 50
MAX_FEATURE_IDS = 100


class _TokenStoreAuth:
    """spotipy auth_manager that hands out whatever the TokenStore holds."""

    def __init__(self, token_store: TokenStore) -> None:
        self._token_store = token_store

    def get_access_token(self, as_dict: bool = False) -> str:
        access = self._token_store.read_access()
        if not access:
            raise UnauthorizedError("Not logged in: no access token available")
        return access


class Transport:
    """
    One method per upstream endpoint used by the browser.

    Args:
        token_store: Source of the bearer token.
        timeout: Per-request timeout in seconds.
        client: Pre-built spotipy client (tests inject a mock).
    """

    def __init__(
        self,
        token_store: TokenStore,
        timeout: int = REQUEST_TIMEOUT,
        client: spotipy.Spotify | None = None
    ) -> None:
        self._token_store = token_store
        self._client = client or spotipy.Spotify(
            auth_manager=_TokenStoreAuth(token_store),
            requests_session=False,
            requests_timeout=timeout,
            retries=0,
            status_retries=0,
        )

    def call(self, endpoint: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one spotipy call, translating every failure into an ApiError.

        Args:
            endpoint: Bound spotipy method.

        Returns:
            The decoded JSON payload.
        """
        name = getattr(endpoint, "__name__", "request")
        try:
            result = endpoint(*args, **kwargs)
        except ApiError:
            raise
        except SpotifyException as e:
            raise _map_spotify_exception(name, e) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"Network error calling {name}: {e}",
                details={"endpoint": name, "original_error": str(e)}
            ) from e
        except ValueError as e:
            raise DecodeError(
                f"Invalid response from {name}: {e}",
                details={"endpoint": name, "original_error": str(e)}
            ) from e

        if result is None:
            raise DecodeError(f"Empty response from {name}", details={"endpoint": name})
        return result

    # -- library -------------------------------------------------------

    def saved_tracks(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_saved_tracks, limit=limit, offset=offset)

    def saved_albums(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_saved_albums, limit=limit, offset=offset)

    def saved_shows(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_saved_shows, limit=limit, offset=offset)

    def saved_playlists(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_playlists, limit=limit, offset=offset)

    def followed_artists(self, limit: int, after: str | None) -> dict:
        return self.call(self._client.current_user_followed_artists, limit=limit, after=after)

    # -- personalization -----------------------------------------------

    def top_tracks(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_top_tracks, limit=limit, offset=offset)

    def top_artists(self, limit: int, offset: int) -> dict:
        return self.call(self._client.current_user_top_artists, limit=limit, offset=offset)

    def recently_played(self, limit: int) -> dict:
        return self.call(self._client.current_user_recently_played, limit=limit)

    def recommendations(
        self,
        seed_artists: list[str],
        seed_genres: list[str],
        seed_tracks: list[str],
        limit: int,
        **tunables: Any
    ) -> dict:
        return self.call(
            self._client.recommendations,
            seed_artists=seed_artists or None,
            seed_genres=seed_genres or None,
            seed_tracks=seed_tracks or None,
            limit=limit,
            **tunables,
        )

    # -- browse --------------------------------------------------------

    def new_releases(self, limit: int, offset: int) -> dict:
        return self.call(self._client.new_releases, limit=limit, offset=offset)

    def featured_playlists(self, limit: int, offset: int) -> dict:
        return self.call(self._client.featured_playlists, limit=limit, offset=offset)

    def categories(self, limit: int, offset: int) -> dict:
        return self.call(self._client.categories, limit=limit, offset=offset)

    def category_playlists(self, category_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.category_playlists, category_id=category_id, limit=limit, offset=offset)

    # -- entity children -----------------------------------------------

    def user_playlists(self, user_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.user_playlists, user_id, limit=limit, offset=offset)

    def artist_albums(self, artist_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.artist_albums, artist_id, limit=limit, offset=offset)

    def artist_top_tracks(self, artist_id: str) -> dict:
        return self.call(self._client.artist_top_tracks, artist_id)

    def related_artists(self, artist_id: str) -> dict:
        return self.call(self._client.artist_related_artists, artist_id)

    def album(self, album_id: str) -> dict:
        return self.call(self._client.album, album_id)

    def album_tracks(self, album_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.album_tracks, album_id, limit=limit, offset=offset)

    def playlist_items(self, playlist_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.playlist_items, playlist_id, limit=limit, offset=offset)

    def show_episodes(self, show_id: str, limit: int, offset: int) -> dict:
        return self.call(self._client.show_episodes, show_id, limit=limit, offset=offset)

    # -- lookups -------------------------------------------------------

    def tracks(self, track_ids: list[str]) -> list[dict]:
        """Full track objects for up to any number of ids, batched upstream."""
        result: list[dict] = []
        for start in range(0, len(track_ids), MAX_TRACK_IDS):
            batch = track_ids[start:start + MAX_TRACK_IDS]
            payload = self.call(self._client.tracks, batch)
            result.extend(t for t in payload.get("tracks", []) if t)
        return result

    def audio_features(self, track_ids: list[str]) -> list[dict]:
        result: list[dict] = []
        for start in range(0, len(track_ids), MAX_FEATURE_IDS):
            batch = track_ids[start:start + MAX_FEATURE_IDS]
            payload = self.call(self._client.audio_features, batch)
            result.extend(f for f in payload if f)
        return result

    # -- playback ------------------------------------------------------

    def add_to_queue(self, uri: str) -> None:
        try:
            self._client.add_to_queue(uri)
        except SpotifyException as e:
            raise _map_spotify_exception("add_to_queue", e) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error calling add_to_queue: {e}") from e


def _map_spotify_exception(endpoint: str, error: SpotifyException) -> ApiError:
    status = error.http_status
    message = error.msg if hasattr(error, "msg") else str(error)
    details = {"endpoint": endpoint, "http_status": status, "reason": getattr(error, "reason", None)}

    if status == 401:
        return UnauthorizedError(f"Unauthorized: {message}", details=details)
    if status == 429:
        retry_after = _parse_retry_after(error.headers)
        return RateLimitedError(
            f"Rate limited calling {endpoint}",
            retry_after=retry_after,
            details=details,
        )
    return OtherApiError(f"{endpoint} failed: {message}", details=details, http_status=status)


def _parse_retry_after(headers: Any) -> int | None:
    if not headers:
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None
