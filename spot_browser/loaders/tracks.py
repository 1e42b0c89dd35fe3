"""Loaders producing track rows."""

from typing import Any

from spot_browser.loaders.base import ContainerLoader, expect_cursor, list_page, offset_page
from spot_browser.spotify.models import (
    EntityKind,
    NumericCursor,
    Page,
    PageCursor,
    Params,
    PlaylistEntry,
    Track,
    UnitCursor,
)
from spot_browser.spotify.queue import PlaybackQueue
from spot_browser.spotify.transport import Transport


# Recommendation seeds the upstream accepts, at most five of each
SEED_KEYS = ("seed_artists", "seed_genres", "seed_tracks")
MAX_SEEDS = 5


def _saved_track(entry: dict[str, Any]) -> Track:
    return Track.from_spotify_api(entry["track"], added_at=entry.get("added_at"))


def _played_track(entry: dict[str, Any]) -> Track:
    return Track.from_spotify_api(entry["track"], added_at=entry.get("played_at"))


class SavedTracksLoader(ContainerLoader[Track]):
    NAME = "saved tracks"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.saved_tracks(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, _saved_track, self.PAGE_LIMIT))


class TopTracksLoader(ContainerLoader[Track]):
    NAME = "top tracks"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.top_tracks(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Track.from_spotify_api, self.PAGE_LIMIT))


class RecentTracksLoader(ContainerLoader[Track]):
    """Recently played tracks; the upstream returns one list of up to 50."""

    NAME = "recent tracks"
    PAGE_LIMIT = 50
    CURSOR = UnitCursor

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        expect_cursor(cursor, UnitCursor)
        payload = transport.recently_played(limit=self.PAGE_LIMIT)
        return self.decode(lambda: list_page(payload["items"], _played_track))


class AlbumTracksLoader(ContainerLoader[Track]):
    NAME = "album tracks"
    PAGE_LIMIT = 10
    PARENT_KIND = EntityKind.ALBUM

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.album_tracks(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Track.from_spotify_api, self.PAGE_LIMIT))


class PlaylistTracksLoader(ContainerLoader[PlaylistEntry]):
    NAME = "playlist tracks"
    PAGE_LIMIT = 10
    PARENT_KIND = EntityKind.PLAYLIST

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[PlaylistEntry]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.playlist_items(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, PlaylistEntry.from_spotify_api, self.PAGE_LIMIT))


class ArtistTopTracksLoader(ContainerLoader[Track]):
    NAME = "artist top tracks"
    CURSOR = UnitCursor
    PARENT_KIND = EntityKind.ARTIST

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        expect_cursor(cursor, UnitCursor)
        payload = transport.artist_top_tracks(self.entity_id)
        return self.decode(lambda: list_page(payload["tracks"], Track.from_spotify_api))


class QueueTracksLoader(ContainerLoader[Track]):
    """
    Tracks in the client-side playback queue mirror.

    The queue has to be bound at construction, so controllers are given
    functools.partial(QueueTracksLoader, queue=queue) as loader factory.
    """

    NAME = "queue"
    CURSOR = UnitCursor

    def __init__(self, parent_id: None = None, queue: PlaybackQueue | None = None) -> None:
        super().__init__(parent_id)
        if queue is None:
            raise ValueError("QueueTracksLoader needs a PlaybackQueue")
        self.queue = queue

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        expect_cursor(cursor, UnitCursor)
        uris = self.queue.uris()
        if not uris:
            return Page()
        ids = [uri.rsplit(":", 1)[-1] for uri in uris]
        payload = transport.tracks(ids)
        return self.decode(lambda: list_page(payload, Track.from_spotify_api))


class RecommendedTracksLoader(ContainerLoader[Track]):
    """
    Recommendations for a Params parent.

    seed_artists, seed_genres and seed_tracks are comma separated lists
    truncated to five entries each; every other key (target_tempo,
    min_energy, ...) is passed through as a tunable.
    """

    NAME = "recommended tracks"
    PAGE_LIMIT = 100
    CURSOR = UnitCursor
    PARENT_KIND = Params

    def seeds(self) -> tuple[dict[str, list[str]], dict[str, str]]:
        params = self.parent_id.as_dict()
        seeds = {}
        for key in SEED_KEYS:
            raw = params.pop(key, "")
            seeds[key] = [s for s in raw.split(",") if s][:MAX_SEEDS]
        return seeds, params

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Track]:
        expect_cursor(cursor, UnitCursor)
        seeds, tunables = self.seeds()
        payload = transport.recommendations(limit=self.PAGE_LIMIT, **seeds, **tunables)
        return self.decode(lambda: list_page(payload["tracks"], Track.from_spotify_api))
