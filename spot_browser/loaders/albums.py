"""Loaders producing album rows."""

from typing import Any

from spot_browser.loaders.base import ContainerLoader, expect_cursor, offset_page
from spot_browser.spotify.models import Album, EntityKind, NumericCursor, Page, PageCursor
from spot_browser.spotify.transport import Transport


def _saved_album(entry: dict[str, Any]) -> Album:
    return Album.from_spotify_api(entry["album"], added_at=entry.get("added_at"))


class SavedAlbumsLoader(ContainerLoader[Album]):
    NAME = "saved albums"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Album]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.saved_albums(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, _saved_album, self.PAGE_LIMIT))


class NewReleasesLoader(ContainerLoader[Album]):
    NAME = "new releases"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Album]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.new_releases(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload["albums"], Album.from_spotify_api, self.PAGE_LIMIT))


class ArtistAlbumsLoader(ContainerLoader[Album]):
    NAME = "artist albums"
    PARENT_KIND = EntityKind.ARTIST

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Album]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.artist_albums(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Album.from_spotify_api, self.PAGE_LIMIT))
