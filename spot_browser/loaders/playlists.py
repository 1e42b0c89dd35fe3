"""Loaders producing playlist rows."""

from spot_browser.loaders.base import ContainerLoader, expect_cursor, offset_page
from spot_browser.spotify.models import EntityKind, NumericCursor, Page, PageCursor, Playlist
from spot_browser.spotify.transport import Transport


class SavedPlaylistsLoader(ContainerLoader[Playlist]):
    NAME = "playlists"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Playlist]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.saved_playlists(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Playlist.from_spotify_api, self.PAGE_LIMIT))


class FeaturedPlaylistsLoader(ContainerLoader[Playlist]):
    NAME = "featured playlists"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Playlist]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.featured_playlists(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload["playlists"], Playlist.from_spotify_api, self.PAGE_LIMIT))


class CategoryPlaylistsLoader(ContainerLoader[Playlist]):
    NAME = "category playlists"
    PARENT_KIND = EntityKind.CATEGORY

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Playlist]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.category_playlists(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload["playlists"], Playlist.from_spotify_api, self.PAGE_LIMIT))


class UserPlaylistsLoader(ContainerLoader[Playlist]):
    NAME = "user playlists"
    PARENT_KIND = EntityKind.USER

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Playlist]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.user_playlists(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Playlist.from_spotify_api, self.PAGE_LIMIT))
