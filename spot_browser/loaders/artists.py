"""Loaders producing artist rows."""

from spot_browser.loaders.base import ContainerLoader, cursor_page, expect_cursor, list_page, offset_page
from spot_browser.spotify.models import (
    Artist,
    EntityKind,
    NumericCursor,
    OpaqueCursor,
    Page,
    PageCursor,
    UnitCursor,
)
from spot_browser.spotify.transport import Transport


class FollowedArtistsLoader(ContainerLoader[Artist]):
    """Followed artists use cursor ("after") pagination."""

    NAME = "followed artists"
    CURSOR = OpaqueCursor
    ROUND_THUMBS = True

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Artist]:
        cursor = expect_cursor(cursor, OpaqueCursor)
        payload = transport.followed_artists(limit=self.PAGE_LIMIT, after=cursor.cursor)
        return self.decode(lambda: cursor_page(payload["artists"], Artist.from_spotify_api, cursor))


class TopArtistsLoader(ContainerLoader[Artist]):
    NAME = "top artists"
    ROUND_THUMBS = True

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Artist]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.top_artists(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Artist.from_spotify_api, self.PAGE_LIMIT))


class RelatedArtistsLoader(ContainerLoader[Artist]):
    NAME = "related artists"
    CURSOR = UnitCursor
    PARENT_KIND = EntityKind.ARTIST
    ROUND_THUMBS = True

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Artist]:
        expect_cursor(cursor, UnitCursor)
        payload = transport.related_artists(self.entity_id)
        return self.decode(lambda: list_page(payload["artists"], Artist.from_spotify_api))
