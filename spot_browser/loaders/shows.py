"""Loaders for podcast shows and their episodes."""

from typing import Any

from spot_browser.loaders.base import ContainerLoader, expect_cursor, offset_page
from spot_browser.spotify.models import EntityKind, Episode, NumericCursor, Page, PageCursor, Show
from spot_browser.spotify.transport import Transport


def _saved_show(entry: dict[str, Any]) -> Show:
    return Show.from_spotify_api(entry["show"])


class SavedShowsLoader(ContainerLoader[Show]):
    NAME = "shows"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Show]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.saved_shows(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, _saved_show, self.PAGE_LIMIT))


class ShowEpisodesLoader(ContainerLoader[Episode]):
    NAME = "episodes"
    PARENT_KIND = EntityKind.SHOW

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Episode]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.show_episodes(self.entity_id, limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload, Episode.from_spotify_api, self.PAGE_LIMIT))
