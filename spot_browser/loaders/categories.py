"""Browse categories loader."""

from spot_browser.loaders.base import ContainerLoader, expect_cursor, offset_page
from spot_browser.spotify.models import Category, NumericCursor, Page, PageCursor
from spot_browser.spotify.transport import Transport


class CategoriesLoader(ContainerLoader[Category]):
    NAME = "categories"

    def load_page(self, transport: Transport, cursor: PageCursor) -> Page[Category]:
        offset = expect_cursor(cursor, NumericCursor).offset
        payload = transport.categories(limit=self.PAGE_LIMIT, offset=offset)
        return self.decode(lambda: offset_page(payload["categories"], Category.from_spotify_api, self.PAGE_LIMIT))
