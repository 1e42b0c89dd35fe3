"""Test the page loaders"""

from unittest.mock import Mock

import pytest

from conftest import make_track, offset_payload
from spot_browser.core import DecodeError
from spot_browser.loaders import (
    LOADERS,
    AlbumTracksLoader,
    ArtistAlbumsLoader,
    ArtistTopTracksLoader,
    CategoriesLoader,
    CategoryPlaylistsLoader,
    FeaturedPlaylistsLoader,
    FollowedArtistsLoader,
    NewReleasesLoader,
    PlaylistTracksLoader,
    QueueTracksLoader,
    RecentTracksLoader,
    RecommendedTracksLoader,
    RelatedArtistsLoader,
    SavedShowsLoader,
    SavedTracksLoader,
    ShowEpisodesLoader,
    TopArtistsLoader,
)
from spot_browser.spotify import (
    EntityId,
    EntityKind,
    NumericCursor,
    OpaqueCursor,
    Params,
    PlaybackQueue,
    UnitCursor,
)


def artist(n):
    return {"id": f"ar{n}", "uri": f"spotify:artist:ar{n}", "name": f"Artist {n}"}


def album(n):
    return {"id": f"al{n}", "uri": f"spotify:album:al{n}", "name": f"Album {n}", "total_tracks": 10}


def playlist(n):
    return {"id": f"p{n}", "uri": f"spotify:playlist:p{n}", "name": f"Playlist {n}", "owner": {"id": "me"}}


@pytest.fixture
def transport():
    return Mock()


class TestEpochs:
    """Test loader identity"""

    def test_every_loader_gets_a_new_epoch(self):
        """Test epochs are unique across instances"""
        first = SavedTracksLoader()
        second = SavedTracksLoader()
        assert first.epoch != second.epoch

    def test_renewed_keeps_parent_changes_epoch(self):
        """Test renewed() clones the loader under a new epoch"""
        loader = AlbumTracksLoader(EntityId(EntityKind.ALBUM, "a1"))
        renewed = loader.renewed()

        assert type(renewed) is AlbumTracksLoader
        assert renewed.parent_id == loader.parent_id
        assert renewed.epoch > loader.epoch


class TestParentValidation:
    """Test parent id checks"""

    def test_global_feed_rejects_parent(self):
        with pytest.raises(ValueError):
            SavedTracksLoader(EntityId(EntityKind.ALBUM, "a1"))

    def test_wrong_entity_kind(self):
        """Test an album loader refuses a playlist id"""
        with pytest.raises(ValueError, match="album"):
            AlbumTracksLoader(EntityId(EntityKind.PLAYLIST, "p1"))

    def test_missing_entity(self):
        with pytest.raises(ValueError):
            PlaylistTracksLoader(None)

    def test_params_loader_needs_params(self):
        with pytest.raises(ValueError):
            RecommendedTracksLoader(EntityId(EntityKind.ARTIST, "x"))

    def test_queue_loader_needs_queue(self):
        with pytest.raises(ValueError):
            QueueTracksLoader()

    def test_entity_id_without_entity_parent(self):
        """Test entity_id on a global feed raises instead of returning garbage"""
        with pytest.raises(TypeError, match="no entity id"):
            SavedTracksLoader().entity_id

    def test_artist_loaders_use_round_thumbnails(self):
        assert FollowedArtistsLoader.ROUND_THUMBS
        assert TopArtistsLoader.ROUND_THUMBS
        assert RelatedArtistsLoader.ROUND_THUMBS
        assert not SavedTracksLoader.ROUND_THUMBS

    def test_wrong_cursor_type(self, transport):
        """Test a cursor of the wrong shape is rejected"""
        with pytest.raises(TypeError):
            SavedTracksLoader().load_page(transport, OpaqueCursor())


class TestOffsetLoaders:
    """Test offset-paginated loaders"""

    def test_saved_tracks_pages(self, transport):
        """Test the next cursor advances by the page limit"""
        entries = [{"added_at": "2024-01-01", "track": make_track(i)} for i in range(25)]
        transport.saved_tracks.return_value = offset_payload(entries, 0, 20)
        loader = SavedTracksLoader()

        page = loader.load_page(transport, loader.init_cursor())

        transport.saved_tracks.assert_called_once_with(limit=20, offset=0)
        assert len(page.items) == 20
        assert page.total == 25
        assert page.next == NumericCursor(20)
        assert page.items[0].added_at == "2024-01-01"

    def test_last_page_has_no_next(self, transport):
        entries = [{"track": make_track(i)} for i in range(25)]
        transport.saved_tracks.return_value = offset_payload(entries, 20, 20)

        page = SavedTracksLoader().load_page(transport, NumericCursor(20))

        assert len(page.items) == 5
        assert page.num_offset == 20
        assert page.exhausted

    def test_album_tracks(self, transport):
        """Test entity loaders pass their id"""
        transport.album_tracks.return_value = offset_payload([make_track(1)], 0, 10)
        loader = AlbumTracksLoader(EntityId(EntityKind.ALBUM, "a1"))

        loader.load_page(transport, NumericCursor(0))

        transport.album_tracks.assert_called_once_with("a1", limit=10, offset=0)

    def test_playlist_tracks_keep_missing_rows(self, transport):
        """Test unavailable playlist rows are kept as empty entries"""
        entries = [{"track": make_track(1)}, {"track": None}]
        transport.playlist_items.return_value = offset_payload(entries, 0, 10)

        page = PlaylistTracksLoader(EntityId(EntityKind.PLAYLIST, "p1")).load_page(transport, NumericCursor(0))

        assert len(page.items) == 2
        assert page.items[1].track is None
        assert not page.duration_exact

    @pytest.mark.parametrize("loader,method,wrapper,factory", [
        (NewReleasesLoader(), "new_releases", "albums", album),
        (FeaturedPlaylistsLoader(), "featured_playlists", "playlists", playlist),
        (CategoryPlaylistsLoader(EntityId(EntityKind.CATEGORY, "pop")), "category_playlists", "playlists", playlist),
        (CategoriesLoader(), "categories", "categories", lambda n: {"id": f"c{n}", "name": f"C{n}", "icons": []}),
    ])
    def test_wrapped_payloads(self, transport, loader, method, wrapper, factory):
        """Test browse endpoints unwrap their paging object"""
        getattr(transport, method).return_value = {wrapper: offset_payload([factory(1), factory(2)], 0, 20)}

        page = loader.load_page(transport, NumericCursor(0))

        assert page.items[0].name.endswith("1")
        assert page.total == 2

    def test_artist_albums(self, transport):
        transport.artist_albums.return_value = offset_payload([album(1)], 0, 20)
        page = ArtistAlbumsLoader(EntityId(EntityKind.ARTIST, "ar1")).load_page(transport, NumericCursor(0))
        assert page.items[0].id == "al1"

    def test_shows_and_episodes(self, transport):
        """Test saved shows unwrap their entries and episodes parse directly"""
        transport.saved_shows.return_value = offset_payload(
            [{"show": {"id": "s1", "uri": "spotify:show:s1", "name": "Pod"}}], 0, 20
        )
        transport.show_episodes.return_value = offset_payload(
            [{"id": "e1", "uri": "spotify:episode:e1", "name": "Ep", "duration_ms": 60000}], 0, 20
        )

        shows = SavedShowsLoader().load_page(transport, NumericCursor(0))
        episodes = ShowEpisodesLoader(EntityId(EntityKind.SHOW, "s1")).load_page(transport, NumericCursor(0))

        assert shows.items[0].name == "Pod"
        assert episodes.duration_ms == 60000


class TestCursorLoaders:
    """Test the followed artists cursor pagination"""

    def test_cursor_advances_with_position(self, transport):
        """Test the after cursor and position carry over between pages"""
        transport.followed_artists.side_effect = [
            {"artists": {"items": [artist(1), artist(2)], "total": 3, "next": "u", "cursors": {"after": "ar2"}}},
            {"artists": {"items": [artist(3)], "total": 3, "next": None, "cursors": {"after": None}}},
        ]
        loader = FollowedArtistsLoader()

        first = loader.load_page(transport, loader.init_cursor())
        second = loader.load_page(transport, first.next)

        assert first.next == OpaqueCursor("ar2", position=2)
        assert first.progress() == pytest.approx(2 / 3)
        assert second.num_offset == 2
        assert second.progress() == 1.0
        assert second.exhausted
        assert transport.followed_artists.call_args_list[1].kwargs == {"limit": 20, "after": "ar2"}

    def test_missing_total_is_unknown(self, transport):
        transport.followed_artists.return_value = {"artists": {"items": [artist(1)], "next": None}}
        page = FollowedArtistsLoader().load_page(transport, OpaqueCursor())
        assert page.progress() is None


class TestUnitLoaders:
    """Test single-shot loaders"""

    def test_recent_tracks(self, transport):
        """Test recently played returns one final page"""
        transport.recently_played.return_value = {
            "items": [{"played_at": "2024-01-01T10:00:00Z", "track": make_track(i)} for i in range(3)]
        }

        page = RecentTracksLoader().load_page(transport, UnitCursor())

        transport.recently_played.assert_called_once_with(limit=50)
        assert page.total == 3
        assert page.progress() == 1.0
        assert page.items[0].added_at == "2024-01-01T10:00:00Z"
        assert page.exhausted

    def test_artist_top_tracks_and_related(self, transport):
        transport.artist_top_tracks.return_value = {"tracks": [make_track(1)]}
        transport.related_artists.return_value = {"artists": [artist(1), artist(2)]}
        parent = EntityId(EntityKind.ARTIST, "ar1")

        tracks = ArtistTopTracksLoader(parent).load_page(transport, UnitCursor())
        related = RelatedArtistsLoader(parent).load_page(transport, UnitCursor())

        assert len(tracks.items) == 1
        assert len(related.items) == 2

    def test_recommendation_seeds_truncated(self, transport):
        """Test seeds are capped at five and tunables passed through"""
        transport.recommendations.return_value = {"tracks": [make_track(1)]}
        params = Params.from_mapping({
            "seed_genres": ["a", "b", "c", "d", "e", "f", "g"],
            "seed_artists": "x",
            "target_tempo": 120,
        })

        RecommendedTracksLoader(params).load_page(transport, UnitCursor())

        transport.recommendations.assert_called_once_with(
            limit=100,
            seed_artists=["x"],
            seed_genres=["a", "b", "c", "d", "e"],
            seed_tracks=[],
            target_tempo="120",
        )

    def test_queue_loader(self, transport):
        """Test queued uris are looked up as full tracks"""
        queue = PlaybackQueue(transport)
        queue.enqueue(["spotify:track:t1", "spotify:track:t2"])
        transport.tracks.return_value = [make_track(1), make_track(2)]

        page = QueueTracksLoader(queue=queue).load_page(transport, UnitCursor())

        transport.tracks.assert_called_once_with(["t1", "t2"])
        assert [t.id for t in page.items] == ["t1", "t2"]

    def test_empty_queue_skips_lookup(self, transport):
        page = QueueTracksLoader(queue=PlaybackQueue(transport)).load_page(transport, UnitCursor())
        transport.tracks.assert_not_called()
        assert page.items == []


class TestDecodeErrors:
    """Test malformed payloads"""

    @pytest.mark.parametrize("payload", [
        {},
        {"items": [{"track": {"name": "no uri"}}]},
        {"items": "not a list of dicts"},
    ])
    def test_malformed_saved_tracks(self, transport, payload):
        """Test shape errors become DecodeError"""
        transport.saved_tracks.return_value = payload
        with pytest.raises(DecodeError) as exc_info:
            SavedTracksLoader().load_page(transport, NumericCursor(0))
        assert exc_info.value.details["loader"] == "saved tracks"

    def test_malformed_wrapper(self, transport):
        transport.new_releases.return_value = {"playlists": {}}
        with pytest.raises(DecodeError):
            NewReleasesLoader().load_page(transport, NumericCursor(0))


class TestRegistry:
    """Test the LOADERS registry"""

    def test_names(self):
        """Test every command line name maps to a loader with a NAME"""
        assert "saved-tracks" in LOADERS
        assert all(cls.NAME for cls in LOADERS.values())
