"""
Loaders module for spot-browser.

Page loaders (one class per kind of list) and the thumbnail image cache.

LOADERS maps the short names used on the command line to loader classes.
"""

from spot_browser.loaders.albums import ArtistAlbumsLoader, NewReleasesLoader, SavedAlbumsLoader
from spot_browser.loaders.artists import FollowedArtistsLoader, RelatedArtistsLoader, TopArtistsLoader
from spot_browser.loaders.base import DEFAULT_PAGE_LIMIT, ContainerLoader, next_epoch
from spot_browser.loaders.categories import CategoriesLoader
from spot_browser.loaders.images import ImageCache, ImageConverter, ThumbDiskCache, best_thumb
from spot_browser.loaders.playlists import (
    CategoryPlaylistsLoader,
    FeaturedPlaylistsLoader,
    SavedPlaylistsLoader,
    UserPlaylistsLoader,
)
from spot_browser.loaders.shows import SavedShowsLoader, ShowEpisodesLoader
from spot_browser.loaders.tracks import (
    AlbumTracksLoader,
    ArtistTopTracksLoader,
    PlaylistTracksLoader,
    QueueTracksLoader,
    RecentTracksLoader,
    RecommendedTracksLoader,
    SavedTracksLoader,
    TopTracksLoader,
)

LOADERS: dict[str, type[ContainerLoader]] = {
    "saved-tracks": SavedTracksLoader,
    "top-tracks": TopTracksLoader,
    "recent": RecentTracksLoader,
    "queue": QueueTracksLoader,
    "album-tracks": AlbumTracksLoader,
    "playlist-tracks": PlaylistTracksLoader,
    "artist-top-tracks": ArtistTopTracksLoader,
    "recommendations": RecommendedTracksLoader,
    "saved-albums": SavedAlbumsLoader,
    "new-releases": NewReleasesLoader,
    "artist-albums": ArtistAlbumsLoader,
    "followed-artists": FollowedArtistsLoader,
    "top-artists": TopArtistsLoader,
    "related-artists": RelatedArtistsLoader,
    "playlists": SavedPlaylistsLoader,
    "featured": FeaturedPlaylistsLoader,
    "category-playlists": CategoryPlaylistsLoader,
    "user-playlists": UserPlaylistsLoader,
    "shows": SavedShowsLoader,
    "episodes": ShowEpisodesLoader,
    "categories": CategoriesLoader,
}

__all__ = [
    "LOADERS",
    "DEFAULT_PAGE_LIMIT",
    "ContainerLoader",
    "next_epoch",
    "ImageCache",
    "ImageConverter",
    "ThumbDiskCache",
    "best_thumb",
    "ArtistAlbumsLoader",
    "NewReleasesLoader",
    "SavedAlbumsLoader",
    "FollowedArtistsLoader",
    "RelatedArtistsLoader",
    "TopArtistsLoader",
    "CategoriesLoader",
    "CategoryPlaylistsLoader",
    "FeaturedPlaylistsLoader",
    "SavedPlaylistsLoader",
    "UserPlaylistsLoader",
    "SavedShowsLoader",
    "ShowEpisodesLoader",
    "AlbumTracksLoader",
    "ArtistTopTracksLoader",
    "PlaylistTracksLoader",
    "QueueTracksLoader",
    "RecentTracksLoader",
    "RecommendedTracksLoader",
    "SavedTracksLoader",
    "TopTracksLoader",
]
