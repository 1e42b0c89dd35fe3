"""
Data models for browsing Spotify content.

Three small families live here:

    Parent ids - what a container lists:
        None            global feeds (saved, top, recent, queue, ...)
        EntityId        children of one entity (an album's tracks, ...)
        Params          recommendation seeds and tunables

    Page cursors - where the next page starts:
        NumericCursor   offset based pagination
        OpaqueCursor    "after" cursor based pagination
        UnitCursor      single-shot lists

    Items - the rows shown in a container. Every item exposes the same
    capabilities: id, uri, name, images, duration_ms, duration_exact
    and display_key().

Items are frozen dataclasses built with from_spotify_api(), which raises
KeyError/TypeError on malformed payloads; loaders turn those into
DecodeError.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Iterable, Mapping, TypeVar


class EntityKind(Enum):
    """Kinds of entity that can own a list of children."""
    ARTIST = "artist"
    ALBUM = "album"
    PLAYLIST = "playlist"
    SHOW = "show"
    CATEGORY = "category"
    USER = "user"


@dataclass(frozen=True)
class EntityId:
    """Identifies one upstream entity, e.g. EntityId(EntityKind.ALBUM, "4aaw...")."""
    kind: EntityKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class Params:
    """
    Hashable, ordered key/value parameters (recommendation seeds, filters).

    Values are strings; list-valued seeds are comma separated, matching
    how the upstream API takes them.
    """
    items: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Params":
        pairs = []
        for key in sorted(mapping):
            value = mapping[key]
            if isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            pairs.append((str(key), str(value)))
        return cls(tuple(pairs))

    def as_dict(self) -> dict[str, str]:
        return dict(self.items)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.as_dict().get(key, default)


ParentId = EntityId | Params | None


@dataclass(frozen=True)
class NumericCursor:
    offset: int = 0


@dataclass(frozen=True)
class OpaqueCursor:
    """
    Cursor token; None requests the first page.

    position counts the items delivered before this cursor, so progress
    can be reported even though the upstream has no numeric offset.
    """
    cursor: str | None = None
    position: int = 0


@dataclass(frozen=True)
class UnitCursor:
    pass


PageCursor = NumericCursor | OpaqueCursor | UnitCursor


@dataclass(frozen=True)
class ImageRef:
    """One rendition of an image as advertised by the API."""
    url: str
    width: int = 0
    height: int = 0

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "ImageRef":
        return cls(
            url=data["url"],
            width=data.get("width") or 0,
            height=data.get("height") or 0,
        )


def _images(data: dict[str, Any], key: str = "images") -> tuple[ImageRef, ...]:
    return tuple(ImageRef.from_spotify_api(img) for img in (data.get(key) or []))


def _names(entries: Iterable[dict[str, Any]] | None) -> tuple[str, ...]:
    return tuple(e["name"] for e in (entries or []))


@dataclass(frozen=True)
class Track:
    """
    A playable track.

    Attributes:
        id: Spotify track id (None for local files).
        uri: spotify:track:... uri.
        name: Track title.
        duration_ms: Exact length in milliseconds.
        artists: Artist names in credit order.
        album: Album name, empty when the payload is a simplified track.
        album_id: Album id if embedded.
        images: Album cover renditions.
        track_number: Position on the album (1-based).
        explicit: Explicit content flag.
        added_at: When the track was saved/added, if the list reports it.
    """
    id: str | None
    uri: str
    name: str
    duration_ms: int
    artists: tuple[str, ...] = ()
    album: str = ""
    album_id: str | None = None
    images: tuple[ImageRef, ...] = ()
    track_number: int = 0
    explicit: bool = False
    added_at: str | None = None

    duration_exact = True

    @classmethod
    def from_spotify_api(
        cls,
        track_data: dict[str, Any],
        added_at: str | None = None,
        album_data: dict[str, Any] | None = None
    ) -> "Track":
        """
        Build a Track from a full or simplified track object.

        Args:
            track_data: Track object (saved/playlist wrappers already unwrapped).
            added_at: Timestamp from the wrapping list entry, if any.
            album_data: Parent album when the track object is simplified
                        (album tracks endpoint), used for name and covers.
        """
        album_info = track_data.get("album") or album_data or {}
        return cls(
            id=track_data.get("id"),
            uri=track_data["uri"],
            name=track_data["name"],
            duration_ms=track_data["duration_ms"],
            artists=_names(track_data.get("artists")),
            album=album_info.get("name", ""),
            album_id=album_info.get("id"),
            images=_images(album_info),
            track_number=track_data.get("track_number") or 0,
            explicit=track_data.get("explicit", False),
            added_at=added_at,
        )

    @property
    def artist(self) -> str:
        return ", ".join(self.artists)

    def display_key(self) -> str:
        return f"{self.name} {self.artist} {self.album}"


@dataclass(frozen=True)
class PlaylistEntry:
    """
    One row of a playlist.

    The track can be missing (removed from the catalog, unavailable in the
    market); such a row has no duration and taints exactness.
    """
    track: Track | None
    added_at: str | None = None
    added_by: str | None = None

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "PlaylistEntry":
        track_data = data.get("track")
        track = None
        if track_data and track_data.get("type", "track") == "track" and track_data.get("uri"):
            track = Track.from_spotify_api(track_data, added_at=data.get("added_at"))
        added_by = (data.get("added_by") or {}).get("id")
        return cls(track=track, added_at=data.get("added_at"), added_by=added_by)

    @property
    def id(self) -> str | None:
        return self.track.id if self.track else None

    @property
    def uri(self) -> str:
        return self.track.uri if self.track else ""

    @property
    def name(self) -> str:
        return self.track.name if self.track else ""

    @property
    def images(self) -> tuple[ImageRef, ...]:
        return self.track.images if self.track else ()

    @property
    def duration_ms(self) -> int:
        return self.track.duration_ms if self.track else 0

    @property
    def duration_exact(self) -> bool:
        return self.track is not None

    def display_key(self) -> str:
        return self.track.display_key() if self.track else ""


@dataclass(frozen=True)
class Episode:
    """A podcast episode."""
    id: str
    uri: str
    name: str
    duration_ms: int
    release_date: str = ""
    description: str = ""
    images: tuple[ImageRef, ...] = ()

    duration_exact = True

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Episode":
        return cls(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            duration_ms=data["duration_ms"],
            release_date=data.get("release_date") or "",
            description=data.get("description") or "",
            images=_images(data),
        )

    def display_key(self) -> str:
        return self.name


@dataclass(frozen=True)
class Album:
    """
    An album, full or simplified.

    duration_ms sums the embedded tracks. It is exact only when the
    payload embeds every track of the album.
    """
    id: str
    uri: str
    name: str
    artists: tuple[str, ...] = ()
    album_type: str = "album"
    release_date: str = ""
    total_tracks: int = 0
    images: tuple[ImageRef, ...] = ()
    duration_ms: int = 0
    duration_exact: bool = False
    added_at: str | None = None

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any], added_at: str | None = None) -> "Album":
        tracks_page = data.get("tracks") or {}
        embedded = tracks_page.get("items") or []
        total_tracks = data.get("total_tracks") or tracks_page.get("total") or 0
        duration_ms = sum(t.get("duration_ms") or 0 for t in embedded)
        return cls(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            artists=_names(data.get("artists")),
            album_type=data.get("album_type") or "album",
            release_date=data.get("release_date") or "",
            total_tracks=total_tracks,
            images=_images(data),
            duration_ms=duration_ms,
            duration_exact=bool(embedded) and len(embedded) == total_tracks,
            added_at=added_at,
        )

    @property
    def year(self) -> str:
        return self.release_date[:4]

    def display_key(self) -> str:
        return f"{self.name} {', '.join(self.artists)}"


@dataclass(frozen=True)
class Artist:
    """An artist. Artists have no duration."""
    id: str
    uri: str
    name: str
    genres: tuple[str, ...] = ()
    followers: int = 0
    popularity: int = 0
    images: tuple[ImageRef, ...] = ()

    duration_ms = 0
    duration_exact = False

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            genres=tuple(data.get("genres") or ()),
            followers=(data.get("followers") or {}).get("total") or 0,
            popularity=data.get("popularity") or 0,
            images=_images(data),
        )

    def display_key(self) -> str:
        return f"{self.name} {' '.join(self.genres)}"


@dataclass(frozen=True)
class Playlist:
    """A (simplified) playlist. Its duration is unknown without its tracks."""
    id: str
    uri: str
    name: str
    owner: str = ""
    description: str = ""
    tracks_total: int = 0
    collaborative: bool = False
    public: bool | None = None
    images: tuple[ImageRef, ...] = ()

    duration_ms = 0
    duration_exact = False

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Playlist":
        owner = data.get("owner") or {}
        return cls(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            owner=owner.get("display_name") or owner.get("id") or "",
            description=data.get("description") or "",
            tracks_total=(data.get("tracks") or {}).get("total") or 0,
            collaborative=data.get("collaborative", False),
            public=data.get("public"),
            images=_images(data),
        )

    def display_key(self) -> str:
        return f"{self.name} {self.owner}"


@dataclass(frozen=True)
class Show:
    """A podcast show."""
    id: str
    uri: str
    name: str
    publisher: str = ""
    total_episodes: int = 0
    images: tuple[ImageRef, ...] = ()

    duration_ms = 0
    duration_exact = False

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Show":
        return cls(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            publisher=data.get("publisher") or "",
            total_episodes=data.get("total_episodes") or 0,
            images=_images(data),
        )

    def display_key(self) -> str:
        return f"{self.name} {self.publisher}"


@dataclass(frozen=True)
class Category:
    """A browse category (uses "icons" instead of "images")."""
    id: str
    name: str
    images: tuple[ImageRef, ...] = ()

    duration_ms = 0
    duration_exact = False

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Category":
        return cls(id=data["id"], name=data["name"], images=_images(data, "icons"))

    @property
    def uri(self) -> str:
        return f"spotify:category:{self.id}"

    def display_key(self) -> str:
        return self.name


@dataclass(frozen=True)
class TrackFeatures:
    """Audio features shown next to tracks (BPM and a few moods)."""
    id: str
    tempo: float = 0.0
    energy: float = 0.0
    danceability: float = 0.0
    valence: float = 0.0

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "TrackFeatures":
        return cls(
            id=data["id"],
            tempo=float(data.get("tempo") or 0.0),
            energy=float(data.get("energy") or 0.0),
            danceability=float(data.get("danceability") or 0.0),
            valence=float(data.get("valence") or 0.0),
        )

    @property
    def bpm(self) -> int:
        return round(self.tempo)


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """
    One page of items plus pagination bookkeeping.

    Attributes:
        items: Items in upstream order.
        total: Total number of items in the whole list, 0 if unknown.
        num_offset: Index of the first item of this page, 0 if not numeric.
        next: Cursor of the following page; None ends the stream.
    """
    items: list[T] = field(default_factory=list)
    total: int = 0
    num_offset: int = 0
    next: PageCursor | None = None

    @property
    def exhausted(self) -> bool:
        return self.next is None

    @property
    def duration_ms(self) -> int:
        return sum(item.duration_ms for item in self.items)

    @property
    def duration_exact(self) -> bool:
        return all(item.duration_exact for item in self.items)

    def progress(self) -> float | None:
        """Fraction of the whole list loaded once this page is in, None if unknown."""
        if self.total <= 0:
            return None
        return min(1.0, (self.num_offset + len(self.items)) / self.total)
