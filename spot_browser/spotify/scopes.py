"""OAuth scopes understood by the Spotify accounts service."""

from enum import Enum
from typing import Iterable


class Scope(Enum):
    APP_REMOTE_CONTROL = "app-remote-control"
    PLAYLIST_MODIFY_PRIVATE = "playlist-modify-private"
    PLAYLIST_MODIFY_PUBLIC = "playlist-modify-public"
    PLAYLIST_READ_COLLABORATIVE = "playlist-read-collaborative"
    PLAYLIST_READ_PRIVATE = "playlist-read-private"
    STREAMING = "streaming"
    UGC_IMAGE_UPLOAD = "ugc-image-upload"
    USER_FOLLOW_MODIFY = "user-follow-modify"
    USER_FOLLOW_READ = "user-follow-read"
    USER_LIBRARY_MODIFY = "user-library-modify"
    USER_LIBRARY_READ = "user-library-read"
    USER_MODIFY_PLAYBACK_STATE = "user-modify-playback-state"
    USER_READ_CURRENTLY_PLAYING = "user-read-currently-playing"
    USER_READ_EMAIL = "user-read-email"
    USER_READ_PLAYBACK_POSITION = "user-read-playback-position"
    USER_READ_PLAYBACK_STATE = "user-read-playback-state"
    USER_READ_PRIVATE = "user-read-private"
    USER_READ_RECENTLY_PLAYED = "user-read-recently-played"
    USER_TOP_READ = "user-top-read"

    @staticmethod
    def stringify(scopes: Iterable["Scope"]) -> str:
        """Space separated scope string as expected by the authorize endpoint."""
        return " ".join(scope.value for scope in scopes)

    @staticmethod
    def parse(value: str | Iterable[str] | None) -> frozenset[str]:
        if not value:
            return frozenset()
        if isinstance(value, str):
            value = value.split()
        return frozenset(value)


# Everything the browser needs: library/follow reads for the loaders,
# playback state for the queue, modify scopes for save/follow actions.
BROWSER_SCOPES = (
    Scope.USER_FOLLOW_READ,
    Scope.USER_READ_RECENTLY_PLAYED,
    Scope.USER_READ_PLAYBACK_STATE,
    Scope.USER_READ_PLAYBACK_POSITION,
    Scope.USER_TOP_READ,
    Scope.USER_LIBRARY_READ,
    Scope.USER_MODIFY_PLAYBACK_STATE,
    Scope.USER_READ_CURRENTLY_PLAYING,
    Scope.PLAYLIST_READ_PRIVATE,
    Scope.PLAYLIST_READ_COLLABORATIVE,
    Scope.USER_LIBRARY_MODIFY,
    Scope.PLAYLIST_MODIFY_PRIVATE,
    Scope.PLAYLIST_MODIFY_PUBLIC,
    Scope.USER_FOLLOW_MODIFY,
)
