"""
Client-side mirror of the playback queue.

The Web API can add to the user's queue but (historically) cannot list
it, so the browser remembers which uris it enqueued. The mirror only
changes through enqueue() (append) and dequeue() (filter out).
"""

import threading
from typing import Iterable

from spot_browser.core.logger import get_logger
from spot_browser.spotify.transport import Transport

logger = get_logger(__name__)


class PlaybackQueue:
    """Ordered list of queued track uris."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._uris: list[str] = []
        self._lock = threading.Lock()

    def enqueue(self, uris: Iterable[str]) -> None:
        """
        Add uris to the upstream queue, then to the local mirror.

        Uris are pushed upstream one by one; a failure stops at that uri
        (raising its ApiError) and only the uris already accepted upstream
        are mirrored.
        """
        for uri in uris:
            self._transport.add_to_queue(uri)
            with self._lock:
                self._uris.append(uri)
            logger.debug(f"Enqueued {uri}")

    def dequeue(self, uris: Iterable[str]) -> None:
        removed = set(uris)
        with self._lock:
            self._uris = [uri for uri in self._uris if uri not in removed]

    def uris(self) -> list[str]:
        with self._lock:
            return list(self._uris)

    def __len__(self) -> int:
        with self._lock:
            return len(self._uris)
