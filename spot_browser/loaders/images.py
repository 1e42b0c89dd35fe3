"""
Thumbnail image cache.

ImageCache maps an image URL to a decoded, resized Pillow image.

Single-flight:
    Concurrent get(url) calls for the same URL share one in-flight
    Future; only the first caller downloads. Every waiter receives the
    same Image object, or the same exception.

Lifetime:
    Successful results (including "no image") stay in memory for the
    whole run. Failures are handed to the waiters of that flight and then
    forgotten, so a later request may try again.

Layers, checked in order:
    1. in-memory map
    2. optional on-disk thumbnail cache (PNG files sharded by url hash)
    3. HTTP download with requests, then ImageConverter

Example:
    cache = ImageCache(ImageConverter(resize=64))
    url = best_thumb(album.images, 64)
    image = cache.get(url)  # blocking, call from a worker thread
"""

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Callable, Sequence

import requests
from PIL import Image, ImageDraw, UnidentifiedImageError

from spot_browser.core.exceptions import ApiError, DecodeError, OtherApiError, TransportError
from spot_browser.core.logger import get_logger
from spot_browser.spotify.models import ImageRef

logger = get_logger(__name__)


IMAGE_TIMEOUT = 20
THUMB_SUFFIX = ".png"


def best_thumb(images: Sequence[ImageRef], target_size: int) -> str | None:
    """
    Pick the rendition whose width is closest to target_size.

    Renditions without a width fall back to their height. Ties go to the
    first one listed. A target of 0 (or less) means "any", and returns
    the first URL.

    Returns:
        The chosen URL, or None if there are no images.
    """
    if not images:
        return None
    if target_size <= 0:
        return images[0].url

    best = min(
        enumerate(images),
        key=lambda pair: (abs(target_size - (pair[1].width or pair[1].height)), pair[0]),
    )
    return best[1].url


class ImageConverter:
    """
    Turns raw image bytes into a display-ready thumbnail.

    Args:
        resize: Edge length of the square output in pixels; 0 keeps the
                original size.
        round: Apply a circular alpha mask (used for artist rows).
    """

    def __init__(self, resize: int = 0, round: bool = False) -> None:
        self.resize = resize
        self.round = round

    def convert(self, data: bytes) -> Image.Image | None:
        """
        Decode and transform.

        Returns:
            The image, or None for an empty payload.

        Raises:
            DecodeError: If Pillow cannot identify the data.
        """
        if not data:
            return None
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                image = img.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise DecodeError(f"Cannot decode image: {e}") from e

        if self.resize > 0:
            image = self.resize_cutup(image, self.resize)
        if self.round:
            image = self.rounded(image)
        return image

    @staticmethod
    def resize_cutup(image: Image.Image, size: int) -> Image.Image:
        """Center-crop to a square, then scale to size x size."""
        width, height = image.size
        edge = min(width, height)
        left = (width - edge) // 2
        top = (height - edge) // 2
        square = image.crop((left, top, left + edge, top + edge))
        if edge == size:
            return square
        return square.resize((size, size), Image.Resampling.LANCZOS)

    @staticmethod
    def rounded(image: Image.Image) -> Image.Image:
        mask = Image.new("L", image.size, 0)
        ImageDraw.Draw(mask).ellipse((0, 0, image.size[0] - 1, image.size[1] - 1), fill=255)
        result = image.copy()
        result.putalpha(mask)
        return result


class ThumbDiskCache:
    """
    Converted thumbnails on disk: <base_dir>/<k[0]>/<k[1:3]>/<k>.png where k
    is a UUID5 hex digest of the URL plus the variant tag (thumbnail size
    and shape), so differently converted thumbnails never collide.
    """

    def __init__(self, base_dir: Path, variant: str = "") -> None:
        self.base_dir = base_dir
        self.variant = variant

    def path_for(self, url: str) -> Path:
        key = uuid.uuid5(uuid.NAMESPACE_URL, f"{url}#{self.variant}").hex
        return self.base_dir / key[0:1] / key[1:3] / f"{key}{THUMB_SUFFIX}"

    def load(self, url: str) -> Image.Image | None:
        path = self.path_for(url)
        if not path.exists():
            return None
        try:
            with Image.open(path) as img:
                img.load()
                return img.copy()
        except (UnidentifiedImageError, OSError) as e:
            logger.debug(f"Discarding unreadable thumbnail {path}: {e}")
            return None

    def store(self, url: str, image: Image.Image) -> None:
        path = self.path_for(url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            image.save(path, format="PNG")
        except OSError as e:
            logger.warning(f"Failed to write thumbnail {path}: {e}")


def http_fetch(url: str, timeout: int = IMAGE_TIMEOUT) -> bytes:
    """Download image bytes, mapping failures to ApiError subclasses."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise TransportError(f"Image download failed: {e}", details={"url": url}) from e
    if response.status_code != 200:
        raise OtherApiError(
            f"Image download failed with HTTP {response.status_code}",
            details={"url": url},
            http_status=response.status_code,
        )
    return response.content


class ImageCache:
    """
    Internally synchronized, single-flight thumbnail cache.

    Args:
        converter: Decoder/resizer applied to downloaded bytes.
        fetcher: url -> bytes; defaults to http_fetch.
        disk_cache: Optional on-disk layer.
        max_workers: Threads used by fetch() (the callback API).
    """

    def __init__(
        self,
        converter: ImageConverter | None = None,
        fetcher: Callable[[str], bytes] = http_fetch,
        disk_cache: ThumbDiskCache | None = None,
        max_workers: int = 4
    ) -> None:
        self.converter = converter or ImageConverter()
        self._fetcher = fetcher
        self._disk_cache = disk_cache
        self._images: dict[str, Image.Image | None] = {}
        self._inflight: dict[str, Future] = {}
        self._lock = threading.Lock()
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._images

    def get(self, url: str) -> Image.Image | None:
        """
        Blocking lookup with single-flight download.

        Returns:
            The image, or None if the payload produced no image.

        Raises:
            ApiError: Download or decode failure (shared by all waiters).
        """
        with self._lock:
            if url in self._images:
                return self._images[url]
            flight = self._inflight.get(url)
            owner = flight is None
            if owner:
                flight = Future()
                self._inflight[url] = flight

        if not owner:
            return flight.result()

        try:
            image = self._load(url)
        except BaseException as e:
            with self._lock:
                self._inflight.pop(url, None)
            flight.set_exception(e)
            raise

        with self._lock:
            self._images[url] = image
            self._inflight.pop(url, None)
        flight.set_result(image)
        return image

    def fetch(self, url: str, callback: Callable[[Image.Image | None, ApiError | None], None]) -> None:
        """
        Asynchronous get(): callback(image, None) or callback(None, error)
        is invoked from a cache thread (or immediately when cached).
        """
        with self._lock:
            if url in self._images:
                cached = self._images[url]
                hit = True
            else:
                hit = False
        if hit:
            callback(cached, None)
            return

        def task() -> None:
            try:
                image = self.get(url)
            except ApiError as e:
                callback(None, e)
                return
            except Exception as e:
                logger.error(f"Unexpected failure loading image {url}: {e}", exc_info=True)
                callback(None, OtherApiError(f"Image load failed: {e}", details={"url": url}))
                return
            callback(image, None)

        self._ensure_executor().submit(task)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="image-cache",
                )
            return self._executor

    def _load(self, url: str) -> Image.Image | None:
        if self._disk_cache is not None:
            image = self._disk_cache.load(url)
            if image is not None:
                return image

        data = self._fetcher(url)
        image = self.converter.convert(data)

        if image is not None and self._disk_cache is not None:
            self._disk_cache.store(url, image)
        return image
