"""Image processing service — key icons, panel tiling, device pixel order.

Pure Python (PIL + numpy), no device dependencies.
"""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
from PIL import Image as PILImage
from PIL import ImageOps

from ..constants import ICON_SIZE, PANEL_BUTTONS_X, PANEL_BUTTONS_Y
from ..core.models import TransformKind
from .cache import ImageCache

log = logging.getLogger(__name__)

PathLike = Union[str, 'os.PathLike[str]']
Tile = Tuple[int, bytes]


class ImageService:
    """Stateless image processing utilities."""

    @staticmethod
    def open(path: PathLike) -> Any:
        """Decode an image file into an RGB PIL Image.

        Raises:
            FileNotFoundError: If *path* does not exist.
            PIL.UnidentifiedImageError: If the data is not a known format.
        """
        with PILImage.open(path) as img:
            img.load()
            return img.convert('RGB')

    @staticmethod
    def to_device_order(buffer: bytes) -> bytes:
        """Reorder row-major RGB pixels into the panel's pixel order.

        Each pixel becomes B,G,R and the whole pixel sequence is reversed,
        so the panel receives the icon bottom-to-top, right-to-left.
        Always returns a new buffer of the same length.
        """
        arr = np.frombuffer(bytes(buffer), dtype=np.uint8).reshape(-1, 3)
        return arr[::-1, ::-1].tobytes()

    @staticmethod
    def to_rgb_bytes(img: Any) -> bytes:
        """Raw row-major RGB bytes of a PIL Image."""
        if img.mode != 'RGB':
            img = img.convert('RGB')
        return img.tobytes()

    @staticmethod
    def cover(img: Any, w: int, h: int) -> Any:
        """Scale to fill w x h and center-crop the overflow (no stretching)."""
        if img.mode != 'RGB':
            img = img.convert('RGB')
        return ImageOps.fit(img, (w, h), PILImage.Resampling.LANCZOS,
                            centering=(0.5, 0.5))

    @staticmethod
    def contain(img: Any, w: int, h: int) -> Any:
        """Scale to fit inside w x h, centered on a black letterbox."""
        if img.mode != 'RGB':
            img = img.convert('RGB')
        return ImageOps.pad(img, (w, h), PILImage.Resampling.LANCZOS,
                            color=(0, 0, 0), centering=(0.5, 0.5))

    @staticmethod
    def crop(img: Any, x: int, y: int, w: int, h: int) -> Any:
        """Crop a w x h region whose top-left corner is (x, y)."""
        return img.crop((x, y, x + w, y + h))


# =========================================================================
# Preparation pipeline
# =========================================================================

def panel_key_index(x: int, y: int, grid_w: int = PANEL_BUTTONS_X) -> int:
    """Key index of the tile at visual column *x*, row *y*.

    Keys are numbered right-to-left within each row, so the rightmost
    column holds the lowest index of that row.
    """
    return y * grid_w + grid_w - x - 1


def gather(futures: Iterable[Future]) -> Future:
    """Future resolving to the list of results once all *futures* succeed.

    Fails with the first exception raised by any of them.
    """
    futures = list(futures)
    outer: Future = Future()
    if not futures:
        outer.set_result([])
        return outer

    lock = threading.Lock()
    remaining = [len(futures)]

    def _done(f: Future) -> None:
        exc = f.exception()
        with lock:
            if outer.done():
                return
            if exc is not None:
                outer.set_exception(exc)
                return
            remaining[0] -= 1
            if remaining[0]:
                return
        outer.set_result([x.result() for x in futures])

    for f in futures:
        f.add_done_callback(_done)
    return outer


class ImagePipeline:
    """Turns image files into key-sized RGB buffers, with caching.

    Each fetch is keyed by ``(path, TransformKind)``.  Work runs on a
    small thread pool; ``fetch()``/``prepare()`` return futures, ``load()``
    blocks.
    """

    def __init__(self,
                 cache: Optional[ImageCache] = None,
                 cache_enabled: bool = True,
                 icon_size: int = ICON_SIZE,
                 grid: Tuple[int, int] = (PANEL_BUTTONS_X, PANEL_BUTTONS_Y),
                 max_workers: int = 4) -> None:
        self.cache = cache if cache is not None else ImageCache()
        self.cache_enabled = cache_enabled
        self.icon_size = icon_size
        self.grid = grid
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='sdeck-image',
        )
        self._transforms: Dict[TransformKind, Callable[[Any], Any]] = {
            TransformKind.NONE: lambda img: img,
            TransformKind.ICON_COVER: self.prepare_icon,
            TransformKind.PANEL_CONTAIN: self.prepare_full_panel,
        }

    # ── Transforms ───────────────────────────────────────────────────

    def prepare_icon(self, image: Any, size: Optional[int] = None) -> bytes:
        """Cover-fit *image* to a square key icon and return RGB bytes."""
        size = size or self.icon_size
        return ImageService.to_rgb_bytes(ImageService.cover(image, size, size))

    def prepare_full_panel(self, image: Any,
                           grid_w: Optional[int] = None,
                           grid_h: Optional[int] = None,
                           icon_size: Optional[int] = None) -> Tuple[Tile, ...]:
        """Contain-fit *image* across the whole grid and cut it into key tiles.

        Returns ``(key_index, rgb_bytes)`` pairs in visual row-major order.
        """
        grid_w = grid_w or self.grid[0]
        grid_h = grid_h or self.grid[1]
        icon_size = icon_size or self.icon_size

        panel = ImageService.contain(image, grid_w * icon_size, grid_h * icon_size)
        tiles: List[Tile] = []
        for y in range(grid_h):
            for x in range(grid_w):
                tile = ImageService.crop(panel, x * icon_size, y * icon_size,
                                         icon_size, icon_size)
                tiles.append((panel_key_index(x, y, grid_w),
                              ImageService.to_rgb_bytes(tile)))
        return tuple(tiles)

    @staticmethod
    def _finalize(result: Any) -> Any:
        """Normalise a transform result into an immutable cache value."""
        if isinstance(result, PILImage.Image):
            return ImageService.to_rgb_bytes(result)
        if isinstance(result, (bytes, bytearray, memoryview)):
            return bytes(result)
        if isinstance(result, (tuple, list)) and result:
            return tuple(result)
        raise ValueError(
            f"Bad value returned from image transform: {type(result).__name__}"
        )

    # ── Fetching ─────────────────────────────────────────────────────

    def _compute(self, path: PathLike, kind: TransformKind) -> Any:
        log.debug("Preparing %s (%s)", path, kind.value)
        image = ImageService.open(path)
        return self._finalize(self._transforms[kind](image))

    def load(self, path: PathLike,
             kind: TransformKind = TransformKind.ICON_COVER) -> Any:
        """Fetch a prepared image, from cache when possible.  Blocks."""
        if not self.cache_enabled:
            return self._compute(path, kind)
        key = (os.fspath(path), kind)
        return self.cache.get_or_compute(key, lambda: self._compute(path, kind))

    def fetch(self, path: PathLike,
              kind: TransformKind = TransformKind.ICON_COVER) -> Future:
        """Like ``load()`` but runs on the pipeline's thread pool."""
        return self._executor.submit(self.load, path, kind)

    def prepare(self, paths: Iterable[PathLike],
                kind: TransformKind = TransformKind.ICON_COVER) -> Future:
        """Warm the cache for *paths*.  Resolves when all are prepared."""
        return gather(self.fetch(p, kind) for p in paths)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run *fn* on the pipeline's thread pool."""
        return self._executor.submit(fn, *args)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)
