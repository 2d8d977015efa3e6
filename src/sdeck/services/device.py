"""Stream Deck session — key images, brightness and debounced key events.

Pure Python on top of a ``HidTransport``; no GUI dependencies.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Iterable, Optional

from ..conf import settings
from ..constants import (
    ICON_BYTES,
    ICON_SIZE,
    NUM_KEYS,
    NUM_TOTAL_PIXELS,
    STREAMDECK_PID,
    STREAMDECK_VID,
)
from ..core.models import TransformKind
from ..device_hid import (
    HidApiTransport,
    HidTransport,
    InputReader,
    build_brightness_report,
    build_key_packets,
    find_devices,
    parse_key_report,
)
from ..key_state import KeyDebouncer
from .cache import ImageCache
from .image import ImagePipeline, ImageService, PathLike

log = logging.getLogger(__name__)


class StreamDeck:
    """One open Stream Deck.

    Without a *transport*, the first connected device with the Stream
    Deck VID/PID is opened.  Key events are delivered through the
    ``on_down``, ``on_up`` and ``on_error`` callbacks.
    """

    def __init__(self,
                 transport: Optional[HidTransport] = None,
                 *,
                 cache_images: Optional[bool] = None,
                 cache_ttl_s: Optional[float] = None,
                 min_up_time_s: Optional[float] = None,
                 pipeline: Optional[ImagePipeline] = None,
                 clock: Callable[[], float] = time.monotonic,
                 timer_factory: Optional[Callable[..., Any]] = None,
                 start_reader: bool = True) -> None:
        if transport is None:
            transport = self._open_first_device()
        elif not transport.is_open:
            transport.open()
        self.transport = transport

        # View callbacks
        self.on_down: Optional[Callable[[int], None]] = None
        self.on_up: Optional[Callable[[int], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

        # Serialises page pairs and feature reports
        self._write_lock = threading.RLock()

        self._closed = False
        self._owns_pipeline = pipeline is None
        if pipeline is None:
            ttl = cache_ttl_s if cache_ttl_s is not None else settings.cache_ttl_s
            pipeline = ImagePipeline(
                cache=ImageCache(ttl_s=ttl),
                cache_enabled=(settings.cache_images if cache_images is None
                               else cache_images),
            )
        elif cache_images is not None:
            pipeline.cache_enabled = cache_images
        self.pipeline = pipeline

        debounce_kwargs: dict[str, Any] = {}
        if timer_factory is not None:
            debounce_kwargs['timer_factory'] = timer_factory
        self._keys = KeyDebouncer(
            num_keys=NUM_KEYS,
            min_up_time_s=(settings.min_up_time_s if min_up_time_s is None
                           else min_up_time_s),
            on_down=self._emit_down,
            on_up=self._emit_up,
            clock=clock,
            **debounce_kwargs,
        )

        self._reader = InputReader(self.transport, self.handle_report, self._emit_error)
        if start_reader:
            self._reader.start()

    @staticmethod
    def _open_first_device() -> HidTransport:
        devices = find_devices(STREAMDECK_VID, STREAMDECK_PID)
        if not devices:
            raise RuntimeError('No Stream Decks are connected.')
        log.info("Opening Stream Deck %s (serial %s)",
                 devices[0].vid_pid, devices[0].serial or '?')
        transport = HidApiTransport(devices[0].path)
        transport.open()
        return transport

    # ── Events ───────────────────────────────────────────────────────

    def handle_report(self, data: bytes) -> None:
        """Feed one raw input report into the key debouncer."""
        self._keys.update(parse_key_report(data))

    def _emit_down(self, key: int) -> None:
        if self.on_down:
            self.on_down(key)

    def _emit_up(self, key: int) -> None:
        if self.on_up:
            self.on_up(key)

    def _emit_error(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)
        else:
            log.error("Stream Deck transport error: %s", error)

    @property
    def key_states(self) -> list[bool]:
        """Debounced down/up state of every key."""
        return [s.down for s in self._keys.states]

    # ── Validation ───────────────────────────────────────────────────

    @staticmethod
    def check_valid_key_index(key_index: int) -> None:
        if isinstance(key_index, bool) or not isinstance(key_index, int):
            raise TypeError(f'Expected an integer keyIndex, got {key_index!r}')
        if key_index < 0 or key_index >= NUM_KEYS:
            raise ValueError(f'Expected a valid keyIndex 0 - {NUM_KEYS - 1}')

    @staticmethod
    def check_rgb_value(value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f'Expected an integer RGB value, got {value!r}')
        if value < 0 or value > 255:
            raise ValueError('Expected a valid color RGB value 0 - 255')

    # ── Raw I/O ──────────────────────────────────────────────────────

    def write(self, buffer: bytes) -> int:
        """Write one output report to the device."""
        with self._write_lock:
            return self.transport.write(bytes(buffer))

    def send_feature_report(self, buffer: bytes) -> int:
        """Send one feature report to the device."""
        with self._write_lock:
            return self.transport.send_feature_report(bytes(buffer))

    def _write_key(self, key_index: int, device_pixels: bytes) -> None:
        page1, page2 = build_key_packets(key_index, device_pixels)
        with self._write_lock:
            if self._closed:
                raise RuntimeError('Stream Deck is closed')
            self.transport.write(page1)
            self.transport.write(page2)

    # ── Key images ───────────────────────────────────────────────────

    def fill_color(self, key_index: int, r: int, g: int, b: int) -> None:
        """Fill a key with a solid color."""
        self.check_valid_key_index(key_index)
        self.check_rgb_value(r)
        self.check_rgb_value(g)
        self.check_rgb_value(b)

        self._write_key(key_index, bytes([b, g, r]) * NUM_TOTAL_PIXELS)

    def fill_image(self, key_index: int, image_buffer: bytes) -> None:
        """Fill a key with a 72x72 row-major RGB buffer (15552 bytes)."""
        self.check_valid_key_index(key_index)
        if len(image_buffer) != ICON_BYTES:
            raise ValueError(
                f'Expected image buffer of length {ICON_BYTES}, '
                f'got length {len(image_buffer)}'
            )
        self._write_key(key_index, ImageService.to_device_order(image_buffer))

    def fill_image_from_file(self, key_index: int, file_path: PathLike) -> Future:
        """Fill a key with an image file, cover-fitted to the key.

        Returns a Future that resolves once both pages are written.
        """
        self.check_valid_key_index(key_index)
        return self.pipeline.submit(self._fill_from_file, key_index, file_path)

    def _fill_from_file(self, key_index: int, file_path: PathLike) -> None:
        buffer = self.pipeline.load(file_path, TransformKind.ICON_COVER)
        self.fill_image(key_index, buffer)

    def fill_image_on_all(self, file_path: PathLike) -> Future:
        """Spread one image across the whole panel (scaled to fit, no stretching).

        All tiles are prepared before the first key is written.
        """
        return self.pipeline.submit(self._fill_all_from_file, file_path)

    def _fill_all_from_file(self, file_path: PathLike) -> None:
        tiles = self.pipeline.load(file_path, TransformKind.PANEL_CONTAIN)
        for key_index, buffer in tiles:
            self.fill_image(key_index, buffer)
        log.debug("Panel filled from %s (%d keys)", file_path, len(tiles))

    def prepare_files(self, file_paths: Iterable[PathLike]) -> Future:
        """Cache key icons for *file_paths* without writing to any key."""
        return self.pipeline.prepare(list(file_paths), TransformKind.ICON_COVER)

    def clear_key(self, key_index: int) -> None:
        """Clear a key to black."""
        self.check_valid_key_index(key_index)
        self.fill_color(key_index, 0, 0, 0)

    def clear_all_keys(self) -> None:
        for key_index in range(NUM_KEYS):
            self.fill_color(key_index, 0, 0, 0)

    # ── Brightness ───────────────────────────────────────────────────

    def set_brightness(self, percentage: int) -> None:
        """Set backlight brightness, 0-100 %."""
        if isinstance(percentage, bool) or not isinstance(percentage, int):
            raise TypeError(f'Expected an integer percentage, got {percentage!r}')
        if percentage < 0 or percentage > 100:
            raise ValueError('Expected brightness percentage to be between 0 and 100')
        self.send_feature_report(build_brightness_report(percentage))

    # ── Properties ───────────────────────────────────────────────────

    @property
    def ICON_SIZE(self) -> int:
        """Pixel size of a key icon."""
        return ICON_SIZE

    @property
    def cache_images(self) -> bool:
        return self.pipeline.cache_enabled

    @cache_images.setter
    def cache_images(self, enabled: bool) -> None:
        self.pipeline.cache_enabled = enabled

    # ── Lifecycle ────────────────────────────────────────────────────

    def close(self) -> None:
        """Stop the input reader and release the device.

        A key write already in progress finishes both of its pages first;
        queued image fills are cancelled.
        """
        if self._closed:
            return
        self._reader.stop()
        self._keys.close()
        if self._owns_pipeline:
            self.pipeline.shutdown(wait=False, cancel_futures=True)
        with self._write_lock:
            self._closed = True
            self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
