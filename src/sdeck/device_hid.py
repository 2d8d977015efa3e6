#!/usr/bin/env python3
"""
HID protocol layer for the original 15-key Stream Deck (VID 0x0fd9, PID 0x0060).

A key image is sent as two 8191-byte output reports ("pages").  Page 1
carries a 16-byte command header followed by a 54-byte BMP header and the
first 2583 pixels; page 2 carries a 16-byte header and the remaining 2601
pixels.  Pixels are BGR, bottom-to-top and right-to-left (see
``ImageService.to_device_order``).

Input reports are 17 bytes: report id, one byte per key, one padding byte.
Brightness is set through a 17-byte feature report.

The ``HidTransport`` ABC abstracts the raw HID I/O so that:
  • Tests can inject a mock transport (no real hardware needed).
  • ``HidApiTransport`` provides real HID via the hidapi binding.

Linux dependencies:
  • hidapi: ``pip install hidapi`` (udev rule needed for non-root access)
"""

from __future__ import annotations

import logging
import struct
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import hid as hidapi

from .constants import (
    BRIGHTNESS_REPORT_SIZE,
    ICON_BYTES,
    ICON_SIZE,
    INPUT_REPORT_SIZE,
    NUM_FIRST_PAGE_PIXELS,
    NUM_KEYS,
    NUM_SECOND_PAGE_PIXELS,
    PAGE_PACKET_SIZE,
    READ_TIMEOUT_MS,
    STREAMDECK_PID,
    STREAMDECK_VID,
)
from .core.models import DeviceInfo

log = logging.getLogger(__name__)


# =========================================================================
# Report layout
# =========================================================================

REPORT_ID_IMAGE = 0x02
REPORT_ID_FEATURE = 0x05

PAGE_HEADER_SIZE = 16

# Brightness command prefix (report id 0x05, then 55 AA D1 01)
BRIGHTNESS_PREFIX = bytes([REPORT_ID_FEATURE, 0x55, 0xAA, 0xD1, 0x01])

# BMP header the firmware expects at the start of page 1.  Only the
# 54-byte header is sent here; the pixel data follows across both pages.
BMP_FILE_HEADER_SIZE = 14
BMP_INFO_HEADER_SIZE = 40
BMP_PIXELS_PER_METER = 3780  # 96 DPI

BMP_HEADER = struct.pack(
    '<2sIHHI',
    b'BM',
    BMP_FILE_HEADER_SIZE + BMP_INFO_HEADER_SIZE + ICON_BYTES,  # file size 15606
    0, 0,                                                     # reserved
    BMP_FILE_HEADER_SIZE + BMP_INFO_HEADER_SIZE,              # pixel offset 54
) + struct.pack(
    '<IiiHHIIiiII',
    BMP_INFO_HEADER_SIZE,
    ICON_SIZE, ICON_SIZE,
    1,            # planes
    24,           # bits per pixel
    0,            # BI_RGB
    ICON_BYTES,   # image size 15552
    BMP_PIXELS_PER_METER, BMP_PIXELS_PER_METER,
    0, 0,         # palette
)


# =========================================================================
# Packet builders
# =========================================================================

def pad_to_length(data: bytes, length: int) -> bytes:
    """Zero-pad *data* to exactly *length* bytes.

    Raises:
        ValueError: If *data* is already longer than *length*.
    """
    if len(data) > length:
        raise ValueError(
            f"Packet overflow: {len(data)} bytes does not fit in {length}"
        )
    return bytes(data) + b'\x00' * (length - len(data))


def build_page1_packet(key_index: int, pixels: bytes) -> bytes:
    """Build the first page of a key image.

    Layout::

        [0x02, 0x01, 0x01, 0x00, 0x00, key+1, 0 x 10]   # 16-byte header
        + BMP_HEADER                                     # 54 bytes
        + first-page pixels (2583 * 3)
        + zero padding to 8191
    """
    header = bytes([
        REPORT_ID_IMAGE, 0x01, 0x01, 0x00, 0x00, key_index + 1,
    ]).ljust(PAGE_HEADER_SIZE, b'\x00')
    return pad_to_length(header + BMP_HEADER + bytes(pixels), PAGE_PACKET_SIZE)


def build_page2_packet(key_index: int, pixels: bytes) -> bytes:
    """Build the second page of a key image.

    Layout::

        [0x02, 0x01, 0x02, 0x00, 0x01, key+1]   # 6-byte header
        + 10 zero bytes
        + second-page pixels (2601 * 3)
        + zero padding to 8191
    """
    header = bytes([
        REPORT_ID_IMAGE, 0x01, 0x02, 0x00, 0x01, key_index + 1,
    ]).ljust(PAGE_HEADER_SIZE, b'\x00')
    return pad_to_length(header + bytes(pixels), PAGE_PACKET_SIZE)


def build_key_packets(key_index: int, device_pixels: bytes) -> tuple[bytes, bytes]:
    """Split device-ordered pixels across both pages for one key."""
    split = NUM_FIRST_PAGE_PIXELS * 3
    end = split + NUM_SECOND_PAGE_PIXELS * 3
    return (
        build_page1_packet(key_index, device_pixels[:split]),
        build_page2_packet(key_index, device_pixels[split:end]),
    )


def build_brightness_report(percent: int) -> bytes:
    """Build the 17-byte brightness feature report."""
    return pad_to_length(BRIGHTNESS_PREFIX + bytes([percent]), BRIGHTNESS_REPORT_SIZE)


def parse_key_report(data: bytes) -> List[bool]:
    """Decode an input report into one boolean per key.

    The first byte is the report id and the last byte is padding.
    """
    keys = bytes(data[1:len(data) - 1])
    return [bool(b) for b in keys[:NUM_KEYS]]


# =========================================================================
# Abstract HID transport
# =========================================================================

class HidTransport(ABC):
    """Abstract HID transport — mockable for testing."""

    @abstractmethod
    def open(self) -> None:
        """Open the HID device."""

    @abstractmethod
    def close(self) -> None:
        """Close the HID device."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send an output report (first byte is the report id)."""

    @abstractmethod
    def send_feature_report(self, data: bytes) -> int:
        """Send a feature report (first byte is the report id)."""

    @abstractmethod
    def read(self, length: int, timeout: int = READ_TIMEOUT_MS) -> bytes:
        """Read one input report.  Returns b'' on timeout."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device is currently open."""


# =========================================================================
# Real transport: HIDAPI
# =========================================================================

class HidApiTransport(HidTransport):
    """HID transport using the hidapi binding.

    Requires: ``pip install hidapi``
    """

    def __init__(self, path: bytes):
        self._path = path
        self._device: Any = None
        self._is_open = False

    def open(self) -> None:
        """Open the HID device by enumeration path."""
        # cython-hidapi exposes ``device`` + open_path(); the ctypes ``hid``
        # package exposes ``Device(path=...)``.
        device_class = getattr(hidapi, 'device', None)
        if device_class is not None:
            self._device = device_class()
            self._device.open_path(self._path)
        else:
            self._device = hidapi.Device(path=self._path)
        self._is_open = True
        log.debug("Opened HID device %r", self._path)

    def close(self) -> None:
        """Close HID device."""
        if self._device is not None:
            try:
                self._device.close()
            except OSError as e:
                log.debug("HID close: %s", e)
            self._device = None
        self._is_open = False

    def _require_open(self) -> Any:
        if not self._is_open or self._device is None:
            raise RuntimeError("Transport not open")
        return self._device

    def write(self, data: bytes) -> int:
        written = self._require_open().write(bytes(data))
        if written is not None and written < 0:
            raise OSError(f"HID write failed ({written})")
        return written

    def send_feature_report(self, data: bytes) -> int:
        written = self._require_open().send_feature_report(bytes(data))
        if written is not None and written < 0:
            raise OSError(f"HID feature report failed ({written})")
        return written

    def read(self, length: int, timeout: int = READ_TIMEOUT_MS) -> bytes:
        data = self._require_open().read(length, timeout)
        return bytes(data) if data else b''

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def path(self) -> bytes:
        return self._path

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# =========================================================================
# Input reader
# =========================================================================

class InputReader:
    """Background thread delivering input reports from a transport.

    Each non-empty report is handed to *on_report*.  A transport error
    stops the reader and is handed to *on_error*.
    """

    def __init__(self,
                 transport: HidTransport,
                 on_report: Callable[[bytes], None],
                 on_error: Callable[[Exception], None],
                 report_size: int = INPUT_REPORT_SIZE,
                 timeout_ms: int = READ_TIMEOUT_MS):
        self._transport = transport
        self._on_report = on_report
        self._on_error = on_error
        self._report_size = report_size
        self._timeout_ms = timeout_ms
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name='sdeck-input', daemon=True,
        )
        self._thread.start()

    def stop(self, join_timeout: float = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(join_timeout)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                data = self._transport.read(self._report_size, self._timeout_ms)
            except Exception as e:
                if self._stop.is_set():
                    break
                log.warning("HID read failed: %s", e)
                self._on_error(e)
                break
            if not data:
                continue
            try:
                self._on_report(data)
            except Exception:
                log.exception("Input report handler failed")


# =========================================================================
# Device discovery helper
# =========================================================================

def find_devices(vid: int = STREAMDECK_VID, pid: int = STREAMDECK_PID) -> List[DeviceInfo]:
    """Enumerate connected HID devices matching *vid*/*pid*."""
    devices = []
    for info in hidapi.enumerate(vid, pid):
        # hidapi filters by vid/pid, but 0/0 enumerates everything
        if info.get('vendor_id') != vid or info.get('product_id') != pid:
            continue
        devices.append(DeviceInfo(
            path=info['path'],
            vid=vid,
            pid=pid,
            serial=info.get('serial_number') or "",
            product=info.get('product_string') or "",
            manufacturer=info.get('manufacturer_string') or "",
            interface=info.get('interface_number'),
        ))
    log.debug("find_devices(%04x:%04x): %d match(es)", vid, pid, len(devices))
    return devices
