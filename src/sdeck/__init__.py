"""
sdeck - Stream Deck driver for Linux

Drives the original 15-key Stream Deck (VID 0x0fd9, PID 0x0060) over HID.

Features:
- Solid colors and images on individual keys
- One image spread across the whole panel
- Debounced key down/up events
- Backlight brightness
- Time-expiring image cache

Usage:
    # As a library
    from sdeck import StreamDeck
    deck = StreamDeck()
    deck.on_down = lambda key: print("down", key)
    deck.fill_color(4, 255, 0, 0)
    deck.fill_image_from_file(0, "icon.png").result()

    # Command line
    sdeck detect         # List connected decks
    sdeck watch          # Print key events
"""

from sdeck.__version__ import __version__
from sdeck.constants import ICON_SIZE, NUM_KEYS
from sdeck.core.models import DeviceInfo, TransformKind
from sdeck.device_hid import find_devices
from sdeck.services.device import StreamDeck

__all__ = [
    "__version__",
    "ICON_SIZE",
    "NUM_KEYS",
    "DeviceInfo",
    "TransformKind",
    "StreamDeck",
    "find_devices",
]
