"""
sdeck Models - Pure data classes with no device or image dependencies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..constants import STREAMDECK_PID, STREAMDECK_VID

# =============================================================================
# Device Model
# =============================================================================


@dataclass
class DeviceInfo:
    """One enumerated HID device."""
    path: bytes
    vid: int = STREAMDECK_VID
    pid: int = STREAMDECK_PID
    serial: str = ""
    product: str = ""
    manufacturer: str = ""
    interface: Optional[int] = None

    @property
    def vid_pid(self) -> str:
        return f"{self.vid:04x}:{self.pid:04x}"


# =============================================================================
# Key Model
# =============================================================================


@dataclass
class KeyState:
    """Debounced state of one key.

    ``pressed_at`` is the monotonic time the current press was first
    seen, None when no press is recorded.
    """
    down: bool = False
    pressed_at: Optional[float] = None


# =============================================================================
# Image Model
# =============================================================================


class TransformKind(Enum):
    """Identity of the transform applied to a cached image.

    The value is part of the cache key, so it must stay stable.
    """
    NONE = 'none'                     # decode only, RGB bytes at source size
    ICON_COVER = 'icon_cover'         # 72x72 cover-fit key icon
    PANEL_CONTAIN = 'panel_contain'   # contain-fit across the grid, tiled per key
