"""Core data models (no I/O, no device access)."""

from .models import DeviceInfo, KeyState, TransformKind

__all__ = [
    'DeviceInfo',
    'KeyState',
    'TransformKind',
]
