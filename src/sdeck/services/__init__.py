"""sdeck Services — core logic (pure Python, no GUI/CLI).

Business logic shared by the library API and the CLI:
- device.py (StreamDeck session)
- image.py  (icon preparation, device pixel order)
- cache.py  (time-expiring image cache)
"""

from .cache import ImageCache
from .device import StreamDeck
from .image import ImagePipeline, ImageService

__all__ = [
    'ImageCache',
    'ImagePipeline',
    'ImageService',
    'StreamDeck',
]
