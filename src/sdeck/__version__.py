"""sdeck version information."""

__version__ = "0.3.1"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: solid colors, raw icon buffers, brightness
# 0.2.0 - Image files (cover fit), full-panel images, image cache
# 0.2.1 - Fix full-panel key order (columns are numbered right-to-left)
# 0.3.0 - Key release debounce with a single shared recheck timer,
#         config.json settings, CLI (detect/color/image/fill/clear/brightness/watch)
# 0.3.1 - Single-flight image cache: concurrent fetches of one file share the work
