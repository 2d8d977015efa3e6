"""Shared constants for the Stream Deck (original 15-key model).

Panel geometry, page layout and timing for the first-generation
protocol (VID 0x0fd9, PID 0x0060).
"""

# =========================================================================
# USB identity
# =========================================================================

STREAMDECK_VID = 0x0FD9
STREAMDECK_PID = 0x0060

# =========================================================================
# Panel geometry
# =========================================================================

NUM_KEYS = 15
PANEL_BUTTONS_X = 5   # columns
PANEL_BUTTONS_Y = 3   # rows
ICON_SIZE = 72        # square key icon, pixels

# 72 * 72 * 3 = 15552 bytes of row-major RGB
ICON_BYTES = ICON_SIZE * ICON_SIZE * 3

# =========================================================================
# Page layout
# =========================================================================
# A key image is split across two output reports ("pages").

PAGE_PACKET_SIZE = 8191
NUM_FIRST_PAGE_PIXELS = 2583
NUM_SECOND_PAGE_PIXELS = 2601
NUM_TOTAL_PIXELS = NUM_FIRST_PAGE_PIXELS + NUM_SECOND_PAGE_PIXELS  # 5184

# =========================================================================
# Input / feature reports
# =========================================================================

# report id + one byte per key + trailing padding byte
INPUT_REPORT_SIZE = 1 + NUM_KEYS + 1

BRIGHTNESS_REPORT_SIZE = 17

# =========================================================================
# Timing
# =========================================================================

# Minimum time from the first press before a release is honoured
MIN_UP_TIME_S = 0.100

# Cached images expire after one day
CACHE_TTL_S = 24 * 3600

# Input read timeout so the reader thread can notice close()
READ_TIMEOUT_MS = 250
