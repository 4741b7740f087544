"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

SCAN_REPEAT_WINDOW_SECONDS = 5.0
DEFAULT_PULL_INTERVAL_SECONDS = 30
DEFAULT_PUSH_INTERVAL_SECONDS = 30
DEFAULT_CONNECTIVITY_PROBE_SECONDS = 10
DEFAULT_CHANGE_DEBOUNCE_SECONDS = 2.0
DEFAULT_REMOTE_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_PUSH_ATTEMPTS = 10
DEFAULT_BAUD_RATE = 9600
DEFAULT_FEED_SIZE = 200

WEEKDAY_ABBREVIATIONS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

FALLBACK_READER_PORTS = tuple(
    [f"COM{i}" for i in range(1, 11)]
    + ["/dev/ttyUSB0", "/dev/ttyUSB1", "/dev/ttyACM0", "/dev/ttyACM1"]
)
