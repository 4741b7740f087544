"""Settings shared by every environment, read from the process environment / .env."""

import os


def env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


REMOTE_CONFIG = {
    "url": os.getenv("REMOTE_URL", ""),
    "api_key": os.getenv("REMOTE_API_KEY", ""),
    "timeout": float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10")),
}

LOCAL_DB_URL = os.getenv("LOCAL_DB_URL", "sqlite:///kiosk_cache.db")
SESSION_FILE = os.getenv("SESSION_FILE", "kiosk_session.json")

READER_CONFIG = {
    "port": os.getenv("SERIAL_PORT", "/dev/ttyUSB0"),
    "baud_rate": int(os.getenv("SERIAL_BAUD_RATE", "9600")),
}

SYNC_CONFIG = {
    "pull_interval_seconds": int(os.getenv("PULL_INTERVAL_SECONDS", "30")),
    "push_interval_seconds": int(os.getenv("PUSH_INTERVAL_SECONDS", "30")),
    "probe_interval_seconds": int(os.getenv("CONNECTIVITY_PROBE_SECONDS", "10")),
    "change_debounce_seconds": float(os.getenv("CHANGE_DEBOUNCE_SECONDS", "2")),
    "max_push_attempts": int(os.getenv("MAX_PUSH_ATTEMPTS", "10")),
}

SCAN_REPEAT_WINDOW_SECONDS = float(os.getenv("SCAN_REPEAT_WINDOW_SECONDS", "5"))
REQUIRE_FACE_MATCH = env_bool("REQUIRE_FACE_MATCH")

HTTP_PORT = int(os.getenv("HTTP_PORT", "4000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "kiosk.log")
