import os

from config.base import *  # noqa: F401,F403
from config.base import REMOTE_CONFIG, env_bool

DEBUG = env_bool("DEBUG", "0")

if not REMOTE_CONFIG["url"] or not REMOTE_CONFIG["api_key"]:
    raise RuntimeError("REMOTE_URL and REMOTE_API_KEY must be set in production")

LOG_FILE = os.getenv("LOG_FILE", "/var/log/attendance-kiosk/kiosk.log")
