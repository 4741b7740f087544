from config.base import *  # noqa: F401,F403

DEBUG = False
TESTING = True

LOCAL_DB_URL = "sqlite://"
SESSION_FILE = "kiosk_session.test.json"
LOG_FILE = None

READER_CONFIG = {"port": None, "baud_rate": 9600}
