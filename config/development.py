from config.base import *  # noqa: F401,F403
from config.base import env_bool

DEBUG = env_bool("DEBUG", "1")
