"""Example: drive the kiosk core without Flask.

Logs in with the connection key given on the command line, pushes one tag
token through the same queue the card reader uses and prints the feed.
"""

import importlib
import sys

from config import get_settings_module

from src.attendance_kiosk.attendance_kiosk.container import build_context
from src.attendance_kiosk.attendance_kiosk.runtime.events import ScanReceived


def main():
    if len(sys.argv) < 3:
        raise SystemExit("usage: example_usage.py CONNECTION_KEY TAG_ID")
    key, tag = sys.argv[1], sys.argv[2]

    settings = importlib.import_module(get_settings_module())
    context = build_context(settings)
    context.start(connect_reader=False, run_scheduler=False)
    try:
        print(context.devices.login(key))
        context.sync.wait_idle(timeout=30)
        context.loop.post(ScanReceived(tag))
        context.loop.stop()  # drains the queue first
        context.sync.wait_idle(timeout=30)
        for item in context.feed.since(0):
            print(item)
    finally:
        context.shutdown()


if __name__ == "__main__":
    main()
