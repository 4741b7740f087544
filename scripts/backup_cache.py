"""Backup the local SQLite cache.

Uses SQLite's online backup API so a running kiosk can keep writing while
the copy is taken. Only file-based sqlite:/// URLs are supported.
"""

from __future__ import annotations

import importlib
import sqlite3
from datetime import datetime
from pathlib import Path

from sqlalchemy.engine import make_url

from config import get_settings_module


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    url = make_url(settings.LOCAL_DB_URL)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        raise SystemExit(f"Not a file-based SQLite cache: {settings.LOCAL_DB_URL}")

    source_path = Path(url.database)
    if not source_path.exists():
        raise SystemExit(f"Cache file not found: {source_path}")

    out_dir = Path(__file__).resolve().parents[1] / "backups"
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"kiosk_cache_{ts}.db"

    src = sqlite3.connect(str(source_path))
    dst = sqlite3.connect(str(out_file))
    try:
        src.backup(dst)
    finally:
        dst.close()
        src.close()
    print(f"OK: Backup created: {out_file}")


if __name__ == "__main__":
    main()
