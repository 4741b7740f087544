"""Attendance Kiosk package.

Offline-first proximity-card attendance kiosk. The package is organized by
feature modules (identities, schedules, attendance, devices, sync, hardware)
around a local SQLite mirror, with a thin Flask controller layer for the UI.
"""

__version__ = "1.0.0"
