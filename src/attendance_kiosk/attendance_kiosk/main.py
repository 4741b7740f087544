from __future__ import annotations

import atexit
import importlib
import logging
import sys
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import KioskContext, build_context
from .core.exceptions import AccessDenied, RemoteRejected, RemoteUnavailable, StorageError, UnknownIdentity
from .devices.controller import register as register_devices
from .hardware.controller import register as register_hardware
from .identities.controller import register as register_identities
from .sync.controller import register as register_sync

logger = logging.getLogger(__name__)


def configure_logging(settings: Any) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = getattr(settings, "LOG_FILE", None)
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AccessDenied)
    def access_denied(e: AccessDenied):
        return jsonify({"error": str(e)}), 403

    @app.errorhandler(UnknownIdentity)
    def unknown_identity(e: UnknownIdentity):
        return jsonify({"error": f"unknown identity {e}"}), 404

    @app.errorhandler(RemoteUnavailable)
    def remote_unavailable(e: RemoteUnavailable):
        return jsonify({"error": str(e)}), 503

    @app.errorhandler(RemoteRejected)
    def remote_rejected(e: RemoteRejected):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(StorageError)
    def storage_error(e: StorageError):
        logger.error("Local cache failure: %s", e)
        return jsonify({"error": "local cache unavailable"}), 500


def create_app(context: Optional[KioskContext] = None, *, start: bool = True) -> Flask:
    load_dotenv(override=False)
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(settings)

    app = Flask(__name__)
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if context is None:
        context = build_context(settings)
    if start:
        context.start()
        atexit.register(context.shutdown)
    app.extensions["kiosk"] = context
    logger.info("Kiosk app ready (settings=%s, cache=%s)", settings_module, context.database.url)

    _register_error_handlers(app)
    register_devices(app, context)
    register_hardware(app, context)
    register_sync(app, context)
    register_attendance(app, context)
    register_identities(app, context)

    return app


def run() -> None:
    app = create_app()
    settings = importlib.import_module(get_settings_module())
    # The reloader would start a second kiosk on the same serial port.
    app.run(host="0.0.0.0", port=int(getattr(settings, "HTTP_PORT", 4000)), debug=app.config["DEBUG"], use_reloader=False)


if __name__ == "__main__":
    run()
