from __future__ import annotations

import base64
import binascii

from flask import Flask, jsonify, request

from ..container import KioskContext
from ..runtime.events import ScanReceived


def register(app: Flask, context: KioskContext) -> None:
    @app.route("/api/scan", methods=["POST"], endpoint="inject_scan")
    def inject_scan():
        """Manual token entry; goes through the same queue as reader frames."""
        data = request.get_json(silent=True) or {}
        token = str(data.get("token", "")).strip()
        if not token:
            return jsonify({"error": "token is required"}), 400
        context.loop.post(ScanReceived(token))
        return jsonify({"queued": True}), 202

    @app.route("/api/face", methods=["POST"], endpoint="confirm_face")
    def confirm_face():
        data = request.get_json(silent=True) or {}
        context.validator.confirm_face(data.get("external_id") or None)
        return jsonify({"ok": True})

    @app.route("/api/identities/<external_id>/descriptor", methods=["PUT"], endpoint="save_descriptor")
    def save_descriptor(external_id: str):
        data = request.get_json(silent=True) or {}
        try:
            blob = base64.b64decode(str(data.get("descriptor", "")), validate=True)
        except (binascii.Error, ValueError):
            return jsonify({"error": "descriptor must be base64"}), 400
        if not blob:
            return jsonify({"error": "descriptor is required"}), 400
        identity = context.identities.save_descriptor(external_id, blob)
        return jsonify({"external_id": identity.external_id, "bytes": len(blob)})

    @app.route("/api/events", methods=["GET"], endpoint="events")
    def events():
        after = request.args.get("after", default=0, type=int)
        return jsonify({"events": context.feed.since(after)})
