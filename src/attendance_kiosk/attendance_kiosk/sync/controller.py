from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import KioskContext
from ..runtime.events import RemoteChanged, ResyncRequested


def register(app: Flask, context: KioskContext) -> None:
    @app.route("/api/sync/resync", methods=["POST"], endpoint="force_resync")
    def force_resync():
        context.loop.post(ResyncRequested())
        return jsonify({"queued": True}), 202

    @app.route("/api/sync/retry-stuck", methods=["POST"], endpoint="retry_stuck")
    def retry_stuck():
        return jsonify({"reset": context.sync.retry_stuck()})

    @app.route("/api/sync/remote-change", methods=["POST"], endpoint="remote_change")
    def remote_change():
        # Supabase database webhooks send {"type", "table", "record", ...}.
        data = request.get_json(silent=True) or {}
        context.loop.post(RemoteChanged(data.get("table")))
        return jsonify({"queued": True}), 202
