from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import KioskContext
from .ports import list_ports


def register(app: Flask, context: KioskContext) -> None:
    @app.route("/api/reader", methods=["GET"], endpoint="reader_status")
    def reader_status():
        return jsonify({"state": context.reader.state.value, "path": context.reader.path})

    @app.route("/api/reader/ports", methods=["GET"], endpoint="reader_ports")
    def reader_ports():
        return jsonify({"ports": list_ports()})

    @app.route("/api/reader/connect", methods=["POST"], endpoint="reader_connect")
    def reader_connect():
        data = request.get_json(silent=True) or {}
        path = str(data.get("path", "")).strip()
        if not path:
            return jsonify({"error": "path is required"}), 400
        state = context.reader.connect(path)
        return jsonify({"state": state.value, "path": path})
