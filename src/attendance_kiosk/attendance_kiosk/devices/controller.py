from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import KioskContext
from .model import LoginResult


def _login_payload(result: LoginResult) -> dict:
    return {
        "state": result.state.value,
        "active": result.active,
        "offline": result.offline,
        "message": result.message,
        "device": result.session.to_public_dict() if result.session else None,
        "stats": result.stats.to_dict() if result.stats else None,
    }


def register(app: Flask, context: KioskContext) -> None:
    @app.route("/api/status", methods=["GET"], endpoint="status")
    def status():
        session = context.devices.session
        return jsonify(
            {
                "state": context.devices.state.value,
                "online": context.connectivity.online,
                "device": session.to_public_dict() if session else None,
                "reader": {"state": context.reader.state.value, "path": context.reader.path},
                "stats": context.devices.stats().to_dict(),
            }
        )

    @app.route("/api/login", methods=["POST"], endpoint="login")
    def login():
        data = request.get_json(silent=True) or {}
        result = context.devices.login(str(data.get("connection_key", "")))
        return jsonify(_login_payload(result)), (200 if result.active else 503)

    @app.route("/api/logout", methods=["POST"], endpoint="logout")
    def logout():
        data = request.get_json(silent=True) or {}
        result = context.devices.logout(str(data.get("connection_key", "")))
        return jsonify(_login_payload(result))
