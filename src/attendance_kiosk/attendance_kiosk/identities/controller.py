from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import KioskContext


def register(app: Flask, context: KioskContext) -> None:
    @app.route("/api/registration", methods=["GET"], endpoint="registration_state")
    def registration_state():
        registration = context.registration
        return jsonify({"armed": registration.armed, "captured_tag": registration.captured_tag})

    @app.route("/api/registration/arm", methods=["POST"], endpoint="arm_registration")
    def arm_registration():
        context.registration.arm()
        return jsonify({"armed": True})

    @app.route("/api/registration/arm", methods=["DELETE"], endpoint="disarm_registration")
    def disarm_registration():
        context.registration.disarm()
        return jsonify({"armed": False})

    @app.route("/api/registration/link", methods=["POST"], endpoint="link_card")
    def link_card():
        data = request.get_json(silent=True) or {}
        external_id = str(data.get("external_id", "")).strip()
        if not external_id:
            return jsonify({"error": "external_id is required"}), 400
        try:
            linked = context.registration.link(external_id, data.get("tag_id"))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(linked.to_dict())
