from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body
from ..container import Container


def register(app: Flask, container: Container) -> None:
    sync = container.config_sync

    @app.route("/api/settings", methods=["GET"], endpoint="settings_get")
    def settings_get():
        return jsonify(sync.current.to_dict())

    @app.route("/api/settings", methods=["PATCH"], endpoint="settings_update")
    def settings_update():
        return jsonify(sync.update(json_body()).to_dict())

    @app.route("/api/settings/<key>/reset", methods=["POST"], endpoint="settings_reset_field")
    def settings_reset_field(key: str):
        return jsonify(sync.reset_field(key).to_dict())
