"""Web dashboard and JSON API for the nozzle concentrator."""

from datetime import datetime, timezone

from flask import Flask, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from nozzle_monitor.controllers.nozzle_state_machine import STATUS_LABELS
from nozzle_monitor.exceptions import InvalidCommandError, NozzleNotFoundError


def create_app(controller, settings=None):
    settings = settings or {}
    web_cfg = settings.get("web", {})
    device_cfg = settings.get("device", {})

    app = Flask(__name__, template_folder="templates")
    app.config["CONTROLLER"] = controller

    if web_cfg.get("log_requests", True):
        @app.before_request
        def log_request():
            stamp = datetime.now(timezone.utc).isoformat()
            print(f"{stamp} - {request.method} {request.full_path.rstrip('?')}")

    @app.route("/")
    def index():
        return render_template(
            "index.html",
            labels=STATUS_LABELS,
            device=device_cfg,
        )

    @app.route("/api/status")
    def api_status():
        return jsonify(controller.snapshot())

    @app.route("/api/summary")
    def api_summary():
        return jsonify({
            "counts": controller.summary(),
            "protocol": device_cfg.get("protocol", "Horustech"),
            "device": device_cfg.get("id", "CONCENTRADOR"),
        })

    @app.route("/api/nozzles/<nozzle_id>")
    def api_nozzle(nozzle_id):
        return jsonify(controller.get(nozzle_id))

    @app.route("/api/command", methods=["POST"])
    def api_command():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        nozzle = controller.apply(payload.get("nozzleId"), payload.get("command"))
        return jsonify({"success": True, "nozzle": nozzle})

    @app.errorhandler(NozzleNotFoundError)
    def handle_not_found(exc):
        return jsonify({"error": "Nozzle not found"}), 404

    @app.errorhandler(InvalidCommandError)
    def handle_invalid_command(exc):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(Exception)
    def handle_internal(exc):
        # Let Flask render its own 404/405 etc.
        if isinstance(exc, HTTPException):
            return exc
        print(f"[WEB] {request.method} {request.path} failed: {exc!r}")
        return jsonify({"error": "Internal server error"}), 500

    return app


def run_app(app, settings):
    web_cfg = settings.get("web", {})
    host = web_cfg.get("host", "0.0.0.0")
    port = int(web_cfg.get("port", 3000))
    print(f"[WEB] Server running on http://localhost:{port}")
    app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True)
