from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict

from flask import Flask, Response, jsonify, request
from flask_wtf.csrf import CSRFProtect

from .models import parse_roster
from .pairing import topology_from_options
from .session import SeatingSession
from .storage import JsonConfirmedLayoutStore, sanitize_class_id

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def create_app() -> Flask:
    app = Flask(__name__)

    secret_key = os.getenv("SECRET_KEY")
    is_dev = os.getenv("FLASK_DEBUG", "").lower() == "true" or os.getenv(
        "FLASK_ENV", ""
    ).lower() == "development"
    if not secret_key and not is_dev:
        raise ValueError("SECRET_KEY environment variable is required in production")

    app.config["SECRET_KEY"] = secret_key or "dev-key-not-for-production"
    app.config["WTF_CSRF_HEADERS"] = ["X-CSRFToken"]
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_CONTENT_LENGTH", "1048576"))

    if not is_dev:
        app.config["SESSION_COOKIE_SECURE"] = True
        app.config["SESSION_COOKIE_HTTPONLY"] = True
        app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    CSRFProtect(app)

    if not is_dev:
        log_file = os.getenv("LOG_FILE")
        if log_file:
            handler = RotatingFileHandler(log_file, maxBytes=10485760, backupCount=10)
        else:
            handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
        )
        app.logger.addHandler(handler)
        app.logger.setLevel(logging.INFO)

    data_dir = Path(os.getenv("SEATSHUFFLE_DATA_DIR", str(PROJECT_ROOT)))
    store = JsonConfirmedLayoutStore(data_dir)
    sessions: Dict[str, SeatingSession] = {}

    def get_session(class_id: str) -> SeatingSession:
        key = sanitize_class_id(class_id)
        if key not in sessions:
            sessions[key] = SeatingSession(key, store=store)
            app.logger.info("Opened seating session for class %s", key)
        return sessions[key]

    def json_body() -> Dict[str, object]:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        return data

    @app.get("/classes/<class_id>/")
    def get_state(class_id: str) -> Response:
        return jsonify(get_session(class_id).state())

    @app.post("/classes/<class_id>/roster")
    def set_roster(class_id: str) -> Response:
        session = get_session(class_id)
        session.set_roster(parse_roster(json_body().get("students")))
        return jsonify(session.state())

    @app.post("/classes/<class_id>/layout")
    def configure_layout(class_id: str) -> Response:
        session = get_session(class_id)
        session.configure(topology_from_options(json_body()))
        return jsonify(session.state())

    @app.post("/classes/<class_id>/fixed-seats/<int:seat_id>")
    def toggle_fixed_seat(class_id: str, seat_id: int) -> Response:
        session = get_session(class_id)
        pinned = session.toggle_fixed_seat(seat_id)
        return jsonify({"seatId": seat_id, "fixed": pinned, "state": session.state()})

    @app.post("/classes/<class_id>/shuffle")
    def shuffle(class_id: str) -> Response:
        session = get_session(class_id)
        data = json_body()
        result = session.shuffle(
            avoid_prev_seat=bool(data.get("avoidPrevSeat", False)),
            avoid_prev_partner=bool(data.get("avoidPrevPartner", False)),
        )
        if not result.ok:
            app.logger.info("Shuffle for %s finished with %s: %s", session.class_id, result.status, result.reasons)
        return jsonify({"result": result.to_dict(), "state": session.state()})

    @app.post("/classes/<class_id>/swap")
    def swap(class_id: str) -> Response:
        session = get_session(class_id)
        data = json_body()
        try:
            seat_a = int(data.get("seatA"))
            seat_b = int(data.get("seatB"))
        except (TypeError, ValueError) as exc:
            raise ValueError("seatA and seatB must be seat ids") from exc
        session.swap(seat_a, seat_b)
        return jsonify(session.state())

    @app.post("/classes/<class_id>/undo")
    def undo(class_id: str) -> Response:
        session = get_session(class_id)
        outcome = session.undo()
        return jsonify({"ok": outcome.ok, "reason": outcome.reason, "state": session.state()})

    @app.post("/classes/<class_id>/redo")
    def redo(class_id: str) -> Response:
        session = get_session(class_id)
        outcome = session.redo()
        return jsonify({"ok": outcome.ok, "reason": outcome.reason, "state": session.state()})

    @app.post("/classes/<class_id>/confirm")
    def confirm(class_id: str) -> Response:
        record = get_session(class_id).confirm()
        return jsonify({"status": "success", "record": record.to_dict()})

    @app.get("/classes/<class_id>/confirmed")
    def list_confirmed(class_id: str) -> Response:
        records = get_session(class_id).confirmed_history()
        return jsonify({"records": [record.to_dict() for record in records]})

    @app.delete("/classes/<class_id>/confirmed/<record_id>")
    def delete_confirmed(class_id: str, record_id: str) -> Response:
        if not get_session(class_id).delete_confirmed(record_id):
            raise KeyError(f"Confirmed layout {record_id} not found")
        return jsonify({"status": "success", "message": "Confirmed layout deleted"})

    @app.errorhandler(ValueError)
    def handle_value_error(err: ValueError) -> tuple[Response, int]:
        app.logger.warning("Validation error: %s", err)
        return jsonify({"status": "error", "message": str(err)}), 400

    @app.errorhandler(KeyError)
    def handle_key_error(err: KeyError) -> tuple[Response, int]:
        app.logger.warning("Not found: %s", err)
        return jsonify({"status": "error", "message": str(err.args[0]) if err.args else "Not found"}), 404

    @app.errorhandler(FileNotFoundError)
    def handle_file_not_found(err: FileNotFoundError) -> tuple[Response, int]:
        app.logger.warning("File not found: %s", err)
        return jsonify({"status": "error", "message": "Not found"}), 404

    @app.errorhandler(404)
    def not_found(error) -> tuple[Response, int]:
        return jsonify({"status": "error", "message": "Page not found"}), 404

    @app.errorhandler(500)
    def server_error(error) -> tuple[Response, int]:
        app.logger.error("Server error: %s", error)
        return jsonify({"status": "error", "message": "Server error"}), 500

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'self'"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    return app


def main() -> None:
    app = create_app()
    debug = os.getenv("FLASK_DEBUG", "").lower() == "true"
    port = int(os.getenv("PORT", 5000))
    host = os.getenv("HOST", "127.0.0.1")

    app.run(debug=debug, host=host, port=port)


if __name__ == "__main__":
    main()
