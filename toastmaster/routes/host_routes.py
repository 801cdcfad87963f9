from flask import Blueprint, jsonify

from toastmaster.routes.public_routes import STATUS_BY_REASON
from toastmaster.services import host_controller
from toastmaster.services.join_service import join_url
from toastmaster.sockets.host_events import run_host_action

host_bp = Blueprint("host", __name__)

HOST_STATUS_BY_REASON = {
    **STATUS_BY_REASON,
    "busy": 409,
    "invalid_state": 409,
    "not_last_question": 409,
    "no_participants": 409,
    "no_questions": 409,
}


def _action(code, action):
    payload = run_host_action(code, action)
    status = 200 if payload["status"] == "ok" else HOST_STATUS_BY_REASON.get(payload.get("reason"), 400)
    return jsonify(payload), status


@host_bp.route("/<code>/state")
def host_state(code):
    controller = host_controller.get_controller(code)
    if controller is None:
        return jsonify({"status": "error", "msg": "Quiz not found"}), 404
    return jsonify({"status": "ok", "joinUrl": join_url(code), **controller.snapshot()})


@host_bp.route("/<code>/start", methods=["POST"])
def start(code):
    return _action(code, "start_session")


@host_bp.route("/<code>/toggle_results", methods=["POST"])
def toggle_results(code):
    return _action(code, "toggle_results")


@host_bp.route("/<code>/advance", methods=["POST"])
def advance(code):
    return _action(code, "advance")


@host_bp.route("/<code>/final_results", methods=["POST"])
def final_results(code):
    return _action(code, "show_final_results")


@host_bp.route("/<code>/complete", methods=["POST"])
def complete(code):
    return _action(code, "complete_session")
