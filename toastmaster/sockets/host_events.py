import logging

from flask import request
from flask_socketio import emit

from toastmaster.services import host_controller
from toastmaster.services.utils import normalize_session_code

log = logging.getLogger(__name__)

HOST_ACTIONS = {
    "host_start": "start_session",
    "host_toggle_results": "toggle_results",
    "host_advance": "advance",
    "host_show_final": "show_final_results",
    "host_complete": "complete_session",
}


def run_host_action(session_code, action):
    """Runs one controller transition and returns its wire payload."""
    controller = host_controller.get_controller(session_code)
    if controller is None:
        return {"status": "error", "reason": "not_found", "msg": "Quiz not found", "action": action}
    payload = getattr(controller, action)().to_dict()
    payload["action"] = action
    payload["phase"] = controller.phase.value
    return payload


def register_host_events(socketio):

    def make_handler(event, action):
        def handler(data):
            code = normalize_session_code((data or {}).get("sessionCode"))
            payload = run_host_action(code, action)
            log.info("%s on quiz %s: %s", event, code, payload["status"])
            emit("host_result", payload, to=request.sid)
            return payload
        handler.__name__ = f"handle_{event}"
        return handler

    for event, action in HOST_ACTIONS.items():
        socketio.on(event)(make_handler(event, action))
