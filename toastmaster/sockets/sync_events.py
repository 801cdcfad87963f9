import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from extensions import socketio
from toastmaster.services import session_store
from toastmaster.services.utils import normalize_session_code

log = logging.getLogger(__name__)

NOT_FOUND = {"status": "error", "reason": "not_found", "msg": "Quiz not found"}


def broadcast_session(session_code, document):
    """Write hook: every committed write goes to the session room as the whole document."""
    if document is None:
        socketio.emit("quiz_not_found", {"sessionCode": session_code, "msg": "Quiz not found"}, to=session_code)
    else:
        socketio.emit("session_update", document, to=session_code)


def register_sync_events(socketio):
    session_store.add_write_hook(broadcast_session)

    # ---------------------------
    # SUBSCRIBE / UNSUBSCRIBE
    # ---------------------------
    @socketio.on("subscribe")
    def handle_subscribe(data):
        code = normalize_session_code((data or {}).get("sessionCode"))
        document = session_store.get(code) if code else None
        if document is None:
            emit("quiz_not_found", {"sessionCode": code, "msg": "Quiz not found"}, to=request.sid)
            return NOT_FOUND

        join_room(code)
        log.info("Client %s subscribed to quiz %s", request.sid, code)
        emit("session_update", document, to=request.sid)
        return {"status": "ok", "sessionCode": code, "version": document["version"]}

    @socketio.on("unsubscribe")
    def handle_unsubscribe(data):
        code = normalize_session_code((data or {}).get("sessionCode"))
        if code:
            leave_room(code)
        return {"status": "ok"}
