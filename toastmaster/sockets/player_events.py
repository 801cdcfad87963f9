import logging

from flask import request
from flask_socketio import emit, join_room

from toastmaster.services import grading_service, participant_service
from toastmaster.services.utils import normalize_session_code

log = logging.getLogger(__name__)


def register_player_events(socketio):

    # ---------------------------
    # PLAYER JOIN
    # ---------------------------
    @socketio.on("player_join")
    def handle_join(data):
        data = data or {}
        code = normalize_session_code(data.get("sessionCode"))
        result = participant_service.join(code, data.get("participantId"), data.get("username"))
        if not result:
            emit("join_error", result.to_dict(), to=request.sid)
            return result.to_dict()

        # joining also subscribes the device to the live document
        join_room(code)
        emit("join_success", result.to_dict(), to=request.sid)
        return result.to_dict()

    # ---------------------------
    # PLAYER SUBMIT ANSWER
    # ---------------------------
    @socketio.on("player_submit_answer")
    def handle_player_answer(data):
        data = data or {}
        result = grading_service.submit_answer(
            normalize_session_code(data.get("sessionCode")),
            data.get("participantId"),
            data.get("questionId"),
            data.get("optionId"),
        )
        payload = result.to_dict()
        payload.setdefault("questionId", data.get("questionId"))
        emit("answer_accepted" if result else "answer_rejected", payload, to=request.sid)
        return payload
