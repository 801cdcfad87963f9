from flask import Blueprint, jsonify, request

from toastmaster.errors import CommandResult
from toastmaster.services import grading_service, participant_service, session_store
from toastmaster.services.results_service import leaderboard, question_stats

public_bp = Blueprint("public", __name__)

STATUS_BY_REASON = {
    "not_found": 404,
    "invalid_username": 400,
    "invalid_participant": 400,
    "question_not_found": 404,
    "option_not_found": 400,
    "participant_not_found": 404,
    "late_answer": 409,
    "store_write_failed": 503,
    "internal_error": 500,
}


def _not_found():
    return jsonify({"status": "error", "msg": "Quiz not found"}), 404


def result_response(result: CommandResult, ok_status=200):
    if result:
        return jsonify(result.to_dict()), ok_status
    return jsonify(result.to_dict()), STATUS_BY_REASON.get(result.reason, 400)


@public_bp.route("/<code>")
def get_quiz(code):
    document = session_store.get(code)
    if document is None:
        return _not_found()
    return jsonify({"status": "ok", "quiz": document})


@public_bp.route("/<code>/join", methods=["POST"])
def join_quiz(code):
    data = request.get_json(silent=True) or {}
    result = participant_service.join(code, data.get("participantId"), data.get("username"))
    return result_response(result)


@public_bp.route("/<code>/answer", methods=["POST"])
def submit_answer(code):
    data = request.get_json(silent=True) or {}
    if not data.get("participantId"):
        return jsonify({"status": "error", "reason": "invalid_participant", "msg": "participantId is required"}), 400
    result = grading_service.submit_answer(
        code,
        data["participantId"],
        data.get("questionId"),
        data.get("optionId"),
    )
    return result_response(result)


@public_bp.route("/<code>/stats/<question_id>")
def get_stats(code, question_id):
    document = session_store.get(code)
    if document is None:
        return _not_found()
    stats = question_stats(document, question_id)
    if stats is None:
        return jsonify({"status": "error", "msg": "Question not found"}), 404
    return jsonify({"status": "ok", "questionId": question_id, "stats": stats})


@public_bp.route("/<code>/leaderboard")
def get_leaderboard(code):
    document = session_store.get(code)
    if document is None:
        return _not_found()
    return jsonify({"status": "ok", **leaderboard(document)})
