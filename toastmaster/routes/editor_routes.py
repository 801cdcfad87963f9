from flask import Blueprint, jsonify, request

from toastmaster.errors import GenerationError, QuizError
from toastmaster.services import editor_service
from toastmaster.services.generation_service import generate_questions
from toastmaster.services.join_service import join_url
from toastmaster.services.media_service import store_media

editor_bp = Blueprint("editor", __name__)


@editor_bp.errorhandler(QuizError)
def handle_quiz_error(e):
    payload = {"status": "error", "reason": e.reason, "msg": str(e)}
    if isinstance(e, GenerationError):
        payload["details"] = e.details
        return jsonify(payload), e.status
    return jsonify(payload), 404 if e.reason == "not_found" else 400


def _quiz_data(quiz_data):
    return jsonify({"status": "ok", "quizData": quiz_data})


def _json():
    return request.get_json(silent=True) or {}


# -------------------
# SEGMENTS
# -------------------
@editor_bp.route("/segments", methods=["POST"])
def create_segment():
    data = _json()
    segment = editor_service.create_segment(data.get("title"), data.get("quizData"))
    return jsonify({"status": "ok", "segment": editor_service.serialize_segment(segment)}), 201


@editor_bp.route("/segments/<int:segment_id>")
def get_segment(segment_id):
    quiz_data = editor_service.load_quiz_data(segment_id)
    segment = editor_service.get_segment(segment_id)
    return jsonify({
        "status": "ok",
        "segment": editor_service.serialize_segment(segment),
        "quizData": quiz_data,
    })


# -------------------
# QUESTIONS
# -------------------
@editor_bp.route("/segments/<int:segment_id>/questions", methods=["POST"])
def add_question(segment_id):
    return _quiz_data(editor_service.add_question(segment_id))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>", methods=["PATCH"])
def update_question(segment_id, index):
    data = _json()
    return _quiz_data(editor_service.update_question(
        segment_id,
        index,
        text=data.get("question"),
        time_limit=data.get("timeLimit"),
        point_type=data.get("pointType"),
    ))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>", methods=["DELETE"])
def remove_question(segment_id, index):
    return _quiz_data(editor_service.remove_question(segment_id, index))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/select", methods=["POST"])
def select_question(segment_id, index):
    return _quiz_data(editor_service.select_question(segment_id, index))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/toggle_options", methods=["POST"])
def toggle_option_count(segment_id, index):
    return _quiz_data(editor_service.toggle_option_count(segment_id, index))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/options/<int:option_index>", methods=["PATCH"])
def update_option(segment_id, index, option_index):
    return _quiz_data(editor_service.update_option(segment_id, index, option_index, _json().get("text")))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/correct/<int:option_index>", methods=["POST"])
def set_correct_answer(segment_id, index, option_index):
    return _quiz_data(editor_service.set_correct_answer(segment_id, index, option_index))


# -------------------
# MEDIA
# -------------------
@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/media", methods=["POST"])
def attach_media(segment_id, index):
    if "file" in request.files:
        media = store_media(request.files["file"])
    else:
        media = _json()
    return _quiz_data(editor_service.attach_media(segment_id, index, media))


@editor_bp.route("/segments/<int:segment_id>/questions/<int:index>/media", methods=["DELETE"])
def remove_media(segment_id, index):
    return _quiz_data(editor_service.remove_media(segment_id, index))


# -------------------
# GENERATE / PRESENT
# -------------------
@editor_bp.route("/segments/<int:segment_id>/generate", methods=["POST"])
def generate(segment_id):
    existing = editor_service.load_quiz_data(segment_id)["questions"]
    questions = generate_questions(_json().get("prompt"), existing)
    quiz_data = editor_service.append_generated(segment_id, questions)
    count = len(questions)
    return jsonify({
        "status": "ok",
        "questions": questions,
        "quizData": quiz_data,
        "msg": f"Generated {count} quiz question{'s' if count != 1 else ''} successfully!",
    })


@editor_bp.route("/segments/<int:segment_id>/present", methods=["POST"])
def present(segment_id):
    result = editor_service.present_segment(segment_id)
    if not result:
        return jsonify(result.to_dict()), 404 if result.reason == "not_found" else 400
    code = result.data["sessionCode"]
    return jsonify({**result.to_dict(), "joinUrl": join_url(code), "qrUrl": f"/qr/{code}.png"})
