from flask import Blueprint, Response, current_app, jsonify, request, send_from_directory

from toastmaster.errors import MediaError
from toastmaster.services import session_store
from toastmaster.services.join_service import join_qr_png
from toastmaster.services.media_service import store_media

file_bp = Blueprint("file", __name__)


@file_bp.route("/upload", methods=["POST"])
def upload():
    try:
        media = store_media(request.files.get("file"))
    except MediaError as e:
        return jsonify({"status": "error", "msg": str(e)}), 400
    return jsonify({"status": "ok", **media})


@file_bp.route("/uploads/<path:filename>")
def serve_upload(filename):
    return send_from_directory(current_app.config["UPLOADS_DIR"], filename)


@file_bp.route("/qr/<code>.png")
def join_qr(code):
    if not session_store.exists(code):
        return jsonify({"status": "error", "msg": "Quiz not found"}), 404
    return Response(join_qr_png(code), mimetype="image/png")
