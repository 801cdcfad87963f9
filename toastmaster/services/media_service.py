import hashlib
import logging
import mimetypes
import os

from flask import current_app, url_for
from werkzeug.utils import secure_filename

from toastmaster.errors import MediaError

log = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg"}
VIDEO_EXTENSIONS = {".mp4", ".webm", ".mov", ".m4v", ".ogg"}


def media_type(filename, mimetype=None):
    """'image' or 'video' from the mimetype, falling back to the extension; None otherwise."""
    mimetype = mimetype or mimetypes.guess_type(filename)[0] or ""
    if mimetype.startswith("image/"):
        return "image"
    if mimetype.startswith("video/"):
        return "video"
    ext = os.path.splitext(filename)[1].lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return None


def store_media(file_storage):
    """
    Saves an uploaded werkzeug FileStorage under UPLOADS_DIR.
    Returns {"url", "type"}; raises MediaError for missing or unsupported files.
    """
    if file_storage is None or not file_storage.filename:
        raise MediaError("No file")

    safe_name = secure_filename(file_storage.filename)
    if not safe_name:
        raise MediaError("Invalid filename")

    kind = media_type(safe_name, file_storage.mimetype)
    if kind is None:
        raise MediaError(f"Unsupported media type: {file_storage.mimetype or safe_name}")

    content = file_storage.read()
    if not content:
        raise MediaError("Empty file")

    digest = hashlib.md5(content).hexdigest()[:12]
    stored_name = f"{digest}_{safe_name}"
    uploads_dir = current_app.config["UPLOADS_DIR"]
    os.makedirs(uploads_dir, exist_ok=True)
    with open(os.path.join(uploads_dir, stored_name), "wb") as handle:
        handle.write(content)

    log.info("Stored %s upload %s (%d bytes)", kind, stored_name, len(content))
    return {"url": url_for("file.serve_upload", filename=stored_name), "type": kind}
