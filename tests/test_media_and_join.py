"""Unit tests for media uploads and the join address / QR code."""

import io
import os

import pytest
from werkzeug.datastructures import FileStorage

from toastmaster.errors import MediaError
from toastmaster.services.join_service import join_qr_png, join_url
from toastmaster.services.media_service import media_type, store_media


def _upload(name, content=b"data", mimetype=None):
    return FileStorage(stream=io.BytesIO(content), filename=name, content_type=mimetype)


@pytest.mark.parametrize("name,mimetype,expected", [
    ("cat.png", "image/png", "image"),
    ("clip.mp4", "video/mp4", "video"),
    ("clip.webm", None, "video"),
    ("photo.JPG", "application/octet-stream", "image"),
    ("notes.txt", "text/plain", None),
])
def test_media_type(name, mimetype, expected):
    assert media_type(name, mimetype) == expected


def test_store_media_saves_under_uploads(app):
    with app.test_request_context():
        media = store_media(_upload("../../My Cat.png", b"\x89PNG", "image/png"))
    assert media["type"] == "image"
    assert media["url"].startswith("/uploads/")
    stored_name = media["url"].rsplit("/", 1)[1]
    assert stored_name.endswith("_My_Cat.png")
    with open(os.path.join(app.config["UPLOADS_DIR"], stored_name), "rb") as handle:
        assert handle.read() == b"\x89PNG"


@pytest.mark.parametrize("upload", [
    None,
    FileStorage(stream=io.BytesIO(b""), filename=""),
])
def test_store_media_requires_a_file(app, upload):
    with pytest.raises(MediaError):
        store_media(upload)


def test_store_media_rejects_other_types(app):
    with pytest.raises(MediaError):
        store_media(_upload("script.sh", b"#!/bin/sh", "text/x-sh"))


def test_store_media_rejects_empty_file(app):
    with pytest.raises(MediaError):
        store_media(_upload("cat.png", b"", "image/png"))


def test_join_url_and_qr(app):
    assert join_url("abc123") == "https://party.example/QuizApp/ABC123"
    png = join_qr_png("ABC123")
    assert png.startswith(b"\x89PNG")
