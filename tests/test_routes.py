"""
Integration tests for the HTTP API.

Tests cover:
- Public quiz endpoints (get, join, answer, stats, leaderboard)
- Host transitions over HTTP
- Editor flow from segment to live session, with generation mocked
- Uploads and the QR code
"""

import io
import json
from unittest.mock import MagicMock, patch

import httpx
import openai

from conftest import build_question


# ============================================================================
# PUBLIC
# ============================================================================

def test_get_unknown_quiz_is_404(client):
    response = client.get("/api/quiz/NOPE00")
    assert response.status_code == 404
    assert response.get_json() == {"status": "error", "msg": "Quiz not found"}


def test_join_link_resolves_to_quiz_page(client, session_code):
    response = client.get(f"/QuizApp/{session_code.lower()}")
    assert response.status_code == 200
    page = response.get_data(as_text=True)
    assert "Team Night" in page
    assert f'data-join-url="/api/quiz/{session_code}/join"' in page

    response = client.get("/QuizApp/NOPE00")
    assert response.status_code == 404
    assert "Quiz not found" in response.get_data(as_text=True)


def test_join_answer_stats_leaderboard(client, live_code):
    response = client.post(f"/api/quiz/{live_code}/join", json={"participantId": "p1", "username": "Alice"})
    assert response.status_code == 200
    assert response.get_json()["participantId"] == "p1"

    response = client.post(f"/api/quiz/{live_code}/answer", json={"participantId": "p1", "questionId": "q1", "optionId": "a"})
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["points"] == 100

    quiz = client.get(f"/api/quiz/{live_code.lower()}").get_json()["quiz"]
    assert quiz["participants"]["p1"]["totalScore"] == 100
    assert quiz["responses"] == {"q1": {"a": ["p1"]}}

    stats = client.get(f"/api/quiz/{live_code}/stats/q1").get_json()["stats"]
    assert [s["count"] for s in stats] == [1, 0]
    assert client.get(f"/api/quiz/{live_code}/stats/zzz").status_code == 404

    board = client.get(f"/api/quiz/{live_code}/leaderboard").get_json()
    assert board["podium"][0]["participantId"] == "p1"


def test_join_errors(client, session_code):
    assert client.post("/api/quiz/NOPE00/join", json={"username": "Alice"}).status_code == 404
    response = client.post(f"/api/quiz/{session_code}/join", json={"username": ""})
    assert response.status_code == 400
    assert response.get_json()["reason"] == "invalid_username"


def test_answer_errors(client, live_code):
    assert client.post(f"/api/quiz/{live_code}/answer", json={"questionId": "q1"}).status_code == 400
    response = client.post(f"/api/quiz/{live_code}/answer", json={"participantId": "p1", "questionId": "q1", "optionId": "zzz"})
    assert response.get_json()["reason"] == "option_not_found"


# ============================================================================
# HOST
# ============================================================================

def test_host_flow_over_http(client, controller):
    code = controller.session_code
    assert client.post(f"/host/{code}/start").status_code == 409

    client.post(f"/api/quiz/{code}/join", json={"participantId": "p1", "username": "Alice"})
    response = client.post(f"/host/{code}/start")
    assert response.status_code == 200
    assert response.get_json()["phase"] == "question_live"

    assert client.post(f"/host/{code}/toggle_results").get_json()["phase"] == "showing_results"
    assert client.post(f"/host/{code}/advance").get_json()["currentQuestionIndex"] == 1
    final = client.post(f"/host/{code}/final_results").get_json()
    assert final["phase"] == "finished"
    assert final["leaderboard"]["participantCount"] == 1

    state = client.get(f"/host/{code}/state").get_json()
    assert state["finalResultsShown"] is True
    assert state["quiz"]["isComplete"] is False
    assert state["answerKey"]["option_id"] == "c"
    assert state["joinUrl"].endswith(f"/QuizApp/{code}")

    assert client.post(f"/host/{code}/complete").status_code == 200


def test_host_unknown_quiz(client):
    assert client.post("/host/NOPE00/start").status_code == 404
    assert client.get("/host/NOPE00/state").status_code == 404


# ============================================================================
# EDITOR
# ============================================================================

def test_editor_flow(client):
    response = client.post("/editor/segments", json={"title": "Quiz Night"})
    assert response.status_code == 201
    segment_id = response.get_json()["segment"]["id"]

    quiz_data = client.get(f"/editor/segments/{segment_id}").get_json()["quizData"]
    assert len(quiz_data["questions"]) == 1

    client.post(f"/editor/segments/{segment_id}/questions")
    client.patch(f"/editor/segments/{segment_id}/questions/1", json={"question": "Best fjord?", "pointType": "double"})
    client.post(f"/editor/segments/{segment_id}/questions/1/toggle_options")
    client.patch(f"/editor/segments/{segment_id}/questions/1/options/2", json={"text": "Geiranger"})
    quiz_data = client.post(f"/editor/segments/{segment_id}/questions/1/correct/2").get_json()["quizData"]
    question = quiz_data["questions"][1]
    assert question["question"] == "Best fjord?"
    assert question["options"][2] == {**question["options"][2], "text": "Geiranger", "isCorrect": True}

    response = client.patch(f"/editor/segments/{segment_id}/questions/9", json={"question": "x"})
    assert response.status_code == 400

    response = client.post(f"/editor/segments/{segment_id}/present")
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["joinUrl"] == f"https://party.example/QuizApp/{body['sessionCode']}"
    assert client.get(f"/api/quiz/{body['sessionCode']}").status_code == 200


def test_editor_unknown_segment(client):
    assert client.get("/editor/segments/404").status_code == 404


def test_editor_generate(client):
    segment_id = client.post("/editor/segments", json={}).get_json()["segment"]["id"]
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=json.dumps({"questions": [build_question("g1")]})))]
    with patch("toastmaster.services.generation_service.OpenAI") as mock_openai:
        mock_openai.return_value.chat.completions.create.return_value = completion
        response = client.post(f"/editor/segments/{segment_id}/generate", json={"prompt": "Norway"})
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["msg"] == "Generated 1 quiz question successfully!"
    assert len(body["quizData"]["questions"]) == 1


def test_editor_generate_error_status(client):
    segment_id = client.post("/editor/segments", json={}).get_json()["segment"]["id"]
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    quota = openai.RateLimitError("quota", response=httpx.Response(429, request=request), body=None)
    with patch("toastmaster.services.generation_service.OpenAI") as mock_openai:
        mock_openai.return_value.chat.completions.create.side_effect = quota
        response = client.post(f"/editor/segments/{segment_id}/generate", json={"prompt": "Norway"})
    assert response.status_code == 429
    assert response.get_json()["reason"] == "generation_failed"


def test_editor_media_upload(client):
    segment_id = client.post("/editor/segments", json={}).get_json()["segment"]["id"]
    response = client.post(
        f"/editor/segments/{segment_id}/questions/0/media",
        data={"file": (io.BytesIO(b"\x89PNG"), "cat.png", "image/png")},
        content_type="multipart/form-data",
    )
    media = response.get_json()["quizData"]["questions"][0]["media"]
    assert media["type"] == "image"
    assert client.get(media["url"]).data == b"\x89PNG"


# ============================================================================
# FILES
# ============================================================================

def test_upload_and_serve(client):
    response = client.post(
        "/upload",
        data={"file": (io.BytesIO(b"video-bytes"), "clip.mp4", "video/mp4")},
        content_type="multipart/form-data",
    )
    body = response.get_json()
    assert body["type"] == "video"
    assert client.get(body["url"]).data == b"video-bytes"

    response = client.post("/upload", data={}, content_type="multipart/form-data")
    assert response.status_code == 400


def test_qr_code(client, session_code):
    response = client.get(f"/qr/{session_code}.png")
    assert response.status_code == 200
    assert response.mimetype == "image/png"
    assert client.get("/qr/NOPE00.png").status_code == 404
