"""
Python clients for a live quiz: a participant device and a host/presentation display.

Both hold a reconciled copy of the session document fed by session_update
pushes. A refused command triggers a fresh HTTP read so local state never
keeps what the server rejected.
"""

import logging

import requests
import socketio
from socketio.exceptions import TimeoutError as AckTimeout

from toastmaster.services.reconciliation import HostReconciler, ParticipantView
from toastmaster.services.utils import normalize_session_code

log = logging.getLogger(__name__)

ACK_TIMEOUT = 10


class QuizSyncClient:
    def __init__(self, server_url, session_code, sio=None, http=None):
        self.server_url = server_url.rstrip("/")
        self.session_code = normalize_session_code(session_code)
        self.sio = sio or socketio.Client(reconnection=True)
        self.http = http or requests.Session()
        self.not_found = False
        self.remaining = None

        self.sio.on("connect", self._on_connect)
        self.sio.on("session_update", self._on_session_update)
        self.sio.on("quiz_not_found", self._on_not_found)
        self.sio.on("timer_update", self._on_timer_update)

    # --- CONNECTION ---

    def connect(self):
        self.sio.connect(self.server_url, wait_timeout=ACK_TIMEOUT)

    def disconnect(self):
        if self.sio.connected:
            self.sio.emit("unsubscribe", {"sessionCode": self.session_code})
            self.sio.disconnect()

    def _on_connect(self):
        # also runs after every reconnect, the room membership is per connection
        self.sio.emit("subscribe", {"sessionCode": self.session_code})

    # --- PUSHES ---

    def _on_session_update(self, document):
        if not document or document.get("sessionCode") != self.session_code:
            return
        self.not_found = False
        self.apply(document)

    def _on_not_found(self, data):
        log.warning("Quiz %s not found", (data or {}).get("sessionCode", self.session_code))
        self.not_found = True
        self.apply(None)

    def _on_timer_update(self, data):
        if data and data.get("sessionCode") == self.session_code:
            self.remaining = data.get("remaining")

    def apply(self, document):
        raise NotImplementedError

    # --- COMMANDS ---

    def call(self, event, payload=None):
        data = {"sessionCode": self.session_code, **(payload or {})}
        try:
            ack = self.sio.call(event, data, timeout=ACK_TIMEOUT)
        except AckTimeout:
            log.warning("%s on quiz %s timed out", event, self.session_code)
            ack = {"status": "error", "reason": "timeout", "msg": "No answer from the server."}
        return ack or {"status": "error", "reason": "no_ack", "msg": "No answer from the server."}

    def fetch(self):
        """Fresh copy of the document over HTTP, or None."""
        try:
            response = self.http.get(f"{self.server_url}/api/quiz/{self.session_code}", timeout=ACK_TIMEOUT)
        except requests.RequestException as e:
            log.warning("Could not re-read quiz %s: %s", self.session_code, e)
            return None
        if response.status_code != 200:
            return None
        return response.json().get("quiz")


class ParticipantClient(QuizSyncClient):
    def __init__(self, server_url, session_code, participant_id="", sio=None, http=None):
        self.view = ParticipantView(participant_id)
        super().__init__(server_url, session_code, sio=sio, http=http)

    @property
    def state(self):
        return self.view.state

    def apply(self, document):
        return self.view.on_push(document)

    def join(self, username):
        ack = self.call("player_join", {"participantId": self.view.participant_id, "username": username})
        if ack.get("status") == "ok":
            self.view.participant_id = ack["participantId"]
        else:
            self.view.error = ack.get("msg")
        return ack

    def answer(self, option_id):
        question = self.view.question
        if question is None or not self.view.select(option_id):
            return {"status": "error", "reason": "not_answerable", "msg": "This question is not open."}

        ack = self.call("player_submit_answer", {
            "participantId": self.view.participant_id,
            "questionId": question["id"],
            "optionId": option_id,
        })
        ok = ack.get("status") == "ok"
        self.view.confirm(question["id"], ok, ack.get("msg", ""))
        if not ok:
            self.view.resync(self.fetch())
        return ack


class HostClient(QuizSyncClient):
    def __init__(self, server_url, session_code, sio=None, http=None):
        self.reconciler = HostReconciler()
        super().__init__(server_url, session_code, sio=sio, http=http)

    @property
    def state(self):
        return self.reconciler.state

    def apply(self, document):
        return self.reconciler.apply(document)

    def _command(self, event):
        ack = self.call(event)
        if ack.get("status") != "ok":
            log.warning("%s refused: %s", event, ack.get("reason"))
            document = self.fetch()
            if document is not None:
                self.reconciler.state = document
        return ack

    def start(self):
        return self._command("host_start")

    def toggle_results(self):
        return self._command("host_toggle_results")

    def advance(self):
        return self._command("host_advance")

    def show_final_results(self):
        return self._command("host_show_final")

    def complete(self):
        return self._command("host_complete")
