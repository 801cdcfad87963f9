"""Participant Registry: joining a live quiz session."""

import datetime
import logging
import re

from flask import current_app

from toastmaster.errors import CommandResult
from toastmaster.services import session_store
from toastmaster.services.utils import generate_id

log = logging.getLogger(__name__)

PARTICIPANT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
MAX_USERNAME = 100


def placeholder_name(participant_id):
    return f"Participant-{participant_id[:4]}"


def valid_participant_id(participant_id):
    return bool(participant_id) and bool(PARTICIPANT_ID_RE.match(participant_id))


def new_participant_record(username):
    return {
        "username": username,
        "responses": {},
        "scores": {},
        "totalScore": 0,
        "joinedAt": datetime.datetime.utcnow().isoformat() + "Z",
    }


def join(session_code, participant_id, username, policy=None):
    """
    Adds participant_id to the session roster.

    A rejoin with a known id follows REJOIN_POLICY: "merge" keeps earlier answers
    and only renames, "reset" replaces the record.
    """
    name = (username or "").strip()[:MAX_USERNAME]
    if not name:
        return CommandResult.failure("invalid_username", "Please enter a name.")

    participant_id = (participant_id or "").strip() or generate_id()
    if not valid_participant_id(participant_id):
        return CommandResult.failure("invalid_participant", "Invalid participant id.")

    document = session_store.get(session_code)
    if document is None:
        return CommandResult.failure("not_found", "Quiz not found")

    policy = policy or current_app.config.get("REJOIN_POLICY", "merge")
    existing = document["participants"].get(participant_id)

    if existing is not None and policy == "merge":
        fields = {f"participants.{participant_id}.username": name}
    else:
        fields = {f"participants.{participant_id}": new_participant_record(name)}

    if not session_store.apply_partial_update(document["sessionCode"], fields):
        log.error("join: failed to register %s in quiz %s", participant_id, document["sessionCode"])
        return CommandResult.failure("store_write_failed", "Failed to join quiz. Please try again.")

    log.info(
        "%s %s (%s) in quiz %s",
        "Rejoined" if existing is not None else "Joined",
        name, participant_id, document["sessionCode"],
    )
    return CommandResult.success(
        participantId=participant_id,
        username=name,
        rejoined=existing is not None,
        sessionCode=document["sessionCode"],
        questionsVersion=document["questionsVersion"],
    )
