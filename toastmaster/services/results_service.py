"""Aggregations over a session document: tallies, per-question stats, leaderboard."""

PODIUM_SIZE = 3


def build_response_index(participants):
    """questionId -> optionId -> [participantId], derived from participants[*].responses."""
    index = {}
    for participant_id, participant in participants.items():
        for question_id, option_id in (participant.get("responses") or {}).items():
            if option_id is None:
                continue
            index.setdefault(question_id, {}).setdefault(option_id, []).append(participant_id)
    return index


def tally(document, question_id):
    per_question = {}
    for participant_id, participant in (document.get("participants") or {}).items():
        option_id = (participant.get("responses") or {}).get(question_id)
        if option_id is not None:
            per_question.setdefault(option_id, []).append(participant_id)
    return per_question


def find_question(document, question_id):
    return next((q for q in document.get("questions") or [] if q["id"] == question_id), None)


def current_question(document):
    questions = document.get("questions") or []
    index = document.get("currentQuestionIndex", 0)
    if 0 <= index < len(questions):
        return questions[index]
    return None


def percentage(count, total):
    """Whole percent with halves rounded up, so 5 of 8 is 63."""
    if total <= 0:
        return 0
    return (count * 200 + total) // (2 * total)


def question_stats(document, question_id):
    """Per-option count and rounded percentage for one question, or None if unknown."""
    question = find_question(document, question_id)
    if question is None:
        return None

    responses = tally(document, question_id)
    total = sum(len(ids) for ids in responses.values())

    stats = []
    for option in question["options"]:
        count = len(responses.get(option["id"], []))
        stats.append({
            **option,
            "count": count,
            "percentage": percentage(count, total),
        })
    return stats


def answered_count(document, question_id):
    return sum(
        1 for p in (document.get("participants") or {}).values()
        if (p.get("responses") or {}).get(question_id) is not None
    )


def all_answered(document, question_id):
    participants = document.get("participants") or {}
    return bool(participants) and answered_count(document, question_id) == len(participants)


def ranked_participants(document):
    # sorted() is stable, so equal scores keep the insertion order of the mapping
    entries = [
        {
            "participantId": participant_id,
            "username": participant.get("username", ""),
            "totalScore": int(participant.get("totalScore", 0)),
        }
        for participant_id, participant in (document.get("participants") or {}).items()
    ]
    ranked = sorted(entries, key=lambda e: -e["totalScore"])
    for place, entry in enumerate(ranked, start=1):
        entry["place"] = place
    return ranked


def leaderboard(document):
    ranked = ranked_participants(document)
    return {
        "podium": ranked[:PODIUM_SIZE],
        "rest": ranked[PODIUM_SIZE:],
        "participantCount": len(ranked),
    }


def placement(document, participant_id):
    return next((e for e in ranked_participants(document) if e["participantId"] == participant_id), None)
