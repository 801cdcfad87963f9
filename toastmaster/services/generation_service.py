import json
import logging

from flask import current_app
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    RateLimitError,
)

from toastmaster.errors import GenerationError, InvalidQuestion
from toastmaster.services.question_service import COLORS, ICONS, validate_question
from toastmaster.services.utils import generate_id

log = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""Generate 1-2 quiz questions. Always answer in the language of the request. Respond only with valid JSON.

Format: {{"questions":[{{"id":"q1","question":"question text","options":[{{"id":"a","text":"option","isCorrect":true,"color":"{COLORS[0]}","icon":"{ICONS[0]}"}},{{"id":"b","text":"option","isCorrect":false,"color":"{COLORS[1]}","icon":"{ICONS[1]}"}}],"timeLimit":30,"pointType":"standard"}}]}}

Each question has exactly 2 or 4 options and exactly one correct option.
Colors: A="{COLORS[0]}", B="{COLORS[1]}", C="{COLORS[2]}", D="{COLORS[3]}"
Icons: A="{ICONS[0]}", B="{ICONS[1]}", C="{ICONS[2]}", D="{ICONS[3]}"
"""


def _client(config):
    return OpenAI(
        api_key=config["OPENAI_API_KEY"],
        base_url=config.get("OPENAI_BASE_URL"),
        timeout=config.get("OPENAI_TIMEOUT", 30),
        max_retries=0,
    )


def _call_api(prompt, existing_questions):
    config = current_app.config
    if not config.get("OPENAI_API_KEY"):
        raise GenerationError(
            "OpenAI API key not configured. Set OPENAI_API_KEY and restart the server.",
            status=500,
            details="Question generation requires an OpenAI API key.",
        )

    existing = [q.get("question", "") for q in existing_questions if q.get("question")]
    user_prompt = prompt
    if existing:
        user_prompt += "\n\nDo not repeat these questions:\n" + "\n".join(f"- {text}" for text in existing)

    try:
        completion = _client(config).chat.completions.create(
            model=config["OPENAI_MODEL"],
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.9,
            max_tokens=600,
        )
    # APITimeoutError is an APIConnectionError, so it goes first
    except APITimeoutError as e:
        raise GenerationError(
            "Request timed out. Try a simpler prompt or try again.", status=408, details=str(e)
        ) from e
    except APIConnectionError as e:
        raise GenerationError(
            "Network error connecting to OpenAI. Please try again.", status=503, details=str(e)
        ) from e
    except RateLimitError as e:
        raise GenerationError(
            "OpenAI quota exceeded. Check your billing or try again later.",
            status=429,
            details="You may have reached your API usage limit.",
        ) from e
    except AuthenticationError as e:
        raise GenerationError(
            "OpenAI API key is invalid. Check your configuration.",
            status=401,
            details="The API key may be expired or incorrect.",
        ) from e
    except APIStatusError as e:
        raise GenerationError(
            "Error generating quiz questions. Please try again.",
            status=500,
            details=f"HTTP {e.status_code}: {e.message}",
        ) from e

    content = completion.choices[0].message.content if completion.choices else None
    if not content:
        raise GenerationError("No response from OpenAI.", status=502)
    return content


def _strip_fences(content):
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_questions(content, existing_ids=()):
    """
    Parses a {"questions": [...]} reply into validated questions whose ids
    do not clash with existing_ids.
    """
    try:
        payload = json.loads(_strip_fences(content or ""))
        raw_questions = payload["questions"]
        if not isinstance(raw_questions, list) or not raw_questions:
            raise ValueError("no questions array")
        taken = set(existing_ids)
        questions = []
        for raw in raw_questions:
            question = validate_question({**raw, "id": raw.get("id") or "generated"})
            if not question["question"].strip():
                raise InvalidQuestion("Generated question has no text")
            new_id = generate_id()
            while new_id in taken:
                new_id = generate_id()
            question["id"] = new_id
            taken.add(new_id)
            questions.append(question)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        # InvalidQuestion is a ValueError
        log.warning("Could not parse generated questions: %s", e)
        raise GenerationError(
            "Failed to parse AI response. Please try rephrasing your request.",
            status=502,
            details=str(e),
        ) from e
    return questions


def generate_questions(prompt, existing_questions=()):
    """Asks the chat completions API for new questions. Raises GenerationError."""
    prompt = (prompt or "").strip()
    if not prompt:
        raise GenerationError("Please describe the questions you want.", status=400)

    existing_questions = list(existing_questions or [])
    log.info("Generating questions (%d existing)", len(existing_questions))
    content = _call_api(prompt, existing_questions)
    questions = parse_questions(content, {q.get("id") for q in existing_questions})
    log.info("Generated %d questions", len(questions))
    return questions
