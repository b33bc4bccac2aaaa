from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidPayloadError

# Top-level keys of a flattened body that are not answers.
FLAT_META_KEYS = {"submissionId", "submissionTime", "lastUpdatedAt", "formId", "formName"}


@dataclass(frozen=True)
class Question:
    id: Optional[str]
    name: str
    type: Optional[str]
    value: Any


@dataclass(frozen=True)
class Submission:
    submission_id: str
    submission_time: Optional[str]
    questions: Tuple[Question, ...]
    form_id: Optional[str] = None
    form_name: Optional[str] = None


def load_event_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Return the JSON body of an HTTP-style event ({"body": ..., "isBase64Encoded": ...})."""
    raw = event.get("body")
    if raw is None:
        raise InvalidPayloadError("Request has no body")
    if isinstance(raw, dict):
        return raw
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except ValueError as e:
            raise InvalidPayloadError(f"Body is not valid base64: {e}") from e
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise InvalidPayloadError(f"Body is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise InvalidPayloadError("Body must be a JSON object")
    return body


def parse_submission(body: Dict[str, Any]) -> Submission:
    """Accept either the Fillout webhook body or a flattened body.

    Fillout: {"formId", "formName", "submission": {"submissionId", "submissionTime",
    "questions": [{"id", "name", "type", "value"}, ...]}}.
    Flattened: {"submissionId", "submissionTime", "<question name>": <answer>, ...}.
    """
    if not isinstance(body, dict):
        raise InvalidPayloadError("Body must be a JSON object")

    sub = body.get("submission")
    if isinstance(sub, dict) and "questions" in sub:
        return _from_questions(body, sub)
    return _from_flat(body)


def _submission_id(d: Dict[str, Any]) -> str:
    sid = d.get("submissionId")
    if not sid:
        raise InvalidPayloadError("Submission has no submissionId")
    return str(sid)


def _from_questions(body: Dict[str, Any], sub: Dict[str, Any]) -> Submission:
    items = sub.get("questions")
    if not isinstance(items, list):
        raise InvalidPayloadError("submission.questions must be a list")

    questions = []
    for q in items:
        if not isinstance(q, dict) or "name" not in q:
            raise InvalidPayloadError(f"Malformed question entry: {q!r}")
        questions.append(Question(id=q.get("id"), name=str(q["name"]), type=q.get("type"), value=q.get("value")))

    return Submission(
        submission_id=_submission_id(sub),
        submission_time=sub.get("submissionTime"),
        questions=tuple(questions),
        form_id=body.get("formId"),
        form_name=body.get("formName"),
    )


def _from_flat(body: Dict[str, Any]) -> Submission:
    questions = tuple(
        Question(id=None, name=str(k), type=None, value=v) for k, v in body.items() if k not in FLAT_META_KEYS
    )
    return Submission(
        submission_id=_submission_id(body),
        submission_time=body.get("submissionTime"),
        questions=questions,
        form_id=body.get("formId"),
        form_name=body.get("formName"),
    )
