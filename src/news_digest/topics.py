"""Model-backed check that a free-text interest is a usable news topic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .blocks import parse_model_json
from .schema import TOPIC_VALIDATION, validate_payload
from .summarizer import CompletionModel

TOPIC_SYSTEM_PROMPT = """You are a strict topic validator.
- Accept short, meaningful topics (1-3 words), e.g. "golf", "blockchain security".
- Reject vague, silly, or unsafe topics.
Output strict JSON: {"valid": boolean, "topic": string, "reason"?: string}"""


@dataclass
class TopicValidation:
    valid: bool
    topic: str
    reason: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"valid": self.valid, "topic": self.topic}
        if self.reason:
            body["reason"] = self.reason
        return body


def validate_topic(raw: str, model: CompletionModel, *, model_name: Optional[str] = None) -> TopicValidation:
    """
    Ask the model whether ``raw`` is a usable topic.

    Raises ValueError when the reply is not JSON or does not match the schema.
    """
    reply = model.complete(
        TOPIC_SYSTEM_PROMPT, f'Topic: "{raw}"', model=model_name, json_mode=True
    )
    data = parse_model_json(reply)
    if not data.get("topic"):
        data["topic"] = raw.strip().lower()
    validate_payload(data, TOPIC_VALIDATION)
    return TopicValidation(valid=data["valid"], topic=data["topic"], reason=data.get("reason"))
