"""Intent classification through the completion service."""

import json
import logging
import re

from pydantic import ValidationError

from backend.app.llm.client import CompletionClient
from backend.app.models.chat import ChatMessage
from backend.app.models.intent import ClassifiedIntent, IntentCategory
from backend.app.utils.metrics import intent_classifications_total

logger = logging.getLogger(__name__)

CLASSIFIER_PROMPT = """You classify a single user message sent to an enterprise assistant.

Categories:
- information_query: the user wants to know something
- task_execution: the user wants an action performed (reports, notifications, scheduling)
- decision_support: the user needs help weighing options or making a decision
- general: greetings, small talk, or anything else

Reply with ONLY a JSON object, no prose:
{"category": "<one of the categories>", "confidence": <number between 0 and 1>,
 "description": "<one short sentence>", "suggested_action": "<short action or null>"}"""

# Greedy: first "{" to last "}", so nested objects stay intact
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

PROMPT_GUIDANCE: dict[IntentCategory, str] = {
    IntentCategory.information_query: (
        "The user is asking for information. Answer from the provided documents when "
        "possible and cite them by name."
    ),
    IntentCategory.task_execution: (
        "The user wants a task performed. Confirm the action you will take and describe "
        "what would happen, since actions are simulated."
    ),
    IntentCategory.decision_support: (
        "The user needs help with a decision. Lay out the options with their trade-offs "
        "before giving a recommendation."
    ),
    IntentCategory.general: "Respond conversationally and concisely.",
}


def parse_intent_reply(reply: str) -> ClassifiedIntent:
    """Extract and validate the first JSON object found in a classifier reply.

    Raises:
        ValueError: If no valid intent object can be recovered
    """
    match = _JSON_OBJECT.search(reply)
    if match is None:
        raise ValueError("no JSON object in classifier reply")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"malformed JSON in classifier reply: {e}") from e

    if not isinstance(payload, dict) or "category" not in payload:
        raise ValueError("classifier reply is missing 'category'")

    try:
        return ClassifiedIntent.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"invalid intent fields: {e}") from e


class IntentClassifier:
    """Classifies user turns. Never raises; failures yield the default intent."""

    def __init__(self, client: CompletionClient, model: str | None = None) -> None:
        self._client = client
        self._model = model

    async def classify(self, message: str) -> ClassifiedIntent:
        """Classify one user message."""
        try:
            reply = await self._client.complete(
                [
                    ChatMessage(role="system", content=CLASSIFIER_PROMPT),
                    ChatMessage(role="user", content=message),
                ],
                model=self._model,
            )
            intent = parse_intent_reply(reply)
        except Exception as e:
            logger.warning(f"Intent classification failed, using default: {e}")
            intent = ClassifiedIntent.default()

        intent_classifications_total.labels(category=intent.category.value).inc()
        return intent
