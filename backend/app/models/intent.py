"""Intent models - classification of a single user turn."""

from enum import Enum

from pydantic import BaseModel, Field


class IntentCategory(str, Enum):
    """Closed set of intent categories."""

    information_query = "information_query"
    task_execution = "task_execution"
    decision_support = "decision_support"
    general = "general"


class ClassifiedIntent(BaseModel):
    """Classifier output for one user message."""

    category: IntentCategory = IntentCategory.general
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    description: str = ""
    suggested_action: str | None = None

    @classmethod
    def default(cls) -> "ClassifiedIntent":
        """Fallback used whenever classification fails."""
        return cls(
            category=IntentCategory.general,
            confidence=0.5,
            description="General conversation",
        )
