"""Chat prompt construction with retrieved grounding context."""

from collections.abc import Sequence

from backend.app.llm.intent import PROMPT_GUIDANCE
from backend.app.models.chat import ChatMessage
from backend.app.models.docs import RetrievalResult
from backend.app.models.intent import ClassifiedIntent

BASE_SYSTEM_PROMPT = """You are NexusAI, an intelligent enterprise assistant.

1. **Information Retrieval**: Answer questions from the provided context and knowledge. Always cite sources when available.
2. **Task Automation**: Help with reports, notifications, reminders, scheduling and data analysis. Actions are simulated: describe what would happen.
3. **Response Guidelines**:
   - Be concise but thorough
   - If you don't have information, clearly state "I don't have that information in my knowledge base"
   - For task requests, confirm what action you'll take before executing
   - Use markdown formatting for better readability
4. **Grounding**:
   - Never hallucinate or make up information
   - If uncertain, ask clarifying questions
   - Cite sources when referencing specific data"""


def build_context(results: Sequence[RetrievalResult]) -> str:
    """Render retrieved chunks as a citable context block."""
    sections = [
        f"[Source: {r.document_name}, chunk {r.chunk_index}]\n{r.content}" for r in results
    ]
    return "\n\n---\n\n".join(sections)


def build_system_prompt(intent: ClassifiedIntent, results: Sequence[RetrievalResult]) -> str:
    """Base prompt, intent guidance, then retrieved documents if any."""
    lines = [BASE_SYSTEM_PROMPT, "", "## Detected Intent"]
    lines.append(f"- Category: {intent.category.value} (confidence {intent.confidence:.2f})")
    if intent.description:
        lines.append(f"- Description: {intent.description}")
    if intent.suggested_action:
        lines.append(f"- Suggested action: {intent.suggested_action}")
    lines.append(PROMPT_GUIDANCE[intent.category])

    if results:
        lines.append("")
        lines.append("## Relevant Documents")
        lines.append(
            "Excerpts from the user's uploaded documents. Base your answer on them and "
            "cite the document name."
        )
        lines.append("")
        lines.append(build_context(results))

    return "\n".join(lines)


def build_messages(
    history: Sequence[ChatMessage],
    intent: ClassifiedIntent,
    results: Sequence[RetrievalResult],
) -> list[ChatMessage]:
    """Prepend the system prompt to the caller's conversation."""
    system = ChatMessage(role="system", content=build_system_prompt(intent, results))
    return [system, *history]


def source_names(results: Sequence[RetrievalResult]) -> list[str]:
    """Distinct document names in rank order, for citation display."""
    names: list[str] = []
    for r in results:
        if r.document_name not in names:
            names.append(r.document_name)
    return names
