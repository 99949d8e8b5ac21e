"""Turn a tool outcome (or a direct model answer) into the user-facing summary."""
import logging
from typing import Optional

from .llm import ModelClient, Plan
from .tools.registry import ToolOutcome

logger = logging.getLogger(__name__)

NO_ANSWER_TEXT = "I'm sorry, I couldn't come up with an answer to that. Could you rephrase your question?"


def fallback_text(tool_name: str, outcome: ToolOutcome) -> str:
    """Templated reply used when the follow-up model call can't be made."""
    if outcome.is_success:
        return f"I retrieved the data using {tool_name}, but couldn't summarize it right now. Please try again."
    return f"I'm sorry, I couldn't get the data from {tool_name}. Reason: {outcome.error.message}"


async def synthesize_summary(model: ModelClient, plan: Plan,
                             outcome: Optional[ToolOutcome] = None) -> str:
    if plan.invocation is None:
        return plan.text or NO_ANSWER_TEXT

    tool_name = plan.invocation.name
    if outcome is None:
        raise ValueError("A tool was invoked but no outcome was given")

    # Errors go through the model too, so failures read as a normal answer
    try:
        text = await model.synthesize(plan, outcome)
    except Exception as e:
        logger.error(f"Synthesis for {tool_name} failed: {e}", exc_info=True)
        return fallback_text(tool_name, outcome)

    if not text:
        logger.warning(f"Model returned empty synthesis for {tool_name}")
        return fallback_text(tool_name, outcome)
    return text
