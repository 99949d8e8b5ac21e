"""Query → plan → dispatch → synthesize → speak → aggregate.

One query runs strictly in sequence: a planning call, at most one tool call, one
synthesis call and one speech call. Nothing is shared between queries except the
injected dependencies.
"""
import logging
import time
from typing import Optional

from .aggregator import aggregate
from .llm import ModelClient
from .protocol import ResponseEnvelope
from .synthesizer import synthesize_summary
from .tools.executor import Dispatcher
from .tools.registry import (
    ToolOutcome, openai_tool_schemas,
    INVALID_AI_RESPONSE, UNRECOGNIZED_FUNCTION,
)
from .tts import SpeechSynthesizer

logger = logging.getLogger(__name__)

FATAL_KINDS = (INVALID_AI_RESPONSE, UNRECOGNIZED_FUNCTION)


class OrchestrationError(Exception):
    """Fatal request error: the model's tool call could not be acted on."""

    def __init__(self, kind: str, message: str, details: str = ""):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @classmethod
    def from_outcome(cls, outcome: ToolOutcome) -> "OrchestrationError":
        if outcome.error.kind == INVALID_AI_RESPONSE:
            message = "Invalid AI response: the model requested a tool without a name."
        else:
            message = f"{outcome.error.message} was requested by the AI but is not available."
        return cls(outcome.error.kind, message, outcome.error.detail)


class Orchestrator:
    def __init__(self, model: ModelClient, dispatcher: Dispatcher,
                 speech: Optional[SpeechSynthesizer] = None):
        self.model = model
        self.dispatcher = dispatcher
        self.speech = speech

    async def run(self, query: str) -> ResponseEnvelope:
        t0 = time.monotonic()
        logger.info(f"Query received: {query[:100]!r}")

        plan = await self.model.plan(query, openai_tool_schemas())

        outcome = None
        if plan.invocation is not None:
            outcome = await self.dispatcher.dispatch(plan.invocation)
            if not outcome.is_success and outcome.error.kind in FATAL_KINDS:
                raise OrchestrationError.from_outcome(outcome)
        else:
            logger.info("No tool chosen, using the model's direct answer")

        summary = await synthesize_summary(self.model, plan, outcome)

        audio_url = None
        if self.speech is not None:
            try:
                audio_url = await self.speech.synthesize(summary)
            except Exception as e:
                logger.warning(f"Audio generation failed, continuing without audio: {e}")

        envelope = aggregate(summary, plan.invocation, outcome, audio_url)
        logger.info(f"Query done in {time.monotonic() - t0:.1f}s")
        return envelope
