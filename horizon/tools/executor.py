"""Tool dispatcher: runs the model's chosen tool exactly once."""
import logging
import time
from typing import Dict, Optional

from .registry import (
    Executor, ToolContext, ToolInvocation, ToolOutcome,
    INVALID_AI_RESPONSE, UNRECOGNIZED_FUNCTION,
)

logger = logging.getLogger(__name__)


class Dispatcher:
    """Maps a tool name to its executor and normalizes the result.

    ``executors`` is usually ``registry.executor_map()``; tests pass their own.
    """

    def __init__(self, executors: Dict[str, Executor], context: ToolContext):
        self.executors = dict(executors)
        self.context = context

    async def dispatch(self, invocation: Optional[ToolInvocation]) -> ToolOutcome:
        name = getattr(invocation, "name", None)
        if not isinstance(name, str) or not name.strip():
            logger.warning(f"Malformed tool call from model: {invocation!r}")
            return ToolOutcome.fail(
                "The AI returned an invalid response.",
                detail=f"tool call without a usable name: {name!r}",
                kind=INVALID_AI_RESPONSE,
            )

        handler = self.executors.get(name)
        if handler is None:
            logger.error(f"Unrecognized tool: {name}")
            return ToolOutcome.fail(
                f"Unrecognized function: {name}",
                detail="no executor registered for this tool name",
                kind=UNRECOGNIZED_FUNCTION,
            )

        args = dict(invocation.arguments or {})
        arg_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
        logger.info(f"Executing tool: {name}({arg_str})")
        t0 = time.monotonic()

        try:
            result = await handler(ctx=self.context, **args)
        except TypeError as e:
            logger.warning(f"Tool {name} rejected arguments: {e}")
            result = ToolOutcome.fail(f"Invalid arguments for {name}.", detail=str(e))
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            result = ToolOutcome.fail(f"The {name} tool failed unexpectedly.", detail=str(e))

        if not isinstance(result, ToolOutcome):
            logger.error(f"Tool {name} returned {type(result).__name__}, not ToolOutcome")
            result = ToolOutcome.fail(
                f"The {name} tool returned an unusable result.",
                detail=f"unexpected return type {type(result).__name__}",
            )

        elapsed = time.monotonic() - t0
        status = "success" if result.is_success else f"error ({result.error.message})"
        logger.info(f"Tool {name}: {elapsed:.1f}s -> {status}")
        return result
