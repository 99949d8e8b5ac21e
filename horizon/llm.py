"""Model client: tool planning and function-result follow-up via OpenAI chat completions."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .config import Settings
from .tools.registry import ToolInvocation, ToolOutcome

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Horizon, a financial markets assistant for US and Malaysian investors.
Today's date: {current_date}

Use a tool when the user asks for live quotes, historical prices or charts, news,
economic indicators, Bursa Malaysia data, social sentiment, or an image/infographic.
Call at most one tool. If no tool fits, answer directly and concisely.
When a tool reports an error, apologize briefly, explain what went wrong in plain
language, and suggest what the user could try instead. Never show raw error objects."""

# Keep function results small enough for the model context
MAX_SERIES_POINTS = 100
MAX_STRING_CHARS = 2000


def compact_for_model(value: Any) -> Any:
    """Trim long series and inline binary payloads before sending a tool result to the model."""
    if isinstance(value, dict):
        return {k: compact_for_model(v) for k, v in value.items()}
    if isinstance(value, list):
        return [compact_for_model(v) for v in value[-MAX_SERIES_POINTS:]]
    if isinstance(value, str):
        if value.startswith("data:"):
            return "[generated content attached to the response]"
        if len(value) > MAX_STRING_CHARS:
            return value[:MAX_STRING_CHARS] + "..."
    return value


@dataclass
class Plan:
    """Model's first answer for a query: a tool invocation or direct text."""
    messages: List[Dict[str, Any]]
    invocation: Optional[ToolInvocation] = None
    text: str = ""
    raw_tool_call: Dict[str, Any] = field(default_factory=dict)


class ModelClient:
    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelClient":
        client = AsyncOpenAI(
            api_key=settings.openai_api_key or "missing",
            base_url=settings.openai_base_url,
        )
        return cls(client, settings.openai_chat_model)

    async def plan(self, query: str, tools: List[dict]) -> Plan:
        """Ask the model to pick a tool (or answer directly) for ``query``."""
        system_prompt = SYSTEM_PROMPT.replace("{current_date}", datetime.now().strftime("%Y-%m-%d (%A)"))
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": query},
        ]
        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**kwargs)
        choice = response.choices[0]
        message = choice.message
        tool_calls = message.tool_calls or []

        if not tool_calls:
            if choice.finish_reason == "tool_calls":
                logger.warning("Model signalled a tool call but sent none")
                return Plan(messages=messages, invocation=ToolInvocation(name=None))
            text = (message.content or "").strip()
            logger.info(f"Model answered directly: {text[:100]}")
            return Plan(messages=messages, text=text)

        if len(tool_calls) > 1:
            logger.info(f"Model requested {len(tool_calls)} tool calls, using the first")
        call = tool_calls[0]
        name = call.function.name if call.function else None
        raw_args = call.function.arguments if call.function else ""
        try:
            arguments = json.loads(raw_args) if raw_args else {}
        except json.JSONDecodeError:
            logger.warning(f"Tool call arguments are not JSON: {raw_args[:200]!r}")
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}

        logger.info(f"Model requested tool: {name}({arguments})")
        return Plan(
            messages=messages,
            invocation=ToolInvocation(name=name, arguments=arguments, call_id=call.id or ""),
            raw_tool_call={
                "id": call.id or "call_0",
                "type": "function",
                "function": {"name": name or "", "arguments": raw_args or "{}"},
            },
        )

    async def synthesize(self, plan: Plan, outcome: ToolOutcome) -> str:
        """Feed the tool outcome back into the same conversation and return the reply text."""
        tool_call = plan.raw_tool_call or {
            "id": plan.invocation.call_id or "call_0",
            "type": "function",
            "function": {
                "name": plan.invocation.name,
                "arguments": json.dumps(plan.invocation.arguments),
            },
        }
        messages = plan.messages + [
            {"role": "assistant", "content": None, "tool_calls": [tool_call]},
            {
                "role": "tool",
                "tool_call_id": tool_call["id"],
                "content": json.dumps(compact_for_model(outcome.to_model_payload()), default=str),
            },
        ]
        response = await self.client.chat.completions.create(model=self.model, messages=messages)
        return (response.choices[0].message.content or "").strip()

    async def complete(self, prompt: str) -> str:
        """Single-turn text completion, no tools."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return (response.choices[0].message.content or "").strip()
