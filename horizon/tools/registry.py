"""Tool registry: decorator-based tool registration and lookup."""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from ..cache import TTLCache
from ..config import Settings

logger = logging.getLogger(__name__)

# Error kinds carried by ToolError
INVALID_AI_RESPONSE = "invalid_ai_response"
UNRECOGNIZED_FUNCTION = "unrecognized_function"
TOOL_FAILED = "tool_failed"

_JSON_TYPES = {"string", "number", "integer", "boolean"}


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    enum: Optional[Tuple[str, ...]] = None
    default: Any = None


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    params: Tuple[ToolParam, ...] = ()
    chart_field: Optional[str] = None  # success-payload key holding a chart series

    def to_openai_schema(self) -> dict:
        """Render as an OpenAI function-calling declaration."""
        properties = {}
        for p in self.params:
            prop: Dict[str, Any] = {"type": p.type, "description": p.description}
            if p.enum:
                prop["enum"] = list(p.enum)
            properties[p.name] = prop
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": [p.name for p in self.params if p.required],
                },
            },
        }


@dataclass
class ToolInvocation:
    """A tool call requested by the model. Used once, then discarded."""
    name: Any
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: str = ""


@dataclass(frozen=True)
class ToolError:
    message: str
    detail: str = ""
    kind: str = TOOL_FAILED


@dataclass(frozen=True)
class ToolOutcome:
    """Normalized result of running one tool: exactly one of success / error."""
    success: Optional[Dict[str, Any]] = None
    error: Optional[ToolError] = None
    chart_series: Optional[List[Dict[str, Any]]] = None

    def __post_init__(self):
        if (self.success is None) == (self.error is None):
            raise ValueError("ToolOutcome needs exactly one of success or error")
        if self.error is not None and self.chart_series is not None:
            raise ValueError("chart_series is only valid on a successful outcome")

    @classmethod
    def ok(cls, payload: Dict[str, Any],
           chart_series: Optional[List[Dict[str, Any]]] = None) -> "ToolOutcome":
        return cls(success=payload, chart_series=chart_series)

    @classmethod
    def fail(cls, message: str, detail: str = "", kind: str = TOOL_FAILED) -> "ToolOutcome":
        return cls(error=ToolError(message=message, detail=detail, kind=kind))

    @property
    def is_success(self) -> bool:
        return self.success is not None

    def to_model_payload(self) -> Dict[str, Any]:
        """Payload fed back to the model as the function result."""
        if self.success is not None:
            return self.success
        return {"error": self.error.message}


@dataclass
class ToolContext:
    """Process-scoped dependencies handed to every executor."""
    settings: Settings
    http: httpx.AsyncClient
    macro_cache: TTLCache
    clock: Callable[[], date] = date.today


Executor = Callable[..., Awaitable[ToolOutcome]]


@dataclass
class ToolDef:
    spec: ToolSpec
    handler: Executor


_tools: Dict[str, ToolDef] = {}


def register_tool(
    name: str,
    description: str = "",
    params: Optional[List[ToolParam]] = None,
    chart_field: Optional[str] = None,
):
    """Decorator to register a tool executor under its model-facing name."""
    def decorator(func):
        if name in _tools:
            raise ValueError(f"Tool already registered: {name}")
        for p in params or []:
            if p.type not in _JSON_TYPES:
                raise ValueError(f"Tool {name}: unsupported param type {p.type!r}")
        spec = ToolSpec(
            name=name,
            description=description or func.__doc__ or "",
            params=tuple(params or []),
            chart_field=chart_field,
        )
        _tools[name] = ToolDef(spec=spec, handler=func)
        logger.info(f"Registered tool: {name}")
        return func
    return decorator


def get_spec(name: str) -> Optional[ToolSpec]:
    tool = _tools.get(name)
    return tool.spec if tool else None


def list_tools() -> List[ToolSpec]:
    """All tool specs in registration order."""
    return [tool.spec for tool in _tools.values()]


def executor_map() -> Dict[str, Executor]:
    return {name: tool.handler for name, tool in _tools.items()}


def openai_tool_schemas() -> List[dict]:
    """Tool menu declared to the model on every planning call."""
    return [spec.to_openai_schema() for spec in list_tools()]
