"""Tool system: registry, dispatcher, builtin executors."""
from .registry import (
    register_tool, get_spec, list_tools, executor_map, openai_tool_schemas,
    ToolParam, ToolSpec, ToolInvocation, ToolOutcome, ToolError, ToolContext,
)
from .executor import Dispatcher

# Auto-import builtin tools to trigger @register_tool decorators
from .builtin import *  # noqa
