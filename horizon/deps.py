"""FastAPI dependencies: process-scoped objects built in the app lifespan."""
from fastapi import Request

from .llm import ModelClient
from .pipeline import Orchestrator
from .tools.registry import ToolContext


def get_tool_context(request: Request) -> ToolContext:
    return request.app.state.tool_context


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_model(request: Request) -> ModelClient:
    return request.app.state.model
