"""Shared fixtures: fake provider transport, tool context, fake OpenAI responses."""
import json
from datetime import date
from types import SimpleNamespace
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from horizon.cache import TTLCache
from horizon.config import Settings
from horizon.llm import ModelClient
from horizon.tools.registry import ToolContext

TODAY = date(2025, 6, 16)


class FakeProvider:
    """httpx MockTransport wrapper that records every outgoing request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def json_handler(payload, status_code: int = 200):
    return lambda request: httpx.Response(status_code, json=payload)


def failing_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        openai_api_key="sk-test",
        alpha_vantage_api_key="av-test",
        gnews_api_key="gn-test",
        trading_economics_api_key="te-test",
        stability_api_key="st-test",
        ocr_space_api_key="ocr-test",
        macro_cache_ttl_s=60,
        news_max_results=5,
    )


@pytest.fixture
def make_ctx(test_settings):
    """Factory: ToolContext whose HTTP calls go to the given FakeProvider."""
    def _make(provider: FakeProvider, settings: Settings = None) -> ToolContext:
        return ToolContext(
            settings=settings or test_settings,
            http=provider.client(),
            macro_cache=TTLCache(ttl=60),
            clock=lambda: TODAY,
        )
    return _make


# ──────────────────────────────────────────────────────────
# Fake OpenAI chat completions
# ──────────────────────────────────────────────────────────

def text_completion(content: str):
    message = SimpleNamespace(content=content, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


def tool_completion(name, arguments: dict = None, call_id: str = "call_1", raw_arguments: str = None):
    function = SimpleNamespace(
        name=name,
        arguments=raw_arguments if raw_arguments is not None else json.dumps(arguments or {}),
    )
    call = SimpleNamespace(id=call_id, type="function", function=function)
    message = SimpleNamespace(content=None, tool_calls=[call])
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="tool_calls")])


def fake_model(*responses) -> ModelClient:
    """ModelClient whose chat.completions.create returns ``responses`` in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return ModelClient(client, "gpt-4o-mini")


def alpha_quote(symbol="AAPL", price="170.0000"):
    return {
        "Global Quote": {
            "01. symbol": symbol,
            "02. open": "168.5000",
            "03. high": "171.2000",
            "04. low": "167.9000",
            "05. price": price,
            "06. volume": "51234567",
            "07. latest trading day": "2025-06-13",
            "08. previous close": "168.0000",
            "09. change": "2.0000",
            "10. change percent": "1.1905%",
        }
    }


def alpha_daily_series(days=("2025-06-13", "2025-06-11", "2025-06-12")):
    series = {}
    for i, d in enumerate(days):
        base = 100 + i
        series[d] = {
            "1. open": f"{base}.00",
            "2. high": f"{base + 2}.00",
            "3. low": f"{base - 1}.00",
            "4. close": f"{base + 1}.00",
            "5. adjusted close": f"{base + 0.5}",
            "6. volume": str(1000 * (i + 1)),
        }
    return {"Meta Data": {}, "Time Series (Daily)": series}


@pytest.fixture
def quote_payload():
    return alpha_quote()


@pytest.fixture
def daily_payload():
    return alpha_daily_series()
