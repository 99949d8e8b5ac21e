"""End-to-end orchestration tests: fake model, fake providers, fake speech."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import (
    FakeProvider, alpha_quote, failing_handler, fake_model, json_handler,
    text_completion, tool_completion,
)
from horizon.aggregator import aggregate
from horizon.pipeline import OrchestrationError, Orchestrator
from horizon.synthesizer import NO_ANSWER_TEXT, fallback_text, synthesize_summary
from horizon.tools import Dispatcher, executor_map
from horizon.tools.registry import ToolInvocation, ToolOutcome

AUDIO = "data:audio/mpeg;base64,SUQz"


def fake_speech(result=AUDIO, error=None):
    speech = MagicMock()
    speech.synthesize = AsyncMock(return_value=result, side_effect=error)
    return speech


def build(make_ctx, provider, *responses, speech=None):
    model = fake_model(*responses)
    dispatcher = Dispatcher(executor_map(), make_ctx(provider))
    return Orchestrator(model, dispatcher, speech), model


class TestOrchestrator:
    @pytest.mark.asyncio
    async def test_quote_query(self, make_ctx):
        provider = FakeProvider(json_handler(alpha_quote("AAPL", "170.0000")))
        orchestrator, model = build(
            make_ctx, provider,
            tool_completion("get_stock_data", {"ticker": "AAPL"}),
            text_completion("Apple (AAPL) is trading at $170.00."),
            speech=fake_speech(),
        )

        envelope = await orchestrator.run("What's the price of Apple?")

        assert "170.00" in envelope.summary
        assert envelope.audio_url == AUDIO
        assert envelope.historical_stock_data is None
        assert envelope.historical_economic_data is None
        assert envelope.image_url is None
        assert provider.calls == 1
        assert model.client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_direct_answer(self, make_ctx):
        provider = FakeProvider(json_handler({}))
        speech = fake_speech()
        orchestrator, model = build(
            make_ctx, provider,
            text_completion("A P/E ratio is price divided by earnings per share."),
            speech=speech,
        )

        envelope = await orchestrator.run("What is a P/E ratio?")

        assert envelope.summary == "A P/E ratio is price divided by earnings per share."
        dumped = envelope.model_dump(by_alias=True, exclude_none=True)
        assert set(dumped) == {"summary", "audioUrl"}
        assert provider.calls == 0
        assert model.client.chat.completions.create.await_count == 1
        speech.synthesize.assert_awaited_once_with(envelope.summary)

    @pytest.mark.asyncio
    async def test_empty_direct_answer_uses_default(self, make_ctx):
        orchestrator, _ = build(make_ctx, FakeProvider(json_handler({})), text_completion(""))
        envelope = await orchestrator.run("???")
        assert envelope.summary == NO_ANSWER_TEXT

    @pytest.mark.asyncio
    async def test_historical_transport_failure(self, make_ctx):
        provider = FakeProvider(failing_handler)
        orchestrator, model = build(
            make_ctx, provider,
            tool_completion("get_historical_stock_data", {"ticker": "NASDAQ", "period": "daily"}),
            text_completion("I'm sorry, I couldn't reach the market data service. Please try again later."),
        )

        envelope = await orchestrator.run("Show me a chart of the NASDAQ")

        assert "sorry" in envelope.summary.lower()
        assert envelope.historical_stock_data is None
        assert provider.requests[0].url.params["symbol"] == "QQQ"
        tool_message = model.client.chat.completions.create.call_args.kwargs["messages"][-1]
        assert "error" in json.loads(tool_message["content"])

    @pytest.mark.asyncio
    async def test_historical_chart_attached(self, make_ctx, daily_payload):
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler(daily_payload)),
            tool_completion("get_historical_stock_data", {"ticker": "AAPL"}),
            text_completion("Here's Apple's recent trend."),
        )
        envelope = await orchestrator.run("Chart AAPL")
        assert len(envelope.historical_stock_data) == 3
        assert envelope.historical_economic_data is None

    @pytest.mark.asyncio
    async def test_economic_series_attached(self, make_ctx):
        rows = [{"DateTime": "2025-01-31T00:00:00", "Value": 3.0, "Category": "Interest Rate"}]
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler(rows)),
            tool_completion("get_economic_indicator_data", {"indicatorCode": "FOMC"}),
            text_completion("The Fed funds rate is 3.0%."),
        )
        envelope = await orchestrator.run("Show FOMC rates")
        assert envelope.historical_economic_data[0]["value"] == 3.0
        assert envelope.historical_stock_data is None

    @pytest.mark.asyncio
    async def test_audio_failure_is_not_fatal(self, make_ctx):
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler({})),
            text_completion("Hello."),
            speech=fake_speech(error=RuntimeError("tts down")),
        )
        envelope = await orchestrator.run("hi")
        assert envelope.summary == "Hello."
        assert envelope.audio_url is None

    @pytest.mark.asyncio
    async def test_no_audio_when_speech_returns_none(self, make_ctx):
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler({})),
            text_completion("Hello."),
            speech=fake_speech(result=None),
        )
        envelope = await orchestrator.run("hi")
        assert envelope.audio_url is None

    @pytest.mark.asyncio
    async def test_empty_tool_name_is_fatal(self, make_ctx):
        provider = FakeProvider(json_handler({}))
        orchestrator, model = build(make_ctx, provider, tool_completion("", {"ticker": "AAPL"}))
        with pytest.raises(OrchestrationError) as exc_info:
            await orchestrator.run("q")
        assert exc_info.value.kind == "invalid_ai_response"
        assert provider.calls == 0
        assert model.client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_tool_is_fatal(self, make_ctx):
        speech = fake_speech()
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler({})),
            tool_completion("get_crypto_price", {"coin": "BTC"}),
            speech=speech,
        )
        with pytest.raises(OrchestrationError) as exc_info:
            await orchestrator.run("BTC?")
        assert exc_info.value.kind == "unrecognized_function"
        assert "get_crypto_price" in exc_info.value.message
        speech.synthesize.assert_not_called()

    @pytest.mark.asyncio
    async def test_synthesis_failure_falls_back(self, make_ctx):
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler({"Global Quote": {}})),
            tool_completion("get_stock_data", {"ticker": "ZZZZ"}),
            RuntimeError("model unavailable"),
        )
        envelope = await orchestrator.run("ZZZZ price")
        assert envelope.summary.startswith("I'm sorry, I couldn't get the data from get_stock_data.")
        assert "ZZZZ" in envelope.summary

    @pytest.mark.asyncio
    async def test_planning_failure_propagates(self, make_ctx):
        orchestrator, _ = build(make_ctx, FakeProvider(json_handler({})), RuntimeError("401 Unauthorized"))
        with pytest.raises(RuntimeError):
            await orchestrator.run("q")

    @pytest.mark.asyncio
    async def test_image_url_attached(self, make_ctx):
        provider = FakeProvider(json_handler({"artifacts": [{"base64": "iVBOR"}]}))
        orchestrator, model = build(
            make_ctx, provider,
            tool_completion("generate_image_tool", {"prompt": "semiconductor infographic"}),
            text_completion("Here is your infographic."),
        )
        envelope = await orchestrator.run("Make an infographic about chips")
        assert envelope.image_url == "data:image/png;base64,iVBOR"
        tool_message = model.client.chat.completions.create.call_args.kwargs["messages"][-1]
        assert "iVBOR" not in tool_message["content"]

    @pytest.mark.asyncio
    async def test_news_articles_attached(self, make_ctx):
        payload = {"articles": [{"title": "Tesla beats", "description": "d", "url": "https://n/1"}]}
        orchestrator, _ = build(
            make_ctx, FakeProvider(json_handler(payload)),
            tool_completion("fetch_news", {"keyword": "Tesla"}),
            text_completion("Tesla beat estimates."),
        )
        envelope = await orchestrator.run("Tesla news")
        assert envelope.articles[0].title == "Tesla beats"


class TestSynthesizer:
    @pytest.mark.asyncio
    async def test_invocation_without_outcome_rejected(self):
        plan = MagicMock(invocation=ToolInvocation(name="fetch_news"))
        with pytest.raises(ValueError):
            await synthesize_summary(fake_model(), plan, None)

    @pytest.mark.asyncio
    async def test_empty_synthesis_falls_back(self):
        model = fake_model(tool_completion("fetch_news", {"keyword": "x"}), text_completion("   "))
        plan = await model.plan("q", [])
        outcome = ToolOutcome.ok({"articles": []})
        assert await synthesize_summary(model, plan, outcome) == fallback_text("fetch_news", outcome)

    def test_fallback_error_template(self):
        text = fallback_text("fetch_news", ToolOutcome.fail("No news articles found for x."))
        assert text == "I'm sorry, I couldn't get the data from fetch_news. Reason: No news articles found for x."


class TestAggregate:
    def test_error_outcome_has_no_artifacts(self):
        envelope = aggregate("sorry", ToolInvocation(name="get_historical_stock_data"), ToolOutcome.fail("x"))
        assert envelope.historical_stock_data is None
        assert envelope.summary == "sorry"

    def test_bursa_series_goes_to_stock_data(self):
        series = [{"date": "2025-06-16", "close": 5.0}]
        envelope = aggregate(
            "ok", ToolInvocation(name="get_bursa_historical_data"),
            ToolOutcome.ok({"historical_data": series}, chart_series=series),
        )
        assert envelope.historical_stock_data == series
        assert envelope.historical_economic_data is None

    def test_image_only_from_image_tool(self):
        envelope = aggregate(
            "ok", ToolInvocation(name="get_stock_data"),
            ToolOutcome.ok({"imageUrl": "data:image/png;base64,x"}),
        )
        assert envelope.image_url is None

    def test_aliases_on_dump(self):
        envelope = aggregate("ok", audio_url=AUDIO)
        assert envelope.model_dump(by_alias=True, exclude_none=True) == {"summary": "ok", "audioUrl": AUDIO}

    def test_empty_audio_omitted(self):
        assert aggregate("ok", audio_url="").audio_url is None
