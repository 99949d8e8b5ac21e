"""Tests for llm.py: planning, argument decoding, follow-up message layout."""
import json
from types import SimpleNamespace

import pytest

from conftest import fake_model, text_completion, tool_completion
from horizon.llm import MAX_SERIES_POINTS, MAX_STRING_CHARS, compact_for_model
from horizon.tools import openai_tool_schemas
from horizon.tools.registry import ToolOutcome


class TestPlan:
    @pytest.mark.asyncio
    async def test_tool_call(self):
        model = fake_model(tool_completion("get_stock_data", {"ticker": "AAPL"}, call_id="call_42"))
        plan = await model.plan("What's Apple trading at?", openai_tool_schemas())

        assert plan.invocation.name == "get_stock_data"
        assert plan.invocation.arguments == {"ticker": "AAPL"}
        assert plan.invocation.call_id == "call_42"
        assert plan.raw_tool_call["id"] == "call_42"
        assert plan.text == ""

    @pytest.mark.asyncio
    async def test_request_carries_tools_and_prompt(self):
        model = fake_model(text_completion("hi"))
        await model.plan("hello", openai_tool_schemas())

        kwargs = model.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["tool_choice"] == "auto"
        assert len(kwargs["tools"]) == len(openai_tool_schemas())
        system, user = kwargs["messages"]
        assert system["role"] == "system"
        assert "{current_date}" not in system["content"]
        assert user == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_no_tools_omits_tool_choice(self):
        model = fake_model(text_completion("hi"))
        await model.plan("hello", [])
        kwargs = model.client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_direct_text(self):
        model = fake_model(text_completion("  A P/E ratio compares price to earnings.  "))
        plan = await model.plan("What is a P/E ratio?", openai_tool_schemas())
        assert plan.invocation is None
        assert plan.text == "A P/E ratio compares price to earnings."

    @pytest.mark.asyncio
    async def test_empty_name_kept_for_dispatch(self):
        model = fake_model(tool_completion("", {"ticker": "AAPL"}))
        plan = await model.plan("q", openai_tool_schemas())
        assert plan.invocation is not None
        assert plan.invocation.name == ""

    @pytest.mark.asyncio
    async def test_tool_finish_without_calls(self):
        message = SimpleNamespace(content=None, tool_calls=[])
        response = SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="tool_calls")])
        plan = await fake_model(response).plan("q", openai_tool_schemas())
        assert plan.invocation is not None
        assert plan.invocation.name is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", ""])
    async def test_bad_arguments_become_empty(self, raw):
        model = fake_model(tool_completion("get_stock_data", raw_arguments=raw))
        plan = await model.plan("q", openai_tool_schemas())
        assert plan.invocation.arguments == {}

    @pytest.mark.asyncio
    async def test_first_of_several_calls(self):
        first = tool_completion("fetch_news", {"keyword": "Tesla"}, call_id="a")
        second = tool_completion("get_stock_data", {"ticker": "TSLA"}, call_id="b")
        first.choices[0].message.tool_calls.append(second.choices[0].message.tool_calls[0])
        plan = await fake_model(first).plan("q", openai_tool_schemas())
        assert plan.invocation.name == "fetch_news"


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_follow_up_messages(self):
        model = fake_model(
            tool_completion("get_stock_data", {"ticker": "AAPL"}, call_id="call_7"),
            text_completion("Apple is at $170.00."),
        )
        plan = await model.plan("Apple price?", openai_tool_schemas())
        outcome = ToolOutcome.ok({"stock_data": {"ticker": "AAPL", "price": 170.0}})

        text = await model.synthesize(plan, outcome)

        assert text == "Apple is at $170.00."
        kwargs = model.client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        messages = kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool"]
        assert messages[2]["tool_calls"][0]["function"]["name"] == "get_stock_data"
        assert messages[3]["tool_call_id"] == "call_7"
        assert json.loads(messages[3]["content"]) == {"stock_data": {"ticker": "AAPL", "price": 170.0}}

    @pytest.mark.asyncio
    async def test_error_payload_sent_to_model(self):
        model = fake_model(
            tool_completion("fetch_news", {"keyword": "x"}),
            text_completion("Sorry, no news."),
        )
        plan = await model.plan("news?", openai_tool_schemas())
        await model.synthesize(plan, ToolOutcome.fail("No news articles found for x."))
        tool_message = model.client.chat.completions.create.call_args.kwargs["messages"][-1]
        assert json.loads(tool_message["content"]) == {"error": "No news articles found for x."}

    @pytest.mark.asyncio
    async def test_plan_messages_not_mutated(self):
        model = fake_model(tool_completion("fetch_news", {"keyword": "x"}), text_completion("ok"))
        plan = await model.plan("news?", openai_tool_schemas())
        await model.synthesize(plan, ToolOutcome.ok({"articles": []}))
        assert len(plan.messages) == 2


class TestComplete:
    @pytest.mark.asyncio
    async def test_single_turn(self):
        model = fake_model(text_completion(" Markets look mixed. "))
        assert await model.complete("summarize") == "Markets look mixed."
        kwargs = model.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "summarize"}]


class TestCompactForModel:
    def test_long_series_keeps_latest(self):
        series = [{"date": str(i)} for i in range(MAX_SERIES_POINTS + 50)]
        compacted = compact_for_model({"historical_data": series})["historical_data"]
        assert len(compacted) == MAX_SERIES_POINTS
        assert compacted[-1] == series[-1]

    def test_data_url_replaced(self):
        compacted = compact_for_model({"imageUrl": "data:image/png;base64,AAAA"})
        assert not compacted["imageUrl"].startswith("data:")

    def test_long_string_truncated(self):
        compacted = compact_for_model("x" * (MAX_STRING_CHARS + 10))
        assert len(compacted) == MAX_STRING_CHARS + 3

    def test_scalars_untouched(self):
        assert compact_for_model({"price": 170.0, "volume": 3}) == {"price": 170.0, "volume": 3}
