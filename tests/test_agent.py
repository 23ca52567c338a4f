"""
Tests for the SpendMe chat assistant
Tools run against the in-memory backend; the chat model is scripted
"""
import sys
from datetime import date
from pathlib import Path

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, ToolMessage

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agents.orchestrator import SYSTEM_PROMPT, SpendMeAgent, build_tools
from fakes import FakeBackend
from tools.errors import AIServiceError

USER = "user-1"
TODAY = date(2026, 10, 19)


class ScriptedChatModel(GenericFakeChatModel):
    """Replays fixed messages; tool binding is a no-op"""

    def bind_tools(self, tools, **kwargs):
        return self


def seeded_backend() -> FakeBackend:
    backend = FakeBackend()
    food = backend.seed("spendme_categories", {"user_id": USER, "name": "Food", "type": "expense", "parent_id": None})[0]
    backend.seed("spendme_accounts", {"user_id": USER, "name": "Bank", "type": "bank", "created_at": "2026-01-01T00:00:00+00:00"})
    backend.seed(
        "spendme_transactions",
        {"user_id": USER, "type": "income", "amount": 4000, "date": "2026-10-01", "description": "Salary"},
        {"user_id": USER, "type": "expense", "amount": 300, "date": "2026-10-05", "category_id": food["id"],
         "description": "Groceries", "spendme_categories": {"name": "Food", "icon": "🍽️"}},
        {"user_id": USER, "type": "expense", "amount": 120, "date": "2026-10-12", "category_id": food["id"],
         "description": "Dinner", "spendme_categories": {"name": "Food", "icon": "🍽️"}},
    )
    backend.seed("spendme_budgets", {"user_id": USER, "category_id": food["id"], "period": "2026-10", "amount": 400})
    return backend


def tools_by_name(backend: FakeBackend) -> dict:
    return {t.name: t for t in build_tools(backend.client(), USER, today=TODAY)}


def test_dashboard_summary_tool():
    summary = tools_by_name(seeded_backend())["get_dashboard_summary"].invoke({})

    assert summary["monthly_income"] == 4000
    assert summary["monthly_expense"] == 420
    assert summary["monthly_balance"] == 3580
    assert summary["top_categories_this_month"] == [{"name": "Food", "amount": 420}]
    print("✓ Dashboard summary tool")


def test_budget_tools():
    tools = tools_by_name(seeded_backend())

    status = tools["get_budget_status"].invoke({})
    assert status[0]["category_name"] == "Food"
    assert status[0]["spent_amount"] == 420
    assert status[0]["is_over_budget"] is True

    budgets = tools["get_budgets_for_month"].invoke({})
    assert budgets == [{"category": "Food", "amount": 400, "period": "2026-10"}]
    print("✓ Budget tools")


def test_transaction_tools():
    tools = tools_by_name(seeded_backend())

    recent = tools["get_recent_transactions"].invoke({"limit": 2})
    assert [t["description"] for t in recent] == ["Dinner", "Groceries"]

    by_category = tools["get_spending_by_category"].invoke({"period": "decade"})
    assert by_category[0]["name"] == "Food"
    assert by_category[0]["total"] == 420
    print("✓ Transaction tools")


def test_system_prompt_uses_currency():
    assert "₺ symbol" in SYSTEM_PROMPT.format(symbol="₺")
    print("✓ System prompt")


def test_agent_calls_tool_then_answers():
    llm = ScriptedChatModel(messages=iter([
        AIMessage(
            content="",
            tool_calls=[{"name": "get_dashboard_summary", "args": {}, "id": "call-1"}]
        ),
        AIMessage(content="You spent ₺420 this month."),
    ]))
    agent = SpendMeAgent(seeded_backend().client(), USER, llm=llm, today=TODAY)

    reply = agent.chat("How much did I spend this month?")

    assert reply == "You spent ₺420 this month."
    tool_messages = [m for m in agent.history if isinstance(m, ToolMessage)]
    assert len(tool_messages) == 1
    assert "4000" in tool_messages[0].content
    assert len(agent.history) == 4
    print("✓ Agent tool round trip")


def test_agent_fallback_and_reset():
    llm = ScriptedChatModel(messages=iter([AIMessage(content="")]))
    agent = SpendMeAgent(seeded_backend().client(), USER, llm=llm, today=TODAY)

    assert agent.chat("Hello") == SpendMeAgent.FALLBACK_REPLY
    assert agent.history
    agent.reset()
    assert agent.history == []
    print("✓ Agent fallback")


class UnreachableChatModel(ScriptedChatModel):
    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        raise ConnectionError("endpoint unreachable")

    def _stream(self, messages, stop=None, run_manager=None, **kwargs):
        raise ConnectionError("endpoint unreachable")


def test_agent_failure_raises_service_error():
    """Model failures surface as AIServiceError and leave history alone"""
    agent = SpendMeAgent(
        seeded_backend().client(), USER, llm=UnreachableChatModel(messages=iter([])), today=TODAY
    )

    with pytest.raises(AIServiceError, match="Assistant request failed"):
        agent.chat("How much did I spend?")
    assert agent.history == []
    print("✓ Agent failure surfaced")


if __name__ == "__main__":
    print("\n🧪 Running SpendMe Assistant Tests\n")
    print("-" * 50)

    test_dashboard_summary_tool()
    test_budget_tools()
    test_transaction_tools()
    test_system_prompt_uses_currency()
    test_agent_calls_tool_then_answers()
    test_agent_fallback_and_reset()
    test_agent_failure_raises_service_error()

    print("-" * 50)
    print("\n✅ All tests passed!\n")
