"""
SpendMe - LangGraph Orchestrator
Chat assistant that answers questions about the signed-in user's money
"""
import logging
import operator
from datetime import date
from typing import Annotated, Literal, Optional, Sequence, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.tools import tool
from langchain_openai import ChatOpenAI
from langgraph.graph import END, StateGraph
from langgraph.prebuilt import ToolNode

from config import get_settings
from tools.backend import BackendClient
from tools.budget_service import BudgetService
from tools.category_service import CategoryService
from tools.dashboard import fetch_dashboard
from tools.errors import AIServiceError, BackendError
from tools.transaction_service import TransactionService

logger = logging.getLogger(__name__)


class AgentState(TypedDict):
    messages: Annotated[Sequence[BaseMessage], operator.add]


def build_tools(client: BackendClient, user_id: str, today: Optional[date] = None) -> list:
    """LangChain tools bound to one user's data"""

    @tool
    def get_dashboard_summary() -> dict:
        """
        Get the user's financial overview: all-time and this month's income,
        expenses and balance, wallet and bank totals, and credit card debt.
        """
        stats = fetch_dashboard(client, user_id, today=today)
        return {
            "total_income": stats.total_income,
            "total_expense": stats.total_expense,
            "balance": stats.balance,
            "monthly_income": stats.monthly_income,
            "monthly_expense": stats.monthly_expense,
            "monthly_balance": stats.monthly_balance,
            "wallet_total": stats.wallet_total,
            "bank_total": stats.bank_total,
            "total_credit_limit": stats.total_credit_limit,
            "total_credit_debt": stats.total_credit_debt,
            "total_credit_available": stats.total_credit_available,
            "top_categories_this_month": [
                {"name": c.name, "amount": c.value} for c in stats.top_categories
            ],
        }

    @tool
    def get_budget_status() -> list[dict]:
        """
        Get every budget with how much has been spent this month,
        what remains and whether it is over budget.
        """
        stats = fetch_dashboard(client, user_id, today=today)
        return [status.model_dump() for status in stats.budget_status]

    @tool
    def get_recent_transactions(limit: int = 10) -> list[dict]:
        """
        Get the user's most recent transactions, newest first.

        Args:
            limit: How many transactions to return (default 10)
        """
        transactions = TransactionService(client).get_recent_transactions(user_id, limit=limit)
        return [
            {
                "date": t.date.isoformat(),
                "type": t.type.value,
                "amount": t.amount,
                "description": t.description,
                "payment_method": t.payment_method,
                "vendor": t.vendor,
            }
            for t in transactions
        ]

    @tool
    def get_spending_by_category(period: str = "month") -> list[dict]:
        """
        Get totals per category since the start of the month or year, largest first.

        Args:
            period: Either 'month' or 'year'
        """
        if period not in ("month", "year"):
            period = "month"
        stats = CategoryService(client).get_category_stats(user_id, period=period, today=today)
        return [s.model_dump() for s in stats]

    @tool
    def get_budgets_for_month() -> list[dict]:
        """Get the budgets set for the current month with their category names"""
        rows = BudgetService(client).get_current_month_budgets(user_id, today=today)
        return [
            {
                "category": row.category.name if row.category else None,
                "amount": row.budget.amount,
                "period": row.budget.period,
            }
            for row in rows
        ]

    return [
        get_dashboard_summary,
        get_budget_status,
        get_recent_transactions,
        get_spending_by_category,
        get_budgets_for_month,
    ]


SYSTEM_PROMPT = """You are SpendMe, a personal finance assistant.

RULES:
1. For ANY question about balances, income, expenses or totals - call get_dashboard_summary.
2. For ANY question about budgets or overspending - call get_budget_status (or get_budgets_for_month for the amounts set this month).
3. For questions about what the user bought or paid recently - call get_recent_transactions.
4. For questions about where money goes - call get_spending_by_category.

YOU ARE NOT ALLOWED TO:
- Invent figures or estimate amounts that a tool can provide
- Answer about the user's data without calling a tool first

YOU MUST ALWAYS:
- Use exact figures from tool responses
- Format amounts with the {symbol} symbol and thousands separators
- Keep answers short and practical

Always remind users to seek professional advice for major financial decisions."""


def create_graph(tools: list, llm: Optional[BaseChatModel] = None, currency_symbol: str = "₺"):
    """Create the agent workflow graph"""
    if llm is None:
        settings = get_settings()
        llm = ChatOpenAI(
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.http_timeout,
            api_key=settings.openai_api_key
        )
    llm_with_tools = llm.bind_tools(tools)
    system_prompt = SYSTEM_PROMPT.format(symbol=currency_symbol)

    def agent(state: AgentState):
        messages = [SystemMessage(content=system_prompt)] + list(state["messages"])
        response = llm_with_tools.invoke(messages)
        return {"messages": [response]}

    def should_continue(state: AgentState) -> Literal["tools", "end"]:
        last_message = state["messages"][-1]
        if getattr(last_message, "tool_calls", None):
            return "tools"
        return "end"

    workflow = StateGraph(AgentState)
    workflow.add_node("agent", agent)
    workflow.add_node("tools", ToolNode(tools))
    workflow.set_entry_point("agent")
    workflow.add_conditional_edges(
        "agent",
        should_continue,
        {"tools": "tools", "end": END}
    )
    # Tools always return to agent
    workflow.add_edge("tools", "agent")

    return workflow.compile()


class SpendMeAgent:
    """Chat interface over the signed-in user's data"""

    FALLBACK_REPLY = "I couldn't process your request. Please try again."

    def __init__(
        self,
        client: BackendClient,
        user_id: str,
        llm: Optional[BaseChatModel] = None,
        today: Optional[date] = None
    ):
        self.tools = build_tools(client, user_id, today=today)
        self.graph = create_graph(self.tools, llm=llm, currency_symbol=get_settings().currency_symbol)
        self.history: list[BaseMessage] = []

    def chat(self, message: str) -> str:
        """Send a message and return the assistant's final reply"""
        state = {"messages": self.history + [HumanMessage(content=message)]}
        try:
            result = self.graph.invoke(state)
        except BackendError:
            raise
        except Exception as e:
            logger.error("Assistant run failed: %s", e)
            raise AIServiceError(f"Assistant request failed: {e}") from e
        self.history = list(result["messages"])

        for msg in reversed(result["messages"]):
            if isinstance(msg, AIMessage) and msg.content and not msg.tool_calls:
                return msg.content

        logger.warning("Agent finished without a final reply")
        return self.FALLBACK_REPLY

    def reset(self) -> None:
        self.history = []
