"""
SpendMe - Streamlit Interface
Personal finance tracker with AI-assisted transaction entry
"""
import streamlit as st
import sys
from datetime import date
from pathlib import Path
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import configure_logging, get_settings
from agents.orchestrator import SpendMeAgent
from models.schemas import (
    Account,
    AccountType,
    Category,
    CategoryType,
    ParsedTransfer,
    Transaction,
    TransactionFilters,
    TransactionType,
)
from tools.account_service import AccountService
from tools.ai_service import AIService
from tools.auth import sign_in, sign_out, sign_up, update_user_profile, upload_profile_photo
from tools.backend import BackendClient
from tools.budget_service import BudgetService, clean_budgets
from tools.category_service import CategoryService
from tools.dashboard import compute_dashboard
from tools.dates import month_key
from tools.errors import AIServiceError, AuthError, BackendError
from tools.login_assistant import (
    check_password_strength,
    classify_auth_error,
    fetch_login_history,
    get_login_assistance,
    get_signup_suggestions,
    log_login_attempt,
    validate_email,
)
from tools.setup_wizard import SetupChoice, copy_from_user, load_popular_data, load_subcategories, save_setup
from tools.transaction_service import (
    TransactionService,
    clean_installment_description,
    is_installment,
    purchase_from_installment,
)

configure_logging()
settings = get_settings()

# Page config
st.set_page_config(
    page_title="SpendMe | Personal Finance",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main .block-container {
        padding-top: 2rem;
        padding-bottom: 2rem;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}

    [data-testid="stMetricValue"] {
        font-size: 1.6rem;
        font-weight: 700;
    }

    .stTabs [data-baseweb="tab-list"] {
        gap: 6px;
        background-color: transparent;
    }

    .stTabs [data-baseweb="tab"] {
        height: 46px;
        padding: 8px 16px;
        background-color: #374151 !important;
        border-radius: 8px 8px 0 0;
        font-weight: 600;
        color: white !important;
    }

    .stTabs [aria-selected="true"] {
        background-color: #3B82F6 !important;
        color: white !important;
    }

    .stTabs [data-baseweb="tab"] * {
        color: white !important;
    }
</style>
""", unsafe_allow_html=True)

# Initialize session state
if "auth" not in st.session_state:
    st.session_state.auth = None
if "messages" not in st.session_state:
    st.session_state.messages = []
if "agent" not in st.session_state:
    st.session_state.agent = None
if "ai_parsed" not in st.session_state:
    st.session_state.ai_parsed = None
if "setup_staged" not in st.session_state:
    st.session_state.setup_staged = None

TYPE_LABELS = {
    TransactionType.INCOME: "Income",
    TransactionType.EXPENSE: "Expense",
    TransactionType.TRANSFER: "Transfer",
}

ACCOUNT_TYPE_LABELS = {
    AccountType.CASH: "💵 Cash",
    AccountType.WALLET: "👛 Wallet",
    AccountType.BANK: "🏦 Bank",
    AccountType.SAVINGS: "🐷 Savings",
    AccountType.CREDIT_CARD: "💳 Credit card",
    AccountType.OTHER: "📁 Other",
}

PAYMENT_METHODS = ["Cash", "Credit card", "Debit card", "Bank transfer", "EFT", "Papara"]


def get_client() -> BackendClient:
    """Backend client shared by the signed-in session"""
    auth = st.session_state.auth
    if auth is not None:
        return auth.client
    return BackendClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.http_timeout
    )


def current_user_id() -> str:
    return st.session_state.auth.require_user().id


def format_currency(amount: float) -> str:
    """Format number with the configured currency symbol"""
    return f"{settings.currency_symbol}{amount:,.2f}"


def create_donut_chart(labels: list, values: list, colors: list, title: str):
    """Create a donut chart for a category or payment method breakdown"""
    fig = go.Figure(data=[go.Pie(
        labels=labels,
        values=values,
        hole=0.6,
        marker_colors=colors,
        textinfo='label+percent',
        textposition='outside'
    )])

    fig.update_layout(
        title=dict(text=title, x=0.5, font=dict(size=18)),
        showlegend=True,
        legend=dict(orientation="h", yanchor="bottom", y=-0.2, xanchor="center", x=0.5),
        height=380,
        margin=dict(l=20, r=20, t=60, b=80),
        paper_bgcolor='rgba(0,0,0,0)'
    )
    return fig


def create_bar_chart(names: list, amounts: list, title: str):
    """Create a horizontal bar chart"""
    df = pd.DataFrame({'Name': names, 'Amount': amounts})
    df = df.sort_values('Amount', ascending=True)

    fig = px.bar(
        df,
        x='Amount',
        y='Name',
        orientation='h',
        title=title,
        color='Amount',
        color_continuous_scale=['#3B82F6', '#8B5CF6']
    )

    fig.update_layout(
        showlegend=False,
        coloraxis_showscale=False,
        height=max(280, len(names) * 40),
        margin=dict(l=20, r=20, t=60, b=20),
        paper_bgcolor='rgba(0,0,0,0)',
        xaxis_title=f"Amount ({settings.currency_symbol})",
        yaxis_title=""
    )

    fig.update_traces(
        texttemplate=settings.currency_symbol + '%{x:,.2f}',
        textposition='outside'
    )
    return fig


def load_user_data(user_id: str) -> dict:
    """Everything most tabs need, loaded once per rerun"""
    client = get_client()
    return {
        "accounts": AccountService(client).get_accounts(user_id),
        "categories": CategoryService(client).get_categories(user_id),
        "transactions": TransactionService(client).get_transactions(user_id),
        "budgets": BudgetService(client).get_budgets(user_id),
    }


# --- auth ---

def render_header():
    """Render the main header"""
    col1, col2, col3 = st.columns([1, 3, 1])

    with col2:
        st.markdown("""
        <div style='text-align: center; padding: 16px 0;'>
            <h1 style='font-size: 2.6rem; margin-bottom: 0;'>💰 SpendMe</h1>
            <p style='font-size: 1.1rem; color: #666; margin-top: 8px;'>
                Track income, expenses, budgets and cards in one place
            </p>
        </div>
        """, unsafe_allow_html=True)


def render_login_help(email: str, error_type: str | None):
    client = get_client()
    try:
        history = fetch_login_history(client, email)
    except BackendError:
        history = []

    help_response = get_login_assistance(email, error_type, history)
    if help_response.suggestions:
        with st.expander("🤖 Login help", expanded=True):
            for suggestion in help_response.suggestions:
                st.markdown(f"- {suggestion}")


def render_auth():
    """Login and sign-up forms"""
    if not settings.backend_configured:
        st.error("Backend is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")
        return

    login_tab, signup_tab = st.tabs(["🔑 Log in", "📝 Sign up"])

    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Log in", type="primary", use_container_width=True)

        if submitted:
            client = get_client()
            try:
                st.session_state.auth = sign_in(
                    client, email, password,
                    profile_timeout=settings.profile_timeout
                )
                log_login_attempt(client, email, True)
                st.rerun()
            except AuthError as e:
                error_type = classify_auth_error(e.message)
                log_login_attempt(client, email, False, error_type)
                st.error(f"Login failed: {e.message}")
                render_login_help(email, error_type)
            except BackendError as e:
                st.error(f"Backend error: {e.message}")

    with signup_tab:
        email = st.text_input("Email", key="signup_email")
        password = st.text_input("Password", type="password", key="signup_password")

        if email:
            email_check = validate_email(email)
            for hint in email_check.suggestions:
                st.caption(f"⚠️ {hint}")
            if email_check.is_valid:
                with st.expander("💡 Suggestions"):
                    for hint in get_signup_suggestions(email).suggestions:
                        st.markdown(f"- {hint}")

        if password:
            strength = check_password_strength(password)
            st.progress(strength.score / 5, text=f"Password strength: {strength.score}/5")
            for hint in strength.feedback:
                st.caption(f"• {hint}")

        if st.button("Create account", type="primary", use_container_width=True):
            if not validate_email(email).is_valid:
                st.error("Enter a valid email address")
            elif not check_password_strength(password).is_strong:
                st.error("Choose a stronger password")
            else:
                try:
                    auth = sign_up(get_client(), email, password, profile_timeout=settings.profile_timeout)
                    if auth.is_authenticated:
                        st.session_state.auth = auth
                        st.rerun()
                    st.success("Account created. Check your inbox to confirm your email, then log in.")
                except BackendError as e:
                    st.error(f"Sign-up failed: {e.message}")


# --- setup wizard ---

def render_setup_wizard(user_id: str):
    """First-run choice of categories and accounts"""
    client = get_client()
    st.markdown("### 🚀 Welcome! Let's set up your categories and accounts")

    if st.button("⚡ Use the default categories"):
        try:
            CategoryService(client).initialize_default_categories(user_id)
            st.rerun()
        except BackendError as e:
            st.error(f"Could not create default categories: {e.message}")

    st.markdown("---")

    try:
        popular = load_popular_data(client)
    except BackendError as e:
        st.error(f"Could not load the catalog: {e.message}")
        return

    staged = st.session_state.setup_staged
    categories = popular.categories + (staged.categories if staged else [])
    accounts = popular.accounts + (staged.accounts if staged else [])

    hierarchy = st.radio(
        "Do you want subcategories?",
        ["Yes, main categories with subcategories", "No, main categories only"],
        index=None
    )
    wants_subcategories = None if hierarchy is None else hierarchy.startswith("Yes")

    main_choices = [c for c in categories if not c.parent_id]
    selected_categories = st.multiselect(
        "Categories",
        main_choices,
        format_func=lambda c: f"{c.icon or '📁'} {c.name} ({c.type.value})"
    )

    main_ids = {c.id for c in main_choices}
    # Copied subcategories attached to a category the user already owns
    owned_parent_subs = [
        c for c in (staged.categories if staged else [])
        if c.parent_id and c.parent_id not in main_ids
    ]

    selected_subcategories = []
    if wants_subcategories and (selected_categories or owned_parent_subs):
        parent_ids = [c.id for c in selected_categories]
        subcategories = [c for c in categories if c.parent_id in parent_ids] + owned_parent_subs
        try:
            subcategories += load_subcategories(client, [i for i in parent_ids if i])
        except BackendError as e:
            st.warning(f"Could not load subcategories: {e.message}")
        selected_subcategories = st.multiselect(
            "Subcategories",
            list({c.id: c for c in subcategories}.values()),
            format_func=lambda c: f"{c.icon or '📁'} {c.name}"
        )

    selected_accounts = st.multiselect(
        "Accounts",
        accounts,
        format_func=lambda a: f"{a.icon or '💳'} {a.name} ({ACCOUNT_TYPE_LABELS[a.type]})"
    )

    with st.expander("📋 Copy another user's setup"):
        source_id = st.text_input("User id to copy from")
        if st.button("Copy") and source_id:
            try:
                st.session_state.setup_staged = copy_from_user(
                    client, source_id, user_id,
                    with_subcategories=bool(wants_subcategories),
                    selected_ids=[c.id for c in selected_categories if c.id]
                )
                st.rerun()
            except BackendError as e:
                st.error(f"Copy failed: {e.message}")

    if st.button("💾 Save setup", type="primary", use_container_width=True):
        choice = SetupChoice(
            wants_subcategories=wants_subcategories,
            categories=selected_categories,
            subcategories=selected_subcategories,
            accounts=selected_accounts,
        )
        try:
            result = save_setup(client, user_id, choice)
            st.session_state.setup_staged = None
            st.success(f"Saved {len(result.categories)} categories and {len(result.accounts)} accounts")
            st.rerun()
        except ValueError as e:
            st.error(str(e))
        except BackendError as e:
            st.error(f"Could not save setup: {e.message}")


# --- tabs ---

def render_dashboard_tab(data: dict):
    """Totals, charts, budgets and card exposure"""
    stats = compute_dashboard(data["transactions"], data["accounts"], data["budgets"], data["categories"])

    st.markdown("#### 📅 This month")
    m1, m2, m3 = st.columns(3)
    with m1:
        st.metric("💰 Income", format_currency(stats.monthly_income))
    with m2:
        st.metric("💸 Expenses", format_currency(stats.monthly_expense))
    with m3:
        st.metric(
            "📈 Balance",
            format_currency(stats.monthly_balance),
            delta="Surplus" if stats.monthly_balance >= 0 else "Deficit",
            delta_color="normal" if stats.monthly_balance >= 0 else "inverse"
        )

    st.markdown("#### 🧾 All time")
    a1, a2, a3, a4 = st.columns(4)
    with a1:
        st.metric("Income", format_currency(stats.total_income))
    with a2:
        st.metric("Expenses", format_currency(stats.total_expense))
    with a3:
        st.metric("👛 Wallet", format_currency(stats.wallet_total))
    with a4:
        st.metric("🏦 Bank", format_currency(stats.bank_total))

    st.markdown("---")

    col1, col2 = st.columns(2)
    with col1:
        if stats.top_categories:
            fig = create_donut_chart(
                [c.name for c in stats.top_categories],
                [c.value for c in stats.top_categories],
                [c.color for c in stats.top_categories],
                "🏷️ Top categories this month"
            )
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No expenses this month yet")
    with col2:
        if stats.payment_methods:
            fig = create_donut_chart(
                [f"{p.icon} {p.name}" for p in stats.payment_methods],
                [p.value for p in stats.payment_methods],
                [p.color for p in stats.payment_methods],
                "💳 Payment methods this month"
            )
            st.plotly_chart(fig, use_container_width=True)

    if stats.top_categories_all_time:
        fig = create_bar_chart(
            [c.name for c in stats.top_categories_all_time],
            [c.value for c in stats.top_categories_all_time],
            "📊 Top categories, all time"
        )
        st.plotly_chart(fig, use_container_width=True)

    if stats.budget_status:
        st.markdown("#### 🎯 Budgets")
        for status in stats.budget_status:
            label = (
                f"{status.category_name}: {format_currency(status.spent_amount)}"
                f" / {format_currency(status.budget_amount)}"
            )
            st.progress(min(status.percentage_used / 100, 1.0), text=label)
            if status.is_over_budget:
                st.warning(f"⚠️ {status.category_name} is over budget by {format_currency(-status.remaining_amount)}")

    if stats.bank_accounts:
        st.markdown("#### 🏦 Bank accounts")
        st.dataframe(
            pd.DataFrame([
                {"Account": b.name, "Balance": format_currency(b.balance)}
                for b in stats.bank_accounts
            ]),
            use_container_width=True, hide_index=True
        )

    if stats.credit_cards:
        st.markdown("#### 💳 Credit cards")
        c1, c2, c3 = st.columns(3)
        with c1:
            st.metric("Total limit", format_currency(stats.total_credit_limit))
        with c2:
            st.metric("Total debt", format_currency(stats.total_credit_debt))
        with c3:
            st.metric("Available", format_currency(stats.total_credit_available))
        st.dataframe(
            pd.DataFrame([
                {
                    "Card": c.name,
                    "Limit": format_currency(c.limit),
                    "Debt": format_currency(c.debt),
                    "Available": format_currency(c.available),
                }
                for c in stats.credit_cards
            ]),
            use_container_width=True, hide_index=True
        )

    if stats.recent_transactions:
        st.markdown("#### 🕒 Recent transactions")
        render_transaction_table(stats.recent_transactions, data)


def render_transaction_table(transactions: list[Transaction], data: dict):
    category_names = {c.id: c.name for c in data["categories"]}
    account_names = {a.id: a.name for a in data["accounts"]}
    rows = []
    for t in transactions:
        sign = "+" if t.type == TransactionType.INCOME else "-" if t.type == TransactionType.EXPENSE else ""
        rows.append({
            "Date": t.date,
            "Type": TYPE_LABELS[t.type],
            "Description": (t.description or "")[:50],
            "Category": category_names.get(t.category_id, "") if t.category_id else "",
            "Account": account_names.get(t.account_id, "") if t.account_id else "",
            "Amount": f"{sign}{format_currency(t.amount)}",
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def _index_of(items: list, item_id, default: int = 0) -> int:
    for i, item in enumerate(items):
        if item is not None and item.id == item_id:
            return i
    return default


def render_edit_transaction(service: TransactionService, transactions: list[Transaction], data: dict):
    """Edit one row, or rebuild every installment of a purchase"""
    st.markdown("#### ✏️ Edit")
    to_edit = st.selectbox(
        "Transaction to edit", transactions,
        format_func=lambda t: f"{t.date} · {t.description or '-'} · {format_currency(t.amount)}"
    )
    if to_edit is None:
        return

    edit_all = False
    if is_installment(to_edit) and to_edit.installment_group_id:
        mode = st.radio(
            "Edit mode", ["This installment only", "All installments of this purchase"],
            horizontal=True, key=f"edit_mode_{to_edit.id}"
        )
        edit_all = mode.startswith("All")
    base = purchase_from_installment(to_edit) if edit_all else to_edit
    suffix = f"{to_edit.id}_{edit_all}"

    categories = [None] + [c for c in data["categories"] if c.type.value == base.type.value]
    accounts = [None] + data["accounts"]

    with st.form(f"edit_transaction_{suffix}"):
        c1, c2 = st.columns(2)
        with c1:
            amount = st.number_input(
                f"{'Total amount' if edit_all else 'Amount'} ({settings.currency_symbol})",
                min_value=0.0, step=10.0, value=float(base.amount)
            )
            category = st.selectbox(
                "Category", categories, index=_index_of(categories, base.category_id),
                format_func=lambda c: "None" if c is None else f"{c.icon or ''} {c.name}"
            )
            account = st.selectbox(
                "Account", accounts, index=_index_of(accounts, base.account_id),
                format_func=lambda a: "None" if a is None else f"{a.icon or ''} {a.name}"
            )
        with c2:
            description = st.text_input("Description", value=base.description or "")
            vendor = st.text_input("Vendor", value=base.vendor or "")
            tx_date = st.date_input("First installment date" if edit_all else "Date", value=base.date)
            installments = st.number_input(
                "Installments", min_value=1, max_value=36, value=int(base.installments or 1),
                disabled=not edit_all
            )
        saved = st.form_submit_button("Save changes", use_container_width=True)

    if not saved:
        return
    try:
        if edit_all:
            edited = base.model_copy(update={
                "amount": amount,
                "category_id": category.id if category else None,
                "account_id": account.id if account else None,
                "description": description,
                "vendor": vendor or None,
                "date": tx_date,
                "installments": int(installments),
            })
            service.update_installment_transaction(to_edit.installment_group_id, edited)
            st.success("Every installment was updated")
        else:
            service.update_transaction(to_edit.id, {
                "amount": amount,
                "category_id": category.id if category else None,
                "account_id": account.id if account else None,
                "description": description,
                "vendor": vendor or None,
                "date": tx_date,
            })
            st.success("Transaction updated")
        st.rerun()
    except ValueError as e:
        st.error(str(e))
    except BackendError as e:
        st.error(f"Could not update: {e.message}")


def render_transactions_tab(user_id: str, data: dict):
    """Filter, add and delete transactions"""
    client = get_client()
    service = TransactionService(client)

    st.markdown("### 💳 Transactions")

    with st.expander("🔍 Filters"):
        f1, f2, f3 = st.columns(3)
        with f1:
            type_choice = st.selectbox("Type", ["All"] + [t.value for t in TransactionType])
            search = st.text_input("Search description")
        with f2:
            category = st.selectbox(
                "Category", [None] + data["categories"],
                format_func=lambda c: "All" if c is None else c.name
            )
            start_date = st.date_input("From", value=None)
        with f3:
            account = st.selectbox(
                "Account", [None] + data["accounts"],
                format_func=lambda a: "All" if a is None else a.name
            )
            end_date = st.date_input("To", value=None)

    filters = TransactionFilters(
        type=None if type_choice == "All" else TransactionType(type_choice),
        category_id=category.id if category else None,
        account_id=account.id if account else None,
        start_date=start_date,
        end_date=end_date,
        search=search or None,
    )
    try:
        transactions = service.get_transactions_with_filters(user_id, filters)
    except BackendError as e:
        st.error(f"Could not load transactions: {e.message}")
        transactions = []

    if transactions:
        render_transaction_table(transactions, data)
    else:
        st.info("No transactions match these filters")

    st.markdown("---")
    st.markdown("#### ➕ Add transaction")

    tx_type = st.radio("Type", [TransactionType.EXPENSE, TransactionType.INCOME],
                       format_func=lambda t: TYPE_LABELS[t], horizontal=True)
    category_type = CategoryType.EXPENSE if tx_type == TransactionType.EXPENSE else CategoryType.INCOME

    with st.form("add_transaction"):
        c1, c2 = st.columns(2)
        with c1:
            amount = st.number_input(f"Amount ({settings.currency_symbol})", min_value=0.0, step=10.0)
            tx_category = st.selectbox(
                "Category",
                [c for c in data["categories"] if c.type == category_type],
                format_func=lambda c: f"{c.icon or ''} {c.name}"
            )
            tx_account = st.selectbox(
                "Account", data["accounts"],
                format_func=lambda a: f"{a.icon or ''} {a.name}"
            )
        with c2:
            description = st.text_input("Description")
            tx_date = st.date_input("Date", value=date.today())
            payment_method = st.selectbox("Payment method", PAYMENT_METHODS)
            installments = st.number_input("Installments", min_value=1, max_value=36, value=1)

        submitted = st.form_submit_button("Save", type="primary", use_container_width=True)

    if submitted:
        if amount <= 0:
            st.error("Enter a valid amount")
        else:
            transaction = Transaction(
                user_id=user_id,
                type=tx_type,
                amount=amount,
                account_id=tx_account.id if tx_account else None,
                category_id=tx_category.id if tx_category else None,
                payment_method=payment_method,
                installments=int(installments),
                description=description,
                date=tx_date,
            )
            try:
                if is_installment(transaction):
                    service.create_installment_transaction(transaction)
                    st.success(f"Saved {int(installments)} installments")
                else:
                    service.create_transaction(transaction)
                    st.success("Transaction saved")
                st.rerun()
            except BackendError as e:
                st.error(f"Could not save: {e.message}")

    if transactions:
        render_edit_transaction(service, transactions, data)

        st.markdown("#### 🗑️ Delete")
        to_delete = st.selectbox(
            "Transaction", transactions,
            format_func=lambda t: f"{t.date} · {clean_installment_description(t.description or '')} · {format_currency(t.amount)}"
        )
        whole_group = False
        if to_delete and to_delete.installment_group_id:
            whole_group = st.checkbox("Delete every installment of this purchase")
        if st.button("Delete", type="secondary"):
            try:
                if whole_group:
                    service.delete_installment_group(to_delete.installment_group_id)
                else:
                    service.delete_transaction(to_delete.id)
                st.rerun()
            except BackendError as e:
                st.error(f"Could not delete: {e.message}")


def render_ai_add_tab(user_id: str, data: dict):
    """Describe a transaction in plain words and save the parsed result"""
    st.markdown("### 🤖 Add with AI")
    st.markdown("_e.g. \"Spent 250 at Migros with my credit card\" or \"Withdrew 1000 from the ATM\"_")

    if not settings.openai_api_key:
        st.warning("Set OPENAI_API_KEY to use AI entry")
        return

    text = st.text_area("What happened?")
    if st.button("✨ Parse", type="primary") and text:
        with st.spinner("Parsing..."):
            try:
                st.session_state.ai_parsed = AIService().parse_natural_language(
                    text, data["categories"], data["accounts"]
                )
            except AIServiceError as e:
                st.session_state.ai_parsed = None
                st.error(f"Could not parse: {e}")

    parsed = st.session_state.ai_parsed
    if parsed is None:
        return

    account_names = {a.id: a.name for a in data["accounts"]}
    category_names = {c.id: c.name for c in data["categories"]}

    st.markdown("---")
    st.markdown(f"**Amount:** {format_currency(parsed.amount)}")
    st.markdown(f"**Description:** {parsed.description}")
    if isinstance(parsed, ParsedTransfer):
        st.markdown(f"**From:** {account_names[parsed.from_account_id]} → **To:** {account_names[parsed.to_account_id]}")
    else:
        st.markdown(f"**Type:** {parsed.type}")
        st.markdown(f"**Category:** {category_names[parsed.category_id]}")
        if parsed.account_id:
            st.markdown(f"**Account:** {account_names[parsed.account_id]}")
        if parsed.vendor:
            st.markdown(f"**Vendor:** {parsed.vendor}")
    if parsed.summary:
        st.caption(parsed.summary)

    if st.button("💾 Save", use_container_width=True):
        service = TransactionService(get_client())
        try:
            if isinstance(parsed, ParsedTransfer):
                service.create_transfer(
                    user_id, parsed.amount, parsed.from_account_id, parsed.to_account_id,
                    data["accounts"], description=parsed.description or None
                )
            else:
                service.create_transaction(Transaction(
                    user_id=user_id,
                    type=TransactionType(parsed.type),
                    amount=parsed.amount,
                    account_id=parsed.account_id,
                    category_id=parsed.category_id,
                    vendor=parsed.vendor,
                    description=parsed.description,
                    date=date.today(),
                ))
            st.session_state.ai_parsed = None
            st.success("Saved")
            st.rerun()
        except (BackendError, ValueError) as e:
            st.error(f"Could not save: {e}")


def render_transfer_tab(user_id: str, data: dict):
    st.markdown("### 🔁 Transfer between accounts")

    if len(data["accounts"]) < 2:
        st.info("You need at least two accounts to make a transfer")
        return

    with st.form("transfer_form"):
        amount = st.number_input(f"Amount ({settings.currency_symbol})", min_value=0.0, step=10.0)
        from_account = st.selectbox("From", data["accounts"], format_func=lambda a: a.name)
        to_account = st.selectbox("To", data["accounts"], index=1, format_func=lambda a: a.name)
        description = st.text_input("Description (optional)")
        on_date = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("Transfer", type="primary", use_container_width=True)

    if submitted:
        try:
            TransactionService(get_client()).create_transfer(
                user_id, amount, from_account.id, to_account.id, data["accounts"],
                description=description or None, on_date=on_date
            )
            st.success("Transfer saved")
        except ValueError as e:
            st.error(str(e))
        except BackendError as e:
            st.error(f"Could not save: {e.message}")


def render_budgets_tab(user_id: str, data: dict):
    st.markdown("### 🎯 Budgets")
    service = BudgetService(get_client())
    expense_categories = [c for c in data["categories"] if c.type == CategoryType.EXPENSE]
    category_names = {c.id: c.name for c in data["categories"]}

    budgets = clean_budgets(data["budgets"])
    if budgets:
        st.dataframe(
            pd.DataFrame([
                {
                    "Category": category_names.get(b.category_id, "Unknown"),
                    "Period": b.period,
                    "Amount": format_currency(b.amount),
                }
                for b in budgets
            ]),
            use_container_width=True, hide_index=True
        )
    else:
        st.info("No budgets yet")

    with st.form("budget_form"):
        category = st.selectbox("Category", expense_categories, format_func=lambda c: c.name)
        period = st.selectbox("Period", [month_key(date.today()), "monthly", "weekly", "yearly"])
        amount = st.number_input(
            f"Limit ({settings.currency_symbol})", min_value=0.0, step=50.0,
            help="0 removes the budget"
        )
        submitted = st.form_submit_button("Save budget", type="primary")

    if submitted and category:
        try:
            saved = service.set_category_budget(user_id, category.id, period, amount)
            st.success("Budget saved" if saved else "Budget removed")
            st.rerun()
        except (BackendError, ValueError) as e:
            st.error(f"Could not save budget: {e}")

    if budgets:
        to_delete = st.selectbox(
            "Delete budget", budgets,
            format_func=lambda b: f"{category_names.get(b.category_id, 'Unknown')} · {b.period}"
        )
        if st.button("Delete budget"):
            try:
                service.delete_budget(to_delete.id)
                st.rerun()
            except BackendError as e:
                st.error(f"Could not delete: {e.message}")

    if settings.openai_api_key and st.button("🤖 Suggest a budget split"):
        stats = compute_dashboard(data["transactions"], data["accounts"], data["budgets"], data["categories"])
        with st.spinner("Thinking..."):
            advice = AIService().get_budget_recommendations(
                stats.monthly_income,
                {c.name: c.value for c in stats.top_categories}
            )
        for line in advice.recommendations:
            st.markdown(f"- {line}")
        if advice.categories:
            fig = create_bar_chart(list(advice.categories), list(advice.categories.values()), "Suggested split (%)")
            st.plotly_chart(fig, use_container_width=True)


def render_categories_tab(user_id: str, data: dict):
    st.markdown("### 🏷️ Categories")
    service = CategoryService(get_client())

    for node in service.get_category_tree(user_id):
        with st.expander(f"{node.category.icon or '📁'} {node.category.name} ({node.category.type.value})"):
            for sub in node.subcategories:
                st.markdown(f"- {sub.icon or ''} {sub.name}")

    with st.form("category_form"):
        name = st.text_input("Name")
        icon = st.text_input("Icon", value="📁")
        category_type = st.selectbox("Type", list(CategoryType), format_func=lambda t: t.value.title())
        parent = st.selectbox(
            "Parent (optional)",
            [None] + [c for c in data["categories"] if not c.parent_id],
            format_func=lambda c: "None (main category)" if c is None else c.name
        )
        submitted = st.form_submit_button("Add category", type="primary")

    if submitted:
        try:
            service.create_category(Category(
                user_id=user_id,
                name=name,
                icon=icon,
                type=parent.type if parent else category_type,
                parent_id=parent.id if parent else None,
            ))
            st.rerun()
        except (BackendError, ValueError) as e:
            st.error(f"Could not add category: {e}")

    if data["categories"]:
        to_delete = st.selectbox("Delete category", data["categories"], format_func=lambda c: c.name)
        if st.button("Delete category"):
            try:
                service.delete_category(to_delete.id)
                st.rerun()
            except BackendError as e:
                st.error(f"Could not delete: {e.message}")


def render_accounts_tab(user_id: str, data: dict):
    st.markdown("### 🏦 Accounts")
    service = AccountService(get_client())

    if data["accounts"]:
        st.dataframe(
            pd.DataFrame([
                {
                    "Name": f"{a.icon or ''} {a.name}",
                    "Type": ACCOUNT_TYPE_LABELS[a.type],
                    "Limit": format_currency(a.card_limit) if a.card_limit else "",
                    "IBAN": a.iban or "",
                }
                for a in data["accounts"]
            ]),
            use_container_width=True, hide_index=True
        )

    account_type = st.selectbox("Type", list(AccountType), format_func=lambda t: ACCOUNT_TYPE_LABELS[t])
    with st.form("account_form"):
        name = st.text_input("Name")
        icon = st.text_input("Icon", value="💳")
        iban = st.text_input("IBAN") if account_type in (AccountType.BANK, AccountType.SAVINGS) else None
        card_limit = statement_day = due_day = None
        if account_type == AccountType.CREDIT_CARD:
            card_limit = st.number_input("Card limit", min_value=0.0, step=1000.0)
            statement_day = st.number_input("Statement day", min_value=1, max_value=31, value=1)
            due_day = st.number_input("Due day", min_value=1, max_value=31, value=10)
        note = st.text_input("Note")
        submitted = st.form_submit_button("Add account", type="primary")

    if submitted:
        try:
            service.create_account(Account(
                user_id=user_id,
                name=name,
                type=account_type,
                icon=icon,
                iban=iban or None,
                note=note or None,
                card_limit=card_limit,
                statement_day=int(statement_day) if statement_day else None,
                due_day=int(due_day) if due_day else None,
            ))
            st.rerun()
        except (BackendError, ValueError) as e:
            st.error(f"Could not add account: {e}")

    if data["accounts"]:
        to_delete = st.selectbox("Delete account", data["accounts"], format_func=lambda a: a.name)
        if st.button("Delete account"):
            try:
                service.delete_account(to_delete.id)
                st.rerun()
            except BackendError as e:
                st.error(f"Could not delete: {e.message}")


def render_assistant_tab(user_id: str, data: dict):
    """Chat with the assistant about the user's own data"""
    st.markdown("### 💬 Ask SpendMe")

    if not settings.openai_api_key:
        st.warning("Set OPENAI_API_KEY to use the assistant")
        return

    if st.session_state.agent is None:
        st.session_state.agent = SpendMeAgent(get_client(), user_id)

    for message in st.session_state.messages:
        with st.chat_message(message["role"], avatar="🧑" if message["role"] == "user" else "🤖"):
            st.markdown(message["content"])

    if prompt := st.chat_input("How much did I spend on groceries this month?"):
        st.session_state.messages.append({"role": "user", "content": prompt})
        with st.chat_message("user", avatar="🧑"):
            st.markdown(prompt)

        with st.chat_message("assistant", avatar="🤖"):
            with st.spinner("Thinking..."):
                try:
                    response = st.session_state.agent.chat(prompt)
                except BackendError as e:
                    st.error(f"Could not load your data: {e.message}")
                except AIServiceError as e:
                    st.error(f"The assistant failed to answer: {e}")
                else:
                    st.markdown(response)
                    st.session_state.messages.append({"role": "assistant", "content": response})

    st.markdown("---")
    if st.button("📊 Analyse my recent spending", use_container_width=True):
        with st.spinner("Analysing..."):
            analysis = AIService().analyze_spending(data["transactions"])
        st.markdown(analysis.analysis)
        for insight in analysis.insights:
            st.markdown(f"- 💡 {insight}")
        for recommendation in analysis.recommendations:
            st.markdown(f"- ✅ {recommendation}")

    if st.session_state.messages and st.button("🗑️ Clear Chat History", use_container_width=True):
        st.session_state.messages = []
        st.session_state.agent.reset()
        st.rerun()


def render_profile_tab():
    auth = st.session_state.auth
    profile = auth.profile

    st.markdown("### 👤 Profile")
    if profile and profile.avatar_url:
        st.image(profile.avatar_url, width=120)
    st.caption(auth.user.email or "")

    with st.form("profile_form"):
        c1, c2 = st.columns(2)
        with c1:
            first_name = st.text_input("First name", value=profile.first_name if profile else "")
            phone = st.text_input("Phone", value=profile.phone if profile else "")
        with c2:
            last_name = st.text_input("Last name", value=profile.last_name if profile else "")
            location = st.text_input("Location", value=profile.location if profile else "")

        st.markdown("**Notifications**")
        flags = {}
        for field, label in [
            ("email_notifications", "Email notifications"),
            ("push_notifications", "Push notifications"),
            ("budget_alerts", "Budget alerts"),
            ("transaction_reminders", "Transaction reminders"),
            ("weekly_reports", "Weekly reports"),
            ("monthly_reports", "Monthly reports"),
            ("security_alerts", "Security alerts"),
            ("marketing_emails", "Marketing emails"),
        ]:
            default = getattr(profile, field) if profile else field not in ("weekly_reports", "marketing_emails")
            flags[field] = st.checkbox(label, value=default)

        submitted = st.form_submit_button("Save profile", type="primary")

    if submitted:
        try:
            update_user_profile(auth, {
                "first_name": first_name,
                "last_name": last_name,
                "phone": phone,
                "location": location,
                **flags,
            })
            st.success("Profile saved")
        except BackendError as e:
            st.error(f"Could not save profile: {e.message}")

    photo = st.file_uploader("Profile photo", type=["png", "jpg", "jpeg", "gif", "webp"])
    if photo and st.button("Upload photo"):
        try:
            upload_profile_photo(auth, photo.name, photo.getvalue(), photo.type)
            st.rerun()
        except ValueError as e:
            st.error(str(e))
        except BackendError as e:
            st.error(f"Upload failed: {e.message}")

    st.markdown("---")
    if st.button("🚪 Sign out", use_container_width=True):
        sign_out(auth)
        st.session_state.auth = None
        st.session_state.agent = None
        st.session_state.messages = []
        st.rerun()


def main():
    """Main app entry point"""
    render_header()

    auth = st.session_state.auth
    if auth is None or not auth.is_authenticated:
        render_auth()
        return

    user_id = current_user_id()
    with st.sidebar:
        st.markdown(f"## 👋 {auth.display_name}")
        st.caption(f"Currency: {settings.currency_code}")

    try:
        data = load_user_data(user_id)
    except AuthError:
        st.session_state.auth = None
        st.warning("Your session has expired. Please log in again.")
        return
    except BackendError as e:
        st.error(f"Could not load your data: {e.message}")
        return

    if not data["categories"]:
        render_setup_wizard(user_id)
        return

    tabs = st.tabs([
        "📊 Dashboard",
        "💳 Transactions",
        "🤖 AI Add",
        "🔁 Transfer",
        "🎯 Budgets",
        "🏷️ Categories",
        "🏦 Accounts",
        "💬 Assistant",
        "👤 Profile",
    ])

    with tabs[0]:
        render_dashboard_tab(data)
    with tabs[1]:
        render_transactions_tab(user_id, data)
    with tabs[2]:
        render_ai_add_tab(user_id, data)
    with tabs[3]:
        render_transfer_tab(user_id, data)
    with tabs[4]:
        render_budgets_tab(user_id, data)
    with tabs[5]:
        render_categories_tab(user_id, data)
    with tabs[6]:
        render_accounts_tab(user_id, data)
    with tabs[7]:
        render_assistant_tab(user_id, data)
    with tabs[8]:
        render_profile_tab()


if __name__ == "__main__":
    main()
