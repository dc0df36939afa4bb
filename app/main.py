"""
Streamlit Frontend for Firetrack

DESIGN PRINCIPLES:
1. One form to get in: new emails are registered, known emails signed in
2. Clear error messages, one per problem
3. Categories are picked from a tree, only leaves can be chosen
4. No hidden actions

The UI only talks to the orchestrator components; all checks happen in
the core.
"""

import asyncio
from datetime import date

import streamlit as st

from src.audit import create_correlation_id
from src.categories import CategoryError
from src.config import get_settings, validate_all_settings
from src.models.account import EmailErrorReason, EntryReason, EntryStatus
from src.models.expense import ExpenseErrorReason
from src.orchestrator import AppComponents, create_app_components


st.set_page_config(
    page_title="Firetrack",
    page_icon="🔥",
    layout="wide",
    initial_sidebar_state="expanded",
)


ENTRY_MESSAGES = {
    EntryReason.MISSING_PASSWORD: "Please enter a password.",
    EntryReason.INVALID_EMAIL: "Please enter a valid email address.",
    EntryReason.CREDENTIAL_MISMATCH: "This email is registered with a different password.",
    EntryReason.STORE_INSERT_RACE: "Something went wrong, please try again.",
}

EMAIL_HINTS = {
    EmailErrorReason.MALFORMED_STRUCTURE: "An email address needs exactly one @.",
    EmailErrorReason.MALFORMED_LOCAL_PART: "Check the part before the @.",
    EmailErrorReason.MALFORMED_DOMAIN: "Check the part after the @.",
    EmailErrorReason.IP_LITERAL_OUT_OF_RANGE: "The IP address after the @ is out of range.",
}

EXPENSE_MESSAGES = {
    ExpenseErrorReason.BAD_AMOUNT: "Please enter an amount greater than zero.",
    ExpenseErrorReason.BAD_CATEGORY: "Please choose a category.",
    ExpenseErrorReason.BAD_DATE: "Please enter a valid date.",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def report_error(components: AppComponents, action: str, error: Exception):
    """Audit an unexpected failure and tell the user without crashing the page."""
    run_async(
        components.audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"action": action},
        )
    )
    st.error(f"Something went wrong while {action}. Please try again.")
    if get_settings().app.debug_mode:
        st.exception(error)


def current_email(components: AppComponents):
    token = st.session_state.get("session_token")
    if not token:
        return None
    return components.session_issuer.verify(token)


def main():
    """Main application entry point."""
    components = get_components()
    email = current_email(components)

    st.sidebar.title("🔥 Firetrack")
    st.sidebar.markdown("---")

    if email is None:
        render_entry_page(components)
        return

    st.sidebar.caption(f"Signed in as {email}")
    if st.sidebar.button("Log out"):
        components.session_issuer.revoke(st.session_state.pop("session_token"))
        st.rerun()

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Expense", "📊 My Expenses", "🗂️ Categories", "⚙️ Settings"],
        index=0,
    )

    # Leaving the expense page closes its category selector
    if page != "➕ Add Expense":
        st.session_state.pop("category_view", None)

    if page == "➕ Add Expense":
        render_add_expense_page(components, email)
    elif page == "📊 My Expenses":
        render_expenses_page(components, email)
    elif page == "🗂️ Categories":
        render_categories_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_entry_page(components: AppComponents):
    """Single form for registering and signing in."""
    st.title("Sign in or register")
    st.markdown(
        "New here? Enter your email and choose a password. "
        "Already registered? The same form signs you in."
    )

    with st.form("account_entry"):
        email = st.text_input("Email address")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Continue", type="primary")

    if not submitted:
        return

    try:
        outcome = run_async(
            components.account_engine.submit(
                email,
                password,
                correlation_id=create_correlation_id(),
            )
        )
    except Exception as e:
        report_error(components, "signing you in", e)
        return

    if outcome.rejected:
        st.error(ENTRY_MESSAGES[outcome.reason])
        if outcome.email_reason:
            st.caption(EMAIL_HINTS[outcome.email_reason])
        return

    st.session_state.session_token = outcome.session.token
    if outcome.status == EntryStatus.REGISTERED:
        st.success("Your account has been created.")
    else:
        st.success("Welcome back!")
    st.rerun()


def render_category_selector(view):
    """Tree selector: branches expand and collapse, leaves can be picked."""
    for depth, node in view.visible_nodes():
        _, label_col = st.columns([depth + 1, 16])
        with label_col:
            if node.is_leaf:
                chosen = view.selected is not None and view.selected.id == node.id
                if st.button(
                    f"{'●' if chosen else '○'} {node.label}",
                    key=f"leaf-{node.id}",
                ):
                    view.select(node.id)
                    st.rerun()
            else:
                arrow = "▾" if view.is_expanded(node.id) else "▸"
                if st.button(f"{arrow} {node.label}", key=f"branch-{node.id}"):
                    view.toggle(node.id)
                    st.rerun()


def render_add_expense_page(components: AppComponents, email: str):
    """Render the expense entry page."""
    st.title("➕ Add Expense")

    # A freshly opened selector starts collapsed with nothing selected
    if "category_view" not in st.session_state:
        st.session_state.category_view = components.categories.fresh_view()
    view = st.session_state.category_view

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### Category")
        render_category_selector(view)

    with col2:
        selected = view.selected
        if selected is not None:
            st.info(" / ".join(components.categories.path(selected.id)))
        else:
            st.caption("No category selected")

        amount = st.text_input("Amount", placeholder="0.00")
        use_today = st.checkbox("Today", value=True)
        spent_on = None if use_today else st.date_input("Date", value=date.today())

        if st.button("Save expense", type="primary"):
            try:
                result = run_async(
                    components.expense_flow.add_expense(
                        amount=amount,
                        category_leaf_id=selected.id if selected else None,
                        date=spent_on.isoformat() if spent_on else None,
                        account_email=email,
                    )
                )
            except Exception as e:
                report_error(components, "saving the expense", e)
                return

            if result.is_valid:
                st.success(
                    f"Saved {result.record.amount} {result.record.currency} "
                    f"on {result.record.date}."
                )
                view.reset_view()
            else:
                st.error(EXPENSE_MESSAGES[result.reason])
                st.caption(result.message)


def render_expenses_page(components: AppComponents, email: str):
    """Render the list of the user's expenses."""
    st.title("📊 My Expenses")

    expenses = run_async(components.expense_flow.list_expenses(account_email=email))
    if not expenses:
        st.info("No expenses yet.")
        return

    st.dataframe(
        [
            {
                "Date": e.date.isoformat(),
                "Category": " / ".join(e.category_path),
                "Amount": f"{e.amount} {e.currency}",
            }
            for e in expenses
        ],
        use_container_width=True,
    )


def render_categories_page(components: AppComponents):
    """Render the category management page."""
    st.title("🗂️ Categories")

    for depth, node in components.categories.walk():
        st.markdown(f"{'&nbsp;' * 4 * depth}• {node.label}", unsafe_allow_html=True)

    st.markdown("---")
    with st.form("add_category"):
        label = st.text_input("New category")
        parents = [None] + [node for _, node in components.categories.walk()]
        parent = st.selectbox(
            "Parent",
            options=parents,
            format_func=lambda n: "(top level)" if n is None
            else " / ".join(components.categories.path(n.id)),
        )
        submitted = st.form_submit_button("Add")

    if submitted:
        try:
            run_async(components.category_flow.add_category(
                label, parent_id=parent.id if parent else None
            ))
            st.rerun()
        except CategoryError as e:
            st.error(str(e))


def render_settings_page():
    """Render the settings status page."""
    st.title("⚙️ Settings")

    status = validate_all_settings()

    sections = [
        ("Application", "app"),
        ("Security", "security"),
        ("Storage", "storage"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")


if __name__ == "__main__":
    main()
