"""
Streamlit Frontend for Split Ledger

The split-expenses screen: manage group members, record shared expenses,
settle shares and see who owes whom.

DESIGN PRINCIPLES:
1. The page holds no business rules; every action goes through the service
2. Errors are shown in plain language next to the form that caused them
3. Nothing is recorded without an explicit button press
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal

import streamlit as st
from pydantic import ValidationError

from splitledger.audit import create_correlation_id
from splitledger.config import get_settings, validate_all_settings
from splitledger.ledger import LedgerError
from splitledger.models.ledger import ExpenseRequest, ParticipantInput, SplitMethod
from splitledger.orchestrator import SplitLedgerService, create_app_components
from splitledger.services.storage import ConcurrentModificationError, StorageError


st.set_page_config(
    page_title="Split Expenses",
    page_icon="🤝",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_service() -> SplitLedgerService:
    """Get or create the ledger service (cached)."""
    logging.basicConfig(level=get_settings().app.log_level)
    try:
        return create_app_components()
    except (StorageError, ValidationError) as e:
        st.error(f"Failed to initialize storage, falling back to memory: {e}")
        return create_app_components(backend="memory")


def money(amount: Decimal) -> str:
    return f"{get_settings().ledger.currency_symbol}{amount:,.2f}"


def main():
    """Main application entry point."""
    service = get_service()

    st.sidebar.title("🤝 Split Expenses")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["👥 Group Members", "➕ Add Expense", "📋 Expenses", "⚖️ Balances", "⚙️ Settings"],
        index=0,
    )

    try:
        if page == "👥 Group Members":
            render_users_page(service)
        elif page == "➕ Add Expense":
            render_add_expense_page(service)
        elif page == "📋 Expenses":
            render_expenses_page(service)
        elif page == "⚖️ Balances":
            render_balances_page(service)
        elif page == "⚙️ Settings":
            render_settings_page()
    except StorageError as e:
        st.error(f"Storage is unavailable: {e}")


def render_users_page(service: SplitLedgerService):
    """Add and remove group members."""
    st.title("👥 Group Members")

    with st.form("add_user", clear_on_submit=True):
        name = st.text_input("New member name", placeholder="e.g., Rahul, Priya")
        if st.form_submit_button("Add Member"):
            try:
                user = run_async(service.add_user(name, correlation_id=create_correlation_id()))
                st.success(f"Added {user.name}")
            except ValueError as e:
                st.error(f"Invalid name: {e}")

    st.markdown("---")
    users = run_async(service.list_users())
    if not users:
        st.info("No members added yet.")
        return

    for user in users:
        col1, col2 = st.columns([4, 1])
        col1.write(user.name)
        if col2.button("Remove", key=f"del_user_{user.id}"):
            run_async(service.delete_user(user.id))
            st.rerun()


def render_add_expense_page(service: SplitLedgerService):
    """Record a shared expense."""
    st.title("➕ Add Shared Expense")

    primary = service.directory.primary_user
    members = [primary] + run_async(service.list_users())
    names = {u.id: u.name for u in members}

    title = st.text_input("Title", placeholder="e.g., Dinner")
    total = st.number_input("Total amount", min_value=0.0, step=1.0, format="%.2f")
    expense_date = st.date_input("Date", value=date.today())
    paid_by_id = st.selectbox("Paid by", options=list(names), format_func=names.get)
    method = st.radio(
        "Split method",
        options=list(SplitMethod),
        format_func=lambda m: m.value.title(),
        horizontal=True,
    )
    participant_ids = st.multiselect(
        "Participants",
        options=list(names),
        default=[paid_by_id],
        format_func=names.get,
    )

    participants = []
    for user_id in participant_ids:
        custom_share = None
        if method == SplitMethod.CUSTOM:
            custom_share = Decimal(str(st.number_input(
                f"Share for {names[user_id]}",
                min_value=0.0,
                step=1.0,
                format="%.2f",
                key=f"share_{user_id}",
            )))
        participants.append(ParticipantInput(user_id=user_id, custom_share=custom_share))

    if st.button("💾 Save Expense", type="primary"):
        try:
            request = ExpenseRequest(
                title=title,
                total_amount=Decimal(str(total)),
                date=expense_date,
                paid_by_id=paid_by_id,
                split_method=method,
                participants=participants,
            )
            expense = run_async(service.create_expense(request))
            st.success(f"Recorded {expense.title} ({money(expense.total_amount)})")
        except LedgerError as e:
            st.error(str(e))
        except ValueError as e:
            st.error(f"Please check the form: {e}")


def render_expenses_page(service: SplitLedgerService):
    """List expenses with per-participant settle buttons."""
    st.title("📋 Shared Expenses")

    expenses = run_async(service.list_expenses())
    if not expenses:
        st.info("No shared expenses yet.")
        return

    for expense in expenses:
        status = "✅ Settled" if expense.is_fully_settled else "🕒 Open"
        with st.expander(
            f"{expense.date:%d %b %Y} · {expense.title} · {money(expense.total_amount)} · {status}"
        ):
            st.caption(f"Paid by {expense.paid_by.name} · split {expense.split_method.value}")
            for p in expense.participants:
                col1, col2 = st.columns([4, 1])
                mark = "✅" if p.is_settled else "🟠"
                col1.write(f"{mark} {p.user.name} owes {money(p.share_amount)}")
                if not p.is_settled and col2.button("Settle", key=f"settle_{expense.id}_{p.user.id}"):
                    try:
                        run_async(service.settle_participant_share(expense.id, p.user.id))
                        st.rerun()
                    except ConcurrentModificationError:
                        st.warning("Someone else just updated this expense. Please try again.")
                    except LedgerError as e:
                        st.error(str(e))
            if st.button("🗑️ Delete expense", key=f"del_exp_{expense.id}"):
                run_async(service.delete_expense(expense.id))
                st.rerun()


def render_balances_page(service: SplitLedgerService):
    """Who owes whom."""
    st.title("⚖️ Overall Balances")

    balances = run_async(service.resolve_balances())
    debtors = [b for b in balances if b.owes]
    if not debtors:
        st.success("All balances are settled!")
    for balance in debtors:
        st.markdown(f"**{balance.user_name}** (net {money(balance.net_amount)})")
        for owed in balance.owes:
            st.write(f"→ owes {owed.to_user_name} {money(owed.amount)}")

    st.markdown("---")
    st.markdown("### Fewest transfers to settle up")
    suggestions = run_async(service.suggest_settlements())
    if not suggestions:
        st.caption("Nothing to settle.")
    for s in suggestions:
        st.write(f"{s.from_user_name} pays {s.to_user_name} {money(s.amount)}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")
    status = validate_all_settings()

    for key in ("ledger", "storage", "google_sheets", "app"):
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {key} - OK")
        else:
            st.error(f"❌ {key} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "Set `STORAGE_BACKEND=google_sheets` plus the `GOOGLE_SHEETS_*` "
        "variables to use a shared spreadsheet."
    )


if __name__ == "__main__":
    main()
