"""
Streamlit Frontend for Expense Tracker

The screen people use day to day: sign in with an emailed code, record
deposits and expenses, and read running balances per person and month.

DESIGN PRINCIPLES:
1. Nothing is visible before the emailed code is verified
2. Every number on screen comes from the aggregator
3. Clear error messages in simple language
4. Saving a transaction refreshes the statements immediately

The client talks to the same components as the HTTP API, so validation,
balances and export behave identically in both.
"""

import asyncio
from datetime import date

import streamlit as st

from expense_tracker.config import validate_all_settings
from expense_tracker.export import ExportError, build_export_archive, build_export_sheets
from expense_tracker.ledger import LedgerService, MalformedTransactionError, ValidationError
from expense_tracker.models import ALL_PERSONS, StatementFilter, TransactionKind
from expense_tracker.orchestrator import AppComponents, create_app_components
from expense_tracker.services.mail import MailDeliveryError
from expense_tracker.services.otp import EmailNotAllowed, OtpError
from expense_tracker.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .balance-box {
        padding: 16px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


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
    return create_app_components(use_storage=True)


def format_amount(value) -> str:
    return f"{float(value):,.2f}"


def main():
    """Main application entry point."""
    components = get_components()

    if "verified_email" not in st.session_state:
        st.session_state.verified_email = None

    if not st.session_state.verified_email:
        render_login_page(components)
        return

    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.caption(f"Signed in as {st.session_state.verified_email}")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📒 Ledger", "⚙️ Settings"],
        index=0,
    )

    if st.sidebar.button("Sign out"):
        st.session_state.verified_email = None
        st.rerun()

    if page == "📒 Ledger":
        render_ledger_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_login_page(components: AppComponents):
    """Two steps: request a code, then enter it."""
    st.title("🔐 Sign in")

    if "otp_email" not in st.session_state:
        st.session_state.otp_email = None

    if st.session_state.otp_email is None:
        email = st.text_input("Email address")
        if st.button("📧 Send OTP", type="primary"):
            if not email.strip():
                st.error("Please enter your email address.")
                return
            with st.spinner("Sending your code..."):
                try:
                    run_async(components.otp_gate.issue(email))
                except EmailNotAllowed:
                    st.error("This email address is not allowed to sign in.")
                    return
                except MailDeliveryError:
                    st.error("We could not send the code. Please try again.")
                    return
            st.session_state.otp_email = email.strip()
            st.rerun()
        return

    st.info(f"A code was sent to {st.session_state.otp_email}.")
    code = st.text_input("Enter the 6-digit code", max_chars=6)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Verify", type="primary"):
            try:
                run_async(components.otp_gate.verify(st.session_state.otp_email, code))
            except OtpError:
                st.error("Invalid or expired OTP")
                return
            st.session_state.verified_email = st.session_state.otp_email
            st.session_state.otp_email = None
            st.rerun()
    with col2:
        if st.button("↩️ Use another email"):
            st.session_state.otp_email = None
            st.rerun()


def render_ledger_page(components: AppComponents):
    """Form, filters, chart and statements."""
    ledger = components.ledger_service
    st.title("📒 Ledger")

    render_transaction_form(ledger)
    st.markdown("---")

    try:
        transactions = run_async(ledger.list_transactions())
    except StorageError as e:
        st.error(f"Could not load transactions: {e}")
        return

    persons = sorted({t.person for t in transactions})
    months = sorted({t.month_key for t in transactions})

    # Filters
    if "filter_person" not in st.session_state:
        st.session_state.filter_person = ALL_PERSONS
    if "filter_month" not in st.session_state:
        st.session_state.filter_month = ""

    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        st.selectbox(
            "Person",
            options=[ALL_PERSONS] + persons,
            format_func=lambda p: "All persons" if p == ALL_PERSONS else p,
            key="filter_person",
        )
    with col2:
        st.selectbox(
            "Month",
            options=[""] + months,
            format_func=lambda m: "All months" if not m else m,
            key="filter_month",
        )
    with col3:
        st.button("Clear filters", on_click=clear_filters)

    statement_filter = StatementFilter(
        person=st.session_state.filter_person,
        month=st.session_state.filter_month or None,
    )

    try:
        totals = run_async(ledger.monthly_totals(statement_filter))
        statements = run_async(ledger.list_statements(statement_filter))
    except (StorageError, MalformedTransactionError) as e:
        st.error(f"Could not compute statements: {e}")
        return

    if totals:
        st.markdown("### Deposits vs Expenses")
        st.bar_chart(
            {
                "Deposits": {t.month_key: float(t.deposits) for t in totals},
                "Expenses": {t.month_key: float(t.expenses) for t in totals},
            }
        )

    if not statements:
        st.info("No transactions yet. Add the first one above.")
        return

    for person, months_of_person in statements.items():
        st.markdown(f"## {person}")
        for statement in months_of_person:
            with st.expander(f"{statement.month_key}", expanded=True):
                st.markdown(f"""
                <div class="balance-box">
                    Starting balance: <strong>{format_amount(statement.starting_balance)}</strong>
                    &nbsp;|&nbsp; Deposits: {format_amount(statement.total_deposits)}
                    &nbsp;|&nbsp; Expenses: {format_amount(statement.total_expenses)}
                    &nbsp;|&nbsp; Ending balance: <strong>{format_amount(statement.ending_balance)}</strong>
                </div>
                """, unsafe_allow_html=True)
                st.dataframe(
                    [
                        {
                            "Date": entry.date.isoformat(),
                            "Type": entry.kind.value,
                            "Category": entry.category,
                            "Amount": float(entry.amount),
                            "Running Balance": float(entry.running_balance),
                        }
                        for entry in statement.entries
                    ],
                    use_container_width=True,
                    hide_index=True,
                )

    render_export_section(components, statements)


def clear_filters():
    st.session_state.filter_person = ALL_PERSONS
    st.session_state.filter_month = ""


def render_transaction_form(ledger: LedgerService):
    """Add one deposit or expense."""
    st.markdown("### Add Transaction")

    kind = st.radio(
        "Type",
        options=list(TransactionKind),
        format_func=lambda k: k.value.title(),
        horizontal=True,
    )

    with st.form("transaction_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            person = st.text_input("Person")
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
        with col2:
            category = ""
            if kind == TransactionKind.EXPENSE:
                category = st.text_input("Category", placeholder="e.g., Food")
            txn_date = st.date_input("Date", value=date.today(), max_value=date.today())

        submitted = st.form_submit_button("💾 Save", type="primary")

    if not submitted:
        return

    try:
        stored = run_async(ledger.record_transaction({
            "person": person,
            "type": kind.value,
            "category": category,
            "amount": str(amount),
            "date": txn_date.isoformat(),
        }))
    except ValidationError as e:
        for issue in e.issues:
            st.error(issue.message)
        return
    except StorageError as e:
        st.error(f"Could not save the transaction: {e}")
        return

    st.success(f"Saved {stored.kind.value} of {format_amount(stored.amount)} for {stored.person}.")


def render_export_section(components: AppComponents, statements):
    st.markdown("---")
    st.markdown("### Export")

    sheets = build_export_sheets(statements)
    st.download_button(
        "⬇️ Download statements (CSV, zipped)",
        data=build_export_archive(sheets),
        file_name="statements.zip",
        mime="application/zip",
        disabled=not sheets,
    )

    if components.exporter is None:
        st.caption("Export to Google Sheets needs Google Sheets to be configured.")
        return

    if st.button("📤 Export to Google Sheets"):
        with st.spinner("Writing sheets..."):
            try:
                titles = run_async(components.exporter.export(sheets))
            except ExportError as e:
                st.error(str(e))
                return
        st.success(f"Exported {len(titles)} sheet(s).")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Email (OTP delivery)", "mail"),
        ("OTP", "otp"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Server", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
