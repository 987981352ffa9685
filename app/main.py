"""
Streamlit Frontend for Expense Manager

This is the interface people use day to day to record what they spend
and see where the money went.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every page shows only the signed-in user's data
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

Sign-in goes through Firebase: the password exchange yields an ID token,
which is turned into a session cookie kept in session state and
re-verified on every rerun.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st
from pydantic import ValidationError

from expense_manager.analytics import previous_month
from expense_manager.config import get_settings, validate_all_settings
from expense_manager.models.auth import AuthUser
from expense_manager.models.expense import (
    AvatarUpload,
    Expense,
    ExpenseCategory,
    FamilyMember,
)
from expense_manager.orchestrator import (
    DashboardFlow,
    ExpenseFlow,
    FamilyFlow,
    create_app_components,
)
from expense_manager.services.auth import AuthenticationError, FirebaseIdentityProvider
from expense_manager.services.image import AvatarError
from expense_manager.services.storage import StorageError
from expense_manager.validation import ExpenseValidationError


CURRENCY = "$"
MAX_AMOUNT = 9_999_999_999.99


# Page configuration
st.set_page_config(
    page_title="Expense Manager",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .avatar img {
        border-radius: 50%;
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


def money(value) -> str:
    return f"{CURRENCY}{Decimal(value):,.2f}"


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize storage: {e}")
        return create_app_components(use_storage=False)


@st.cache_resource
def get_identity_provider() -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider()


# =============================================================================
# AUTH
# =============================================================================

def current_user() -> Optional[AuthUser]:
    """Verify the session cookie held in session state, dropping it if invalid."""
    cookie = st.session_state.get("session_cookie")
    if not cookie:
        return None
    try:
        return run_async(get_identity_provider().verify_session_cookie(cookie))
    except AuthenticationError:
        st.session_state.pop("session_cookie", None)
        st.session_state.login_error = "Your session has expired. Please sign in again."
        return None


def render_login_page():
    """Email / password sign-in."""
    st.title("💰 Expense Manager")
    st.markdown("Sign in to track your expenses.")

    error = st.session_state.pop("login_error", None)
    if error:
        st.warning(error)

    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        if not email or not password:
            st.error("Please enter your email and password")
            return

        provider = get_identity_provider()
        max_age = get_settings().session.max_age_seconds
        with st.spinner("Signing in..."):
            try:
                result = run_async(provider.sign_in_with_password(email, password))
                cookie = run_async(
                    provider.create_session_cookie(
                        result.id_token,
                        expires_in=timedelta(seconds=max_age),
                    )
                )
            except AuthenticationError as e:
                st.error(str(e))
                return

        st.session_state.session_cookie = cookie
        st.rerun()


def sign_out():
    for key in ("session_cookie", "selected_month", "editing_expense", "editing_member"):
        st.session_state.pop(key, None)


def main():
    """Main application entry point."""
    user = current_user()
    if user is None:
        render_login_page()
        return

    expense_flow, family_flow, dashboard_flow, _ = get_components()

    # Sidebar navigation
    st.sidebar.title("💰 Expense Manager")
    st.sidebar.caption(user.email or user.id)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Expenses", "👪 Family", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Sign out"):
        sign_out()
        st.rerun()

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(dashboard_flow, user)
    elif page == "🧾 Expenses":
        render_expenses_page(expense_flow, family_flow, user)
    elif page == "👪 Family":
        render_family_page(family_flow, user)
    elif page == "⚙️ Settings":
        render_settings_page()


# =============================================================================
# DASHBOARD
# =============================================================================

def month_selector() -> date:
    """Prev / Current navigation; returns the first day of the selected month."""
    this_month = date.today().replace(day=1)
    if "selected_month" not in st.session_state:
        st.session_state.selected_month = this_month

    col1, col2, col3 = st.columns([1, 3, 1])
    with col1:
        if st.button("◀ Prev"):
            st.session_state.selected_month = previous_month(st.session_state.selected_month)
            st.rerun()
    with col2:
        st.subheader(st.session_state.selected_month.strftime("%B %Y"))
    with col3:
        if st.session_state.selected_month != this_month and st.button("Current ▶"):
            st.session_state.selected_month = this_month
            st.rerun()

    return st.session_state.selected_month


def render_dashboard_page(dashboard_flow: DashboardFlow, user: AuthUser):
    """Monthly KPIs and charts."""
    st.title("📊 Dashboard")
    month = month_selector()

    try:
        summary = run_async(dashboard_flow.monthly_summary(user.id, month))
    except StorageError as e:
        st.error(f"Could not load your expenses: {e}")
        return

    delta = (
        f"{summary.percent_vs_previous_month}% vs last month"
        if summary.percent_vs_previous_month is not None
        else None
    )

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total spent", money(summary.total), delta=delta, delta_color="inverse")
    col2.metric("Average per day", money(summary.average_per_day))
    col3.metric("Transactions", summary.count)
    col4.metric("Average transaction", money(summary.average_transaction))

    if summary.is_empty:
        st.info("No expenses recorded for this month yet.")
        return

    biggest = summary.biggest_expense
    st.markdown(
        f"**Biggest expense:** {biggest.description} ({biggest.category.value}) "
        f"– {money(biggest.amount)} on {biggest.date.strftime('%b %d')}"
    )
    st.markdown(f"**Top category:** {summary.top_category}")

    st.markdown("---")
    col1, col2 = st.columns(2)

    df_categories = pd.DataFrame(
        [{"Category": c.name, "Amount": float(c.value)} for c in summary.category_totals]
    )
    with col1:
        st.markdown("#### Spending by category")
        pie = (
            alt.Chart(df_categories)
            .mark_arc(innerRadius=40)
            .encode(
                theta=alt.Theta("Amount:Q"),
                color=alt.Color("Category:N"),
                tooltip=["Category", alt.Tooltip("Amount:Q", format="$,.2f")],
            )
        )
        st.altair_chart(pie, width="stretch")

    df_daily = pd.DataFrame(
        [{"Day": d.label, "Date": d.date, "Amount": float(d.value)} for d in summary.daily_totals]
    )
    with col2:
        st.markdown("#### Daily spending")
        bars = (
            alt.Chart(df_daily)
            .mark_bar()
            .encode(
                x=alt.X("Day:N", sort=alt.SortField("Date"), title=None),
                y=alt.Y("Amount:Q", title=f"Amount ({CURRENCY})"),
                tooltip=["Day", alt.Tooltip("Amount:Q", format="$,.2f")],
            )
        )
        st.altair_chart(bars, width="stretch")

    st.markdown("#### Category breakdown")
    total = float(summary.total)
    df_categories["Share %"] = (
        (df_categories["Amount"] / total * 100).round(1) if total else 0.0
    )
    st.dataframe(df_categories, hide_index=True, width="stretch")

    if summary.family_member_totals:
        st.markdown("#### Family members")
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Member": f.name,
                        "Total": float(f.total),
                        "Expenses": f.count,
                        "Share %": float(f.percentage),
                    }
                    for f in summary.family_member_totals
                ]
            ),
            hide_index=True,
            width="stretch",
        )


# =============================================================================
# EXPENSES
# =============================================================================

def expense_form(
    key: str,
    members: list[FamilyMember],
    existing: Optional[Expense] = None,
) -> Optional[dict]:
    """Render the add/edit form; returns the submitted fields or None."""
    member_options = [None] + [m.id for m in members]
    member_names = {m.id: m.name for m in members}

    with st.form(key, clear_on_submit=existing is None):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input(
                "Description *",
                value=existing.description if existing else "",
            )
            amount = st.number_input(
                f"Amount ({CURRENCY}) *",
                value=float(existing.amount) if existing else 0.0,
                min_value=0.0,
                max_value=MAX_AMOUNT,
                step=0.01,
                format="%.2f",
            )
            category = st.selectbox(
                "Category *",
                options=list(ExpenseCategory),
                index=list(ExpenseCategory).index(existing.category) if existing else 0,
                format_func=lambda c: c.value,
            )
        with col2:
            expense_date = st.date_input(
                "Date *",
                value=existing.date if existing else date.today(),
            )
            current_member = existing.family_member_id if existing else None
            family_member_id = st.selectbox(
                "For family member",
                options=member_options,
                index=member_options.index(current_member) if current_member in member_options else 0,
                format_func=lambda m: "—" if m is None else member_names[m],
            )
            tags = st.text_input(
                "Tags (comma separated)",
                value=", ".join(existing.tags or []) if existing else "",
            )

        submitted = st.form_submit_button("💾 Save", type="primary")

    if not submitted:
        return None

    return {
        "description": description,
        "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
        "category": category,
        "date": expense_date,
        "family_member_id": family_member_id,
        "tags": [t for t in tags.split(",")] if tags.strip() else None,
    }


def render_expenses_page(expense_flow: ExpenseFlow, family_flow: FamilyFlow, user: AuthUser):
    """Month list plus add / edit / delete."""
    st.title("🧾 Expenses")
    month = month_selector()

    try:
        expenses = run_async(expense_flow.list_month(user.id, month))
        members = run_async(family_flow.list_members(user.id))
    except StorageError as e:
        st.error(f"Could not load your expenses: {e}")
        return

    # Shown once, after the rerun that follows a save
    notices = st.session_state.pop("expense_notices", [])
    if notices:
        st.success(notices[0])
        for warning in notices[1:]:
            st.warning(warning)

    with st.expander("➕ Add expense", expanded=not expenses):
        data = expense_form("add_expense", members)
        if data is not None:
            try:
                _, result = run_async(expense_flow.add_expense(user.id, data))
                st.session_state.expense_notices = ["Expense added", *result.warnings]
                st.rerun()
            except ExpenseValidationError as e:
                st.error("\n".join(e.result.error_messages))
            except StorageError as e:
                st.error(f"Failed to save: {e}")

    if not expenses:
        st.info("No expenses this month.")
        return

    member_names = {m.id: m.name for m in members}
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Date": e.date,
                    "Description": e.description,
                    "Category": e.category.value,
                    "Amount": float(e.amount),
                    "Family member": member_names.get(e.family_member_id, "Unknown")
                    if e.family_member_id else "",
                    "Tags": ", ".join(e.tags or []),
                }
                for e in expenses
            ]
        ),
        hide_index=True,
        width="stretch",
    )

    st.markdown("---")
    st.markdown("### Edit or delete")

    by_id = {e.id: e for e in expenses}
    selected_id = st.selectbox(
        "Expense",
        options=list(by_id),
        format_func=lambda i: (
            f"{by_id[i].date.strftime('%b %d')} · {by_id[i].description} · {money(by_id[i].amount)}"
        ),
    )
    selected = by_id[selected_id]

    data = expense_form(f"edit_{selected.id}", members, existing=selected)
    if data is not None:
        try:
            _, result = run_async(expense_flow.update_expense(user.id, selected.id, data))
            st.session_state.expense_notices = ["Expense updated", *result.warnings]
            st.rerun()
        except ExpenseValidationError as e:
            st.error("\n".join(e.result.error_messages))
        except StorageError as e:
            st.error(f"Failed to save: {e}")

    if st.button("🗑️ Delete this expense"):
        try:
            run_async(expense_flow.delete_expense(user.id, selected.id))
            st.rerun()
        except StorageError as e:
            st.error(f"Failed to delete: {e}")


# =============================================================================
# FAMILY
# =============================================================================

def _avatar_args(uploaded_file) -> dict:
    if uploaded_file is None:
        return {}
    return {
        "avatar_bytes": uploaded_file.getvalue(),
        "avatar_upload": AvatarUpload(
            original_filename=uploaded_file.name,
            file_size_bytes=uploaded_file.size,
            mime_type=uploaded_file.type or "image/jpeg",
        ),
    }


def render_family_page(family_flow: FamilyFlow, user: AuthUser):
    """List, add, edit and remove family members."""
    st.title("👪 Family")
    st.markdown("Tag expenses to the people they were for.")

    try:
        members = run_async(family_flow.list_members(user.id))
    except StorageError as e:
        st.error(f"Could not load family members: {e}")
        return

    formats = get_settings().app.supported_formats_list

    for member in members:
        col1, col2, col3 = st.columns([1, 4, 1])
        with col1:
            if member.avatar_url:
                st.image(member.avatar_url, width=64)
            else:
                st.markdown(f"### {member.name[:1].upper()}")
        with col2:
            st.markdown(f"**{member.name}**")
            if member.relation:
                st.caption(member.relation)
        with col3:
            if st.button("Edit", key=f"edit_{member.id}"):
                st.session_state.editing_member = member.id
                st.rerun()
            if st.button("Remove", key=f"delete_{member.id}"):
                try:
                    run_async(family_flow.delete_member(user.id, member.id))
                    st.rerun()
                except StorageError as e:
                    st.error(f"Failed to remove: {e}")

    if not members:
        st.info("No family members yet.")

    st.markdown("---")

    editing = next(
        (m for m in members if m.id == st.session_state.get("editing_member")),
        None,
    )
    st.markdown(f"### {'Edit ' + editing.name if editing else 'Add family member'}")

    with st.form("family_member", clear_on_submit=True):
        name = st.text_input("Name *", value=editing.name if editing else "")
        relation = st.text_input(
            "Relation",
            value=(editing.relation or "") if editing else "",
            placeholder="e.g. Spouse, Son, Mother",
        )
        avatar = st.file_uploader("Photo", type=formats)
        submitted = st.form_submit_button("💾 Save", type="primary")

    if editing and st.button("Cancel"):
        st.session_state.pop("editing_member", None)
        st.rerun()

    if submitted:
        if not name.strip():
            st.error("Please enter a name")
            return
        try:
            if editing:
                run_async(family_flow.update_member(
                    user.id, editing.id, name, relation, **_avatar_args(avatar)
                ))
                st.session_state.pop("editing_member", None)
            else:
                run_async(family_flow.add_member(user.id, name, relation, **_avatar_args(avatar)))
            st.rerun()
        except ValidationError as e:
            st.error(f"Please check the details: {e.errors()[0]['msg']}")
        except AvatarError as e:
            st.error(f"Saved, but the photo could not be uploaded: {e}")
        except StorageError as e:
            st.error(f"Failed to save: {e}")


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Firebase (Sign-in)", "firebase"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Cloudinary (Avatars)", "cloudinary"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(f"**Storage backend:** {get_settings().app.storage_backend}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
