"""
UDISE Dashboard Streamlit Application

A dashboard for browsing and maintaining UDISE school records:
1. Login / Sign up - session issued by the data API
2. School Dashboard - summary cards, distribution charts, hierarchical
   filters (state -> district -> block -> village), paginated records
   table with a virtualized variant, and add / edit / delete dialogs

Design Principles:
- All data comes from the REST API through the cached query layer
- Filter state lives in st.session_state and is the only thing widgets change
- Every failure is scoped to the section that triggered it
"""

import streamlit as st
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from udise_dashboard import queries
from udise_dashboard.api_client import ApiClient, ApiError, AuthenticationError
from udise_dashboard.charts import CHART_TITLES, distribution_figures, school_stats, stats_cards
from udise_dashboard.config import API_BASE_URL, DEFAULT_PAGE_SIZE
from udise_dashboard.filters import FilterState
from udise_dashboard.forms import DeleteConfirmation, FormSubmission, SchoolForm, school_details
from udise_dashboard.models import (
    LOCATION_LEVELS,
    LOCATION_TYPES,
    MANAGEMENT_TYPES,
    SCHOOL_TYPES,
    School,
)
from udise_dashboard.session import FileTokenStore, Session
from udise_dashboard.table import VirtualWindow, records_frame, row_action

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PAGE_SIZES = sorted({10, 20, 50, 100, DEFAULT_PAGE_SIZE})

LEVEL_PLURALS = {
    'state': 'States',
    'district': 'Districts',
    'block': 'Blocks',
    'village': 'Villages',
}


# ============================================================================
# Session Helpers
# ============================================================================

def get_client() -> ApiClient:
    """One API client per browser session, hydrated from the stored token."""
    if 'client' not in st.session_state:
        client = ApiClient(Session(FileTokenStore()))
        user = client.restore()
        if user:
            logger.info(f"Resumed session for {user.email}")
        st.session_state.client = client
    return st.session_state.client


def get_filter_state() -> FilterState:
    if 'filter_state' not in st.session_state:
        st.session_state.filter_state = FilterState()
    return st.session_state.filter_state


def end_session(client: ApiClient, message: Optional[str] = None) -> None:
    """Drop the session and filters and return to the login page."""
    client.session.clear()
    st.session_state.pop('filter_state', None)
    if message:
        st.session_state.login_notice = message
    st.rerun()


# ============================================================================
# Page 1: Login / Sign up
# ============================================================================

def render_login(client: ApiClient):
    st.title("🏫 UDISE Dashboard")
    st.markdown("**Unified District Information System for Education** - sign in to continue")

    notice = st.session_state.pop('login_notice', None)
    if notice:
        st.warning(notice)

    tab_login, tab_signup = st.tabs(["Login", "Sign Up"])

    with tab_login:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Login", use_container_width=True)
        if submitted:
            if not email or not password:
                st.error("❌ Email and password are required")
            else:
                try:
                    client.login(email.strip(), password)
                    st.rerun()
                except ApiError as e:
                    st.error(f"❌ {e.message or 'Login failed'}")

    with tab_signup:
        with st.form("signup_form"):
            email = st.text_input("Email", key="signup_email")
            password = st.text_input("Password", type="password", key="signup_password")
            confirm = st.text_input("Confirm Password", type="password")
            submitted = st.form_submit_button("Create Account", use_container_width=True)
        if submitted:
            if not email or not password:
                st.error("❌ Email and password are required")
            elif password != confirm:
                st.error("❌ Passwords do not match")
            else:
                try:
                    client.signup(email.strip(), password)
                    st.rerun()
                except ApiError as e:
                    st.error(f"❌ {e.message or 'Signup failed'}")


# ============================================================================
# Dialogs
# ============================================================================

def _form_values(form: SchoolForm) -> SchoolForm:
    """Render the school inputs and return a form carrying the entered values."""
    errors = st.session_state.form_submission.field_errors

    def text(name: str, label: str) -> str:
        value = st.text_input(label, value=getattr(form, name), disabled=form.is_read_only(name))
        if name in errors:
            st.caption(f":red[{errors[name]}]")
        return value

    def choice(name: str, label: str, options) -> str:
        current = getattr(form, name)
        index = options.index(current) if current in options else 0
        value = st.selectbox(label, options, index=index)
        if name in errors:
            st.caption(f":red[{errors[name]}]")
        return value

    def count(name: str, label: str) -> int:
        try:
            current = int(getattr(form, name) or 0)
        except (TypeError, ValueError):
            current = 0
        value = st.number_input(label, min_value=0, value=max(current, 0), step=1)
        if name in errors:
            st.caption(f":red[{errors[name]}]")
        return int(value)

    col1, col2 = st.columns(2)
    with col1:
        udise_code = text('udise_code', "UDISE Code *")
        state = text('state', "State *")
        block = text('block', "Block *")
        management = choice('management', "Management Type *", list(MANAGEMENT_TYPES))
        school_type = choice('school_type', "School Type *", list(SCHOOL_TYPES))
        total_students = count('total_students', "Total Students")
    with col2:
        school_name = text('school_name', "School Name *")
        district = text('district', "District *")
        village = text('village', "Village *")
        location = choice('location', "Location *", list(LOCATION_TYPES))
        total_teachers = count('total_teachers', "Total Teachers")

    return SchoolForm(
        udise_code=form.udise_code if form.is_editing else udise_code,
        school_name=school_name,
        state=state,
        district=district,
        block=block,
        village=village,
        management=management,
        location=location,
        school_type=school_type,
        total_students=total_students,
        total_teachers=total_teachers,
        school_id=form.school_id,
    )


@st.dialog("School", width="large")
def school_form_dialog(client: ApiClient, form: SchoolForm):
    st.subheader(form.title)
    submission: FormSubmission = st.session_state.form_submission

    if submission.error:
        st.error(f"❌ {submission.error}")

    with st.form("school_form"):
        entered = _form_values(form)
        submitted = st.form_submit_button(
            "Saving..." if submission.in_flight else form.submit_label,
            disabled=not submission.can_submit,
            type="primary"
        )

    if submitted:
        try:
            saved = submission.submit(client, entered)
        except AuthenticationError:
            end_session(client, "Your session has expired. Please log in again.")
            return
        if saved is not None:
            st.session_state.flash = f"✅ Saved {saved.school_name or saved.udise_code}"
            st.rerun()
        # Widgets keep the user's input; rerun only the dialog to show the message
        st.rerun(scope="fragment")


@st.dialog("Confirm Delete")
def delete_dialog(client: ApiClient, school: School):
    if 'delete_confirmation' not in st.session_state:
        st.session_state.delete_confirmation = DeleteConfirmation(school)
    confirmation: DeleteConfirmation = st.session_state.delete_confirmation

    st.write(confirmation.prompt)
    if confirmation.error:
        st.error(f"❌ {confirmation.error}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Cancel", use_container_width=True, disabled=confirmation.in_flight):
            st.session_state.pop('delete_confirmation', None)
            st.rerun()
    with col2:
        if st.button("Delete", type="primary", use_container_width=True,
                     disabled=not confirmation.can_submit):
            try:
                if confirmation.confirm(client):
                    st.session_state.pop('delete_confirmation', None)
                    st.session_state.flash = f"🗑️ Deleted {school.school_name}"
                    st.rerun()
            except AuthenticationError:
                end_session(client, "Your session has expired. Please log in again.")


@st.dialog("School Details", width="large")
def details_dialog(school: School):
    for section, rows in school_details(school):
        st.markdown(f"**{section}**")
        col1, col2 = st.columns(2)
        for i, (label, value) in enumerate(rows):
            with (col1 if i % 2 == 0 else col2):
                st.caption(label)
                st.write(value)


def open_form(client: ApiClient, form: SchoolForm):
    st.session_state.form_submission = FormSubmission()
    school_form_dialog(client, form)


# ============================================================================
# Page 2: School Dashboard
# ============================================================================

def render_filters(client: ApiClient, filter_state: FilterState):
    """Sidebar cascade; any change resets the page and reruns."""
    st.sidebar.markdown("### 🔎 Filters & Search")

    location = filter_state.location
    options = queries.all_options(client, location)

    # Drop selections the option lists no longer offer
    loaded = {
        level: result.data
        for level, result in options.items()
        if result.ok and filter_state.option_keys()[level] is not None
    }
    if filter_state.reconcile(loaded):
        st.rerun()

    for level in LOCATION_LEVELS:
        result = options[level]
        current = getattr(filter_state.query, level)
        values: List[Optional[str]] = [None] + list(result.data or [])
        if current is not None and current not in values:
            values.append(current)

        selected = st.sidebar.selectbox(
            level.title(),
            values,
            index=values.index(current),
            format_func=lambda v, lvl=level: f"All {LEVEL_PLURALS[lvl]}" if v is None else v,
            disabled=not filter_state.is_enabled(level),
        )
        if not result.ok:
            st.sidebar.caption(f":red[Could not load {LEVEL_PLURALS[level].lower()}]")

        if selected != current:
            filter_state.set_field(level, selected)
            st.rerun()

    search = st.sidebar.text_input(
        "Search",
        value=filter_state.query.search or "",
        placeholder="School name or UDISE code"
    )
    if (search.strip() or None) != filter_state.query.search:
        filter_state.set_search(search)
        st.rerun()

    limit = st.sidebar.selectbox(
        "Rows per page",
        PAGE_SIZES,
        index=PAGE_SIZES.index(filter_state.query.limit) if filter_state.query.limit in PAGE_SIZES else PAGE_SIZES.index(DEFAULT_PAGE_SIZE)
    )
    if limit != filter_state.query.limit:
        filter_state.set_limit(limit)
        st.rerun()

    if filter_state.has_active_filters:
        st.sidebar.markdown("**Active filters:** " + " · ".join(filter_state.active_filter_labels))
        if st.sidebar.button("✖ Clear All", use_container_width=True):
            filter_state.clear()
            st.rerun()


def render_stats(page, filter_state: FilterState):
    cards = stats_cards(page, filter_state)
    columns = st.columns(len(cards))
    for col, card in zip(columns, cards):
        with col:
            st.metric(label=card.title, value=card.value, help=card.help or None)

    if page is not None and not page.is_empty:
        stats = school_stats(page.schools)
        col1, col2, col3 = st.columns(3)
        col1.metric("Students (this page)", f"{stats.total_students:,}")
        col2.metric("Teachers (this page)", f"{stats.total_teachers:,}")
        col3.metric("Teacher : Student", stats.teacher_student_ratio)


def render_distributions(client: ApiClient, filter_state: FilterState):
    st.header("📊 Distributions")

    result = queries.distribution_query(client, filter_state.location)
    if not result.ok:
        st.error(f"❌ Could not load distributions: {result.error.message}")
        return
    if result.data.is_empty:
        st.info("No distribution data for the selected filters")
        return

    figures = distribution_figures(result.data)
    columns = st.columns(len(figures))
    for col, (key, fig) in zip(columns, figures.items()):
        with col:
            if fig is None:
                st.info(f"No {CHART_TITLES[key].lower()} data")
            else:
                st.plotly_chart(fig, use_container_width=True, config={'displayModeBar': False})


def render_row_actions(client: ApiClient, schools: List[School], selected: Optional[int]):
    col1, col2, col3, _ = st.columns([1, 1, 1, 4])
    with col1:
        if st.button("👁️ View", disabled=selected is None, use_container_width=True):
            action = row_action('view', schools, selected)
            if action:
                details_dialog(action.school)
    with col2:
        if st.button("✏️ Edit", disabled=selected is None, use_container_width=True):
            action = row_action('edit', schools, selected)
            if action:
                open_form(client, SchoolForm.from_school(action.school))
    with col3:
        if st.button("🗑️ Delete", disabled=selected is None, use_container_width=True):
            action = row_action('delete', schools, selected)
            if action:
                st.session_state.pop('delete_confirmation', None)
                delete_dialog(client, action.school)


def render_pagination(page, filter_state: FilterState):
    info = page.pagination
    first, last = info.showing_range()

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        st.caption(
            f"Showing {first} to {last} of {info.total_records:,} results · "
            f"Page {info.current_page} of {max(info.total_pages, 1)}"
        )
    with col2:
        if st.button("◀ Previous", disabled=not info.has_prev_page, use_container_width=True):
            filter_state.set_page(info.current_page - 1)
            st.rerun()
    with col3:
        if st.button("Next ▶", disabled=not info.has_next_page, use_container_width=True):
            filter_state.set_page(info.current_page + 1)
            st.rerun()


def render_records(client: ApiClient, filter_state: FilterState, result):
    header_col, add_col = st.columns([4, 1])
    with header_col:
        st.header("🏫 Schools")
    with add_col:
        if st.button("➕ Add School", type="primary", use_container_width=True):
            open_form(client, SchoolForm.defaults())

    if not result.ok:
        st.error(f"❌ Could not load schools: {result.error.message}")
        if st.button("🔄 Retry"):
            st.rerun()
        return

    page = result.data
    if page.is_empty:
        st.info("No schools found. Try adjusting the filters or search.")
        if page.pagination.has_prev_page:
            render_pagination(page, filter_state)
        return

    schools = page.schools
    frame = records_frame(schools)

    tab_table, tab_virtual = st.tabs(["Table", "Virtualized"])

    with tab_table:
        event = st.dataframe(
            frame,
            column_config={
                'School': st.column_config.TextColumn('School', width='large'),
                'UDISE Code': st.column_config.TextColumn('UDISE Code'),
                'Students': st.column_config.TextColumn('Students', width='small'),
            },
            hide_index=True,
            use_container_width=True,
            on_select="rerun",
            selection_mode="single-row",
            key="records_table"
        )
        rows = event.selection.rows if event is not None else []
        selected = rows[0] if rows else None
        render_row_actions(client, schools, selected)

    with tab_virtual:
        window = VirtualWindow(len(schools))
        scroll_top = 0
        if window.max_scroll > 0:
            scroll_top = st.slider(
                "Scroll position",
                min_value=0,
                max_value=window.max_scroll,
                value=0,
                step=window.row_height // 2
            )
        start, end = window.slice(scroll_top)
        st.caption(f"Rendering rows {start + 1}-{end} of {len(schools)}")
        st.dataframe(
            frame.iloc[start:end],
            hide_index=True,
            use_container_width=True,
            height=window.viewport_height
        )

    render_pagination(page, filter_state)


def render_dashboard(client: ApiClient):
    filter_state = get_filter_state()

    st.title("🏫 UDISE Dashboard")
    st.markdown("**Unified District Information System for Education** - school records explorer")

    flash = st.session_state.pop('flash', None)
    if flash:
        st.success(flash)

    render_filters(client, filter_state)

    records = queries.records_query(client, filter_state.query)
    if records.ok and records.data.is_empty and filter_state.clamp_page(records.data.pagination):
        st.rerun()

    render_stats(records.data if records.ok else None, filter_state)
    st.markdown("---")
    render_distributions(client, filter_state)
    st.markdown("---")
    render_records(client, filter_state, records)


# ============================================================================
# Main Application
# ============================================================================

def main():
    """
    Main application entry point.

    Configures the page, restores the session and routes to login or the
    dashboard.
    """
    st.set_page_config(
        page_title="UDISE Dashboard",
        page_icon="🏫",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    client = get_client()

    st.sidebar.title("🏫 UDISE")
    st.sidebar.markdown("**School records dashboard**")
    st.sidebar.markdown("---")

    if not client.session.is_authenticated:
        st.sidebar.caption(f"API: {API_BASE_URL}")
        render_login(client)
        return

    user = client.session.user
    st.sidebar.markdown(f"👤 **{user.email if user else 'Signed in'}**")
    if st.sidebar.button("🚪 Logout", use_container_width=True):
        client.logout()
        st.session_state.pop('filter_state', None)
        st.rerun()
    st.sidebar.markdown("---")

    try:
        render_dashboard(client)
    except AuthenticationError as e:
        logger.warning(f"Authentication failed: {e.message}")
        end_session(client, "Your session has expired. Please log in again.")


if __name__ == "__main__":
    main()
