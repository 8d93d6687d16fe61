#!/usr/bin/env python3
from __future__ import annotations

from typing import Optional

import pandas as pd
import streamlit as st

from wo_viewer.config import ConfigError, ViewerConfig, load_config
from wo_viewer.fields import DATE_FIELDS, FIELD_BY_NAME, field_title
from wo_viewer.filters import FilterSpec
from wo_viewer.loader import ALL_FORMATS
from wo_viewer.pivot import NO_DATED_ROWS, format_meta
from wo_viewer.preferences import PreferenceStore
from wo_viewer.session import IDLE_MESSAGE, WorkOrderSession
from wo_viewer.sorting import ASC, DESC

ALL_OPTION = "All"
ORIGINAL_ORDER = "(original order)"
LAYOUT_RESET_MESSAGE = "Saved column layout cleared."
UPLOAD_EXTS = sorted(ext.lstrip(".") for ext in ALL_FORMATS)


def app_config() -> ViewerConfig:
    try:
        return load_config()
    except ConfigError as exc:
        st.warning(f"Ignoring config: {exc}")
        return ViewerConfig()


def ensure_state() -> None:
    if "session" not in st.session_state:
        config = app_config()
        store = PreferenceStore(config.preferences_path, config.storage_id, config.default_date_field)
        prefs = store.load()
        st.session_state["session"] = WorkOrderSession(config)
        st.session_state["store"] = store
        st.session_state["column_order"] = prefs.column_order
        st.session_state["column_order_input"] = list(prefs.column_order)
        st.session_state["date_field_input"] = prefs.date_field
    st.session_state.setdefault("status", IDLE_MESSAGE)
    st.session_state.setdefault("status_is_error", False)
    st.session_state.setdefault("upload_token", None)
    st.session_state.setdefault("upload_generation", 0)
    st.session_state.setdefault("from_input", None)
    st.session_state.setdefault("to_input", None)


def set_status(message: str, is_error: bool = False) -> None:
    st.session_state["status"] = message
    st.session_state["status_is_error"] = is_error


def handle_upload(session: WorkOrderSession, upload) -> None:
    if upload is None:
        return
    token = (upload.name, upload.size)
    if st.session_state["upload_token"] == token:
        return
    st.session_state["upload_token"] = token
    outcome = session.load_bytes(upload.getvalue(), upload.name)
    message = outcome.message
    if outcome.ok and outcome.warnings:
        message = "\n".join([message, *outcome.warnings])
    set_status(message, outcome.is_error)


def handle_clear(session: WorkOrderSession) -> None:
    set_status(session.clear().message)
    st.session_state["upload_token"] = None
    st.session_state["upload_generation"] += 1
    st.session_state["search_input"] = ""
    st.session_state["assignee_input"] = ALL_OPTION
    st.session_state["from_input"] = None
    st.session_state["to_input"] = None


def handle_reset_layout(store: PreferenceStore) -> None:
    order = store.reset_layout().column_order
    st.session_state["column_order"] = order
    st.session_state["column_order_input"] = list(order)
    set_status(LAYOUT_RESET_MESSAGE)


def remember_date_field() -> None:
    st.session_state["store"].save_date_field(st.session_state["date_field_input"])


def remember_column_order() -> None:
    chosen = st.session_state["column_order_input"]
    st.session_state["column_order"] = st.session_state["store"].save_column_order(chosen)


def render_sidebar(session: WorkOrderSession) -> None:
    store: PreferenceStore = st.session_state["store"]
    with st.sidebar:
        left, right = st.columns(2)
        if left.button("Clear", width="stretch"):
            handle_clear(session)
        if right.button("Reset layout", width="stretch"):
            handle_reset_layout(store)

        upload = st.file_uploader(
            "Work order export",
            type=UPLOAD_EXTS,
            key=f"upload_input_{st.session_state['upload_generation']}",
        )
        handle_upload(session, upload)

        st.text_input("Search", key="search_input", placeholder="Keyword, WO #, 12/25 ...")
        st.selectbox(
            "Count by date",
            options=list(DATE_FIELDS),
            format_func=field_title,
            key="date_field_input",
            on_change=remember_date_field,
        )
        st.date_input("From", key="from_input", format="MM/DD/YYYY")
        st.date_input("To", key="to_input", format="MM/DD/YYYY")

        assignees = [ALL_OPTION, *session.assignee_options()]
        if st.session_state.get("assignee_input") not in assignees:
            st.session_state["assignee_input"] = ALL_OPTION
        st.selectbox("Assigned To", options=assignees, key="assignee_input")

        with st.expander("Column filters"):
            for spec in FIELD_BY_NAME.values():
                st.text_input(spec.title, key=f"column_filter_{spec.name}")

        st.selectbox(
            "Sort by",
            options=[ORIGINAL_ORDER, *FIELD_BY_NAME],
            format_func=lambda name: name if name == ORIGINAL_ORDER else field_title(name),
            key="sort_field_input",
        )
        st.radio("Direction", options=[ASC, DESC], horizontal=True, key="sort_direction_input")

        st.multiselect(
            "Columns",
            options=list(FIELD_BY_NAME),
            format_func=field_title,
            key="column_order_input",
            on_change=remember_column_order,
        )


def current_filters() -> FilterSpec:
    assignee = st.session_state.get("assignee_input", ALL_OPTION)
    equals = {"assigned_to": assignee} if assignee != ALL_OPTION else {}
    columns = {
        name: st.session_state.get(f"column_filter_{name}", "")
        for name in FIELD_BY_NAME
    }
    return FilterSpec(
        keyword=st.session_state.get("search_input", ""),
        equals=equals,
        columns=columns,
        date_field=st.session_state["date_field_input"],
        date_from=st.session_state.get("from_input"),
        date_to=st.session_state.get("to_input"),
    )


def visible_frame(session: WorkOrderSession, column_order: list[str]) -> pd.DataFrame:
    records = [record.display_dict() for record in session.visible_rows()]
    return pd.DataFrame(
        [[row[name] for name in column_order] for row in records],
        columns=[field_title(name) for name in column_order],
    )


def render_counts(session: WorkOrderSession) -> None:
    st.subheader("Counts")
    st.text(format_meta(session.pivot_meta()))
    result = session.pivot()
    if result.is_empty:
        st.info(NO_DATED_ROWS)
        return
    st.dataframe(result.to_frame(), width="stretch")


def render_status() -> None:
    message: Optional[str] = st.session_state.get("status")
    if not message:
        return
    if st.session_state.get("status_is_error"):
        st.warning(message)
    else:
        st.caption(message)


def main() -> None:
    st.set_page_config(page_title="Work Order Viewer", layout="wide")
    ensure_state()
    session: WorkOrderSession = st.session_state["session"]

    st.title("Work Order Viewer")
    render_sidebar(session)
    try:
        session.set_filters(current_filters())
        field_name = st.session_state.get("sort_field_input", ORIGINAL_ORDER)
        session.set_sort(None if field_name == ORIGINAL_ORDER else field_name, st.session_state.get("sort_direction_input", ASC))
    except ValueError as exc:
        set_status(str(exc), True)
    render_status()

    column_order = st.session_state.get("column_order_input") or st.session_state["column_order"]
    rows, counts = st.columns([3, 1])
    with rows:
        st.dataframe(visible_frame(session, column_order), width="stretch", hide_index=True)
    with counts:
        render_counts(session)


if __name__ == "__main__":
    main()
