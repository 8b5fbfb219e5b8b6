#!/usr/bin/env python3
"""
streamlit run src/amr_dashboard/python/streamlit_heatmap.py

Resistance heatmap panel backed by the query proxy (AMR_API_* env vars).
"""
import pandas as pd
import streamlit as st

from amr_dashboard.config import Settings
from amr_dashboard.api.client import DashboardClient, FetchError, ROWS_ENDPOINT
from amr_dashboard.api.fetch_layer import EMPTY, ERROR, FetchLayer
from amr_dashboard.features.display_names import DisplayNames
from amr_dashboard.features.resistance_matrix import (
    STATUS_EXCLUDED,
    calculate_heatmap_data,
    resistance_alert_color,
)
from amr_dashboard.filters.active_filters import AMR_FILTERS, ActiveFilters
from amr_dashboard.python.organism_groups import ORGANISM_GROUPS, filter_organisms_by_group


@st.cache_resource
def get_layer() -> FetchLayer:
    return FetchLayer(DashboardClient.from_settings(Settings.from_env()))


@st.cache_data(ttl=3600)
def get_filter_values(column: str) -> list:
    try:
        return get_layer().client.filter_values(column)
    except FetchError:
        return []


@st.cache_data(ttl=3600)
def get_display_names() -> DisplayNames:
    try:
        return DisplayNames.from_client(get_layer().client)
    except FetchError:
        return DisplayNames()


st.set_page_config(page_title="AMR Resistance Heatmap", layout="wide")
st.title("Resistance Overview: Organism × Antibiotic")

if "filters" not in st.session_state:
    st.session_state.filters = ActiveFilters()
filters: ActiveFilters = st.session_state.filters

# ---- filter controls ----------------------------------------------------
c1, c2, c3 = st.columns([2, 3, 1])
key = c1.selectbox("Filter by", list(AMR_FILTERS), format_func=lambda k: AMR_FILTERS[k][1])
column, label = AMR_FILTERS[key]
value = c2.selectbox("Value", get_filter_values(column))
if c3.button("Add filter") and value:
    st.session_state.filters = filters = filters.add(key, value, f"{label}: {value}")

for i, f in enumerate(filters):
    if st.button(f"✕ {f.label}", key=f"rm-{i}-{f.column}-{f.value}"):
        st.session_state.filters = filters = filters.remove(i)
        st.rerun()
if filters and st.button("Clear all"):
    st.session_state.filters = filters = filters.clear()
    st.rerun()

group = st.selectbox("Organisms", list(ORGANISM_GROUPS),
                     format_func=lambda g: ORGANISM_GROUPS[g]["label"])

# ---- fetch + aggregate ----------------------------------------------------
panel = get_layer().panel("heatmap")
panel.refresh(ROWS_ENDPOINT, filters)
state = panel.wait()

if state.status == ERROR:
    st.error(state.error)
    if st.button("Retry"):
        st.rerun()
    st.stop()
if state.status == EMPTY:
    st.info("No isolates match the selected filters.")
    st.stop()

matrix = calculate_heatmap_data(
    state.data.rows,
    applied_filters=filters.to_query_params(AMR_FILTERS),
)
names = get_display_names()
organisms = filter_organisms_by_group(matrix.organisms, group)


def _cell_text(org, abx):
    cell = matrix.cell(org, abx)
    if cell is None:
        return ""
    if cell.status == STATUS_EXCLUDED:
        return "ESBL"
    return "" if cell.percentage is None else f"{cell.percentage}%"


def _cell_style(org, abx):
    cell = matrix.cell(org, abx)
    if cell is None or cell.status == STATUS_EXCLUDED:
        return "background-color: #f9fafb; color: #9ca3af"
    pct = cell.display_percentage
    text = "white" if pct is not None and pct >= 40 else "black"
    return f"background-color: {resistance_alert_color(pct)}; color: {text}"


table = pd.DataFrame(
    {names.organism(o): [_cell_text(o, a) for a in matrix.antibiotics] for o in organisms},
    index=[names.antibiotic(a) for a in matrix.antibiotics],
)
styles = pd.DataFrame(
    {names.organism(o): [_cell_style(o, a) for a in matrix.antibiotics] for o in organisms},
    index=table.index,
)
st.caption(f"{matrix.total_records:,} isolates · blank cells have fewer than 30 tested isolates")
st.dataframe(table.style.apply(lambda _: styles, axis=None), use_container_width=True)
