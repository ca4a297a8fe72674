# dashboard.py
"""
Related Keywords Research Dashboard

A Streamlit single-page interface on top of the DataForSEO Labs related
keywords endpoint. Submit a seed keyword, then sort, filter, chart and
download the related keywords it returns.

Requirements:
    pip install -e .

Usage:
    streamlit run dashboard.py
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import plotly.express as px
import streamlit as st
from dotenv import load_dotenv

# Make src/ importable when running from a checkout
project_root = Path(__file__).parent
src_path = project_root / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from labs_client import LabsError, RelatedKeywordsRequest, fetch_menu_options, fetch_related_keywords
from normalizer import KeywordRecord, normalize_response
from postprocess import (
    SORT_FIELDS,
    SortConfig,
    build_trend_frame,
    csv_filename,
    difficulty_label,
    export_csv,
    export_excel,
    filter_records,
    records_to_dataframe,
    sort_records,
    summarize,
)

load_dotenv()

# Page configuration
st.set_page_config(
    page_title="Related Keywords Dashboard",
    page_icon="🔍",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.6rem;
        text-align: center;
        margin-bottom: 1.5rem;
        background: linear-gradient(90deg, #1f77b4, #ff7f0e);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        background-clip: text;
    }

    .metric-card {
        background-color: #f0f2f6;
        padding: 1rem;
        border-radius: 0.5rem;
        border-left: 4px solid #1f77b4;
        margin: 0.5rem 0;
    }
</style>
""", unsafe_allow_html=True)

DEFAULT_LOCATIONS = [{"value": "2840", "label": "United States"}]
DEFAULT_LANGUAGES = [{"value": "en", "label": "English"}]
DEPTH_OPTIONS = {0: "Base Level", 1: "1 Level", 2: "2 Levels", 3: "3 Levels", 4: "4 Levels"}
LIMIT_OPTIONS = list(range(10, 101, 10))

SORT_LABELS = {
    "searchVolume": "Search Volume",
    "keyword": "Keyword",
    "cpc": "CPC",
    "competition": "Competition",
    "competitionLevel": "Competition Level",
    "difficulty": "Difficulty",
    "intent": "Intent",
}


@st.cache_data(ttl=24 * 3600, show_spinner=False)
def load_menu_options() -> Dict[str, Any]:
    """Location/language options, falling back to United States/English."""
    try:
        return fetch_menu_options()
    except LabsError:
        return {
            "locations": DEFAULT_LOCATIONS,
            "languages": DEFAULT_LANGUAGES,
            "locationLanguages": {},
        }


class KeywordDashboard:
    """Main dashboard class for the related keywords interface."""

    def __init__(self):
        self.environment_ready = bool(os.getenv("DATAFORSEO_LOGIN") and os.getenv("DATAFORSEO_PASSWORD"))

    def render_header(self):
        st.markdown('<h1 class="main-header">🔍 Related Keywords Dashboard</h1>',
                    unsafe_allow_html=True)

        if not self.environment_ready:
            st.error(
                "⚠️ Environment setup required: add DATAFORSEO_LOGIN and "
                "DATAFORSEO_PASSWORD to your .env file."
            )

    def render_sidebar(self) -> Dict[str, Any]:
        """Render the search form and return its values."""
        menu = load_menu_options() if self.environment_ready else {
            "locations": DEFAULT_LOCATIONS,
            "languages": DEFAULT_LANGUAGES,
            "locationLanguages": {},
        }
        locations = menu["locations"] or DEFAULT_LOCATIONS
        location_labels = {option["value"]: option["label"] for option in locations}

        st.sidebar.markdown("## 🎯 Search")

        # language options depend on the location, which must rerun before submit
        location_codes = list(location_labels)
        location_code = st.sidebar.selectbox(
            "🌍 Location",
            location_codes,
            index=location_codes.index("2840") if "2840" in location_codes else 0,
            format_func=lambda code: location_labels.get(code, code),
        )
        languages = menu["locationLanguages"].get(location_code) or menu["languages"] or DEFAULT_LANGUAGES
        language_labels = {option["value"]: option["label"] for option in languages}
        language_codes = list(language_labels)

        with st.sidebar.form("search_form"):
            keyword = st.text_input("🔍 Seed Keyword", help="Enter the keyword to find related keywords for")

            language_code = st.selectbox(
                "🗣️ Language",
                language_codes,
                index=language_codes.index("en") if "en" in language_codes else 0,
                format_func=lambda code: language_labels.get(code, code),
            )

            depth = st.selectbox("🧱 Depth", list(DEPTH_OPTIONS), index=3,
                                 format_func=lambda value: DEPTH_OPTIONS[value])
            limit = st.selectbox("📋 Limit", LIMIT_OPTIONS, index=1,
                                 format_func=lambda value: f"{value} Results")

            with st.expander("⚙️ Advanced Options"):
                ignore_synonyms = st.toggle(
                    "Ignore Synonyms",
                    help="When enabled, synonymous keywords will be filtered out from the results"
                )
                include_seed_keyword = st.toggle("Include Seed Keyword")
                include_serp_info = st.toggle("Include SERP Info")
                include_clickstream_data = st.toggle("Include Clickstream Data")
                replace_with_core_keyword = st.toggle("Replace With Core Keyword")

            submitted = st.form_submit_button("🚀 Search", type="primary")

        return {
            "keyword": keyword,
            "location_code": location_code,
            "language_code": language_code,
            "depth": depth,
            "limit": limit,
            "include_seed_keyword": include_seed_keyword,
            "include_serp_info": include_serp_info,
            "ignore_synonyms": ignore_synonyms,
            "include_clickstream_data": include_clickstream_data,
            "replace_with_core_keyword": replace_with_core_keyword,
            "submitted": submitted,
        }

    def run_search(self, params: Dict[str, Any]) -> bool:
        """Fetch and normalize; store the results in session state."""
        form = {k: v for k, v in params.items() if k != "submitted"}
        if not form["keyword"].strip():
            st.warning("Please enter a seed keyword.")
            return False

        try:
            request = RelatedKeywordsRequest(**form)
            with st.spinner(f"🔍 Finding keywords related to '{request.keyword}'..."):
                raw = fetch_related_keywords(request)
        except LabsError as e:
            st.error(f"❌ {e.message}")
            return False
        except ValueError as e:
            st.error(f"❌ Invalid search parameters: {e}")
            return False

        normalized = normalize_response(raw)
        st.session_state.raw_payload = raw
        st.session_state.records = normalized.data
        st.session_state.seed_keyword = request.keyword
        st.session_state.sort_config = SortConfig()
        st.session_state.selected_keywords = [r.keyword for r in normalized.data[:3] if r.keyword]
        return True

    def render_summary_metrics(self, records: List[KeywordRecord]):
        summary = summarize(records)
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("📊 Keywords", summary["total_keywords"])
        col2.metric("🔎 Avg Search Volume", f"{summary['average_search_volume']:,.0f}")
        col3.metric("💰 Avg CPC", f"${summary['average_cpc']:.2f}")
        col4.metric("🎯 Avg Difficulty", f"{summary['average_difficulty']:.0f} "
                    f"({difficulty_label(int(summary['average_difficulty']))})")

    def render_controls(self, records: List[KeywordRecord]) -> List[KeywordRecord]:
        """Sort and filter controls; returns the visible records."""
        sort_config: SortConfig = st.session_state.get("sort_config", SortConfig())

        col1, col2, col3, col4 = st.columns([2, 1, 2, 2])
        keys = list(SORT_FIELDS)
        key = col1.selectbox("Sort by", keys, index=keys.index(sort_config.key),
                             format_func=lambda k: SORT_LABELS.get(k, k))
        # a new field starts descending, the button flips the current one
        if key != sort_config.key:
            sort_config = sort_config.toggle(key)
        if col2.button("⇅ Flip order"):
            sort_config = sort_config.toggle(sort_config.key)
        col2.caption("Descending" if sort_config.direction == "desc" else "Ascending")
        st.session_state.sort_config = sort_config

        levels = sorted({r.competition_level for r in records})
        chosen_levels = col3.multiselect("Competition", levels, default=levels)
        query = col4.text_input("Contains", "")

        col5, col6 = st.columns(2)
        min_volume = col5.number_input("📈 Min Search Volume", min_value=0, value=0, step=10)
        max_difficulty = col6.slider("⚔️ Max Difficulty", min_value=0, max_value=100, value=100)

        visible = filter_records(records, min_search_volume=int(min_volume), max_difficulty=max_difficulty,
                                 competition_levels=chosen_levels, query=query)
        return sort_records(visible, sort_config.key, sort_config.direction)

    def render_table(self, records: List[KeywordRecord]):
        st.markdown(f"## 🏆 Results for \"{st.session_state.seed_keyword}\"")
        st.caption(f"Showing {len(records)} related keywords")

        if not records:
            st.info("No keywords match the current filters.")
            return

        df = records_to_dataframe(records)
        st.dataframe(
            df.style.format({"CPC": "${:.2f}", "Competition": "{:.2f}", "Search Volume": "{:,}"}),
            use_container_width=True,
            hide_index=True,
        )

        with st.expander("🔗 Related keywords per keyword"):
            for record in records:
                if record.related_keywords:
                    st.markdown(f"**{record.keyword}**: {', '.join(record.related_keywords)}")

    def render_visualizations(self, records: List[KeywordRecord]):
        if not records:
            return

        tab1, tab2, tab3 = st.tabs(["📈 Search Trend", "🎯 Intent", "💹 Volume vs Difficulty"])

        with tab1:
            keywords = [r.keyword for r in records if r.keyword]
            default = [k for k in st.session_state.get("selected_keywords", []) if k in keywords]
            selected = st.multiselect("Keywords to chart", keywords, default=default)
            st.session_state.selected_keywords = selected

            trend = build_trend_frame(records, selected)
            if len(trend.columns) > 1 and not trend.empty:
                long_df = trend.melt(id_vars="month", var_name="Keyword", value_name="Search Volume")
                fig = px.line(long_df, x="month", y="Search Volume", color="Keyword", markers=True,
                              title="Monthly Search Volume")
                fig.update_layout(height=450, xaxis_title="Month")
                st.plotly_chart(fig, use_container_width=True)
            else:
                st.info("Select keywords with monthly data to see their trend.")

        with tab2:
            intents = pd.Series([r.intent.main or "unknown" for r in records]).value_counts()
            fig_pie = px.pie(values=intents.values, names=intents.index, title="Main Search Intent")
            st.plotly_chart(fig_pie, use_container_width=True)

        with tab3:
            df = records_to_dataframe(records)
            fig_scatter = px.scatter(
                df,
                x="Difficulty",
                y="Search Volume",
                size=df["CPC"].clip(lower=0.01),
                color="Competition Level",
                hover_name="Keyword",
                title="Search Volume vs Difficulty (Size = CPC)",
            )
            fig_scatter.update_layout(height=500)
            st.plotly_chart(fig_scatter, use_container_width=True)

    def render_download_section(self, records: List[KeywordRecord]):
        st.markdown("## 📥 Download Results")
        seed = st.session_state.seed_keyword
        col1, col2, col3, col4 = st.columns(4)

        col1.download_button("📊 CSV (detailed)", export_csv(records, "detailed"),
                             file_name=csv_filename(seed), mime="text/csv")
        col2.download_button("📄 CSV (basic)", export_csv(records, "basic"),
                             file_name=csv_filename(seed).replace(".csv", "-basic.csv"), mime="text/csv")
        col3.download_button("📈 Excel", export_excel(records, seed),
                             file_name=csv_filename(seed).replace(".csv", ".xlsx"),
                             mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        col4.download_button("🧾 Raw JSON", json.dumps(st.session_state.raw_payload, indent=2, ensure_ascii=False),
                             file_name=csv_filename(seed).replace(".csv", ".json"), mime="application/json")

    def run(self):
        """Main dashboard execution method."""
        self.render_header()
        params = self.render_sidebar()

        if params["submitted"] and self.run_search(params):
            st.success(f"✅ Found {len(st.session_state.records)} related keywords.")

        if "records" not in st.session_state:
            st.markdown("""
            ## 👋 Welcome

            1. **Enter a seed keyword** in the sidebar
            2. **Pick location, language, depth and limit**
            3. **Click "Search"** to fetch related keywords
            4. **Sort, filter and chart** the results, then download them
            """)
            return

        records = st.session_state.records
        if not records:
            st.info("No related keywords were returned for this search.")
            return

        self.render_summary_metrics(records)
        visible = self.render_controls(records)
        self.render_table(visible)
        self.render_visualizations(visible)
        self.render_download_section(visible)


def main():
    """Main function to run the Streamlit dashboard."""
    dashboard = KeywordDashboard()
    dashboard.run()


if __name__ == "__main__":
    main()
