"""Tests for the Streamlit dashboard, driven through streamlit's AppTest."""

from pathlib import Path

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

import labs_client
from postprocess import SORT_FIELDS, SortConfig

DASHBOARD = str(Path(__file__).resolve().parent.parent / "dashboard.py")

MENU = {
    "locations": [
        {"value": "2276", "label": "Germany"},
        {"value": "2840", "label": "United States"},
    ],
    "languages": [
        {"value": "en", "label": "English"},
        {"value": "de", "label": "German"},
        {"value": "es", "label": "Spanish"},
    ],
    "locationLanguages": {
        "2276": [{"value": "de", "label": "German"}],
        "2840": [{"value": "en", "label": "English"}, {"value": "es", "label": "Spanish"}],
    },
}


@pytest.fixture()
def upstream(monkeypatch, realistic_payload):
    monkeypatch.setenv("DATAFORSEO_LOGIN", "user")
    monkeypatch.setenv("DATAFORSEO_PASSWORD", "pass")
    requests_seen = []

    def fake_fetch(request, session=None):
        requests_seen.append(request)
        return realistic_payload

    monkeypatch.setattr(labs_client, "fetch_menu_options", lambda session=None: MENU)
    monkeypatch.setattr(labs_client, "fetch_related_keywords", fake_fetch)
    st.cache_data.clear()
    yield requests_seen
    st.cache_data.clear()


@pytest.fixture()
def app(upstream):
    at = AppTest.from_file(DASHBOARD, default_timeout=60)
    at.run()
    assert not at.exception
    return at


def widget(widgets, label):
    return next(w for w in widgets if w.label == label)


def search(at, keyword="coffee"):
    widget(at.text_input, "🔍 Seed Keyword").input(keyword)
    widget(at.button, "🚀 Search").click()
    at.run()
    assert not at.exception
    return at


# ---------------------------------------------------------------------------
# Search form
# ---------------------------------------------------------------------------

class TestLocationLanguages:
    def test_default_location_lists_its_languages(self, app):
        assert widget(app.selectbox, "🌍 Location").value == "2840"
        assert widget(app.selectbox, "🗣️ Language").options == ["English", "Spanish"]

    def test_changing_location_refreshes_languages_before_submit(self, app):
        widget(app.selectbox, "🌍 Location").select_index(0).run()
        assert widget(app.selectbox, "🗣️ Language").options == ["German"]

    def test_submitted_language_belongs_to_location(self, app, upstream):
        widget(app.selectbox, "🌍 Location").select_index(0).run()
        search(app)
        assert (upstream[0].location_code, upstream[0].language_code) == (2276, "de")


# ---------------------------------------------------------------------------
# Sort controls
# ---------------------------------------------------------------------------

class TestSortControls:
    def test_search_starts_with_default_sort(self, app):
        search(app)
        assert app.session_state["sort_config"] == SortConfig()

    def test_flip_button_toggles_direction(self, app):
        search(app)
        widget(app.button, "⇅ Flip order").click().run()
        assert app.session_state["sort_config"] == SortConfig("searchVolume", "asc")

        widget(app.button, "⇅ Flip order").click().run()
        assert app.session_state["sort_config"] == SortConfig("searchVolume", "desc")

    def test_new_field_starts_descending(self, app):
        search(app)
        widget(app.button, "⇅ Flip order").click().run()
        widget(app.selectbox, "Sort by").select_index(list(SORT_FIELDS).index("keyword")).run()
        assert app.session_state["sort_config"] == SortConfig("keyword", "desc")
