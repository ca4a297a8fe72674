"""Tests for sorting, filtering, chart data and export helpers."""

import csv
import io

import pytest
from openpyxl import load_workbook

from normalizer import KeywordRecord, MonthlySearch, SearchIntent, normalize
from postprocess import (
    BASIC_CSV_HEADERS,
    DETAILED_CSV_HEADERS,
    SortConfig,
    build_trend_frame,
    csv_filename,
    difficulty_label,
    display_results_preview,
    export_csv,
    export_excel,
    filter_records,
    format_intent,
    records_to_dataframe,
    sort_records,
    summarize,
)


def record(keyword, volume=0, cpc=0.0, difficulty=0, level="LOW", main="informational", foreign=None,
           monthly=None):
    return KeywordRecord(
        keyword=keyword,
        search_volume=volume,
        cpc=cpc,
        competition=0.5,
        competition_level=level,
        difficulty=difficulty,
        intent=SearchIntent(main=main, foreign=foreign),
        monthly_data=monthly or [],
    )


@pytest.fixture()
def records(realistic_payload):
    return normalize(realistic_payload)


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

class TestSortRecords:
    def test_descending_by_volume_keeps_ties_in_upstream_order(self, records):
        result = sort_records(records, "searchVolume", "desc")
        assert [r.keyword for r in result] == ["coffee", "coffee beans", "cold brew coffee"]

    def test_ascending_by_volume_keeps_ties_in_upstream_order(self, records):
        result = sort_records(records, "searchVolume", "asc")
        assert [r.keyword for r in result] == ["coffee beans", "cold brew coffee", "coffee"]

    def test_sort_by_difficulty(self, records):
        result = sort_records(records, "difficulty", "asc")
        assert [r.difficulty for r in result] == [0, 52, 88]

    def test_sort_by_keyword_is_case_insensitive(self):
        items = [record("banana"), record("Apple"), record("cherry")]
        assert [r.keyword for r in sort_records(items, "keyword", "asc")] == ["Apple", "banana", "cherry"]

    def test_sort_by_intent(self):
        items = [record("a", main="navigational"), record("b", main="commercial"), record("c", main="")]
        assert [r.keyword for r in sort_records(items, "intent", "asc")] == ["c", "b", "a"]

    def test_input_untouched(self, records):
        before = list(records)
        sort_records(records, "cpc", "asc")
        assert records == before

    def test_unknown_field(self, records):
        with pytest.raises(ValueError):
            sort_records(records, "volume")

    def test_unknown_direction(self, records):
        with pytest.raises(ValueError):
            sort_records(records, "cpc", "up")


class TestSortConfig:
    def test_defaults(self):
        assert SortConfig() == SortConfig("searchVolume", "desc")

    def test_new_key_starts_descending(self):
        assert SortConfig("searchVolume", "asc").toggle("cpc") == SortConfig("cpc", "desc")

    def test_same_key_flips(self):
        config = SortConfig("cpc", "desc").toggle("cpc")
        assert config == SortConfig("cpc", "asc")
        assert config.toggle("cpc") == SortConfig("cpc", "desc")


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

class TestFilterRecords:
    def test_no_filters_keeps_everything(self, records):
        assert filter_records(records) == records

    def test_min_volume_and_max_difficulty(self, records):
        result = filter_records(records, min_search_volume=100000)
        assert [r.keyword for r in result] == ["coffee"]

        result = filter_records(records, max_difficulty=60)
        assert [r.keyword for r in result] == ["coffee beans", "cold brew coffee"]

    def test_competition_levels_are_case_insensitive(self, records):
        result = filter_records(records, competition_levels=["high", "Low"])
        assert [r.keyword for r in result] == ["coffee", "coffee beans"]

    def test_query(self, records):
        assert [r.keyword for r in filter_records(records, query=" BREW ")] == ["cold brew coffee"]


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "score, label",
    [(0, "Very Easy"), (19, "Very Easy"), (20, "Easy"), (45, "Medium"), (60, "Hard"), (80, "Very Hard"), (100, "Very Hard")],
)
def test_difficulty_label(score, label):
    assert difficulty_label(score) == label


def test_format_intent():
    assert format_intent(record("a", main="commercial")) == "commercial"
    assert format_intent(record("a", main="commercial", foreign=["navigational", "transactional"])) == \
        "commercial + navigational, transactional"


def test_records_to_dataframe(records):
    df = records_to_dataframe(records)
    assert list(df["Keyword"]) == ["coffee", "coffee beans", "cold brew coffee"]
    assert list(df["Difficulty Label"]) == ["Very Hard", "Very Easy", "Medium"]
    assert df.loc[0, "Intent"] == "navigational + commercial"


def test_records_to_dataframe_empty():
    df = records_to_dataframe([])
    assert df.empty
    assert "Keyword" in df.columns


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

class TestExportCsv:
    def test_detailed(self, records):
        rows = list(csv.reader(io.StringIO(export_csv(records))))
        assert rows[0] == DETAILED_CSV_HEADERS
        assert rows[1] == ["coffee", "550000", "88", "2.1", "0.5 - 2.5", "LOW", "navigational + commercial"]
        assert len(rows) == 4

    def test_basic(self, records):
        rows = list(csv.reader(io.StringIO(export_csv(records, "basic"))))
        assert rows[0] == BASIC_CSV_HEADERS
        assert rows[2] == ["coffee beans", "90500", "1.2", "HIGH", "0.95%"]

    def test_follows_given_order(self, records):
        text = export_csv(sort_records(records, "difficulty", "asc"), "basic")
        keywords = [row[0] for row in csv.reader(io.StringIO(text))][1:]
        assert keywords == ["coffee beans", "cold brew coffee", "coffee"]

    def test_embedded_delimiters_are_quoted(self):
        text = export_csv([record('cafe, "best" beans')], "basic")
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[1][0] == 'cafe, "best" beans'
        assert len(rows[1]) == len(BASIC_CSV_HEADERS)

    def test_header_only_when_empty(self):
        assert export_csv([], "basic") == ",".join(BASIC_CSV_HEADERS) + "\n"

    def test_unknown_variant(self, records):
        with pytest.raises(ValueError):
            export_csv(records, "full")


@pytest.mark.parametrize(
    "seed, expected",
    [
        ("coffee", "keyword-results-coffee.csv"),
        (" cold brew ", "keyword-results-cold brew.csv"),
        ("a/b\\c", "keyword-results-a_b_c.csv"),
    ],
)
def test_csv_filename(seed, expected):
    assert csv_filename(seed) == expected


def test_export_excel_sheets(records):
    workbook = load_workbook(io.BytesIO(export_excel(records, "coffee")))
    assert workbook.sheetnames == ["Keywords", "Monthly_Searches", "Summary"]
    keywords = workbook["Keywords"]
    assert keywords.cell(row=2, column=1).value == "coffee"
    assert workbook["Monthly_Searches"].max_row == 1 + 6


# ---------------------------------------------------------------------------
# Chart data and summary
# ---------------------------------------------------------------------------

class TestBuildTrendFrame:
    def test_union_of_months_sorted_with_zero_fill(self):
        a = record("a", monthly=[MonthlySearch("2024-02", 20), MonthlySearch("2024-01", 10)])
        b = record("b", monthly=[MonthlySearch("2024-03", 5)])
        frame = build_trend_frame([a, b, record("c")], ["a", "b"])
        assert list(frame.columns) == ["month", "a", "b"]
        assert list(frame["month"]) == ["2024-01", "2024-02", "2024-03"]
        assert list(frame["a"]) == [10, 20, 0]
        assert list(frame["b"]) == [0, 0, 5]

    def test_nothing_selected(self, records):
        frame = build_trend_frame(records, [])
        assert frame.empty
        assert list(frame.columns) == ["month"]


class TestSummarize:
    def test_summary(self, records):
        summary = summarize(records)
        assert summary["total_keywords"] == 3
        assert summary["total_search_volume"] == 550000 + 90500 + 90500
        assert summary["average_difficulty"] == pytest.approx((88 + 0 + 52) / 3, abs=0.01)
        assert summary["competition_levels"] == {"LOW": 1, "HIGH": 1, "MEDIUM": 1}
        assert summary["intents"]["commercial"] == 1

    def test_empty(self):
        summary = summarize([])
        assert summary["total_keywords"] == 0
        assert summary["intents"] == {}


def test_display_results_preview(records):
    table = display_results_preview(records, top_n=2)
    assert "coffee beans" in table
    assert "cold brew coffee" not in table
    assert "550,000" in table


def test_display_results_preview_empty():
    assert "No results" in display_results_preview([])
