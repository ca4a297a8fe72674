# src/postprocess.py
"""
Post-processing tools for normalized keyword records
Sorting, filtering, chart data and CSV/Excel export for the dashboard and CLI
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from tabulate import tabulate

from normalizer import KeywordRecord

# Sortable fields, keyed by their camelCase record name
SORT_FIELDS: Dict[str, Callable[[KeywordRecord], Any]] = {
    "keyword": lambda r: r.keyword.lower(),
    "searchVolume": lambda r: r.search_volume,
    "cpc": lambda r: r.cpc,
    "competition": lambda r: r.competition,
    "competitionLevel": lambda r: r.competition_level.lower(),
    "difficulty": lambda r: r.difficulty,
    "intent": lambda r: r.intent.main.lower(),
}
SORT_DIRECTIONS = ("asc", "desc")

BASIC_CSV_HEADERS = ["Keyword", "Search Volume", "CPC", "Competition", "Relevance"]
DETAILED_CSV_HEADERS = ["Keyword", "Search Volume", "Difficulty", "CPC", "CPC Range", "Competition", "Intent"]
CSV_VARIANTS = ("basic", "detailed")

# Lower bound of each difficulty bucket, highest first
DIFFICULTY_BUCKETS = [
    (80, "Very Hard"),
    (60, "Hard"),
    (40, "Medium"),
    (20, "Easy"),
    (0, "Very Easy"),
]


@dataclass
class SortConfig:
    """Current table sort; clicking a column header calls toggle()."""
    key: str = "searchVolume"
    direction: str = "desc"

    def toggle(self, key: str) -> "SortConfig":
        if key == self.key and self.direction == "desc":
            return SortConfig(key, "asc")
        return SortConfig(key, "desc")


def sort_records(records: Sequence[KeywordRecord], key: str = "searchVolume",
                 direction: str = "desc") -> List[KeywordRecord]:
    """
    Sort records by a single field.

    Ties keep their original (upstream relevance) order in both directions.

    Args:
        records: Normalized keyword records
        key: One of SORT_FIELDS
        direction: "asc" or "desc"

    Returns:
        New sorted list; the input is left untouched
    """
    if key not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field '{key}'. Choose from: {', '.join(SORT_FIELDS)}")
    if direction not in SORT_DIRECTIONS:
        raise ValueError(f"Unknown sort direction '{direction}'")

    # sorted() is stable, and stays stable with reverse=True
    return sorted(records, key=SORT_FIELDS[key], reverse=(direction == "desc"))


def filter_records(records: Iterable[KeywordRecord], min_search_volume: int = 0,
                   max_difficulty: int = 100, competition_levels: Optional[Iterable[str]] = None,
                   query: str = "") -> List[KeywordRecord]:
    """Filter records, preserving order."""
    levels = {level.lower() for level in competition_levels} if competition_levels else None
    needle = query.strip().lower()

    return [
        record for record in records
        if record.search_volume >= min_search_volume
        and record.difficulty <= max_difficulty
        and (levels is None or record.competition_level.lower() in levels)
        and (not needle or needle in record.keyword.lower())
    ]


def difficulty_label(score: int) -> str:
    for lower_bound, label in DIFFICULTY_BUCKETS:
        if score >= lower_bound:
            return label
    return DIFFICULTY_BUCKETS[-1][1]


def format_intent(record: KeywordRecord) -> str:
    """Main intent followed by any foreign intents, e.g. "commercial + navigational"."""
    if record.intent.foreign:
        return f"{record.intent.main} + {', '.join(record.intent.foreign)}"
    return record.intent.main


def format_large_number(number):
    """Format large numbers with commas for readability"""
    try:
        return f"{int(number):,}"
    except (ValueError, TypeError):
        return str(number)


def records_to_dataframe(records: Sequence[KeywordRecord]) -> pd.DataFrame:
    """Build the display table, one row per record."""
    columns = [
        "Keyword", "Search Volume", "CPC", "Competition", "Competition Level",
        "Difficulty", "Difficulty Label", "Intent", "Related Keywords",
    ]
    rows = [
        {
            "Keyword": record.keyword,
            "Search Volume": record.search_volume,
            "CPC": record.cpc,
            "Competition": record.competition,
            "Competition Level": record.competition_level,
            "Difficulty": record.difficulty,
            "Difficulty Label": difficulty_label(record.difficulty),
            "Intent": format_intent(record),
            "Related Keywords": len(record.related_keywords),
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=columns)


def build_trend_frame(records: Sequence[KeywordRecord], selected_keywords: Sequence[str]) -> pd.DataFrame:
    """
    Build monthly search volume series for the selected keywords.

    Returns a DataFrame with a "month" column (ascending "YYYY-MM") followed by
    one column per selected keyword. A keyword with no data for a month gets 0.
    """
    selected = [record for record in records if record.keyword in selected_keywords]
    if not selected:
        return pd.DataFrame(columns=["month"])

    months = sorted({entry.month for record in selected for entry in record.monthly_data})
    frame = pd.DataFrame({"month": months})
    for record in selected:
        volumes = {entry.month: entry.search_volume for entry in record.monthly_data}
        frame[record.keyword] = [volumes.get(month, 0) for month in months]
    return frame


def summarize(records: Sequence[KeywordRecord]) -> Dict[str, Any]:
    """Headline numbers for the summary cards and the Excel summary sheet."""
    if not records:
        return {
            "total_keywords": 0,
            "total_search_volume": 0,
            "average_search_volume": 0.0,
            "average_cpc": 0.0,
            "average_difficulty": 0.0,
            "competition_levels": {},
            "intents": {},
        }

    df = pd.DataFrame({
        "volume": [r.search_volume for r in records],
        "cpc": [r.cpc for r in records],
        "difficulty": [r.difficulty for r in records],
        "level": [r.competition_level for r in records],
        "intent": [r.intent.main or "unknown" for r in records],
    })
    return {
        "total_keywords": len(df),
        "total_search_volume": int(df["volume"].sum()),
        "average_search_volume": round(float(df["volume"].mean()), 2),
        "average_cpc": round(float(df["cpc"].mean()), 2),
        "average_difficulty": round(float(df["difficulty"].mean()), 2),
        "competition_levels": {k: int(v) for k, v in df["level"].value_counts().items()},
        "intents": {k: int(v) for k, v in df["intent"].value_counts().items()},
    }


def _csv_row(record: KeywordRecord, variant: str) -> List[Any]:
    if variant == "basic":
        return [
            record.keyword,
            record.search_volume,
            record.cpc,
            record.competition_level,
            f"{record.competition}%",
        ]
    return [
        record.keyword,
        record.search_volume,
        record.difficulty,
        record.cpc,
        f"{record.low_top_of_page_bid} - {record.high_top_of_page_bid}",
        record.competition_level,
        format_intent(record),
    ]


def export_csv(records: Sequence[KeywordRecord], variant: str = "detailed") -> str:
    """
    Render records as CSV text in their current order.

    Keywords containing commas or quotes are quoted by the csv writer.
    """
    if variant not in CSV_VARIANTS:
        raise ValueError(f"Unknown CSV variant '{variant}'")

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(BASIC_CSV_HEADERS if variant == "basic" else DETAILED_CSV_HEADERS)
    for record in records:
        writer.writerow(_csv_row(record, variant))
    return output.getvalue()


def csv_filename(seed_keyword: str) -> str:
    safe_seed = re.sub(r"[\\/:*?\"<>|\r\n]", "_", seed_keyword.strip())
    return f"keyword-results-{safe_seed}.csv"


def export_excel(records: Sequence[KeywordRecord], seed_keyword: str) -> bytes:
    """Excel workbook with keywords, monthly searches and a summary sheet."""
    monthly_rows = [
        {"Keyword": record.keyword, "Month": entry.month, "Search Volume": entry.search_volume}
        for record in records
        for entry in record.monthly_data
    ]
    summary = summarize(records)
    summary_data = {
        "Metric": [
            "Seed Keyword",
            "Generated At",
            "Total Keywords",
            "Total Search Volume",
            "Average Search Volume",
            "Average CPC",
            "Average Difficulty",
        ],
        "Value": [
            seed_keyword,
            datetime.utcnow().isoformat() + "Z",
            summary["total_keywords"],
            summary["total_search_volume"],
            summary["average_search_volume"],
            summary["average_cpc"],
            summary["average_difficulty"],
        ],
    }

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        records_to_dataframe(records).to_excel(writer, sheet_name="Keywords", index=False)
        pd.DataFrame(monthly_rows, columns=["Keyword", "Month", "Search Volume"]).to_excel(
            writer, sheet_name="Monthly_Searches", index=False
        )
        pd.DataFrame(summary_data).to_excel(writer, sheet_name="Summary", index=False)
    return buffer.getvalue()


def display_results_preview(records: Sequence[KeywordRecord], top_n: int = 10) -> str:
    """Render a github-style table of the first records for the terminal."""
    if not records:
        return "❌ No results to display!"

    preview_df = records_to_dataframe(records[:top_n])
    preview_df["Search Volume"] = preview_df["Search Volume"].apply(format_large_number)
    preview_df = preview_df[["Keyword", "Search Volume", "CPC", "Competition Level", "Difficulty", "Intent"]]
    return tabulate(preview_df, headers="keys", tablefmt="github", showindex=False)
