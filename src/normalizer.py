# src/normalizer.py
"""
Related Keywords Response Normalizer

Turns the nested DataForSEO Labs "related keywords" payload into flat,
UI-ready keyword records.

The upstream envelope looks like:
    {
        "status_code": 20000,
        "status_message": "Ok.",
        "tasks": [{"result": [{"items": [{"keyword_data": {...}}]}]}]
    }

Any field at any level may be missing, null or of the wrong type. Missing
data always resolves to a default, never to an exception.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_COMPETITION_LEVEL = "unknown"
MIN_DIFFICULTY = 0
MAX_DIFFICULTY = 100


@dataclass
class MonthlySearch:
    """Search volume for a single calendar month."""
    month: str  # "YYYY-MM"
    search_volume: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"month": self.month, "searchVolume": self.search_volume}


@dataclass
class SearchIntent:
    main: str = ""
    foreign: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "main": self.main,
            "foreign": list(self.foreign) if self.foreign is not None else None,
        }


@dataclass
class KeywordRecord:
    """Flat keyword record consumed by the table, chart and exporters."""
    keyword: str = ""
    search_volume: int = 0
    cpc: float = 0.0
    competition: float = 0.0
    competition_level: str = DEFAULT_COMPETITION_LEVEL
    difficulty: int = 0
    intent: SearchIntent = field(default_factory=SearchIntent)
    related_keywords: List[str] = field(default_factory=list)
    monthly_data: List[MonthlySearch] = field(default_factory=list)
    low_top_of_page_bid: float = 0.0
    high_top_of_page_bid: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys the front end expects."""
        return {
            "keyword": self.keyword,
            "searchVolume": self.search_volume,
            "cpc": self.cpc,
            "competition": self.competition,
            "competitionLevel": self.competition_level,
            "difficulty": self.difficulty,
            "intent": self.intent.to_dict(),
            "relatedKeywords": list(self.related_keywords),
            "monthlyData": [entry.to_dict() for entry in self.monthly_data],
            "lowTopOfPageBid": self.low_top_of_page_bid,
            "highTopOfPageBid": self.high_top_of_page_bid,
        }


@dataclass
class NormalizedResponse:
    """Envelope status carried alongside the normalized records."""
    status: int = 0
    message: str = ""
    data: List[KeywordRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "data": [record.to_dict() for record in self.data],
        }


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a metric
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _as_count(value: Any) -> int:
    """Non-negative integer, 0 when the value is not numeric."""
    if not _is_number(value):
        return 0
    return max(0, int(value))


def _as_amount(value: Any) -> float:
    """Non-negative float, 0.0 when the value is not numeric."""
    if not _is_number(value):
        return 0.0
    return max(0.0, float(value))


def _as_difficulty(value: Any) -> int:
    if not _is_number(value):
        return MIN_DIFFICULTY
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(value)))


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _as_calendar_int(value: Any) -> Optional[int]:
    """Integer, or a string of digits such as "2024"; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def format_month(year: Any, month: Any) -> Optional[str]:
    """
    Format a year/month pair as "YYYY-MM".

    Both parts may be integers or digit strings. Returns None for anything
    else, or when the month is not a calendar month.
    """
    year = _as_calendar_int(year)
    month = _as_calendar_int(month)
    if year is None or month is None or not 1 <= month <= 12:
        return None
    return f"{year}-{month:02d}"


def _monthly_searches(value: Any) -> List[MonthlySearch]:
    if not isinstance(value, list):
        return []

    monthly = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        month = format_month(entry.get("year"), entry.get("month"))
        if month is None:
            continue
        monthly.append(MonthlySearch(month=month, search_volume=_as_count(entry.get("search_volume"))))
    return monthly


def _foreign_intent(value: Any) -> Optional[List[str]]:
    if isinstance(value, list) and all(isinstance(intent, str) for intent in value):
        return list(value)
    return None


def _related_keywords(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [keyword for keyword in value if isinstance(keyword, str)]


def extract_items(raw: Dict[str, Any]) -> List[Any]:
    """
    Resolve ``tasks[0].result[0].items`` from the envelope.

    Returns an empty list when any link of the chain is missing, empty or not
    a list; that is the "no results" case, not an error.
    """
    task = _first(raw.get("tasks"))
    if not isinstance(task, dict):
        return []

    result = _first(task.get("result"))
    if not isinstance(result, dict):
        return []

    items = result.get("items")
    return items if isinstance(items, list) else []


def normalize_item(item: Any) -> KeywordRecord:
    """Map one upstream item to a KeywordRecord, defaulting every missing field."""
    keyword_data = _as_dict(_as_dict(item).get("keyword_data"))
    keyword_info = _as_dict(keyword_data.get("keyword_info"))
    keyword_properties = _as_dict(keyword_data.get("keyword_properties"))
    intent_info = _as_dict(keyword_data.get("search_intent_info"))

    competition = keyword_info.get("competition")

    return KeywordRecord(
        keyword=_as_str(keyword_data.get("keyword")),
        search_volume=_as_count(keyword_info.get("search_volume")),
        cpc=_as_amount(keyword_info.get("cpc")),
        competition=float(competition) if _is_number(competition) else 0.0,
        competition_level=_as_str(keyword_info.get("competition_level"), DEFAULT_COMPETITION_LEVEL),
        difficulty=_as_difficulty(keyword_properties.get("keyword_difficulty")),
        intent=SearchIntent(
            main=_as_str(intent_info.get("main_intent")),
            foreign=_foreign_intent(intent_info.get("foreign_intent")),
        ),
        related_keywords=_related_keywords(keyword_data.get("related_keywords")),
        monthly_data=_monthly_searches(keyword_info.get("monthly_searches")),
        low_top_of_page_bid=_as_amount(keyword_info.get("low_top_of_page_bid")),
        high_top_of_page_bid=_as_amount(keyword_info.get("high_top_of_page_bid")),
    )


def normalize(raw: Dict[str, Any]) -> List[KeywordRecord]:
    """
    Normalize a related keywords payload into keyword records.

    Args:
        raw: Parsed JSON body of the upstream response

    Returns:
        One record per upstream item, in upstream (relevance) order

    Raises:
        TypeError: If raw is not a JSON object
    """
    if not isinstance(raw, dict):
        raise TypeError(f"Expected a dict payload, got {type(raw).__name__}")

    return [normalize_item(item) for item in extract_items(raw)]


def normalize_response(raw: Dict[str, Any]) -> NormalizedResponse:
    """Normalize the payload and keep the envelope status next to the records."""
    records = normalize(raw)
    status = raw.get("status_code")

    return NormalizedResponse(
        status=int(status) if _is_number(status) else 0,
        message=_as_str(raw.get("status_message")),
        data=records,
    )
