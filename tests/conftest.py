"""Shared fixtures: realistic DataForSEO Labs related keywords payloads."""

import copy

import pytest


def make_item(keyword, search_volume=1000, cpc=1.5, competition=0.4, level="MEDIUM",
              difficulty=30, main_intent="informational", foreign_intent=None,
              related=None, monthly=None, low_bid=0.5, high_bid=2.5):
    return {
        "se_type": "google",
        "keyword_data": {
            "keyword": keyword,
            "keyword_info": {
                "se_type": "google",
                "last_updated_time": "2024-12-01 00:00:00 +00:00",
                "competition": competition,
                "competition_level": level,
                "cpc": cpc,
                "search_volume": search_volume,
                "low_top_of_page_bid": low_bid,
                "high_top_of_page_bid": high_bid,
                "monthly_searches": monthly if monthly is not None else [
                    {"year": 2024, "month": 11, "search_volume": search_volume},
                    {"year": 2024, "month": 3, "search_volume": search_volume // 2},
                ],
            },
            "keyword_properties": {
                "keyword_difficulty": difficulty,
                "core_keyword": None,
                "detected_language": "en",
            },
            "search_intent_info": {
                "main_intent": main_intent,
                "foreign_intent": foreign_intent,
                "last_updated_time": "2024-12-01 00:00:00 +00:00",
            },
            "related_keywords": related if related is not None else [f"{keyword} tips"],
        },
        "depth": 1,
    }


def make_payload(items, status_code=20000, status_message="Ok."):
    return {
        "version": "0.1.20241101",
        "status_code": status_code,
        "status_message": status_message,
        "time": "1.2 sec.",
        "cost": 0.0103,
        "tasks_count": 1,
        "tasks_error": 0,
        "tasks": [
            {
                "id": "11011234-1535-0387-0000-aa8f3a1b1f2c",
                "status_code": 20000,
                "status_message": "Ok.",
                "result": [
                    {
                        "se_type": "google",
                        "seed_keyword": "coffee",
                        "location_code": 2840,
                        "language_code": "en",
                        "total_count": len(items),
                        "items_count": len(items),
                        "items": items,
                    }
                ],
            }
        ],
    }


@pytest.fixture()
def realistic_payload():
    """Three items; the second one has no keyword_properties."""
    items = [
        make_item("coffee", search_volume=550000, cpc=2.1, competition=0.12, level="LOW",
                  difficulty=88, main_intent="navigational", foreign_intent=["commercial"]),
        make_item("coffee beans", search_volume=90500, cpc=1.2, competition=0.95, level="HIGH",
                  difficulty=45, main_intent="commercial"),
        make_item("cold brew coffee", search_volume=90500, cpc=0.8, competition=0.5, level="MEDIUM",
                  difficulty=52, main_intent="informational", foreign_intent=["es", "fr"]),
    ]
    del items[1]["keyword_data"]["keyword_properties"]
    return make_payload(items)


@pytest.fixture()
def payload_copy(realistic_payload):
    return copy.deepcopy(realistic_payload)
