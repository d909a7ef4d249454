from __future__ import annotations

import pytest

from core.rules_engine import ReplyRule, build_reply_rules, select_response


def _rules() -> list[ReplyRule]:
    return build_reply_rules({"price": "It's $10", "hours": "9-5"})


def test_matching_keyword_is_case_insensitive() -> None:
    assert select_response("What are your HOURS?", _rules(), "Thanks!") == "9-5"


def test_default_reply_when_nothing_matches() -> None:
    assert select_response("hello", _rules(), "Thanks!") == "Thanks!"


def test_first_matching_rule_wins() -> None:
    text = "what's the price and your hours"
    assert select_response(text, _rules(), "Thanks!") == "It's $10"

    reordered = build_reply_rules([
        {"keyword": "hours", "reply": "9-5"},
        {"keyword": "price", "reply": "It's $10"},
    ])
    assert select_response(text, reordered, "Thanks!") == "9-5"


def test_empty_text_and_no_rules_fall_back_to_default() -> None:
    assert select_response("", _rules(), "Thanks!") == "Thanks!"
    assert select_response("price?", [], "Thanks!") == "Thanks!"
    assert build_reply_rules(None) == []


def test_list_rules_skip_disabled_and_casefold_keywords() -> None:
    rules = build_reply_rules([
        {"keyword": "Price", "reply": "It's $10", "enabled": False},
        {"keyword": "  SHIPPING ", "reply": "3 days"},
    ])
    assert rules == [ReplyRule(keyword="shipping", reply="3 days")]


@pytest.mark.parametrize(
    "config",
    [
        "price",
        [{"reply": "no keyword"}],
        [{"keyword": "price"}],
        ["price"],
    ],
)
def test_invalid_rule_configs_are_rejected(config) -> None:
    with pytest.raises(ValueError):
        build_reply_rules(config)
