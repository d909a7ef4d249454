"""Reply rule compilation and selection logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List


@dataclass(frozen=True)
class ReplyRule:
    """A keyword and the reply it triggers. Keywords are stored case-folded."""

    keyword: str
    reply: str


def build_reply_rules(rules_config: Any) -> List[ReplyRule]:
    """Normalize reply rules from config.

    Two shapes are accepted and their order is kept as written:
    - an object mapping keyword to reply
    - a list of {"keyword", "reply", "enabled"} entries
    """

    if not rules_config:
        return []

    if isinstance(rules_config, dict):
        entries: Iterable[dict] = (
            {"keyword": keyword, "reply": reply} for keyword, reply in rules_config.items()
        )
    elif isinstance(rules_config, list):
        entries = rules_config
    else:
        raise ValueError("response_rules must be an object or a list")

    compiled: List[ReplyRule] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid reply rule: {entry!r}")
        if not entry.get("enabled", True):
            continue
        keyword = str(entry.get("keyword") or "").casefold().strip()
        reply = entry.get("reply")
        if not keyword:
            raise ValueError(f"Reply rule is missing a keyword: {entry!r}")
        if not isinstance(reply, str) or not reply:
            raise ValueError(f"Reply rule for {keyword!r} is missing a reply")
        compiled.append(ReplyRule(keyword=keyword, reply=reply))
    return compiled


def select_response(text: str, rules: Iterable[ReplyRule], default_reply: str) -> str:
    """Return the reply of the first rule whose keyword occurs in the text.

    Matching is a plain case-insensitive substring test, evaluated in rule
    order. When nothing matches the default reply is returned.
    """

    normalized = (text or "").casefold()
    for rule in rules:
        if rule.keyword in normalized:
            return rule.reply
    return default_reply
