"""Line-level filtering of user feedback before it reaches the model.

This is a denylist, not a security boundary: it catches the common phrasings
of guardrail-bypass attempts and leaves everything else untouched.
"""

import logging
import re
from typing import NamedTuple

_log = logging.getLogger(__name__)


class PatternRule(NamedTuple):
    tag: str
    pattern: re.Pattern


def _rule(tag: str, regex: str) -> PatternRule:
    return PatternRule(tag, re.compile(regex, re.IGNORECASE))


BYPASS_RULES: tuple[PatternRule, ...] = (
    _rule("instruction_override", r"ignore\s+(all\s+)?(previous\s+)?(instructions?|rules?|guardrails?|constraints?)"),
    _rule("instruction_override", r"bypass\s+(all\s+)?(security|safety|guardrails?|rules?)"),
    _rule("instruction_override", r"override\s+(all\s+)?(previous\s+)?(instructions?|rules?|guardrails?)"),
    _rule("instruction_override", r"disregard\s+(all\s+)?(previous\s+)?(instructions?|rules?)"),
    _rule("instruction_override", r"forget\s+(all\s+)?(previous\s+)?(instructions?|rules?)"),
    _rule("hashtag_suppression", r"no\s+hashtag"),
    _rule("hashtag_suppression", r"without\s+hashtag"),
    _rule("hashtag_suppression", r"skip\s+hashtag"),
    _rule("hashtag_suppression", r"remove\s+hashtag"),
    _rule("hashtag_suppression", r"don'?t\s+(include|add|use)\s+hashtag"),
    _rule("regime_apologist", r"support\s+(the\s+)?regime"),
    _rule("regime_apologist", r"pro[- ]?regime"),
    _rule("regime_apologist", r"defend\s+(the\s+)?(irgc|islamic\s+republic)"),
)


def match_bypass_rule(line: str) -> str | None:
    """Return the tag of the first bypass rule the line matches, if any."""
    for rule in BYPASS_RULES:
        if rule.pattern.search(line):
            return rule.tag
    return None


def sanitize_user_input(text: str | None) -> str:
    """Drop every line that matches a bypass rule; may return ``""``."""
    if not isinstance(text, str) or not text:
        return ""

    kept = []
    for line in text.strip().split("\n"):
        tag = match_bypass_rule(line)
        if tag:
            _log.warning("Filtered %s line from user input: %s...", tag, line[:50])
            continue
        kept.append(line)
    return "\n".join(kept).strip()


def expand_shortcuts(text: str, shortcuts: dict[str, str]) -> str:
    """Replace ``//shorter``-style tokens with their instruction text."""
    if not text or "//" not in text:
        return text
    # Longest first so "//us" never eats the start of a longer token.
    for token in sorted(shortcuts, key=len, reverse=True):
        replacement = shortcuts[token]
        text = re.sub(re.escape(token) + r"\b", lambda _m: replacement, text, flags=re.IGNORECASE)
    return text
