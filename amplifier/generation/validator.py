"""Format and policy checks for a structured generation result.

The validator never raises. It classifies a result as accepted, failed with
retry hints, or refused (a threat was detected and no retry should happen).
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any

from amplifier.prompts.sanitizer import PatternRule

REQUIRED_HASHTAG = "#IranRevolution2026"
MAX_TEXT_LENGTH = 280
MAX_HASHTAGS = 2
MAX_RESPONSES = 3
SIMILARITY_PREFIX = 50

HINT_SHORTER = f"Make responses shorter (max {MAX_TEXT_LENGTH} characters)."
HINT_HASHTAG = f"Include the required hashtag {REQUIRED_HASHTAG} in each response."

_HASHTAG = re.compile(r"#\w+")
_PLURALS = {"reply": "replies", "quote": "quotes"}


def _rule(tag: str, regex: str) -> PatternRule:
    return PatternRule(tag, re.compile(regex, re.IGNORECASE))


EXCLUDED_SOURCE_RULES: tuple[PatternRule, ...] = (
    _rule("excluded_source", r"\bNIAC\b"),
    _rule("excluded_source", r"\bNegar\s*Mortazavi\b"),
    _rule("excluded_source", r"\bTrita\s*Parsi\b"),
)

# Deliberately narrow: calls for accountability or justice must not trip these.
THREAT_RULES: tuple[PatternRule, ...] = (
    _rule("threat_detected", r"\bkill\s+(them|him|her|all|everyone)\b"),
    _rule("threat_detected", r"\bdeath\s+to\b"),
    _rule("threat_detected", r"\b(use|commit|advocate|promote)\s+violence\b"),
    _rule("threat_detected", r"\battack\s+(them|civilians|innocents)\b"),
    _rule("threat_detected", r"\blet'?s\s+bomb\b"),
    _rule("threat_detected", r"\bassassinate\b"),
    _rule("threat_detected", r"\bexterminate\b"),
)


@dataclass
class ValidationOutcome:
    valid: bool
    issues: list[str] = field(default_factory=list)
    fix_hints: list[str] = field(default_factory=list)
    refusal: bool = False


def _first_tag(text: str, rules: tuple[PatternRule, ...]) -> str | None:
    for rule in rules:
        if rule.pattern.search(text):
            return rule.tag
    return None


def check_text(text: str) -> list[str]:
    """Per-text issue tags, in rule order."""
    issues = []
    if len(text) > MAX_TEXT_LENGTH:
        issues.append("too_long")
    if REQUIRED_HASHTAG not in text:
        issues.append("missing_hashtag")
    if len(_HASHTAG.findall(text)) > MAX_HASHTAGS:
        issues.append("too_many_hashtags")
    for rules in (EXCLUDED_SOURCE_RULES, THREAT_RULES):
        tag = _first_tag(text, rules)
        if tag:
            issues.append(tag)
    return issues


def _entry_text(entry: Any) -> str:
    if isinstance(entry, dict):
        text = entry.get("text")
        return text if isinstance(text, str) else ""
    return ""


def are_responses_too_similar(responses: list[Any]) -> bool:
    """True when fewer than ceil(n/2) distinct lowercased 50-char prefixes exist."""
    if len(responses) < 2:
        return False
    prefixes = {_entry_text(r)[:SIMILARITY_PREFIX].lower() for r in responses}
    return len(prefixes) < math.ceil(len(responses) / 2)


def _check_array(responses: Any, count_tag: str) -> tuple[list[str], bool]:
    """Issues for one response array and whether a threat was found."""
    if not isinstance(responses, list):
        return [count_tag], False

    issues = []
    if not 0 < len(responses) <= MAX_RESPONSES:
        issues.append(count_tag)
    threat = False
    for entry in responses:
        text = _entry_text(entry)
        if not text:
            issues.append("empty_response")
            continue
        text_issues = check_text(text)
        threat = threat or "threat_detected" in text_issues
        issues += text_issues
    return issues, threat


def _outcome(issues: list[str], hints: list[str]) -> ValidationOutcome:
    if "too_long" in issues:
        hints.append(HINT_SHORTER)
    if "missing_hashtag" in issues:
        hints.append(HINT_HASHTAG)
    issues = list(dict.fromkeys(issues))
    return ValidationOutcome(valid=not issues, issues=issues, fix_hints=hints)


def _refusal() -> ValidationOutcome:
    return ValidationOutcome(valid=False, issues=["threat_detected"], refusal=True)


def validate_result(result: Any, is_refine: bool = True, response_type: str | None = None) -> ValidationOutcome:
    """Score a parsed provider result.

    With ``is_refine`` and a ``response_type`` the single-tab format is
    checked (``responses``, falling back to ``replies``/``quotes``).
    Otherwise both ``replies`` and ``quotes`` arrays of the batch format are
    checked.
    """
    if not isinstance(result, dict):
        return ValidationOutcome(valid=False, issues=["invalid_json"])

    if is_refine and response_type:
        responses = result.get("responses")
        if responses is None:
            responses = result.get(_PLURALS.get(response_type, f"{response_type}s"))
        issues, threat = _check_array(responses, "wrong_count")
        if threat:
            return _refusal()

        hints = []
        if isinstance(responses, list) and are_responses_too_similar(responses):
            issues.append(f"{response_type}s_too_similar")
            hints.append(f"Make each {response_type} structurally different.")
        return _outcome(issues, hints)

    issues = []
    hints = []
    for key, singular in (("replies", "reply"), ("quotes", "quote")):
        responses = result.get(key)
        array_issues, threat = _check_array(responses, f"wrong_{key}_count")
        if threat:
            return _refusal()
        issues += array_issues
        if isinstance(responses, list) and are_responses_too_similar(responses):
            issues.append(f"{key}_too_similar")
            hints.append(f"Make each {singular} structurally different.")
    return _outcome(issues, hints)
