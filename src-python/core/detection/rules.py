"""Declarative rule tables for the PII classifier.

Each classifier pass owns one ordered list of :class:`Rule` entries.  The
order of a list *is* its precedence: the classifier takes the first rule
whose span constraints admit the window and whose predicate accepts it.
Callers can build their own lists from the predicates below without
touching the control flow in ``classifier.py``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from models.schemas import PIIType
from core.detection.detection_config import (
    LINE_NAME_MAX_WORDS,
    LINE_NAME_MIN_WORDS,
    MAX_WINDOW_SPAN,
)

_IC = re.IGNORECASE


# ═══════════════════════════════════════════════════════════════════════════
# Patterns
# ═══════════════════════════════════════════════════════════════════════════

EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", _IC)

# Optional country code, optional parenthesised prefix, then 8+ digits
# loosely separated by spaces, dashes or parentheses.
PHONE_RE = re.compile(
    r"(?:\+?\d{1,3}[\s-]?)?"
    r"(?:\(\+?\d{1,3}\)[\s-]?)?"
    r"\d[\d\s\-()]{6,}\d"
)

# 13–16 digits, optionally grouped with spaces or dashes.
CREDIT_CARD_RE = re.compile(r"\b(?:\d[ -]*?){13,16}\b")

_MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?"
DATE_RE = re.compile(
    r"\b(?:"
    r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"                        # 15/03/2015
    r"|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}"                         # 2015-03-15
    r"|" + _MONTHS + r"\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{2,4}"  # March 15th, 2015
    r")\b",
    _IC,
)

# Street / locale keywords, matched as whole words ("St." but not "Stanley").
ADDRESS_RE = re.compile(
    r"\b(?:Street|St\.?|Road|Rd\.?|Avenue|Ave\.?|Lane|Ln\.?|Block|District|State)"
    r"(?![A-Za-z])",
    _IC,
)

LONG_ALNUM_RE = re.compile(r"\b[A-Z0-9][A-Z0-9\-]{7,}\b", _IC)

DIGIT_RUN_RE = re.compile(r"\d{4,}")
NUMERIC_ID_RE = re.compile(r"\b\d{4,}\b")

RANGE_CONNECTOR_RE = re.compile(r"\b(?:to|through|until)\b", _IC)

# Casing heuristics for person names (certificates print names in any of
# these styles).  Each word must also be at least two characters long.
TITLE_CASE_WORD_RE = re.compile(r"^[A-Z][a-zA-Z'.-]*$")
UPPER_CASE_WORD_RE = re.compile(r"^[A-Z][A-Z'.-]*$")
ALPHA_WORD_RE = re.compile(r"^[A-Za-z][A-Za-z'.-]*$")
LINE_NAME_WORD_RE = re.compile(r"^[A-Z][A-Za-z'.-]*$")


# ═══════════════════════════════════════════════════════════════════════════
# Predicates — all take (joined_text, word_texts)
# ═══════════════════════════════════════════════════════════════════════════

Predicate = Callable[[str, Sequence[str]], bool]


def digits_only(text: str) -> str:
    return re.sub(r"\D", "", text)


def is_email(text: str, words: Sequence[str] = ()) -> bool:
    return EMAIL_RE.search(text) is not None


def is_card_token(text: str, words: Sequence[str] = ()) -> bool:
    return 13 <= len(digits_only(text)) <= 16 and CREDIT_CARD_RE.search(text) is not None


def is_card_line(text: str, words: Sequence[str] = ()) -> bool:
    return CREDIT_CARD_RE.search(text) is not None


def is_numeric_id_token(text: str, words: Sequence[str] = ()) -> bool:
    return 4 <= len(digits_only(text)) <= 10 and DIGIT_RUN_RE.search(text) is not None


def is_phone_window(text: str, words: Sequence[str] = ()) -> bool:
    return len(re.sub(r"[^0-9+]", "", text)) >= 8 and PHONE_RE.search(text) is not None


def is_phone_line(text: str, words: Sequence[str] = ()) -> bool:
    return PHONE_RE.search(text) is not None


def is_date(text: str, words: Sequence[str] = ()) -> bool:
    return DATE_RE.search(text) is not None


def is_date_range(text: str, words: Sequence[str] = ()) -> bool:
    return RANGE_CONNECTOR_RE.search(text) is not None and is_date(text)


def has_address_keyword(text: str, words: Sequence[str] = ()) -> bool:
    return ADDRESS_RE.search(text) is not None


def has_long_alnum(text: str, words: Sequence[str] = ()) -> bool:
    """A run of 8+ id characters that mixes letters and digits."""
    for match in LONG_ALNUM_RE.finditer(text):
        run = match.group()
        if any(c.isdigit() for c in run) and any(c.isalpha() for c in run):
            return True
    return False


def has_numeric_id(text: str, words: Sequence[str] = ()) -> bool:
    return NUMERIC_ID_RE.search(text) is not None


def _all_words(words: Sequence[str], pattern: re.Pattern) -> bool:
    return bool(words) and all(len(w) >= 2 and pattern.match(w) for w in words)


def looks_like_name(text: str, words: Sequence[str] = ()) -> bool:
    """Title-cased, upper-cased, or plain alphabetic words."""
    if _all_words(words, TITLE_CASE_WORD_RE):
        return True
    if _all_words(words, UPPER_CASE_WORD_RE):
        return True
    return len(words) >= 2 and _all_words(words, ALPHA_WORD_RE)


def looks_like_name_line(text: str, words: Sequence[str] = ()) -> bool:
    parts = words or text.split()
    return _all_words(parts, LINE_NAME_WORD_RE)


# ═══════════════════════════════════════════════════════════════════════════
# Rule tables
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Rule:
    """One ordered classification rule."""
    name: str
    pii_type: PIIType
    predicate: Predicate
    min_span: int = 1
    max_span: int = MAX_WINDOW_SPAN

    def admits(self, span: int) -> bool:
        return self.min_span <= span <= self.max_span

    def matches(self, text: str, words: Sequence[str]) -> bool:
        return self.admits(len(words)) and self.predicate(text, words)


TOKEN_RULES: list[Rule] = [
    Rule("email", PIIType.EMAIL, is_email, max_span=1),
    Rule("credit_card", PIIType.CREDIT_CARD, is_card_token, max_span=1),
    Rule("numeric_id", PIIType.ID, is_numeric_id_token, max_span=1),
]

WINDOW_RULES: list[Rule] = [
    Rule("phone", PIIType.PHONE, is_phone_window, max_span=4),
    Rule("date", PIIType.DATE, is_date, max_span=5),
    Rule("address", PIIType.ADDRESS, has_address_keyword, min_span=2),
    Rule("name", PIIType.NAME, looks_like_name, min_span=2, max_span=4),
    Rule("long_alnum_id", PIIType.ID, has_long_alnum, max_span=3),
    Rule("date_range", PIIType.DATE, is_date_range, min_span=5),
]

# Line rules see the whole line as a single "word", so spans are 1.
LINE_RULES: list[Rule] = [
    Rule("email", PIIType.EMAIL, is_email),
    Rule("credit_card", PIIType.CREDIT_CARD, is_card_line),
    Rule("date", PIIType.DATE, is_date),
    Rule("phone", PIIType.PHONE, is_phone_line),
    Rule("address", PIIType.ADDRESS, has_address_keyword),
    Rule("long_alnum_id", PIIType.ID, has_long_alnum),
    Rule("numeric_id", PIIType.ID, has_numeric_id),
]

LINE_NAME_RULE = Rule(
    "name_line", PIIType.NAME, looks_like_name_line,
    min_span=LINE_NAME_MIN_WORDS, max_span=LINE_NAME_MAX_WORDS,
)


def first_match(rules: Sequence[Rule], words: Sequence[str]) -> Optional[Rule]:
    """Return the first rule in *rules* that accepts the window *words*."""
    text = " ".join(words).strip()
    if not text:
        return None
    for rule in rules:
        if rule.matches(text, words):
            return rule
    return None
