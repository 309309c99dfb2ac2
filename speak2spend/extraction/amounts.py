"""Amount extraction from spoken or written expense descriptions."""

import re
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from ..models.transaction import quantize_amount


UNIT_WORDS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
}
TEEN_WORDS = {
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
}
TENS_WORDS = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}
NUMBER_WORDS = {**UNIT_WORDS, **TEEN_WORDS, **TENS_WORDS, "hundred": 100}


def _alternation(words) -> str:
    # Longest first so "sixteen" is never read as "six"
    return "|".join(sorted(words, key=len, reverse=True))


_UNIT = rf"(?:{_alternation(UNIT_WORDS)})"
_SMALL = (
    rf"(?:(?:{_alternation(TENS_WORDS)})(?:[\s-]+{_UNIT}\b)?"
    rf"|{_alternation(TEEN_WORDS)}|{_alternation(UNIT_WORDS)})"
)
SPOKEN_NUMBER = rf"\b{_SMALL}(?:\s+hundred(?:\s+(?:and\s+)?{_SMALL})?)?\b"

# Digits or a spelled-out number, captured
_INT = rf"(\d+|{SPOKEN_NUMBER})"

# Digits that stand alone as a token: not part of a word like "M1" or "7-Eleven".
# Thousands separators are accepted ("$1,200").
CURRENCY_PATTERN = re.compile(
    r"(?<![A-Za-z\d.,])\$?(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?(?![A-Za-z\d]|-[A-Za-z])"
)


def spoken_to_int(phrase: str) -> int:
    """Convert "12", "twelve", "thirty-two" or "one hundred and five" to an int."""
    phrase = phrase.strip().lower()
    if phrase.isdigit():
        return int(phrase)

    value = 0
    for word in re.split(r"[\s-]+", phrase):
        if word == "hundred":
            value = (value or 1) * 100
        elif word in NUMBER_WORDS:
            value += NUMBER_WORDS[word]
    return value


def _fraction(phrase: str) -> Decimal:
    """Decimal part spoken after "point": "5" -> .5, "05" -> .05, "fifty" -> .50."""
    phrase = phrase.strip().lower()
    if phrase.isdigit():
        return Decimal(int(phrase)) / (Decimal(10) ** len(phrase))
    value = spoken_to_int(phrase)
    return Decimal(value) / (10 if value < 10 else 100)


def _dollars_and_cents(match: re.Match) -> Decimal:
    dollars = Decimal(spoken_to_int(match.group(1)))
    cents = match.group(2)
    if cents:
        dollars += Decimal(spoken_to_int(cents)) / 100
    return dollars


def _point(match: re.Match) -> Decimal:
    return Decimal(spoken_to_int(match.group(1))) + _fraction(match.group(2))


def _fixed_cents(cents: str) -> Callable[[re.Match], Decimal]:
    def convert(match: re.Match) -> Decimal:
        return Decimal(spoken_to_int(match.group(1))) + Decimal(cents)
    return convert


# Tried in order when no written currency amount is present; first match wins.
SPOKEN_AMOUNT_PATTERNS: List[Tuple[re.Pattern, Callable[[re.Match], Decimal]]] = [
    (
        re.compile(
            rf"{_INT}\s*(?:dollars?|bucks?)\b(?:\s+(?:and\s+)?{_INT}\s*cents?\b)?",
            re.IGNORECASE,
        ),
        _dollars_and_cents,
    ),
    (re.compile(rf"{_INT}\s+(?:point|dot)\s+{_INT}", re.IGNORECASE), _point),
    (re.compile(rf"{_INT}\s+fifty\b", re.IGNORECASE), _fixed_cents("0.50")),
    (re.compile(rf"{_INT}\s+twenty[\s-]+five\b", re.IGNORECASE), _fixed_cents("0.25")),
]


def find_currency_amount(text: str) -> Optional[Decimal]:
    """First written amount in reading order ("$12", "12.50", "$1,200")."""
    match = CURRENCY_PATTERN.search(text)
    if match is None:
        return None
    return Decimal(match.group(1).replace(",", "") + (match.group(2) or ""))


def find_spoken_amount(text: str) -> Optional[Decimal]:
    """First spoken amount pattern that matches, in priority order."""
    for pattern, convert in SPOKEN_AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return convert(match)
    return None


def extract_amount(text: str) -> Decimal:
    """Amount in the text rounded to cents, or 0 when nothing is recoverable."""
    amount = find_currency_amount(text)
    if amount is None:
        amount = find_spoken_amount(text)
    if amount is None:
        amount = Decimal(0)
    return quantize_amount(amount)
