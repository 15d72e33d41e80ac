"""Step validators.

Every validator takes the raw (already stripped) reply and returns either
``Accepted(value)`` with the typed value or ``Rejected(reason)``. They hold
no state, so the same input always gets the same verdict.

Note the assessment steps use ``leading_int``: they only check that the
reply starts with an integer. The ranges shown in those prompts are
advisory; onboarding, fitness and meals enforce theirs.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Union

INT_RE = re.compile(r"^\d+$")
DECIMAL_RE = re.compile(r"^\d+(\.\d+)?$")
LEADING_INT_RE = re.compile(r"^[+-]?\d+")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
CYCLE_LENGTH_RE = re.compile(r"^(2[1-9]|3[0-5])$")


@dataclass(frozen=True)
class Accepted:
    value: Any


@dataclass(frozen=True)
class Rejected:
    reason: str


Verdict = Union[Accepted, Rejected]
Validator = Callable[[str], Verdict]


def any_text(text: str) -> Verdict:
    text = text.strip()
    if not text:
        return Rejected("empty")
    return Accepted(text)


def int_between(low: int, high: int) -> Validator:
    """Whole number, ``low <= n <= high``."""
    def validate(text: str) -> Verdict:
        text = text.strip()
        if not INT_RE.match(text):
            return Rejected("not a whole number")
        value = int(text)
        if value < low or value > high:
            return Rejected(f"outside {low}-{high}")
        return Accepted(value)
    return validate


def decimal_between(low: float, high: float) -> Validator:
    def validate(text: str) -> Verdict:
        text = text.strip()
        if not DECIMAL_RE.match(text):
            return Rejected("not a number")
        value = float(text)
        if value < low or value > high:
            return Rejected(f"outside {low:g}-{high:g}")
        return Accepted(value)
    return validate


def leading_int(text: str) -> Verdict:
    """Accepts anything that starts with an integer ("7", "7 hours", "7.5")."""
    match = LEADING_INT_RE.match(text.strip())
    if not match:
        return Rejected("not a number")
    return Accepted(int(match.group()))


def one_of(options: Iterable[str]) -> Validator:
    """Case-insensitive choice; the accepted value is lowercased."""
    allowed = tuple(options)

    def validate(text: str) -> Verdict:
        value = text.strip().lower()
        if value not in allowed:
            return Rejected(f"expected one of {', '.join(allowed)}")
        return Accepted(value)
    return validate


def single_digit(low: int, high: int) -> Validator:
    """Exactly one digit in ``low..high`` (no padding, no words)."""
    pattern = re.compile(rf"^[{low}-{high}]$")

    def validate(text: str) -> Verdict:
        text = text.strip()
        if not pattern.match(text):
            return Rejected(f"expected a single digit {low}-{high}")
        return Accepted(int(text))
    return validate


def iso_date(text: str) -> Verdict:
    """YYYY-MM-DD that is also a real calendar date."""
    text = text.strip()
    if not DATE_RE.match(text):
        return Rejected("expected YYYY-MM-DD")
    try:
        return Accepted(date.fromisoformat(text))
    except ValueError:
        return Rejected("no such date")


def cycle_length(text: str) -> Verdict:
    text = text.strip()
    if not CYCLE_LENGTH_RE.match(text):
        return Rejected("expected 21-35")
    return Accepted(int(text))


yes_no = one_of(("yes", "no"))
sex_choice = one_of(("male", "female", "other"))
