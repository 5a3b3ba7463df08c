"""Partial (year-only or full) dates: parsing, formatting, ordering."""
from __future__ import annotations

import re
from datetime import date as _date
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

_YEAR_RE = re.compile(r"^\d+$")
_FULL_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DATE_FORMAT_HINT = "Enter a year (e.g. 1950) or full date (e.g. 1950-03-15)"


class DateParseError(ValueError):
    pass


class PartialDate(BaseModel):
    """A year, optionally refined to a full ISO calendar date."""
    model_config = ConfigDict(frozen=True)

    year: Optional[int] = None
    date: Optional[str] = None

    @model_validator(mode="after")
    def _year_matches_date(self):
        if self.year is not None and self.year < 0:
            raise ValueError(f"year must not be negative, got {self.year}")
        if self.date is not None:
            if not _FULL_RE.match(self.date):
                raise ValueError(f"date must be YYYY-MM-DD, got {self.date!r}")
            try:
                _date.fromisoformat(self.date)
            except ValueError:
                raise ValueError(f"{self.date!r} is not a calendar date") from None
            if self.year is not None and int(self.date[:4]) != self.year:
                raise ValueError("year does not match full date")
        return self

    @property
    def is_full(self) -> bool:
        return self.date is not None

    @property
    def is_empty(self) -> bool:
        return self.date is None and self.year is None


def parse_date_input(text: str | None) -> PartialDate | None:
    """
    Parse user-entered date text.
      ""/blank      -> None
      "1950"        -> year only
      "1950-03-15"  -> full date (must be a real calendar date)
    Anything else raises DateParseError.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return None

    if _YEAR_RE.match(trimmed):
        return PartialDate(year=int(trimmed))

    if _FULL_RE.match(trimmed):
        try:
            _date.fromisoformat(trimmed)
        except ValueError:
            raise DateParseError(f'"{trimmed}" is not a valid date') from None
        return PartialDate(year=int(trimmed[:4]), date=trimmed)

    raise DateParseError(DATE_FORMAT_HINT)


def format_partial_date(pd: PartialDate | None) -> str:
    if pd is None:
        return ""
    if pd.date:
        return pd.date
    if pd.year is not None:
        return str(pd.year)
    return ""


def compare_partial_dates(a: PartialDate | None, b: PartialDate | None) -> int | None:
    """-1/0/1 when both sides share a precision level, None when indeterminate."""
    if a is None or b is None:
        return None

    if a.date and b.date:
        return (a.date > b.date) - (a.date < b.date)

    if a.date is None and b.date is None and a.year is not None and b.year is not None:
        return (a.year > b.year) - (a.year < b.year)

    return None


def validate_birth_death(birth: PartialDate | None, death: PartialDate | None) -> str | None:
    cmp = compare_partial_dates(birth, death)
    if cmp is not None and cmp > 0:
        return "Birth date must be before or equal to death date"
    return None
