"""
Query engine for the record store.

A raw query string is parsed into exactly one filter:

    from:<app>        AppFilter  - substring of the application name
    <...> hour ago    AgeFilter  - captured within the last hour/day/week
    anything else     TextFilter - substring of text, app name or filename

Matching is case-insensitive. Results keep store order (most recent first).
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Union

from ..errors import EmptyQuery
from .record_store import Record

APP_PREFIX = "from:"

# Checked in order; the first unit present wins
AGE_UNITS = (
    ("hour", 3600),
    ("day", 86400),
    ("week", 604800),
)

_AGO = re.compile(r'\bago\b')


@dataclass(frozen=True)
class TextFilter:
    text: str

    def matches(self, record: Record, now: datetime) -> bool:
        return (
            self.text in record.text.lower()
            or self.text in record.app_name.lower()
            or self.text in record.filename.lower()
        )

    def describe(self) -> str:
        return f"text '{self.text}'"


@dataclass(frozen=True)
class AppFilter:
    app: str

    def matches(self, record: Record, now: datetime) -> bool:
        return self.app in record.app_name.lower()

    def describe(self) -> str:
        return f"app '{self.app}'"


@dataclass(frozen=True)
class AgeFilter:
    max_age_seconds: int

    def matches(self, record: Record, now: datetime) -> bool:
        return (now - record.timestamp).total_seconds() <= self.max_age_seconds

    def describe(self) -> str:
        for unit, seconds in AGE_UNITS:
            if seconds == self.max_age_seconds:
                return f"captured within the last {unit}"
        return f"captured within the last {self.max_age_seconds}s"


Query = Union[TextFilter, AppFilter, AgeFilter]


def _parse_age(lowered: str) -> Optional[AgeFilter]:
    if not _AGO.search(lowered):
        return None
    for unit, seconds in AGE_UNITS:
        if unit in lowered:
            return AgeFilter(seconds)
    return None


def parse(raw: str) -> Query:
    """
    Parse a raw query string into a filter.

    Raises:
        EmptyQuery: if the query is blank
    """
    lowered = (raw or "").strip().lower()
    if not lowered:
        raise EmptyQuery()

    if APP_PREFIX in lowered:
        return AppFilter(lowered.split(APP_PREFIX, 1)[1].strip())

    age = _parse_age(lowered)
    if age is not None:
        return age

    return TextFilter(lowered)


def evaluate(
    query: Query,
    records: Iterable[Record],
    now: Optional[datetime] = None,
) -> List[Record]:
    """Return the records matching the query, in their given order."""
    if now is None:
        now = datetime.now()
    return [record for record in records if query.matches(record, now)]


def search(
    raw: str,
    records: Iterable[Record],
    now: Optional[datetime] = None,
) -> List[Record]:
    """Parse and evaluate in one step."""
    return evaluate(parse(raw), records, now=now)
