"""
Dataset loader (CSV -> Dataset)
===============================

This module turns the raw text of the two upstream files into `Dataset`
objects.

Wide format (Johns Hopkins):
    state,country,lat,long,1/22/20,1/23/20,...
One row per location, one column per date. Only the FIRST date header is
parsed; every later column is dated by adding one day per column. The other
headers are kept as display labels (`date_string`). Bad or missing counts
become 0 with a warning.

Long format (New York Times):
    date,state,fips,cases,deaths
One row per state per date, already in chronological order. The state name
is stored as the location's `country`. A bad count here is fatal and raises
`ParseError`.

The two parsers deliberately disagree on bad integers; see DESIGN.md.
"""

from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
import logging

from .models import DailyCaseCount, Dataset, DatasetSource, DatasetType, Location
from .settings import (
    DEFAULT_ENCODING,
    LONG_CONFIRMED_INDEX, LONG_DATE_FORMAT, LONG_DATE_INDEX,
    LONG_DEATHS_INDEX, LONG_STATE_INDEX,
    WIDE_COUNTRY_INDEX, WIDE_DATE_FORMAT, WIDE_FIRST_DATE_INDEX, WIDE_STATE_INDEX,
)
from .tokenizer import split_csv_line

logger = logging.getLogger(__name__)


class ParseError(ValueError):
    """A required field in a long-format row could not be read."""

    def __init__(self, line_number: int, field: str, value: Optional[str]):
        self.line_number = line_number
        self.field = field
        self.value = value
        super().__init__(f"line {line_number}: invalid {field} value {value!r}")


def _to_int(x: Optional[str]) -> Optional[int]:
    """Convert a CSV field to int, returning None if missing/invalid."""
    if x is None: return None
    try: return int(x)
    except ValueError: return None

def _field(fields: List[str], index: int) -> Optional[str]:
    return fields[index] if index < len(fields) else None

def _parse_date(text: str, fmt: str) -> Optional[date]:
    try:
        return datetime.strptime(text, fmt).date()
    except ValueError:
        return None


def parse_wide_format(csv_text: str, dataset_type: DatasetType,
                      country: Optional[str] = None) -> Dataset:
    """Parse a Johns Hopkins time-series file.

    Args:
        csv_text: full file contents.
        dataset_type: what the counts represent (confirmed cases or deaths).
        country: when given, rows for any other country are skipped.
    """
    lines = csv_text.splitlines()
    if not lines:
        return Dataset(type=dataset_type, source=DatasetSource.JOHNS_HOPKINS)

    headers = split_csv_line(lines[0])
    date_headers = headers[WIDE_FIRST_DATE_INDEX:]

    # Anchor date: the first date header, or today if it cannot be read.
    anchor = date.today()
    if date_headers:
        parsed = _parse_date(date_headers[0], WIDE_DATE_FORMAT)
        if parsed is None:
            logger.warning("Cannot parse first date header %r; anchoring series at today",
                           date_headers[0])
        else:
            anchor = parsed

    locations: List[Location] = []
    for line_number, line in enumerate(lines[1:], start=2):
        if not line:
            continue
        comps = split_csv_line(line)
        if len(comps) != len(headers):
            logger.warning("Line %d has %d fields, header has %d",
                           line_number, len(comps), len(headers))

        row_country = _field(comps, WIDE_COUNTRY_INDEX) or ""
        if country is not None and row_country != country:
            continue
        row_state = _field(comps, WIDE_STATE_INDEX) or ""

        cases: List[DailyCaseCount] = []
        for offset, label in enumerate(date_headers):
            raw = _field(comps, WIDE_FIRST_DATE_INDEX + offset)
            count = _to_int(raw)
            if count is None:
                if raw is not None:
                    logger.warning("Line %d: count %r for %s is not an integer, using 0",
                                   line_number, raw, label)
                count = 0
            cases.append(DailyCaseCount(date=anchor + timedelta(days=offset),
                                        count=count, date_string=label))

        locations.append(Location(state=row_state or None, country=row_country,
                                  cases=tuple(cases)))

    return Dataset(type=dataset_type, source=DatasetSource.JOHNS_HOPKINS,
                   locations=tuple(locations))


def parse_long_format(csv_text: str, dataset_type: DatasetType) -> Dataset:
    """Parse the New York Times `us-states.csv` file.

    Raises:
        ParseError: a row is missing its state or the selected count column,
            or the count is not an integer.
    """
    count_index = (LONG_CONFIRMED_INDEX if dataset_type is DatasetType.CONFIRMED_CASE
                   else LONG_DEATHS_INDEX)
    count_name = "cases" if dataset_type is DatasetType.CONFIRMED_CASE else "deaths"

    # The same date string repeats for every state, so parse each one once.
    parsed_dates: Dict[str, Optional[date]] = {}
    by_state: Dict[str, List[DailyCaseCount]] = {}

    for line_number, line in enumerate(csv_text.splitlines()[1:], start=2):
        if not line:
            continue
        fields = split_csv_line(line)
        date_str = _field(fields, LONG_DATE_INDEX) or ""

        if date_str not in parsed_dates:
            parsed_dates[date_str] = _parse_date(date_str, LONG_DATE_FORMAT)
            if parsed_dates[date_str] is None:
                logger.warning("Line %d: cannot parse date %r, using today",
                               line_number, date_str)
        day = parsed_dates[date_str] or date.today()

        state = _field(fields, LONG_STATE_INDEX)
        if state is None:
            raise ParseError(line_number, "state", None)
        raw = _field(fields, count_index)
        count = _to_int(raw)
        if count is None:
            raise ParseError(line_number, count_name, raw)

        by_state.setdefault(state, []).append(
            DailyCaseCount(date=day, count=count, date_string=date_str))

    locations = tuple(Location(state=None, country=state, cases=tuple(cases))
                      for state, cases in by_state.items())
    return Dataset(type=dataset_type, source=DatasetSource.NEW_YORK_TIMES,
                   locations=locations)


def load_csv(path: str, dataset_type: DatasetType, source: DatasetSource,
             country: Optional[str] = None) -> Dataset:
    """Read a downloaded CSV file from disk and parse it."""
    with open(path, encoding=DEFAULT_ENCODING) as f:
        text = f.read()
    if source is DatasetSource.NEW_YORK_TIMES:
        return parse_long_format(text, dataset_type)
    return parse_wide_format(text, dataset_type, country=country)
