"""
Data model (Dataset / Location / DailyCaseCount)
================================================

Every parsed CSV becomes a `Dataset`: a tuple of `Location`s, each holding a
chronological tuple of `DailyCaseCount`s. All records are frozen dataclasses
so that:
- nothing downstream can edit a parsed series in place, and
- a whole `Dataset` is hashable and compares structurally, which is what
  lets the engine use it as a cache key.

Counts are cumulative (running totals), not daily deltas. Daily deltas,
normalized values and mortality rates are derived on demand by
`covidkit.engine` and never stored.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from .settings import SHORT_DATE_FORMAT


class DatasetType(str, Enum):
    """Which kind of cumulative count a dataset carries."""
    CONFIRMED_CASE = "confirmedCase"
    DEATH = "death"

    @property
    def endpoint(self) -> str:
        """File-name fragment used by the Johns Hopkins repository."""
        return "confirmed" if self is DatasetType.CONFIRMED_CASE else "deaths"


class DatasetSource(str, Enum):
    JOHNS_HOPKINS = "johnsHopkins"
    NEW_YORK_TIMES = "newYorkTimes"


@dataclass(frozen=True)
class DailyCaseCount:
    """Cumulative count for one date.

    `date_string` is the literal token from the CSV. Two series are only
    considered aligned when their labels match exactly.
    """
    date: date
    count: int
    date_string: str

    @property
    def short_label(self) -> str:
        """`MM/DD` label for compact display."""
        return self.date.strftime(SHORT_DATE_FORMAT)


@dataclass(frozen=True)
class Location:
    """A place and its case series.

    `state` is None for whole countries (and for aggregated rows). For the
    New York Times data the US state name is stored in `country`.
    """
    state: Optional[str]
    country: str
    cases: Tuple[DailyCaseCount, ...] = ()

    @property
    def key(self) -> Tuple[Optional[str], str]:
        return (self.state, self.country)

    @property
    def total_cases(self) -> int:
        """Latest cumulative count (0 for an empty series)."""
        return self.cases[-1].count if self.cases else 0

    def case_for_date(self, date_string: str) -> Optional[DailyCaseCount]:
        """Return the entry whose literal date label is `date_string`."""
        for c in self.cases:
            if c.date_string == date_string:
                return c
        return None


@dataclass(frozen=True)
class Dataset:
    """One parsed upstream file."""
    type: DatasetType
    source: DatasetSource
    locations: Tuple[Location, ...] = ()

    def __hash__(self) -> int:
        # Hashing walks every case; do it once per instance.
        h = self.__dict__.get("_hash")
        if h is None:
            h = hash((self.type, self.source, self.locations))
            object.__setattr__(self, "_hash", h)
        return h

    def __getstate__(self) -> dict:
        # str hashes differ between processes
        state = dict(self.__dict__)
        state.pop("_hash", None)
        return state

    @property
    def total_cases(self) -> int:
        return sum(loc.total_cases for loc in self.locations)

    def location_for_state(self, state: str) -> Optional[Location]:
        for loc in self.locations:
            if loc.state == state:
                return loc
        return None

    def locations_for_country(self, country: str) -> List[Location]:
        """All (un-aggregated) rows for a country, in dataset order."""
        return [loc for loc in self.locations if loc.country == country]


# ---------------- Derived values (never persisted) ----------------

@dataclass(frozen=True)
class DailyChange:
    count: DailyCaseCount
    percentage_change: float
    count_change: int


@dataclass(frozen=True)
class NormalizedValue:
    # normalized is in [0, 1], or NaN when the series is flat
    count: DailyCaseCount
    normalized: float


@dataclass(frozen=True)
class MortalityRate:
    location: Location
    rate: float
