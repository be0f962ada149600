"""
Aggregation engine
==================

Everything callers actually look at is derived here from a parsed `Dataset`:

1) Group locations into one series per country (memoized per Dataset)
2) Daily change (count and percentage) from cumulative counts
3) Rolling 7-day average of daily change, min-max normalized
4) Min-max normalized daily change and raw counts
5) Mortality rate from a confirmed and a death dataset

Country grouping is the expensive step, so its result is kept in a
`CountryCache`. The cache is an explicit object: the module-level
`DEFAULT_CACHE` is shared by the whole process, and every function that
groups accepts `cache=` so callers can scope one to a request or to a
`CovidEngine` instead. Lookups and writes happen under a lock, which makes a
shared cache safe to use from several threads. Entries never expire; call
`clear()` (or `clear_aggregation_cache()`) to drop them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging
import threading

import pandas as pd

from .models import (
    DailyCaseCount, DailyChange, Dataset, DatasetSource, Location,
    MortalityRate, NormalizedValue,
)
from .settings import ROLLING_WINDOW

logger = logging.getLogger(__name__)

Grouped = Tuple[Location, ...]


@dataclass
class CountryCache:
    """Memoized `group_by_country` results keyed by Dataset (structural equality)."""
    _entries: Dict[Dataset, Grouped] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def get_or_compute(self, dataset: Dataset, factory: Callable[[Dataset], Grouped]) -> Grouped:
        # Check-compute-store is one critical section so concurrent callers
        # never compute the same entry twice.
        with self._lock:
            hit = self._entries.get(dataset)
            if hit is not None:
                logger.debug("Country cache hit (%s, %s)", dataset.source.value, dataset.type.value)
                return hit
            logger.debug("Country cache miss (%s, %s)", dataset.source.value, dataset.type.value)
            result = factory(dataset)
            self._entries[dataset] = result
            return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, dataset: object) -> bool:
        return dataset in self._entries


DEFAULT_CACHE = CountryCache()


# ---------------- Country grouping ----------------

def _group(dataset: Dataset) -> Grouped:
    by_country: Dict[str, List[DailyCaseCount]] = {}
    for loc in dataset.locations:
        agg = by_country.get(loc.country)
        if agg is None:
            by_country[loc.country] = list(loc.cases)
            continue
        # Series are summed position by position; they are expected to
        # cover the same dates.
        if len(agg) != len(loc.cases):
            logger.warning("%s: series length %d does not match %d, summing the overlap",
                           loc.country, len(loc.cases), len(agg))
        for i, c in enumerate(loc.cases[:len(agg)]):
            agg[i] = DailyCaseCount(date=c.date, count=agg[i].count + c.count,
                                    date_string=c.date_string)
    return tuple(Location(state=None, country=country, cases=tuple(cases))
                 for country, cases in by_country.items())


def group_by_country(dataset: Dataset, cache: Optional[CountryCache] = None) -> Grouped:
    """One aggregate Location (state=None) per country, in first-seen order."""
    cache = DEFAULT_CACHE if cache is None else cache
    return cache.get_or_compute(dataset, _group)


def clear_aggregation_cache(cache: Optional[CountryCache] = None) -> None:
    (DEFAULT_CACHE if cache is None else cache).clear()


def location_for_country(dataset: Dataset, country: str,
                         cache: Optional[CountryCache] = None) -> Optional[Location]:
    for loc in group_by_country(dataset, cache):
        if loc.country == country:
            return loc
    return None


def states_sorted_by_cases(dataset: Dataset, cache: Optional[CountryCache] = None) -> List[Location]:
    """New York Times states, most cases first. Empty for other sources."""
    if dataset.source is not DatasetSource.NEW_YORK_TIMES:
        return []
    return sorted(group_by_country(dataset, cache), key=lambda l: l.total_cases, reverse=True)


# ---------------- Daily change & normalization ----------------

def daily_change(cases: Sequence[DailyCaseCount]) -> List[DailyChange]:
    """Day-over-day change of a cumulative series.

    The first entry has no predecessor and reports 0/0. Count changes can be
    negative when upstream corrects its totals downwards.
    """
    out: List[DailyChange] = []
    for i, current in enumerate(cases):
        if i == 0:
            out.append(DailyChange(count=current, percentage_change=0.0, count_change=0))
            continue
        previous = cases[i - 1].count
        delta = current.count - previous
        pct = delta / previous if previous > 0 else 0.0
        out.append(DailyChange(count=current, percentage_change=pct, count_change=delta))
    return out


def _min_max(values: pd.Series) -> pd.Series:
    # A flat series gives 0/0, i.e. NaN.
    lo, hi = values.min(), values.max()
    return (values - lo) / (hi - lo)

def _trunc_div(total: int, n: int) -> int:
    q = abs(total) // n
    return q if total >= 0 else -q


def rolling_7day_change(location: Location) -> List[NormalizedValue]:
    """New cases per day averaged over the trailing week, scaled to 0-1.

    The window is `[max(0, i-6), i]`, so it grows from one to seven days at
    the start of the series. Averages are whole counts (truncated toward
    zero). Returns an empty list when every average is the same.
    """
    changes = daily_change(location.cases)
    if not changes:
        return []
    deltas = pd.Series([c.count_change for c in changes], dtype="int64")
    window = deltas.rolling(ROLLING_WINDOW, min_periods=1)
    # Integer mean: sum // days, rounded toward zero for negative sums.
    averaged = [_trunc_div(int(total), int(n)) for total, n in zip(window.sum(), window.count())]

    scaled = pd.Series(averaged, dtype="float64")
    if scaled.max() - scaled.min() <= 0:
        return []
    normalized = _min_max(scaled)
    return [NormalizedValue(count=DailyCaseCount(date=c.date, count=avg, date_string=c.date_string),
                            normalized=float(n))
            for c, avg, n in zip(location.cases, averaged, normalized)]


def normalized_daily_change(location: Location) -> List[NormalizedValue]:
    """Daily count change scaled to 0-1 (NaN throughout for a flat series)."""
    changes = daily_change(location.cases)
    if not changes:
        return []
    normalized = _min_max(pd.Series([c.count_change for c in changes], dtype="float64"))
    return [NormalizedValue(count=DailyCaseCount(date=c.count.date, count=c.count_change,
                                                 date_string=c.count.date_string),
                            normalized=float(n))
            for c, n in zip(changes, normalized)]


def normalized_raw_counts(location: Location) -> List[NormalizedValue]:
    """Cumulative counts scaled to 0-1 (NaN throughout for a flat series)."""
    if not location.cases:
        return []
    normalized = _min_max(pd.Series([c.count for c in location.cases], dtype="float64"))
    return [NormalizedValue(count=c, normalized=float(n))
            for c, n in zip(location.cases, normalized)]


# ---------------- Mortality ----------------

def mortality_rate(confirmed: Dataset, deaths: Dataset,
                   cache: Optional[CountryCache] = None) -> List[MortalityRate]:
    """Latest deaths / latest confirmed per country, most cases first.

    A country is included only when both latest entries carry the same
    literal date label and the confirmed count is positive.
    """
    latest_deaths: Dict[str, DailyCaseCount] = {
        loc.country: loc.cases[-1] for loc in group_by_country(deaths, cache) if loc.cases
    }
    out: List[MortalityRate] = []
    for loc in group_by_country(confirmed, cache):
        died = latest_deaths.get(loc.country)
        if died is None or not loc.cases:
            continue
        latest = loc.cases[-1]
        if died.date_string != latest.date_string or latest.count <= 0:
            continue
        out.append(MortalityRate(location=loc, rate=died.count / latest.count))
    return sorted(out, key=lambda m: m.location.total_cases, reverse=True)


# ---------------- Export ----------------

Exportable = Union[Location, Sequence[DailyCaseCount], Sequence[DailyChange],
                   Sequence[NormalizedValue], Sequence[MortalityRate]]

def _row(v) -> dict:
    if isinstance(v, DailyCaseCount):
        return {"date": pd.Timestamp(v.date), "date_string": v.date_string, "count": v.count}
    if isinstance(v, DailyChange):
        return {**_row(v.count), "percentage_change": v.percentage_change,
                "count_change": v.count_change}
    if isinstance(v, NormalizedValue):
        return {**_row(v.count), "normalized": v.normalized}
    if isinstance(v, MortalityRate):
        return {"country": v.location.country, "state": v.location.state,
                "confirmed": v.location.total_cases, "rate": v.rate}
    raise TypeError(f"Cannot export {type(v).__name__}")

def to_frame(values: Exportable) -> pd.DataFrame:
    """Tabulate a location's cases or any derived sequence."""
    if isinstance(values, Location):
        values = values.cases
    return pd.DataFrame([_row(v) for v in values])


# ---------------- Engine ----------------

@dataclass
class CovidEngine:
    """Holds the loaded datasets plus a cache scoped to this engine.

    `confirmed`/`deaths` are Johns Hopkins datasets, `states` is the New York
    Times dataset. Any of them may be missing.
    """
    confirmed: Optional[Dataset] = None
    deaths: Optional[Dataset] = None
    states: Optional[Dataset] = None
    cache: CountryCache = field(default_factory=CountryCache)

    def _require_confirmed(self) -> Dataset:
        if self.confirmed is None:
            raise ValueError("No confirmed-case dataset loaded")
        return self.confirmed

    def countries(self) -> List[str]:
        return sorted(loc.country for loc in group_by_country(self._require_confirmed(), self.cache))

    def country(self, name: str) -> Location:
        loc = location_for_country(self._require_confirmed(), name, self.cache)
        if loc is None:
            raise KeyError(f"Unknown country: {name}")
        return loc

    def daily_change(self, name: str) -> List[DailyChange]:
        return daily_change(self.country(name).cases)

    def rolling(self, name: str) -> List[NormalizedValue]:
        return rolling_7day_change(self.country(name))

    def mortality(self) -> List[MortalityRate]:
        if self.deaths is None:
            raise ValueError("No death dataset loaded")
        return mortality_rate(self._require_confirmed(), self.deaths, self.cache)

    def top(self, k: int) -> List[Location]:
        grouped = group_by_country(self._require_confirmed(), self.cache)
        return sorted(grouped, key=lambda l: l.total_cases, reverse=True)[:k]

    def top_states(self, k: int) -> List[Location]:
        if self.states is None:
            raise ValueError("No New York Times dataset loaded")
        return states_sorted_by_cases(self.states, self.cache)[:k]

    def clear_cache(self) -> None:
        self.cache.clear()
