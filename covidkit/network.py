"""
Fetching the upstream files
===========================

The parsers never touch the network. This module downloads the raw bytes
and hands the decoded text to `covidkit.loader`.

A fetcher is any callable `url -> FetchResult` that raises `FetchError` when
it cannot deliver. `requests_fetcher` is the default; tests and other hosts
pass their own. The `fetch_*` helpers turn a failed download into `None`
("no data") after logging it. They never retry.
"""

from __future__ import annotations
from typing import Callable, NamedTuple, Optional
import logging

import requests

from .loader import parse_long_format, parse_wide_format
from .models import Dataset, DatasetType
from .settings import (
    DEFAULT_ENCODING, FETCH_TIMEOUT,
    JOHNS_HOPKINS_URL_TEMPLATE, NEW_YORK_TIMES_URL,
)

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """The upstream resource could not be downloaded."""


class FetchResult(NamedTuple):
    content: bytes
    encoding: str = DEFAULT_ENCODING


Fetcher = Callable[[str], FetchResult]


def johns_hopkins_url(dataset_type: DatasetType) -> str:
    return JOHNS_HOPKINS_URL_TEMPLATE.format(endpoint=dataset_type.endpoint)


def new_york_times_url(dataset_type: DatasetType) -> str:
    # Cases and deaths share one file; the parser picks the column.
    return NEW_YORK_TIMES_URL


def requests_fetcher(url: str) -> FetchResult:
    """Download `url` with requests."""
    headers = {"User-Agent": "covidkit"}
    try:
        resp = requests.get(url, headers=headers, timeout=FETCH_TIMEOUT)
    except requests.RequestException as e:
        raise FetchError(f"Failed to fetch URL: {url}\n{e}") from e

    if resp.status_code != 200:
        raise FetchError(f"HTTP {resp.status_code} fetching {url}")
    return FetchResult(content=resp.content or b"", encoding=resp.encoding or DEFAULT_ENCODING)


def _fetch_text(url: str, fetcher: Fetcher) -> Optional[str]:
    try:
        result = fetcher(url)
    except FetchError:
        logger.exception("Download failed: %s", url)
        return None
    try:
        return result.content.decode(result.encoding)
    except (UnicodeDecodeError, LookupError):
        logger.warning("Cannot decode %s as %s", url, result.encoding)
        return None


def fetch_johns_hopkins(dataset_type: DatasetType, country: Optional[str] = None,
                        fetcher: Fetcher = requests_fetcher) -> Optional[Dataset]:
    """Download and parse a Johns Hopkins global time series, or None."""
    url = johns_hopkins_url(dataset_type)
    text = _fetch_text(url, fetcher)
    if text is None:
        return None
    logger.info("Parsing %s (%d bytes)", url, len(text))
    return parse_wide_format(text, dataset_type, country=country)


def fetch_new_york_times(case_type: DatasetType,
                         fetcher: Fetcher = requests_fetcher) -> Optional[Dataset]:
    """Download and parse the New York Times state series, or None.

    A malformed file still raises `ParseError`.
    """
    url = new_york_times_url(case_type)
    text = _fetch_text(url, fetcher)
    if text is None:
        return None
    logger.info("Parsing %s (%d bytes)", url, len(text))
    return parse_long_format(text, case_type)
