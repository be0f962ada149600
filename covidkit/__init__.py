"""
covidkit package
================

Parsing and analytics for the Johns Hopkins and New York Times COVID-19
case-count CSV files.

- CSV parsing lives in `covidkit/loader.py` (line splitting in `tokenizer.py`).
- The immutable series model is in `covidkit/models.py`.
- Country grouping, daily change, rolling averages and mortality rates are
  in `covidkit/engine.py`.
- Downloading the upstream files is in `covidkit/network.py`.
- The interactive explorer is `covidkit/cli.py`.
"""

__version__ = '0.3.0'
