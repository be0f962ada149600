"""
Settings
========

Constants used across covidkit. Values that differ between deployments
(upstream URLs, timeouts, log level) can be overridden with environment
variables; the rest describe the two fixed upstream schemas.
"""

from os import getenv

# Upstream locations. `{endpoint}` is "confirmed" or "deaths".
JOHNS_HOPKINS_URL_TEMPLATE = getenv(
    "COVIDKIT_JHU_URL",
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/csse_covid_19_time_series/"
    "time_series_covid19_{endpoint}_global.csv",
)
NEW_YORK_TIMES_URL = getenv(
    "COVIDKIT_NYT_URL",
    "https://raw.githubusercontent.com/nytimes/covid-19-data/master/us-states.csv",
)

FETCH_TIMEOUT = float(getenv("COVIDKIT_FETCH_TIMEOUT", "30"))
DEFAULT_ENCODING = getenv("COVIDKIT_ENCODING", "utf-8")
LOG_LEVEL = getenv("COVIDKIT_LOG_LEVEL", "WARNING").upper()

# Wide format (one row per location, one column per date)
WIDE_DATE_FORMAT = "%m/%d/%y"
WIDE_STATE_INDEX = 0
WIDE_COUNTRY_INDEX = 1
WIDE_FIRST_DATE_INDEX = 4

# Long format (one row per location per date)
LONG_DATE_FORMAT = "%Y-%m-%d"
LONG_DATE_INDEX = 0
LONG_STATE_INDEX = 1
LONG_CONFIRMED_INDEX = 3
LONG_DEATHS_INDEX = 4

SHORT_DATE_FORMAT = "%m/%d"

ROLLING_WINDOW = 7
