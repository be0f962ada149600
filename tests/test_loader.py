import logging
import os
import tempfile
import unittest
from datetime import date

from covidkit.loader import ParseError, load_csv, parse_long_format, parse_wide_format
from covidkit.models import DatasetSource, DatasetType

WIDE = (
    "Province/State,Country/Region,Lat,Long,1/22/20,1/23/20,1/24/20\n"
    ",Afghanistan,33.0,65.0,0,1,2\n"
    "Hubei,China,30.9,112.2,444,549,761\n"
    "Beijing,China,40.1,116.4,14,22,36\n"
    '"Bonaire, Sint Eustatius and Saba",Netherlands,12.1,-68.2,0,0,3\n'
)

LONG = (
    "date,state,fips,cases,deaths\n"
    "2020-03-01,Washington,53,2,1\n"
    "2020-03-01,New York,36,1,0\n"
    "2020-03-02,Washington,53,18,6\n"
    "2020-03-02,New York,36,1,0\n"
)


class TestWideFormat(unittest.TestCase):
    def test_single_row(self):
        text = "state,country,lat,long,1/22/20,1/23/20\n,X,0,0,5,9"
        ds = parse_wide_format(text, DatasetType.CONFIRMED_CASE)

        assert ds.source is DatasetSource.JOHNS_HOPKINS
        assert ds.type is DatasetType.CONFIRMED_CASE
        assert len(ds.locations) == 1
        loc = ds.locations[0]
        assert loc.state is None
        assert loc.country == "X"
        assert [c.count for c in loc.cases] == [5, 9]
        assert [c.date for c in loc.cases] == [date(2020, 1, 22), date(2020, 1, 23)]
        assert [c.date_string for c in loc.cases] == ["1/22/20", "1/23/20"]

    def test_states_and_quoted_names(self):
        ds = parse_wide_format(WIDE, DatasetType.CONFIRMED_CASE)
        assert [l.key for l in ds.locations] == [
            (None, "Afghanistan"), ("Hubei", "China"), ("Beijing", "China"),
            ("Bonaire, Sint Eustatius and Saba", "Netherlands"),
        ]

    def test_country_filter(self):
        ds = parse_wide_format(WIDE, DatasetType.DEATH, country="China")
        assert ds.type is DatasetType.DEATH
        assert [l.state for l in ds.locations] == ["Hubei", "Beijing"]

    def test_dates_follow_the_first_header(self):
        # later headers are labels only
        text = "s,c,lat,long,2/28/20,whatever,3/15/20\n,X,0,0,1,2,3\n"
        cases = parse_wide_format(text, DatasetType.CONFIRMED_CASE).locations[0].cases
        assert [c.date for c in cases] == [date(2020, 2, 28), date(2020, 2, 29), date(2020, 3, 1)]
        assert cases[1].date_string == "whatever"

    def test_unparsable_anchor_falls_back_to_today(self):
        text = "s,c,lat,long,day1,day2\n,X,0,0,1,2\n"
        with self.assertLogs("covidkit.loader", level=logging.WARNING):
            cases = parse_wide_format(text, DatasetType.CONFIRMED_CASE).locations[0].cases
        assert cases[0].date == date.today()
        assert (cases[1].date - cases[0].date).days == 1

    def test_short_row_is_padded_with_zero(self):
        text = "s,c,lat,long,1/22/20,1/23/20,1/24/20\n,X,0,0,7\n"
        with self.assertLogs("covidkit.loader", level=logging.WARNING) as logs:
            cases = parse_wide_format(text, DatasetType.CONFIRMED_CASE).locations[0].cases
        assert [c.count for c in cases] == [7, 0, 0]
        assert any("fields" in m for m in logs.output)

    def test_bad_integer_defaults_to_zero(self):
        text = "s,c,lat,long,1/22/20,1/23/20\n,X,0,0,abc,4\n"
        with self.assertLogs("covidkit.loader", level=logging.WARNING):
            cases = parse_wide_format(text, DatasetType.CONFIRMED_CASE).locations[0].cases
        assert [c.count for c in cases] == [0, 4]

    def test_blank_lines_and_crlf(self):
        text = "s,c,lat,long,1/22/20\r\n,X,0,0,1\r\n\r\n,Y,0,0,2\r\n"
        ds = parse_wide_format(text, DatasetType.CONFIRMED_CASE)
        assert [l.country for l in ds.locations] == ["X", "Y"]

    def test_empty_text(self):
        ds = parse_wide_format("", DatasetType.CONFIRMED_CASE)
        assert ds.locations == ()

    def test_idempotent(self):
        a = parse_wide_format(WIDE, DatasetType.CONFIRMED_CASE)
        b = parse_wide_format(WIDE, DatasetType.CONFIRMED_CASE)
        assert a == b
        assert hash(a) == hash(b)

    def test_row_with_one_token(self):
        text = "s,c,lat,long,1/22/20,1/23/20\nLonely\n"
        with self.assertLogs("covidkit.loader", level=logging.WARNING):
            ds = parse_wide_format(text, DatasetType.CONFIRMED_CASE)
        loc = ds.locations[0]
        assert loc.state == "Lonely"
        assert loc.country == ""
        assert [c.count for c in loc.cases] == [0, 0]

    def test_header_without_dates(self):
        ds = parse_wide_format("s,c,lat,long\n,X,0,0\n", DatasetType.CONFIRMED_CASE)
        assert [l.country for l in ds.locations] == ["X"]
        assert ds.locations[0].cases == ()


class TestLongFormat(unittest.TestCase):
    def test_rows_accumulate_per_state(self):
        ds = parse_long_format(LONG, DatasetType.CONFIRMED_CASE)
        assert ds.source is DatasetSource.NEW_YORK_TIMES
        assert [l.country for l in ds.locations] == ["Washington", "New York"]
        wa = ds.locations[0]
        assert wa.state is None
        assert [c.count for c in wa.cases] == [2, 18]
        assert [c.date for c in wa.cases] == [date(2020, 3, 1), date(2020, 3, 2)]
        assert [c.date_string for c in wa.cases] == ["2020-03-01", "2020-03-02"]

    def test_death_column(self):
        ds = parse_long_format(LONG, DatasetType.DEATH)
        assert ds.type is DatasetType.DEATH
        assert [c.count for c in ds.locations[0].cases] == [1, 6]

    def test_input_order_is_kept(self):
        text = "date,state,fips,cases,deaths\n2020-03-02,A,1,5,0\n2020-03-01,A,1,3,0\n"
        cases = parse_long_format(text, DatasetType.CONFIRMED_CASE).locations[0].cases
        assert [c.count for c in cases] == [5, 3]

    def test_repeated_dates_share_one_parsed_value(self):
        ds = parse_long_format(LONG, DatasetType.CONFIRMED_CASE)
        assert ds.locations[0].cases[0].date is ds.locations[1].cases[0].date

    def test_bad_integer_is_fatal(self):
        text = "date,state,fips,cases,deaths\n2020-03-01,A,1,3,0\n2020-03-02,A,1,n/a,0\n"
        with self.assertRaises(ParseError) as ctx:
            parse_long_format(text, DatasetType.CONFIRMED_CASE)
        assert ctx.exception.line_number == 3
        assert ctx.exception.value == "n/a"
        # the deaths column is still fine
        assert parse_long_format(text, DatasetType.DEATH).locations[0].cases[1].count == 0

    def test_missing_column_is_fatal(self):
        text = "date,state,fips,cases,deaths\n2020-03-01,A,1,3\n"
        with self.assertRaises(ParseError):
            parse_long_format(text, DatasetType.DEATH)

    def test_trailing_newline_is_ignored(self):
        ds = parse_long_format(LONG + "\n", DatasetType.CONFIRMED_CASE)
        assert len(ds.locations) == 2

    def test_idempotent(self):
        assert parse_long_format(LONG, DatasetType.DEATH) == parse_long_format(LONG, DatasetType.DEATH)


class TestLoadCsv(unittest.TestCase):
    def test_dispatches_on_source(self):
        with tempfile.TemporaryDirectory() as d:
            wide_path = os.path.join(d, "wide.csv")
            long_path = os.path.join(d, "long.csv")
            with open(wide_path, "w", encoding="utf-8") as f:
                f.write(WIDE)
            with open(long_path, "w", encoding="utf-8") as f:
                f.write(LONG)

            wide = load_csv(wide_path, DatasetType.CONFIRMED_CASE, DatasetSource.JOHNS_HOPKINS, country="China")
            long = load_csv(long_path, DatasetType.DEATH, DatasetSource.NEW_YORK_TIMES)

        assert wide == parse_wide_format(WIDE, DatasetType.CONFIRMED_CASE, country="China")
        assert long == parse_long_format(LONG, DatasetType.DEATH)


if __name__ == '__main__':
    unittest.main()
