"""
covidkit command line explorer
==============================

An interactive terminal program you run like:

    python -m covidkit.cli --confirmed confirmed.csv --deaths deaths.csv
    python -m covidkit.cli --fetch

It loads the Johns Hopkins files (and optionally the New York Times state
file) once, then answers commands in a REPL. Nothing is written back to the
input files.
"""

from __future__ import annotations
import argparse, logging, math, shlex
from typing import List, Optional

from .engine import CovidEngine, normalized_daily_change, to_frame
from .loader import ParseError, load_csv
from .models import DatasetSource, DatasetType, Location
from .network import fetch_johns_hopkins, fetch_new_york_times
from .settings import LOG_LEVEL

logger = logging.getLogger(__name__)

HELP = """
Commands:
  help
  stats
  countries [prefix]
  show "<Country>" [n]            last n days of cumulative counts
  change "<Country>" [n]          daily change
  rolling "<Country>" [n]         normalized 7-day rolling change
  normalized "<Country>" [n]      normalized daily change
  mortality [n]
  top [n]                         countries with most cases
  states [n]                      US states with most cases (NY Times)
  export csv|json "<Country>" "<path>"
  clear-cache
  quit
"""


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point: load datasets, then start the REPL."""
    ap = argparse.ArgumentParser(prog="covidkit")
    ap.add_argument("--confirmed", help="Johns Hopkins confirmed-cases CSV")
    ap.add_argument("--deaths", help="Johns Hopkins deaths CSV")
    ap.add_argument("--nytimes", help="New York Times us-states.csv")
    ap.add_argument("--fetch", action="store_true", help="Download the upstream files instead")
    ap.add_argument("--log-level", default=LOG_LEVEL)
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    print("Loading datasets...")
    engine = load_engine(args)
    if engine.confirmed is None:
        print("No confirmed-case data available.")
        return
    print(f"Loaded {len(engine.confirmed.locations)} locations. Type 'help' for commands.")

    while True:
        try:
            line = input("covid> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            break
        try:
            handle(engine, line)
        except Exception as e:
            print(f"Error: {e}")


def load_engine(args: argparse.Namespace) -> CovidEngine:
    if args.fetch:
        try:
            states = fetch_new_york_times(DatasetType.CONFIRMED_CASE)
        except ParseError:
            logger.exception("New York Times data is malformed; continuing without states")
            states = None
        return CovidEngine(
            confirmed=fetch_johns_hopkins(DatasetType.CONFIRMED_CASE),
            deaths=fetch_johns_hopkins(DatasetType.DEATH),
            states=states,
        )
    engine = CovidEngine()
    if args.confirmed:
        engine.confirmed = load_csv(args.confirmed, DatasetType.CONFIRMED_CASE, DatasetSource.JOHNS_HOPKINS)
    if args.deaths:
        engine.deaths = load_csv(args.deaths, DatasetType.DEATH, DatasetSource.JOHNS_HOPKINS)
    if args.nytimes:
        engine.states = load_csv(args.nytimes, DatasetType.CONFIRMED_CASE, DatasetSource.NEW_YORK_TIMES)
    return engine


def handle(engine: CovidEngine, line: str) -> None:
    """Handle one REPL command line."""
    parts = shlex.split(line)
    cmd = parts[0].lower()

    if cmd == "help":
        print(HELP); return

    if cmd == "stats":
        for label, ds in (("confirmed", engine.confirmed), ("deaths", engine.deaths), ("states", engine.states)):
            if ds is not None:
                print(f"{label}: {len(ds.locations)} locations | total={ds.total_cases}")
        print(f"Cached groupings: {len(engine.cache)}")
        return

    if cmd == "countries":
        names = engine.countries()
        if len(parts) >= 2:
            p = parts[1].lower()
            names = [n for n in names if n.lower().startswith(p)]
        for n in names[:50]:
            print(n)
        if len(names) > 50:
            print(f"... ({len(names)} total, showing 50)")
        return

    if cmd in ("show", "change", "rolling", "normalized"):
        name = parts[1]
        n = int(parts[2]) if len(parts) >= 3 else 10
        if cmd == "show":
            for c in engine.country(name).cases[-n:]:
                print(f"{c.date_string:>10} | {c.count}")
        elif cmd == "change":
            for ch in engine.daily_change(name)[-n:]:
                print(f"{ch.count.date_string:>10} | {ch.count_change:+d} ({ch.percentage_change:+.1%})")
        else:
            vals = engine.rolling(name) if cmd == "rolling" else normalized_daily_change(engine.country(name))
            if not vals:
                print("Series is flat; nothing to normalize.")
            for v in vals[-n:]:
                print(f"{v.count.short_label} | {v.count.count:>8} | {_fmt_norm(v.normalized)}")
        return

    if cmd == "mortality":
        n = int(parts[1]) if len(parts) >= 2 else 10
        for m in engine.mortality()[:n]:
            print(f"{m.location.country} | cases={m.location.total_cases} rate={m.rate:.2%}")
        return

    if cmd == "top":
        _print_locations(engine.top(int(parts[1]) if len(parts) >= 2 else 10)); return

    if cmd == "states":
        _print_locations(engine.top_states(int(parts[1]) if len(parts) >= 2 else 10)); return

    if cmd == "export":
        # export <csv|json> "<Country>" "<path>"
        if len(parts) < 4:
            print('Usage: export csv "<Country>" "out.csv"  OR  export json "<Country>" "out.json"')
            return
        fmt, name, out_path = parts[1].lower(), parts[2], parts[3]
        df = to_frame(engine.daily_change(name))
        if fmt == "csv":
            df.to_csv(out_path, index=False)
        elif fmt == "json":
            df.to_json(out_path, orient="records", date_format="iso", indent=2)
        else:
            print("Unknown export format. Use: csv or json"); return
        print(f"Exported {len(df)} rows to {out_path}")
        return

    if cmd == "clear-cache":
        engine.clear_cache()
        print("Cache cleared.")
        return

    print("Unknown command. Type 'help'.")


def _fmt_norm(x: float) -> str:
    return "n/a" if math.isnan(x) else f"{x:.3f}"

def _print_locations(locs: List[Location]) -> None:
    for loc in locs:
        print(f"{loc.country} | cases={loc.total_cases}")


if __name__ == "__main__":
    main()
