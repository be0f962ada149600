"""
CSV line tokenizer
==================

Both upstream files are simple enough that a single pass over each line is
all we need. A double quote toggles "verbatim" mode, in which commas are
kept as literal characters; the quotes themselves are dropped. Escaped
quotes (`""`) are not recognised.

One quirk is kept on purpose: an empty component after the final comma is
dropped, so `"a,b,"` gives `["a", "b"]` while `"a,,b"` keeps its empty
middle field.
"""

from __future__ import annotations
from typing import List


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line into its fields."""
    if not line:
        return []
    if '"' not in line:
        # fast path: plain comma split
        comps = line.split(",")
        if not comps[-1]:
            comps.pop()
        return comps

    comps: List[str] = []
    current: List[str] = []
    quoted = False
    for ch in line:
        if ch == '"':
            quoted = not quoted
        elif ch == "," and not quoted:
            comps.append("".join(current))
            current = []
        else:
            current.append(ch)
    if current:
        comps.append("".join(current))
    return comps
