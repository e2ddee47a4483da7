# Query parameter parsing
#
# Bad input never produces a 4xx: anything unusable falls back to the
# endpoint default.

import re
from typing import List, Optional

DEFAULT_MONTHS = 6
DEFAULT_DAYS = 30
DEFAULT_COHORT_MONTHS = 3

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_window(raw: Optional[str], default: int) -> int:
    """
    Parse a month/day count, falling back to ``default``.

    Leading digits are honoured ("12abc" -> 12, "3.7" -> 3). Missing,
    non-numeric and zero values give the default; negative values are
    returned as-is.
    """
    if raw is None:
        return default

    match = _LEADING_INT.match(raw)
    if not match:
        return default

    value = int(match.group(1))
    return value or default


def parse_event_names(raw: Optional[str]) -> List[str]:
    """Split a comma separated list of event names, dropping blanks"""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]
