"""Services: time helpers, administrative operations and reports.

Only the time helpers are re-exported here; ``admin`` and ``reports`` build on
the engine and are imported by their full module path.
"""

from .timeplan import (
    dates_in_month,
    end_of_month,
    format_time,
    month_bounds,
    next_month,
    parish_weekday,
    parse_time_string,
    to_local_naive,
    utc_now,
)

__all__ = [
    "dates_in_month",
    "end_of_month",
    "format_time",
    "month_bounds",
    "next_month",
    "parish_weekday",
    "parse_time_string",
    "to_local_naive",
    "utc_now",
]
