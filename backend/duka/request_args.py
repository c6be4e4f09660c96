from __future__ import annotations

from datetime import datetime

from flask import request

from duka.time_utils import parse_date_range_end, parse_iso_datetime
from duka.validation import ValidationError


def page_args() -> tuple[int | None, int | None]:
    return request.args.get("page", type=int), request.args.get("per_page", type=int)


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def date_range_args(
    start_name: str = "date_from",
    end_name: str = "date_to",
) -> tuple[datetime | None, datetime | None]:
    """
    Read a [from, to] range from the query string.

    A bare YYYY-MM-DD upper bound includes that whole day.
    """
    start_raw = request.args.get(start_name) or request.args.get("start_date")
    end_raw = request.args.get(end_name) or request.args.get("end_date")
    try:
        start = parse_iso_datetime(start_raw)
        end = parse_date_range_end(end_raw)
    except ValueError:
        raise ValidationError(f"{start_name}/{end_name} must be ISO-8601 dates")
    if start and end and start > end:
        raise ValidationError(f"{start_name} must be before {end_name}")
    return start, end
