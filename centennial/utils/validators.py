"""
Argument Validation Utilities

Parsing and validation for the week/day selections accepted on the
command line. Validators return ``(is_valid, value, error_message)`` like
the rest of the utils layer; ``require_*`` wrappers raise instead.
"""

import re
from datetime import date
from typing import Optional, Tuple

from ..core.dates import validate_month_day
from ..core.errors import InvalidArguments

DAY_PATTERN = re.compile(r'^(\d{2})-(\d{2})$')


def validate_week(value) -> Tuple[bool, Optional[int], str]:
    """
    Validate a week number.

    Returns:
        Tuple of (is_valid, week_number, error_message)
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return False, None, "Please provide a week number (1-52) with --week argument"
    try:
        week = int(str(value).strip())
    except ValueError:
        return False, None, "Please provide a week number (1-52) with --week argument"
    if week < 1 or week > 52:
        return False, None, "Week number must be between 1 and 52"
    return True, week, ""


def validate_day(value: str, year: Optional[int] = None) -> Tuple[bool, Optional[Tuple[int, int]], str]:
    """
    Validate an ``MM-DD`` day selection against the given (or current) year.

    Returns:
        Tuple of (is_valid, (month, day), error_message)
    """
    if not value or not isinstance(value, str):
        return False, None, "Please provide a date in MM-DD format with --day argument"
    match = DAY_PATTERN.match(value.strip())
    if not match:
        return False, None, "Day must be in MM-DD format (e.g., 12-25)"
    try:
        month, day = validate_month_day(int(match.group(1)), int(match.group(2)),
                                        year or date.today().year)
    except InvalidArguments as e:
        return False, None, str(e)
    return True, (month, day), ""


def require_week(value) -> int:
    ok, week, err = validate_week(value)
    if not ok:
        raise InvalidArguments(err)
    return week


def require_day(value: str, year: Optional[int] = None) -> Tuple[int, int]:
    ok, day, err = validate_day(value, year)
    if not ok:
        raise InvalidArguments(err)
    return day
