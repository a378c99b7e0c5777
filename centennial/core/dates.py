"""
Subject Date Resolution

Turns a requested target (today, a week number, or a month-day) into the
historical dates to acquire, each exactly one hundred years before its
calendar date, and builds the widened date-range token the viewer's search
query expects.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from .config import WEEKLY, DAILY
from .errors import InvalidArguments
from .models import SubjectDate

YEARS_BACK = 100
DAYS_PER_WEEK = 7

logger = logging.getLogger(__name__)


def subject_date(d: date) -> SubjectDate:
    """
    Shift a calendar date back one hundred years.

    Raises:
        InvalidArguments: if the shifted date does not exist (29 February
            of a year divisible by 400 has no counterpart a century earlier)
    """
    year = d.year - YEARS_BACK
    try:
        date(year, d.month, d.day)
    except ValueError as e:
        raise InvalidArguments(f"{d.isoformat()} has no counterpart in {year}: {e}") from e
    return SubjectDate(year, d.month, d.day)


def _token_part(d: date) -> str:
    return f"{d.month:02d}{d.day:02d}{d.year:04d}"


def date_range_token(subject: SubjectDate) -> str:
    """
    Build the ``MMDDYYYY-MMDDYYYY`` window covering the day before and the
    day after the subject date. Month and year boundaries roll over.
    """
    center = subject.as_date()
    return f"{_token_part(center - timedelta(days=1))}-{_token_part(center + timedelta(days=1))}"


def first_sunday(year: int) -> date:
    """First Sunday on or after 1 January."""
    jan1 = date(year, 1, 1)
    # weekday(): Monday=0 .. Sunday=6
    return jan1 + timedelta(days=(6 - jan1.weekday()) % 7)


def week_start(week: int, year: int) -> date:
    """Sunday that opens ``week`` of ``year``, counting from the first Sunday."""
    return first_sunday(year) + timedelta(days=(week - 1) * DAYS_PER_WEEK)


def current_week_number(today: date) -> int:
    """
    Week number of ``today`` relative to the first Sunday of its year.

    Days before the first Sunday give 0 (their week starts in December), and
    the last days of a year can give 53.
    """
    return (today - first_sunday(today.year)).days // DAYS_PER_WEEK + 1


def sunday_on_or_before(d: date) -> date:
    return d - timedelta(days=(d.weekday() + 1) % 7)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - timedelta(days=1)).day


def validate_month_day(month: int, day: int, year: int) -> Tuple[int, int]:
    """
    Check that month/day is a real date in ``year``.

    Raises:
        InvalidArguments: on an out-of-range month or day
    """
    if month < 1 or month > 12:
        raise InvalidArguments("Month must be between 01 and 12")
    last_day = days_in_month(year, month)
    if day < 1 or day > last_day:
        raise InvalidArguments(f"Day must be between 01 and {last_day:02d} for month {month:02d}")
    return month, day


def _week_subjects(sunday: date) -> List[SubjectDate]:
    subjects = []
    for offset in range(DAYS_PER_WEEK):
        d = sunday + timedelta(days=offset)
        try:
            subjects.append(subject_date(d))
        except InvalidArguments as e:
            logger.warning(f"Skipping {d.isoformat()}: {e}")
    return subjects


def resolve_subject_dates(week: Optional[int] = None,
                          day: Optional[Tuple[int, int]] = None,
                          today: Optional[date] = None,
                          mode: str = WEEKLY,
                          whole_week: bool = False) -> List[SubjectDate]:
    """
    Resolve the subject dates a run should acquire, earliest first.

    Args:
        week: Explicit week number (1-52)
        day: Explicit (month, day) in the current year
        today: Reference date (defaults to the system date)
        mode: ``weekly`` runs default to the current week, ``daily`` runs to today
        whole_week: In daily mode, expand today to its Sunday-Saturday week

    Raises:
        InvalidArguments: if both week and day are given, or either is out of range
    """
    if week is not None and day is not None:
        raise InvalidArguments("Cannot use both --week and --day arguments together")

    today = today or date.today()

    if week is not None:
        if week < 1 or week > 52:
            raise InvalidArguments("Week number must be between 1 and 52")
        return _week_subjects(week_start(week, today.year))

    if day is not None:
        month, dom = validate_month_day(day[0], day[1], today.year)
        return [subject_date(date(today.year, month, dom))]

    if mode == DAILY:
        if whole_week:
            return _week_subjects(sunday_on_or_before(today))
        return [subject_date(today)]

    if mode != WEEKLY:
        raise InvalidArguments(f"Unknown run mode: {mode}")
    return _week_subjects(week_start(current_week_number(today), today.year))
