"""Date manipulation utilities"""

from datetime import date, timedelta


def week_start_for(day: date) -> date:
    """Monday on or before ``day`` (payroll weeks start on Monday)"""
    return day - timedelta(days=day.weekday())


def add_weeks(from_date: date, weeks: int) -> date:
    """Shift a date by a whole number of weeks"""
    return from_date + timedelta(weeks=weeks)
