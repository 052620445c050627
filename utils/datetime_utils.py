from datetime import datetime, date, timedelta
from typing import List, Optional

import pytz

from config import config

def _zone():
    return pytz.timezone(config.timezone) if config.timezone else None

def now_local() -> datetime:
    zone = _zone()
    return datetime.now(zone) if zone else datetime.now()

def local_iso_date(d: Optional[date] = None) -> str:
    """YYYY-MM-DD в локальной зоне"""
    if d is None:
        d = now_local().date()
    return d.strftime("%Y-%m-%d")

def today_str() -> str:
    return local_iso_date()

def parse_date(date_str: str, fmt: str = "%Y-%m-%d") -> date:
    return datetime.strptime(date_str, fmt).date()

def is_valid_date(date_str: str) -> bool:
    try:
        parse_date(date_str)
        return True
    except (TypeError, ValueError):
        return False

def start_of_week(d: date) -> date:
    """Неделя начинается с понедельника"""
    return d - timedelta(days=d.weekday())

def week_starts_between(earliest: date, today: date) -> List[date]:
    """Начала недель от текущей назад до недели, содержащей earliest (включительно)"""
    weeks = []
    week_start = start_of_week(today)
    earliest_week_start = start_of_week(earliest)
    while week_start >= earliest_week_start:
        weeks.append(week_start)
        week_start -= timedelta(days=7)
    return weeks

def format_week_label(week_start: date, today: date) -> str:
    this_week_start = start_of_week(today)
    if week_start == this_week_start:
        return "This Week"
    if week_start == this_week_start - timedelta(days=7):
        return "Last Week"

    end = week_start + timedelta(days=6)
    return f"{week_start.strftime('%b')} {week_start.day} - {end.strftime('%b')} {end.day}"
