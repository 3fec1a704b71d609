from datetime import datetime, time, timedelta
from typing import Optional


def now_local(tz) -> datetime:
    return datetime.now(tz)


def to_datetime(value, tz) -> Optional[datetime]:
    """Convierte un Timestamp de Firestore, un ISO string o un datetime a datetime con zona."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif not isinstance(value, datetime):
        to_dt = getattr(value, "to_datetime", None) or getattr(value, "ToDatetime", None)
        if to_dt is None:
            return None
        value = to_dt()
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def end_of_day(moment: datetime, tz) -> datetime:
    local = moment.astimezone(tz)
    return tz.localize(datetime.combine(local.date(), time(23, 59, 59, 999000)))


def add_days(moment: datetime, days: int, tz) -> datetime:
    # suma días de calendario sobre la hora local; se conserva la hora de pared aunque cambie el DST
    local = moment.astimezone(tz).replace(tzinfo=None)
    return tz.localize(local + timedelta(days=days))


def hhmm(moment: datetime) -> int:
    return moment.hour * 100 + moment.minute


def minutes_between(start: datetime, end: datetime) -> int:
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    # redondeo half-up
    return int(seconds / 60 + 0.5)
