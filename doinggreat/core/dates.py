"""Date parsing/formatting shared by the API layer and the feature state holders."""
import enum
from datetime import date, datetime, time, timedelta, timezone


def parse_iso8601(value: str | None) -> datetime | None:
    """Parse an API timestamp ("2025-11-27T22:00:00.000Z" or without fraction). Returns aware UTC or None."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_iso8601(value: datetime) -> str:
    """Format for sending to the API: UTC, second precision, Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calendar_day_utc(value: str) -> date | None:
    """Timeline dates are calendar days, so read them in UTC regardless of the local zone."""
    parsed = parse_iso8601(value)
    return parsed.date() if parsed else None


def format_utc_component(value: str, fmt: str) -> str:
    """strftime a component (e.g. "%d", "%b") of an API timestamp in UTC; "" when unparseable."""
    parsed = parse_iso8601(value)
    if parsed is None:
        return ""
    return parsed.strftime(fmt)


def local_day(value: datetime) -> date:
    """Calendar day of a timestamp in the machine's local zone."""
    return ensure_aware(value).astimezone().date()


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def time_ago_text(seconds: int | None) -> str:
    if not seconds or seconds <= 0:
        return "Just now"
    if seconds < 3600:
        return f"{_plural(seconds // 60, 'minute')} ago"
    if seconds < 86400:
        return f"{_plural(seconds // 3600, 'hour')} ago"
    return f"{_plural(seconds // 86400, 'day')} ago"


class TimeOfDay(str, enum.Enum):
    early_morning = "early_morning"  # 5-8
    morning = "morning"  # 8-12
    afternoon = "afternoon"  # 12-17
    evening = "evening"  # 17-20
    night = "night"  # 20-5

    @classmethod
    def from_datetime(cls, value: datetime) -> "TimeOfDay":
        hour = ensure_aware(value).astimezone().hour if value.tzinfo else value.hour
        if 5 <= hour < 8:
            return cls.early_morning
        if 8 <= hour < 12:
            return cls.morning
        if 12 <= hour < 17:
            return cls.afternoon
        if 17 <= hour < 20:
            return cls.evening
        return cls.night

    @property
    def icon_name(self) -> str:
        return _TIME_OF_DAY_ICONS[self]


_TIME_OF_DAY_ICONS = {
    TimeOfDay.early_morning: "sunrise",
    TimeOfDay.morning: "cloud-sun",
    TimeOfDay.afternoon: "sun-medium",
    TimeOfDay.evening: "sunset",
    TimeOfDay.night: "moon",
}


class WeekCalculator:
    """Week 0 is the week containing the epoch (first moment); each week is 7 days from it."""

    def __init__(self, epoch: datetime):
        self.epoch_day = local_day(epoch)

    def week_number(self, value: datetime) -> int:
        days = (local_day(value) - self.epoch_day).days
        # Backdated moments clamp to week 0
        return max(0, days // 7)


def start_of_next_day(value: datetime) -> datetime:
    """Local midnight after `value`, plus one second (daily limit reset time)."""
    local = ensure_aware(value).astimezone()
    midnight = datetime.combine(local.date() + timedelta(days=1), time(0, 0, 1), tzinfo=local.tzinfo)
    return midnight
