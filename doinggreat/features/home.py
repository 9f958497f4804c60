"""Home screen state: stats with a whisper line, the last-moment timer phrase, and the log form."""
import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from doinggreat.core.dates import time_ago_text, utcnow
from doinggreat.core.errors import APIError
from doinggreat.schemas.user import UserStatsDTO
from doinggreat.services.moment_service import PLACEHOLDER_TEXT
from doinggreat.services.user_service import UserService

logger = logging.getLogger(__name__)

WHISPERS = [
    "Every number here is a story you told yourself.",
    "Tiny things. Big difference.",
    "The fact you're tracking this means you care.",
    "Little moments. Real effort. Honest wins.",
    "No one else needed to see it, just you.",
]

FIRST_LOG_PREFILL = "I installed this app. A tiny step, but it counts."


class HomeState:
    def __init__(self, user_service: UserService):
        self.user_service = user_service
        self.user_stats: UserStatsDTO | None = None
        self.is_loading_stats = False
        self.stats_error: str | None = None
        self.stats_whisper = ""

    def load_stats(self) -> None:
        self.is_loading_stats = True
        try:
            self.user_stats = self.user_service.fetch_user_stats()
            self.stats_whisper = random.choice(WHISPERS)
        except APIError as e:
            self.stats_error = e.message
            logger.error("Failed to load user stats: %s", e.message)
        finally:
            self.is_loading_stats = False

    def refresh_stats(self) -> None:
        self.stats_error = None
        self.load_stats()


class TimerPhrases(BaseModel):
    """Phrase buckets keyed by minutes since the last logged moment."""
    model_config = ConfigDict(populate_by_name=True)

    zero_to_ten_min: list[str] = Field(alias="0_to_10_min")
    ten_to_thirty_min: list[str] = Field(alias="10_to_30_min")
    thirty_min_to_two_hour: list[str] = Field(alias="30_min_to_2_hour")
    two_hour_and_more: list[str] = Field(alias="2_hour_and_more")

    @classmethod
    def load(cls, path: str) -> "TimerPhrases":
        with open(path, encoding="utf-8") as f:
            return cls.model_validate(json.load(f))

    def bucket_for(self, minutes: int) -> list[str]:
        if minutes < 10:
            return self.zero_to_ten_min
        if minutes < 30:
            return self.ten_to_thirty_min
        if minutes < 120:
            return self.thirty_min_to_two_hour
        return self.two_hour_and_more

    def random_phrase(self, minutes_since_last: int) -> str:
        bucket = self.bucket_for(max(0, minutes_since_last))
        return random.choice(bucket) if bucket else ""


DEFAULT_TIMER_PHRASES = TimerPhrases(
    zero_to_ten_min=["Fresh off a win.", "Still warm from that last one."],
    ten_to_thirty_min=["Momentum looks good on you.", "That last one still counts."],
    thirty_min_to_two_hour=["Room for another small thing?", "Whenever you're ready."],
    two_hour_and_more=["Anything tiny since then?", "Small steps still count."],
)


def minutes_since(last: datetime | None, now: datetime | None = None) -> int | None:
    if last is None:
        return None
    return max(0, int(((now or utcnow()) - last).total_seconds() // 60))


@dataclass(frozen=True)
class TimeAgoOption:
    label: str
    seconds: int


def _option(n: int, unit: str, seconds: int) -> TimeAgoOption:
    return TimeAgoOption(f"{n} {unit}{'' if n == 1 else 's'}", n * seconds)


TIME_AGO_OPTIONS = (
    [_option(m, "minute", 60) for m in (5, 10, 15, 20, 30, 45)]
    + [_option(h, "hour", 3600) for h in range(1, 13)]
    + [_option(d, "day", 86400) for d in range(1, 4)]
)


class LogMomentForm:
    def __init__(self, is_first_log: bool = False):
        self.moment_text = FIRST_LOG_PREFILL if is_first_log else ""
        self.time_ago_seconds: int | None = None
        self.is_just_now = True
        self.is_submitting = False

    @property
    def is_valid(self) -> bool:
        # Blank text is allowed; a placeholder is stored instead
        return True

    @property
    def text_to_save(self) -> str:
        return self.moment_text.strip() or PLACEHOLDER_TEXT

    @property
    def time_display_text(self) -> str:
        if self.is_just_now:
            return "Just now"
        return time_ago_text(self.time_ago_seconds)

    def set_just_now(self) -> None:
        self.is_just_now = True
        self.time_ago_seconds = None

    def set_time_ago(self, seconds: int) -> None:
        self.is_just_now = False
        self.time_ago_seconds = seconds

    def submit(self, create: Callable[[str, int | None], object]):
        """Hand the form values to `create(text, time_ago_seconds)` (a PraiseSession factory)."""
        self.is_submitting = True
        try:
            return create(self.text_to_save, self.time_ago_seconds)
        finally:
            self.is_submitting = False
