import enum
from pydantic import BaseModel

from doinggreat.core.dates import calendar_day_utc


class DaySummaryState(str, enum.Enum):
    in_progress = "INPROGRESS"
    finalised = "FINALISED"


class DaySummaryDTO(BaseModel):
    """Server-computed aggregate of one calendar day; read-only on the client."""
    id: str
    date: str  # ISO date, read in UTC
    text: str | None = None  # AI summary, null while INPROGRESS
    tags: list[str] = []
    momentsCount: int
    timesOfDay: list[str] = []  # sunrise, cloud-sun, sun-medium, sunset, moon
    state: DaySummaryState
    createdAt: str

    @property
    def day(self):
        return calendar_day_utc(self.date)

    @property
    def is_finalised(self) -> bool:
        return self.state == DaySummaryState.finalised


class TimelineResponse(BaseModel):
    data: list[DaySummaryDTO]
    nextCursor: str | None = None
    hasNextPage: bool
    limitReached: bool = False
