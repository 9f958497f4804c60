from datetime import datetime
from pydantic import BaseModel, field_serializer

from doinggreat.core.dates import format_iso8601


class PraiseHighlight(BaseModel):
    start: int
    end: int
    type: str = "positive"  # action | number | positive
    emphasis: str = "primary"  # primary | secondary


class PraiseCard(BaseModel):
    text: str
    highlights: list[PraiseHighlight] = []


class EnrichedPraise(BaseModel):
    cards: list[PraiseCard] = []


def highlight_segments(card: PraiseCard) -> list[tuple[str, str | None]]:
    """
    Split card text into (text, emphasis) runs. Highlights with an invalid range
    or overlapping an earlier highlight are ignored; emphasis is None for plain runs.
    """
    text = card.text
    segments: list[tuple[str, str | None]] = []
    cursor = 0
    for h in sorted(card.highlights, key=lambda h: h.start):
        if h.start < 0 or h.end > len(text) or h.start >= h.end or h.start < cursor:
            continue
        if h.start > cursor:
            segments.append((text[cursor:h.start], None))
        segments.append((text[h.start:h.end], h.emphasis))
        cursor = h.end
    if cursor < len(text):
        segments.append((text[cursor:], None))
    return segments


class MomentDTO(BaseModel):
    id: str | None = None
    clientId: str | None = None
    text: str
    submittedAt: str
    happenedAt: str
    tz: str
    timeAgo: int | None = None
    praise: str | None = None
    praiseEnriched: EnrichedPraise | None = None
    action: str | None = None
    tags: list[str] | None = None
    isFavorite: bool | None = None

    @property
    def has_praise(self) -> bool:
        return bool(self.praise)


class MomentItemResponse(BaseModel):
    item: MomentDTO


class PaginatedMomentsResponse(BaseModel):
    data: list[MomentDTO]
    nextCursor: str | None = None
    hasNextPage: bool
    limitReached: bool = False  # absent on older API versions


class CreateMomentRequest(BaseModel):
    clientId: str
    text: str
    submittedAt: datetime
    tz: str
    timeAgo: int | None = None  # omitted from the payload when None

    @field_serializer("submittedAt")
    def _iso(self, value: datetime) -> str:
        return format_iso8601(value)


class UpdateMomentRequest(BaseModel):
    isFavorite: bool


class UpdateMomentResponse(BaseModel):
    message: str | None = None
