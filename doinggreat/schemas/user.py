import enum
from pydantic import BaseModel


class UserStatus(str, enum.Enum):
    free = "free"
    premium = "premium"


class UserDTO(BaseModel):
    id: str
    userId: str
    status: UserStatus
    hapticsEnabled: bool = True


class UserResponse(BaseModel):
    item: UserDTO


class UserStatsDTO(BaseModel):
    totalMoments: int
    momentsToday: int
    momentsYesterday: int
    currentStreak: int
    longestStreak: int
    lastMomentDate: str | None = None


class UserStatsResponse(BaseModel):
    item: UserStatsDTO


class UpdateUserPreferencesRequest(BaseModel):
    hapticsEnabled: bool


class UserFeedbackRequest(BaseModel):
    title: str
    text: str


class UserFeedback(BaseModel):
    id: str
    title: str
    text: str
    createdAt: str | None = None


class UserFeedbackResponse(BaseModel):
    item: UserFeedback
