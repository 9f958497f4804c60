"""User profile, stats and feedback calls."""
import logging

from doinggreat.core.errors import ValidationError
from doinggreat.schemas.user import (
    UpdateUserPreferencesRequest,
    UserDTO,
    UserFeedback,
    UserFeedbackRequest,
    UserFeedbackResponse,
    UserResponse,
    UserStatsDTO,
    UserStatsResponse,
    UserStatus,
)
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod
from doinggreat.services.paywall import SubscriptionService

logger = logging.getLogger(__name__)

PLAN_DESCRIPTIONS = {
    UserStatus.premium: "Enjoy 50 moments per day and advanced analytics",
    UserStatus.free: "Limited to 3 moments per day",
}


def plan_description(status: UserStatus) -> str:
    return PLAN_DESCRIPTIONS[status]


class UserService:
    def __init__(self, api_client: APIClient, subscription: SubscriptionService | None = None):
        self.api_client = api_client
        self.subscription = subscription

    def fetch_user_profile(self) -> UserDTO:
        response = self.api_client.request(APIEndpoint.user_profile(), HTTPMethod.GET, response_model=UserResponse)
        user = response.item
        if self.subscription is not None:
            self.subscription.update_from_status(user.status)
        logger.info("Fetched user profile: status=%s", user.status.value)
        return user

    def fetch_user_stats(self) -> UserStatsDTO:
        response = self.api_client.request(
            APIEndpoint.user_stats(), HTTPMethod.GET, response_model=UserStatsResponse
        )
        return response.item

    def submit_feedback(self, title: str, text: str) -> UserFeedback:
        title, text = (title or "").strip(), (text or "").strip()
        errors = {}
        if not title:
            errors["title"] = ["Title is required"]
        if not text:
            errors["text"] = ["Text is required"]
        if errors:
            raise ValidationError("Title and text are required", errors)

        response = self.api_client.request(
            APIEndpoint.submit_feedback(),
            HTTPMethod.POST,
            body=UserFeedbackRequest(title=title, text=text),
            response_model=UserFeedbackResponse,
        )
        logger.info("Submitted feedback %s", response.item.id)
        return response.item

    def update_haptic_preference(self, enabled: bool) -> UserDTO:
        response = self.api_client.request(
            APIEndpoint.user_profile(),
            HTTPMethod.PATCH,
            body=UpdateUserPreferencesRequest(hapticsEnabled=enabled),
            response_model=UserResponse,
        )
        logger.info("Updated haptic preference: %s", enabled)
        return response.item
