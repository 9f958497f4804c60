import pytest

from doinggreat.core.errors import ValidationError
from doinggreat.schemas.user import UserStatus
from doinggreat.services.user_service import UserService, plan_description


@pytest.fixture
def service(api_client, subscription):
    return UserService(api_client, subscription)


def test_profile_updates_cached_subscription(service, backend, subscription):
    backend.status = "premium"
    user = service.fetch_user_profile()

    assert user.status is UserStatus.premium
    assert subscription.has_active_subscription is True

    backend.status = "free"
    service.fetch_user_profile()
    assert subscription.has_active_subscription is False


def test_profile_sends_anonymous_user_id(service, backend, user_id_provider):
    user = service.fetch_user_profile()
    assert user.userId == user_id_provider.user_id
    assert backend.headers[-1]["x-app-token"] == "test-token"


def test_stats(service, backend):
    backend.add_moment("one")
    backend.add_moment("two")

    stats = service.fetch_user_stats()

    assert stats.totalMoments == 2
    assert stats.longestStreak == 4
    assert stats.lastMomentDate is None


def test_feedback_is_trimmed_and_posted(service, backend):
    feedback = service.submit_feedback("  Love it ", " More colours please ")

    assert feedback.id == "f-1"
    assert backend.feedback == [{"id": "f-1", "title": "Love it", "text": "More colours please"}]


@pytest.mark.parametrize("title, text", [("", "body"), ("title", "   "), (None, None)])
def test_feedback_requires_title_and_text(service, backend, title, text):
    with pytest.raises(ValidationError) as exc_info:
        service.submit_feedback(title, text)
    assert exc_info.value.errors
    assert backend.calls == []


def test_haptic_preference(service, backend):
    user = service.update_haptic_preference(False)
    assert user.hapticsEnabled is False
    assert backend.haptics_enabled is False


def test_plan_description():
    assert "3 moments per day" in plan_description(UserStatus.free)
    assert "50 moments per day" in plan_description(UserStatus.premium)
