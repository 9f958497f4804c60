"""
Free-plan limit state and paywall presentation.

Daily limit: blocks moment creation until the next local day (00:00:01).
Total limit: blocks until the user goes premium.
Timeline restriction: the server cut off history for a free user.
"""
import enum
import logging
from datetime import datetime, timedelta
from typing import Callable

from doinggreat.core.config import settings
from doinggreat.core.dates import format_iso8601, local_day, parse_iso8601, start_of_next_day, utcnow
from doinggreat.db.state_store import StateStore
from doinggreat.schemas.user import UserStatus

logger = logging.getLogger(__name__)

DAILY_LIMIT_DATE_KEY = "paywall.daily_limit_date"
TOTAL_LIMIT_REACHED_KEY = "paywall.total_limit_reached"
TIMELINE_POPUP_SHOWN_KEY = "paywall.timeline_popup_shown_at"
PREMIUM_KEY = "subscription.is_premium"


class PaywallTrigger(str, enum.Enum):
    daily_limit_reached = "daily_limit_reached"
    total_limit_reached = "total_limit_reached"
    timeline_restricted = "timeline_restricted"
    manual_trigger = "manual_trigger"


_LIMIT_TRIGGERS = (
    PaywallTrigger.daily_limit_reached,
    PaywallTrigger.total_limit_reached,
    PaywallTrigger.timeline_restricted,
)


class SubscriptionService:
    """Cached premium entitlement. Purchases happen elsewhere; we only mirror the result."""

    def __init__(self, store: StateStore):
        self._store = store

    @property
    def has_active_subscription(self) -> bool:
        return self._store.get_bool(PREMIUM_KEY)

    def set_premium(self, value: bool) -> None:
        if value != self.has_active_subscription:
            logger.info("Subscription state changed: premium=%s", value)
        self._store.set_bool(PREMIUM_KEY, value)

    def update_from_status(self, status: UserStatus) -> None:
        self.set_premium(status == UserStatus.premium)


class PaywallService:
    def __init__(
        self,
        store: StateStore,
        subscription: SubscriptionService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self.subscription = subscription
        self._clock = clock

        self.should_show_paywall = False
        self.paywall_trigger = PaywallTrigger.manual_trigger
        self.is_timeline_restricted = False

        self.daily_limit_reached_date: datetime | None = None
        self.is_total_limit_reached = False
        self._load_state()
        self.check_if_new_day()

    @property
    def is_premium(self) -> bool:
        return self.subscription.has_active_subscription

    @property
    def is_daily_limit_reached(self) -> bool:
        if self.daily_limit_reached_date is None:
            return False
        return local_day(self.daily_limit_reached_date) == local_day(self._clock())

    def mark_daily_limit_reached(self) -> None:
        self.daily_limit_reached_date = self._clock()
        self.paywall_trigger = PaywallTrigger.daily_limit_reached
        self._save_state()
        logger.info("Daily limit reached, paywall activated until next day")

    def mark_total_limit_reached(self) -> None:
        self.is_total_limit_reached = True
        self.paywall_trigger = PaywallTrigger.total_limit_reached
        self._save_state()
        logger.info("Total limit reached, paywall activated until upgrade")

    def should_block_moment_creation(self) -> bool:
        """Checked before logging a moment."""
        self.check_if_new_day()
        if self.is_premium:
            return False
        if self.is_total_limit_reached:
            return True
        return self.is_daily_limit_reached

    def show_paywall(self, trigger: PaywallTrigger | None = None) -> None:
        """Present the paywall. Without an explicit trigger, a limit trigger set earlier is kept."""
        if trigger is not None:
            self.paywall_trigger = trigger
        elif self.paywall_trigger not in _LIMIT_TRIGGERS:
            self.paywall_trigger = PaywallTrigger.manual_trigger
        self.should_show_paywall = True

    def dismiss_paywall(self) -> None:
        self.should_show_paywall = False

    def show_paywall_for_timeline_restriction(self) -> None:
        self.paywall_trigger = PaywallTrigger.timeline_restricted
        self.is_timeline_restricted = True
        self.should_show_paywall = True
        logger.info("Showing paywall for timeline restriction")

    def clear_timeline_restriction(self) -> None:
        self.is_timeline_restricted = False
        logger.info("Timeline restriction cleared")

    def reset_daily_limit(self) -> None:
        self.daily_limit_reached_date = None
        self.should_show_paywall = False
        self._save_state()
        logger.info("Daily limit reset")

    def reset_all_limits(self) -> None:
        """Called on premium upgrade."""
        self.daily_limit_reached_date = None
        self.is_total_limit_reached = False
        self.should_show_paywall = False
        self._save_state()
        logger.info("All limits reset (premium upgrade)")

    @property
    def time_until_reset(self) -> timedelta | None:
        if self.daily_limit_reached_date is None:
            return None
        return start_of_next_day(self.daily_limit_reached_date) - self._clock()

    @property
    def time_until_reset_formatted(self) -> str:
        remaining = self.time_until_reset
        if remaining is None or remaining.total_seconds() <= 0:
            return "Soon"
        seconds = int(remaining.total_seconds())
        hours, minutes = seconds // 3600, (seconds % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def can_show_timeline_popup(self) -> bool:
        last_shown = parse_iso8601(self._store.get(TIMELINE_POPUP_SHOWN_KEY))
        if last_shown is None:
            return True
        cooldown = timedelta(minutes=settings.timeline_popup_cooldown_minutes)
        return self._clock() - last_shown >= cooldown

    def record_timeline_popup_shown(self) -> None:
        self._store.set(TIMELINE_POPUP_SHOWN_KEY, format_iso8601(self._clock()))

    def check_if_new_day(self) -> None:
        if self.daily_limit_reached_date is not None and not self.is_daily_limit_reached:
            logger.info("New day detected, resetting daily limit")
            self.reset_daily_limit()

    def _save_state(self) -> None:
        if self.daily_limit_reached_date is not None:
            self._store.set(DAILY_LIMIT_DATE_KEY, format_iso8601(self.daily_limit_reached_date))
        else:
            self._store.delete(DAILY_LIMIT_DATE_KEY)
        self._store.set_bool(TOTAL_LIMIT_REACHED_KEY, self.is_total_limit_reached)

    def _load_state(self) -> None:
        self.daily_limit_reached_date = parse_iso8601(self._store.get(DAILY_LIMIT_DATE_KEY))
        self.is_total_limit_reached = self._store.get_bool(TOTAL_LIMIT_REACHED_KEY)
