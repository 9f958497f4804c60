"""
Journey: the day-summary timeline with cursor pagination.

Free users get a limited history. The server flags `limitReached`; the first
page only counts as restricted when there is more data behind the limit.
"""
import logging

from doinggreat.core.config import settings
from doinggreat.core.errors import APIError
from doinggreat.schemas.timeline import DaySummaryDTO, TimelineResponse
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod
from doinggreat.services.paywall import PaywallService

logger = logging.getLogger(__name__)


class JourneyState:
    def __init__(self, api_client: APIClient, paywall: PaywallService):
        self.api_client = api_client
        self.paywall = paywall

        self.items: list[DaySummaryDTO] = []
        self.next_cursor: str | None = None
        self.is_initial_loading = False
        self.is_loading_more = False
        self.is_refreshing = False
        self.error: str | None = None
        self.show_error = False

        self.is_timeline_restricted = False
        self.show_timeline_restricted_popup = False

    @property
    def can_load_more(self) -> bool:
        return self.next_cursor is not None

    @property
    def is_premium(self) -> bool:
        return self.paywall.is_premium

    def _fetch(self, cursor: str | None) -> TimelineResponse:
        return self.api_client.request(
            APIEndpoint.timeline(cursor=cursor, limit=settings.timeline_page_size),
            HTTPMethod.GET,
            response_model=TimelineResponse,
        )

    def _apply_first_page(self, response: TimelineResponse) -> None:
        self.items = list(response.data)
        self.next_cursor = response.nextCursor
        # limitReached without a next page means the user already has their full journey
        if response.limitReached and response.hasNextPage and not self.is_premium:
            self.is_timeline_restricted = True

    def load_timeline(self) -> None:
        if self.is_initial_loading:
            return
        self.is_initial_loading = True
        self.error = None
        self.show_error = False
        try:
            response = self._fetch(None)
            self._apply_first_page(response)
            logger.info(
                "Loaded %d timeline items, limitReached: %s, hasNextPage: %s, isPremium: %s",
                len(response.data),
                response.limitReached,
                response.hasNextPage,
                self.is_premium,
            )
        except APIError as e:
            self._handle_error(e)
        finally:
            self.is_initial_loading = False

    def refresh(self) -> None:
        if self.is_refreshing:
            return
        self.is_refreshing = True
        self.error = None
        self.show_error = False
        self.is_timeline_restricted = False
        self.show_timeline_restricted_popup = False
        try:
            response = self._fetch(None)
            self._apply_first_page(response)
            logger.info("Refreshed timeline with %d items", len(response.data))
        except APIError as e:
            self._handle_error(e)
        finally:
            self.is_refreshing = False

    def load_next_page(self) -> None:
        if self.is_loading_more or self.next_cursor is None:
            return
        self.is_loading_more = True
        try:
            response = self._fetch(self.next_cursor)
            self.items.extend(response.data)
            self.next_cursor = response.nextCursor

            if response.limitReached and not self.is_premium:
                self.is_timeline_restricted = True
                if not response.hasNextPage:
                    if self.paywall.can_show_timeline_popup():
                        self.show_timeline_restricted_popup = True
                        self.paywall.record_timeline_popup_shown()
                        logger.info("Timeline limit reached, showing paywall prompt")
                    else:
                        logger.info("Timeline limit reached, popup suppressed due to cooldown")
                    # Hit the paywall: stop paginating
                    self.next_cursor = None
            logger.info("Loaded %d more timeline items, limitReached: %s", len(response.data), response.limitReached)
        except APIError as e:
            self._handle_error(e)
        finally:
            self.is_loading_more = False

    def dismiss_restricted_popup(self) -> None:
        self.show_timeline_restricted_popup = False

    def open_paywall(self) -> None:
        self.show_timeline_restricted_popup = False
        self.paywall.show_paywall_for_timeline_restriction()

    def _handle_error(self, error: APIError) -> None:
        logger.error("Timeline error: %s", error.message)
        self.error = error.message
        self.show_error = True
