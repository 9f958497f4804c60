"""State for the moments list: local-first loading, pagination and date sections."""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from doinggreat.core.dates import local_day
from doinggreat.core.errors import APIError
from doinggreat.db.models import Moment
from doinggreat.repositories.moment_repository import MomentRepository
from doinggreat.services.moment_service import MomentService

logger = logging.getLogger(__name__)


@dataclass
class MomentSection:
    date: date
    moments: list[Moment] = field(default_factory=list)

    def display_date(self, today: date | None = None) -> str:
        today = today or date.today()
        if self.date == today:
            return "Today"
        if self.date == today - timedelta(days=1):
            return "Yesterday"
        return self.date.strftime("%b %d, %Y")


def group_moments_by_date(moments: list[Moment]) -> list[MomentSection]:
    """Sections keyed by local day of happened_at; newest day first, newest moment first inside."""
    grouped: dict[date, list[Moment]] = {}
    for m in moments:
        grouped.setdefault(local_day(m.happened_at), []).append(m)
    return [
        MomentSection(day, sorted(items, key=lambda m: m.happened_at, reverse=True))
        for day, items in sorted(grouped.items(), key=lambda kv: kv[0], reverse=True)
    ]


class MomentsListState:
    def __init__(self, moment_service: MomentService, repository: MomentRepository):
        self.moment_service = moment_service
        self.repository = repository

        self.moments: list[Moment] = []
        self.grouped_moments: list[MomentSection] = []
        self.is_initial_loading = False
        self.is_loading_more = False
        self.is_refreshing = False
        self.can_load_more = False
        self.error: str | None = None
        self.show_error = False

    def _set_moments(self, moments: list[Moment]) -> None:
        self.moments = moments
        self.grouped_moments = group_moments_by_date(moments)
        self.can_load_more = self.moment_service.has_next_page

    def load_moments(self, background: bool = True) -> None:
        if self.is_initial_loading:
            return
        logger.info("Loading moments")
        self.is_initial_loading = True
        try:
            moments = self.moment_service.load_initial_moments(
                on_background_refresh_complete=self.reload_from_local_storage,
                background=background,
            )
            if not background:
                # The refresh already ran; read back what it reconciled
                moments = self.moment_service.local_moments()
            self._set_moments(moments)
            logger.info("Loaded %d moments", len(self.moments))
        finally:
            self.is_initial_loading = False

    def reload_from_local_storage(self) -> None:
        """Called after a background refresh has reconciled new server data."""
        self._set_moments(self.moment_service.local_moments())
        logger.info("Reloaded %d moments after background refresh", len(self.moments))

    def refresh(self) -> None:
        if self.is_refreshing:
            return
        logger.info("Refreshing moments")
        self.is_refreshing = True
        try:
            self.moment_service.refresh_from_server()
            self._set_moments(self.moment_service.local_moments())
            logger.info("Refresh complete, %d moments", len(self.moments))
        except APIError as e:
            self._handle_error(e)
        finally:
            self.is_refreshing = False

    def load_next_page(self) -> None:
        if not self.can_load_more or self.is_loading_more:
            return
        logger.info("Loading next page")
        self.is_loading_more = True
        try:
            new_moments = self.moment_service.load_next_page()
            known = {m.client_id for m in self.moments}
            merged = self.moments + [m for m in new_moments if m.client_id not in known]
            self._set_moments(merged)
            logger.info("Loaded %d more moments", len(new_moments))
        except APIError as e:
            self._handle_error(e)
        finally:
            self.is_loading_more = False

    def set_favorites_filter(self, enabled: bool) -> None:
        self.moment_service.set_favorites_filter(enabled)
        self._set_moments(self.moment_service.local_moments())

    def toggle_favorite(self, moment: Moment) -> None:
        try:
            self.moment_service.toggle_favorite(moment)
        except APIError as e:
            self._handle_error(e)

    def delete_moment(self, moment: Moment) -> None:
        try:
            self.moment_service.delete_moment(moment)
        except APIError as e:
            self._handle_error(e)
        # Gone locally either way
        self._set_moments([m for m in self.moments if m.client_id != moment.client_id])

    def filter_by_tag(self, tag: str) -> list[Moment]:
        return self.repository.fetch_by_tag(tag)

    def dismiss_error(self) -> None:
        self.error = None
        self.show_error = False

    def _handle_error(self, error: APIError) -> None:
        logger.error("Error: %s", error.message)
        self.error = error.message
        self.show_error = True
