"""
Coordinates moment data between the local store and the remote API.

Offline-first: reads come from the local store immediately and a server refresh
runs in the background; server pages are reconciled into the store by client id
or server id so each moment keeps one stable identity.
"""
import logging
import random
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable

from doinggreat.core.config import settings
from doinggreat.core.dates import parse_iso8601, utcnow
from doinggreat.db.models import Moment
from doinggreat.repositories.moment_repository import MomentRepository
from doinggreat.schemas.moment import (
    MomentDTO,
    PaginatedMomentsResponse,
    UpdateMomentRequest,
    UpdateMomentResponse,
)
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Did something worth noting"

OFFLINE_PRAISES = [
    "That's it. Small stuff adds up.",
    "Look at you, doing things.",
    "Every little bit matters.",
    "Nice. You're making moves.",
    "One step at a time. This was one.",
    "Progress isn't always loud.",
    "You showed up. That's the hardest part.",
    "Boom. Done. Next.",
    "Little wins are still wins.",
    "You did something. That's everything.",
    "Not nothing. That's what that was.",
    "Gold star. You've earned it.",
    "Action over perfection. Nailed it.",
    "Small, but mighty.",
    "That counts. Don't let anyone tell you otherwise.",
]


def random_offline_praise() -> str:
    return random.choice(OFFLINE_PRAISES)


def local_timezone_name() -> str:
    tz = datetime.now().astimezone().tzinfo
    key = getattr(tz, "key", None)
    return key or (tz.tzname(None) if tz else None) or "UTC"


def apply_server_fields(moment: Moment, dto: MomentDTO) -> None:
    """Copy every server-owned field onto the local moment. Synced only once praise exists."""
    if dto.id:
        moment.server_id = dto.id
    moment.text = dto.text
    moment.submitted_at = parse_iso8601(dto.submittedAt) or moment.submitted_at
    moment.happened_at = parse_iso8601(dto.happenedAt) or moment.happened_at
    moment.timezone = dto.tz or moment.timezone
    moment.time_ago = dto.timeAgo
    moment.praise = dto.praise
    moment.praise_enriched = dto.praiseEnriched
    moment.action = dto.action
    moment.tags = dto.tags or []
    moment.is_favorite = bool(dto.isFavorite)
    moment.is_synced = dto.has_praise


def apply_praise(moment: Moment, dto: MomentDTO) -> bool:
    """Merge enrichment results only; returns True when the moment is now synced."""
    if dto.id:
        moment.server_id = dto.id
    if not dto.has_praise:
        return False
    moment.praise = dto.praise
    moment.praise_enriched = dto.praiseEnriched
    moment.action = dto.action
    moment.tags = dto.tags or []
    moment.is_synced = True
    moment.sync_error = None
    return True


def _parse_client_id(value: str | None) -> str:
    try:
        return str(uuid.UUID(value)) if value else str(uuid.uuid4())
    except ValueError:
        return str(uuid.uuid4())


class MomentService:
    def __init__(self, api_client: APIClient, repository: MomentRepository):
        self.api_client = api_client
        self.repository = repository

        # Pagination state
        self.next_cursor: str | None = None
        self.has_next_page = False
        # Set from the server's limitReached flag (free plan history cut-off)
        self.is_limit_reached = False
        self.is_showing_favorites_only = False

        self._refresh_thread: threading.Thread | None = None

    def sync_moment(self, dto: MomentDTO) -> Moment:
        """Reconcile one server moment into the local store (match by server id, then client id)."""
        existing = None
        if dto.id:
            existing = self.repository.fetch_by_server_id(dto.id)
        if existing is None and dto.clientId:
            existing = self.repository.fetch_by_client_id(_parse_client_id(dto.clientId))

        if existing is not None:
            apply_server_fields(existing, dto)
            self.repository.update(existing)
            return existing

        now = utcnow()
        moment = Moment(
            client_id=_parse_client_id(dto.clientId),
            text=dto.text,
            submitted_at=parse_iso8601(dto.submittedAt) or now,
            happened_at=parse_iso8601(dto.happenedAt) or now,
            timezone=dto.tz,
            offline_praise="",  # server copies never need the offline fallback
        )
        apply_server_fields(moment, dto)
        self.repository.save(moment)
        return moment

    def _favorite_param(self) -> bool | None:
        return True if self.is_showing_favorites_only else None

    def _apply_page(self, response: PaginatedMomentsResponse) -> None:
        self.next_cursor = response.nextCursor
        self.has_next_page = response.hasNextPage
        self.is_limit_reached = response.limitReached

    def local_moments(self) -> list[Moment]:
        moments = self.repository.fetch_all(sort_by="submitted_at", descending=True)
        if self.is_showing_favorites_only:
            moments = [m for m in moments if m.is_favorite]
        return moments

    def load_initial_moments(
        self,
        on_background_refresh_complete: Callable[[], None] | None = None,
        background: bool = True,
    ) -> list[Moment]:
        """Return local moments right away, then refresh from the server (in a worker thread by default)."""
        moments = self.local_moments()
        logger.info(
            "Loaded %d moments from local storage, favoritesOnly: %s",
            len(moments),
            self.is_showing_favorites_only,
        )
        if background:
            self._refresh_thread = threading.Thread(
                target=self._background_refresh,
                args=(on_background_refresh_complete,),
                name="moments-refresh",
                daemon=True,
            )
            self._refresh_thread.start()
        else:
            self._background_refresh(on_background_refresh_complete)
        return moments

    def _background_refresh(self, callback: Callable[[], None] | None) -> None:
        try:
            self.refresh_from_server()
        except Exception as e:
            logger.error("Background refresh failed: %s", e)
            return
        logger.info("Background refresh completed")
        if callback is not None:
            callback()

    def wait_for_background_refresh(self, timeout: float | None = None) -> None:
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout)

    def refresh_from_server(self) -> None:
        """Pull-to-refresh: fetch the first page and reconcile it."""
        logger.info("Refreshing moments from server, favoritesOnly: %s", self.is_showing_favorites_only)
        response = self.api_client.request(
            APIEndpoint.moments(cursor=None, limit=settings.refresh_page_size, is_favorite=self._favorite_param()),
            HTTPMethod.GET,
            response_model=PaginatedMomentsResponse,
        )
        for dto in response.data:
            self.sync_moment(dto)
        self._apply_page(response)
        logger.info(
            "Refreshed %d moments, hasNextPage: %s, limitReached: %s",
            len(response.data),
            response.hasNextPage,
            response.limitReached,
        )

    def load_next_page(self) -> list[Moment]:
        if not self.next_cursor or not self.has_next_page:
            logger.debug("No more pages to load")
            return []
        logger.info("Loading next page with cursor: %s", self.next_cursor)
        response = self.api_client.request(
            APIEndpoint.moments(
                cursor=self.next_cursor, limit=settings.next_page_size, is_favorite=self._favorite_param()
            ),
            HTTPMethod.GET,
            response_model=PaginatedMomentsResponse,
        )
        moments = [self.sync_moment(dto) for dto in response.data]
        self._apply_page(response)
        logger.info("Loaded %d moments from next page, limitReached: %s", len(moments), response.limitReached)
        return moments

    def set_favorites_filter(self, enabled: bool) -> None:
        self.is_showing_favorites_only = enabled
        # A different filter means a different cursor space
        self.next_cursor = None
        self.has_next_page = False
        self.is_limit_reached = False
        logger.info("Favorites filter set to: %s", enabled)

    def toggle_favorite(self, moment: Moment) -> None:
        """Optimistic: flip locally first, then PUT when the server knows the moment."""
        logger.info("Toggling favorite for moment: %s", moment.client_id)
        moment.is_favorite = not moment.is_favorite
        self.repository.update(moment)

        if moment.server_id:
            self.api_client.request(
                APIEndpoint.moment(moment.server_id),
                HTTPMethod.PUT,
                body=UpdateMomentRequest(isFavorite=moment.is_favorite),
                response_model=UpdateMomentResponse,
            )
            logger.info("Favorite status synced to server")
        else:
            logger.warning("Moment not yet synced to server, favorite state is local only")

    def delete_moment(self, moment: Moment) -> None:
        logger.info("Deleting moment: %s", moment.client_id)
        self.repository.delete(moment)
        if moment.server_id:
            self.api_client.request(APIEndpoint.moment(moment.server_id), HTTPMethod.DELETE)
            logger.info("Moment deleted from server")
        else:
            logger.warning("Moment not yet synced to server, deleted locally only")

    def create_local_moment(
        self,
        text: str,
        time_ago_seconds: int | None = None,
        offline_praise: str | None = None,
        client_id: str | None = None,
        submitted_at: datetime | None = None,
        timezone_name: str | None = None,
    ) -> Moment:
        """Build and persist an unsynced moment; the server copy is created later."""
        submitted_at = submitted_at or utcnow()
        happened_at = submitted_at - timedelta(seconds=time_ago_seconds) if time_ago_seconds else submitted_at
        moment = Moment(
            client_id=client_id or str(uuid.uuid4()),
            text=(text or "").strip() or PLACEHOLDER_TEXT,
            submitted_at=submitted_at,
            happened_at=happened_at,
            timezone=timezone_name or local_timezone_name(),
            time_ago=time_ago_seconds,
            offline_praise=offline_praise or random_offline_praise(),
            is_synced=False,
        )
        self.repository.save(moment)
        return moment
