"""
Submission of one freshly logged moment and the AI praise that follows it.

Phase 1 creates the moment on the server (the caller waits for this). Phase 2
asks for enrichment and polls the idempotent enrich endpoint at a fixed
interval until praise arrives or the poll budget runs out. The offline praise
is shown until then, so a failed phase 2 never loses the moment.
"""
import logging
import threading
import uuid
from datetime import datetime, timedelta

from doinggreat.core.config import settings
from doinggreat.core.dates import time_ago_text, utcnow
from doinggreat.core.errors import (
    APIError,
    EnrichmentInProgressError,
    LimitReachedError,
    SyncErrorMessages,
    TotalLimitReachedError,
    is_limit_error_message,
)
from doinggreat.db.models import Moment
from doinggreat.repositories.moment_repository import MomentRepository
from doinggreat.schemas.moment import CreateMomentRequest, MomentDTO, MomentItemResponse
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod
from doinggreat.services.moment_service import apply_praise, local_timezone_name, random_offline_praise
from doinggreat.services.paywall import PaywallService

logger = logging.getLogger(__name__)


class PraiseSession:
    def __init__(
        self,
        repository: MomentRepository,
        api_client: APIClient,
        paywall: PaywallService,
        text: str,
        time_ago_seconds: int | None = None,
        offline_praise: str | None = None,
        client_id: str | None = None,
        submitted_at: datetime | None = None,
        timezone_name: str | None = None,
        poll_interval: float | None = None,
        max_polls: int | None = None,
    ):
        self.repository = repository
        self.api_client = api_client
        self.paywall = paywall
        self.poll_interval = settings.praise_polling_interval if poll_interval is None else poll_interval
        self.max_polls = settings.max_praise_polls if max_polls is None else max_polls

        self.text = text
        self.time_ago_seconds = time_ago_seconds
        self.client_id = client_id or str(uuid.uuid4())
        self.submitted_at = submitted_at or utcnow()
        self.happened_at = (
            self.submitted_at - timedelta(seconds=time_ago_seconds) if time_ago_seconds else self.submitted_at
        )
        self.timezone = timezone_name or local_timezone_name()
        self.offline_praise = offline_praise or random_offline_praise()

        self.ai_praise: str | None = None
        self.tags: list[str] = []
        self.sync_error: str | None = None
        self.is_loading_ai_praise = False
        self.is_creating_moment = False
        self.is_enriching_moment = False
        self.poll_count = 0
        self._is_limit_blocked = False
        self._stop = threading.Event()

        # Offline-first: the moment exists locally before any network call
        self.moment = Moment(
            client_id=self.client_id,
            text=text,
            submitted_at=self.submitted_at,
            happened_at=self.happened_at,
            timezone=self.timezone,
            time_ago=time_ago_seconds,
            offline_praise=self.offline_praise,
            is_synced=False,
        )
        self.repository.save(self.moment)
        logger.info("Saved moment locally: %s", self.client_id)

    @property
    def displayed_praise(self) -> str:
        return self.ai_praise or self.offline_praise

    @property
    def is_showing_ai_praise(self) -> bool:
        return self.ai_praise is not None

    @property
    def is_limit_blocked(self) -> bool:
        # SyncService may have persisted a limit error on the moment itself
        return self._is_limit_blocked or is_limit_error_message(self.moment.sync_error)

    @property
    def is_sync_failed(self) -> bool:
        return (self.is_limit_blocked or self.sync_error is not None) and not self.is_loading_ai_praise

    @property
    def time_display_text(self) -> str:
        return time_ago_text(self.time_ago_seconds)

    @property
    def is_cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        """Stop polling (the user dismissed the praise screen)."""
        self._stop.set()

    def sync_and_fetch_praise(self) -> None:
        self.is_creating_moment = True
        self.is_loading_ai_praise = True
        try:
            response = self._create_on_server()
            if response.id:
                self.moment.server_id = response.id
                self.repository.update(self.moment)
                logger.info("Saved serverId %s", response.id)
            self.is_creating_moment = False

            if response.has_praise:
                self._update_with_server_response(response)
                return
            if not response.id:
                return
            self._request_enrichment(response.id)
        except LimitReachedError as e:
            self._handle_limit_error(e)
        except APIError as e:
            logger.error("Failed to create moment: %s", e.message)
            self.sync_error = e.message
        finally:
            self.is_creating_moment = False
            self.is_enriching_moment = False
            self.is_loading_ai_praise = False

    def _request_enrichment(self, server_id: str) -> None:
        self.is_enriching_moment = True
        try:
            enriched = self._enrich_on_server(server_id)
        except LimitReachedError:
            raise
        except APIError as e:
            logger.error("Failed to request enrichment: %s", e.message)
            self.sync_error = SyncErrorMessages.enrichment_failed
            return
        if enriched.has_praise:
            self._update_with_server_response(enriched)
            return
        self._poll_for_enrichment(server_id)

    def _poll_for_enrichment(self, server_id: str) -> None:
        while self.poll_count < self.max_polls:
            self.poll_count += 1
            if self._stop.wait(self.poll_interval):
                logger.debug("Enrichment polling cancelled")
                return
            try:
                enriched = self._enrich_on_server(server_id)
            except APIError as e:
                logger.error("Enrichment poll failed: %s", e.message)
                if self.poll_count >= self.max_polls:
                    self.sync_error = SyncErrorMessages.enrichment_failed
                continue
            if enriched.has_praise:
                self._update_with_server_response(enriched)
                return
            logger.debug("Poll %d/%d: No praise yet", self.poll_count, self.max_polls)

    def _handle_limit_error(self, error: LimitReachedError) -> None:
        self._is_limit_blocked = True
        if isinstance(error, TotalLimitReachedError):
            logger.warning("Total limit reached, showing paywall")
            self.sync_error = SyncErrorMessages.total_limit_reached
            self.paywall.mark_total_limit_reached()
        else:
            logger.warning("Daily limit reached, showing paywall")
            self.sync_error = SyncErrorMessages.daily_limit_reached
            self.paywall.mark_daily_limit_reached()
        self.paywall.show_paywall()
        self._mark_sync_failed(self.sync_error)

    def _mark_sync_failed(self, message: str) -> None:
        self.moment.is_synced = False
        self.moment.sync_error = message
        self.repository.update(self.moment)

    def retry_sync(self) -> None:
        """
        Retry after an upgrade, a daily reset or a cancelled poll. Stays blocked
        while the paywall says so.
        """
        if self.paywall.should_block_moment_creation():
            logger.warning("Still blocked, showing paywall")
            self._is_limit_blocked = True
            self.sync_error = SyncErrorMessages.upgrade_required
            # Persisted so SyncService does not keep retrying
            self._mark_sync_failed(SyncErrorMessages.upgrade_required)
            self.paywall.show_paywall()
            return

        self._is_limit_blocked = False
        self.sync_error = None
        self.poll_count = 0
        self._stop.clear()
        self.moment.sync_error = None
        self.repository.update(self.moment)
        self.sync_and_fetch_praise()

    def _create_on_server(self) -> MomentDTO:
        body = CreateMomentRequest(
            clientId=self.client_id,
            text=self.text,
            submittedAt=self.submitted_at,
            tz=self.timezone,
            timeAgo=self.time_ago_seconds,
        )
        response = self.api_client.request(
            APIEndpoint.create_moment(), HTTPMethod.POST, body=body, response_model=MomentItemResponse
        )
        return response.item

    def _enrich_on_server(self, server_id: str) -> MomentDTO:
        try:
            response = self.api_client.request(
                APIEndpoint.enrich_moment(server_id),
                HTTPMethod.POST,
                response_model=MomentItemResponse,
                retry=False,
            )
        except EnrichmentInProgressError:
            logger.debug("Enrichment already in progress, will continue polling")
            return MomentDTO(id=server_id, text="", submittedAt="", happenedAt="", tz="")
        return response.item

    def _update_with_server_response(self, response: MomentDTO) -> None:
        if response.has_praise:
            self.ai_praise = response.praise
        if response.tags:
            self.tags = list(response.tags)
        if apply_praise(self.moment, response):
            self.repository.update(self.moment)
            logger.info("Updated local moment with server data: %s", self.client_id)
