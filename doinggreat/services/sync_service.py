"""
Background reconciler for moments that never finished syncing.

Runs independently of any screen: every pass walks the unsynced moments, makes
sure each exists on the server and pulls its praise once enrichment is done.
The worker stops by itself when nothing is left to sync, including when the
only moments left are blocked by a usage limit.
"""
import logging
import threading

from doinggreat.core.config import settings
from doinggreat.core.errors import (
    APIError,
    EnrichmentInProgressError,
    LimitReachedError,
    NotFoundError,
    SyncErrorMessages,
    TotalLimitReachedError,
    is_limit_error_message,
)
from doinggreat.db.models import Moment
from doinggreat.repositories.moment_repository import MomentRepository
from doinggreat.schemas.moment import CreateMomentRequest, MomentItemResponse
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod
from doinggreat.services.moment_service import apply_praise
from doinggreat.services.paywall import PaywallService

logger = logging.getLogger(__name__)

# The server owns these; text, favorite and dates belong to the local copy
SERVER_FIELDS = ("server_id", "praise", "praise_enriched_json", "action", "tags_json", "is_synced", "sync_error")


class SyncService:
    def __init__(
        self,
        api_client: APIClient,
        repository: MomentRepository,
        paywall: PaywallService | None = None,
        poll_interval: float | None = None,
    ):
        self.api_client = api_client
        self.repository = repository
        self.paywall = paywall
        self.poll_interval = settings.sync_poll_interval if poll_interval is None else poll_interval
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start (or restart) the background worker."""
        self.stop()
        logger.info("Starting sync service")
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name="moment-sync", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        if self._thread is None:
            return
        logger.info("Stopping sync service")
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def wait(self, timeout: float | None = None) -> None:
        """Block until the worker finishes by itself (used by the CLI `sync --watch`)."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            if self.sync_pending_once(stop) == 0:
                logger.info("All moments synced, stopping sync service")
                break
            stop.wait(self.poll_interval)
        logger.info("Sync service stopped")

    def pending_moments(self) -> list[Moment]:
        # Limit-blocked moments wait for an explicit retry after upgrade or reset
        return [m for m in self.repository.fetch_unsynced() if not is_limit_error_message(m.sync_error)]

    def sync_pending_once(self, stop: threading.Event | None = None) -> int:
        """One reconciliation pass. Returns how many moments are still waiting."""
        pending = self.pending_moments()
        if not pending:
            return 0
        logger.info("Found %d unsynced moment(s)", len(pending))
        for moment in pending:
            if stop is not None and stop.is_set():
                break
            try:
                self.sync_moment(moment)
            except LimitReachedError as e:
                self._handle_limit_error(moment, e)
            except APIError as e:
                logger.error("Failed to sync moment %s: %s", moment.client_id, e.message)
        return len(self.pending_moments())

    def sync_moment(self, moment: Moment) -> bool:
        """Returns True once the moment carries server praise."""
        current = self.repository.fetch_by_client_id(moment.client_id)
        if current is None:
            logger.info("Moment %s was deleted locally, nothing to sync", moment.client_id)
            return False
        if current.server_id:
            return self._fetch_and_update(current)
        return self._sync_by_client_id(current)

    def _save(self, moment: Moment) -> bool:
        return self.repository.update(moment, fields=SERVER_FIELDS)

    def _handle_limit_error(self, moment: Moment, error: LimitReachedError) -> None:
        if isinstance(error, TotalLimitReachedError):
            logger.warning("Total limit reached while syncing %s", moment.client_id)
            moment.sync_error = SyncErrorMessages.total_limit_reached
            if self.paywall is not None:
                self.paywall.mark_total_limit_reached()
        else:
            logger.warning("Daily limit reached while syncing %s", moment.client_id)
            moment.sync_error = SyncErrorMessages.daily_limit_reached
            if self.paywall is not None:
                self.paywall.mark_daily_limit_reached()
        moment.is_synced = False
        self.repository.update(moment, fields=("sync_error", "is_synced"))

    def _fetch_and_update(self, moment: Moment) -> bool:
        logger.debug("Syncing moment with serverId %s", moment.server_id)
        response = self.api_client.request(
            APIEndpoint.moment(moment.server_id), HTTPMethod.GET, response_model=MomentItemResponse
        )
        if apply_praise(moment, response.item):
            self._save(moment)
            logger.info("Updated moment %s, now synced", moment.server_id)
            return True
        logger.debug("Moment %s has no praise yet, requesting enrichment", moment.server_id)
        return self._request_enrichment(moment)

    def _request_enrichment(self, moment: Moment) -> bool:
        try:
            response = self.api_client.request(
                APIEndpoint.enrich_moment(moment.server_id),
                HTTPMethod.POST,
                response_model=MomentItemResponse,
                retry=False,
            )
        except EnrichmentInProgressError:
            logger.debug("Enrichment already in progress for %s, will check again later", moment.server_id)
            return False
        if apply_praise(moment, response.item):
            self._save(moment)
            logger.info("Moment %s enriched in background, tags: %s", moment.server_id, moment.tags)
            return True
        logger.debug("Enrichment requested but not ready yet for %s", moment.server_id)
        return False

    def _sync_by_client_id(self, moment: Moment) -> bool:
        logger.info("Fetching moment by clientId %s", moment.client_id)
        try:
            response = self.api_client.request(
                APIEndpoint.moment_by_client_id(moment.client_id), HTTPMethod.GET, response_model=MomentItemResponse
            )
        except NotFoundError:
            logger.info("Moment not found on server, creating")
            return self._create_on_server(moment)

        synced = apply_praise(moment, response.item)
        self._save(moment)
        if synced:
            logger.info("Moment %s synced from server", moment.client_id)
        else:
            logger.debug("Moment exists on server but no praise yet")
        return synced

    def _create_on_server(self, moment: Moment) -> bool:
        body = CreateMomentRequest(
            clientId=moment.client_id,
            text=moment.text,
            submittedAt=moment.submitted_at,
            tz=moment.timezone,
            timeAgo=moment.time_ago,
        )
        response = self.api_client.request(
            APIEndpoint.create_moment(), HTTPMethod.POST, body=body, response_model=MomentItemResponse
        )
        synced = apply_praise(moment, response.item)
        if not self._save(moment):
            # Deleted locally while the create was in flight
            if moment.server_id:
                logger.info("Removing server copy %s of a locally deleted moment", moment.server_id)
                self.api_client.request(APIEndpoint.moment(moment.server_id), HTTPMethod.DELETE)
            return False
        if synced:
            logger.info("Moment %s already has praise, synced", moment.client_id)
        else:
            logger.info("Created moment on server with serverId %s", moment.server_id)
        return synced
