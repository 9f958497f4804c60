"""Wires the client together: local store, identity, API client and services."""
import logging

import httpx
from sqlalchemy.orm import sessionmaker

from doinggreat.core.config import settings
from doinggreat.db.session import SessionLocal, engine, init_db
from doinggreat.db.state_store import StateStore
from doinggreat.features.journey import JourneyState
from doinggreat.features.moments_list import MomentsListState
from doinggreat.repositories.moment_repository import SqlMomentRepository
from doinggreat.services.api_client import APIClient
from doinggreat.services.moment_service import MomentService
from doinggreat.services.paywall import PaywallService, SubscriptionService
from doinggreat.services.praise import PraiseSession
from doinggreat.services.sync_service import SyncService
from doinggreat.services.user_id import UserIDProvider
from doinggreat.services.user_service import UserService

logger = logging.getLogger(__name__)


class App:
    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        http_client: httpx.Client | None = None,
        base_url: str | None = None,
        **api_options,
    ):
        if session_factory is None:
            init_db(engine)
            session_factory = SessionLocal
        self.session_factory = session_factory
        self.store = StateStore(session_factory)
        self.repository = SqlMomentRepository(session_factory)
        self.user_id_provider = UserIDProvider(self.store)
        self.api_client = APIClient(
            user_id_provider=self.user_id_provider,
            http_client=http_client,
            base_url=base_url,
            **api_options,
        )
        self.subscription = SubscriptionService(self.store)
        self.paywall = PaywallService(self.store, self.subscription)
        self.moment_service = MomentService(self.api_client, self.repository)
        self.user_service = UserService(self.api_client, self.subscription)
        self.sync_service = SyncService(self.api_client, self.repository, self.paywall)
        logger.debug("Client wired against %s", self.api_client.base_url)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        self.sync_service.stop()
        self.api_client.close()

    def reset_journey(self) -> str:
        """
        Start over as a new anonymous user. Local moments carry server ids that
        belong to the old identity, so they go too, along with cached limits and
        the premium flag. Returns the new user id.
        """
        self.sync_service.stop()
        n = self.repository.delete_all()
        self.paywall.reset_all_limits()
        self.paywall.clear_timeline_restriction()
        self.subscription.set_premium(False)
        user_id = self.user_id_provider.reset_user_id()
        logger.info("Journey reset: removed %d local moment(s)", n)
        return user_id

    def new_praise_session(self, text: str, time_ago_seconds: int | None = None, **kwargs) -> PraiseSession:
        return PraiseSession(
            self.repository, self.api_client, self.paywall, text, time_ago_seconds=time_ago_seconds, **kwargs
        )

    def moments_list(self) -> MomentsListState:
        return MomentsListState(self.moment_service, self.repository)

    def journey(self) -> JourneyState:
        return JourneyState(self.api_client, self.paywall)


def describe_config() -> dict:
    """Config summary for logs (no secrets)."""
    return {
        "APP_ENV": settings.app_env,
        "API_BASE_URL": settings.api_base_url,
        "APP_TOKEN_set": bool(settings.app_token),
        "DATABASE_URL": settings.database_url,
    }
