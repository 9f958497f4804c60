import pytest
from fastapi.testclient import TestClient

from doinggreat.app import App
from doinggreat.db.session import init_db, make_engine, make_session_factory
from doinggreat.db.state_store import StateStore
from doinggreat.repositories.moment_repository import SqlMomentRepository
from doinggreat.services.api_client import APIClient
from doinggreat.services.paywall import PaywallService, SubscriptionService
from doinggreat.services.user_id import UserIDProvider
from fake_api import BASE_URL, FakeBackend, create_app

TEST_USER_ID = "0b7c7f3e-4c1a-4a8e-9d0e-3f5b1c2d4e6f"


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return StateStore(session_factory)


@pytest.fixture
def repository(session_factory):
    return SqlMomentRepository(session_factory)


@pytest.fixture
def user_id_provider(store):
    provider = UserIDProvider(store)
    provider.update_user_id(TEST_USER_ID)
    return provider


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http(backend):
    with TestClient(create_app(backend)) as client:
        yield client


@pytest.fixture
def api_client(user_id_provider, http):
    return APIClient(
        user_id_provider=user_id_provider,
        http_client=http,
        base_url=BASE_URL,
        app_token="test-token",
        max_retries=2,
        sleep=lambda _: None,
    )


@pytest.fixture
def subscription(store):
    return SubscriptionService(store)


@pytest.fixture
def paywall(store, subscription):
    return PaywallService(store, subscription)


@pytest.fixture
def app(session_factory, http):
    client_app = App(
        session_factory=session_factory,
        http_client=http,
        base_url=BASE_URL,
        app_token="test-token",
        sleep=lambda _: None,
    )
    client_app.user_id_provider.update_user_id(TEST_USER_ID)
    yield client_app
    client_app.close()
