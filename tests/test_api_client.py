import json
from datetime import datetime, timezone

import httpx
import pytest

from doinggreat.core.errors import (
    AuthError,
    DailyLimitReachedError,
    DecodingError,
    EnrichmentInProgressError,
    NetworkError,
    NotFoundError,
    OfflineError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    TotalLimitReachedError,
    UserIdError,
    ValidationError,
)
from doinggreat.schemas.moment import CreateMomentRequest, MomentItemResponse, PaginatedMomentsResponse
from doinggreat.services.api_client import APIClient, APIEndpoint, HTTPMethod

BASE = "https://api.example.test/api/v1"


class StaticUser:
    def __init__(self, user_id="user-123"):
        self.user_id = user_id


def make_client(handler, user_id="user-123", **kwargs):
    sleeps = []
    client = APIClient(
        user_id_provider=StaticUser(user_id),
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        base_url=BASE,
        app_token=kwargs.pop("app_token", "secret"),
        max_retries=kwargs.pop("max_retries", 3),
        sleep=sleeps.append,
        **kwargs,
    )
    return client, sleeps


def envelope(code, message="nope"):
    return {"error": {"code": code, "message": message}, "meta": {}}


MOMENT = {
    "id": "srv-1",
    "clientId": "c0ffee00-0000-4000-8000-000000000001",
    "text": "Made tea",
    "submittedAt": "2025-11-27T22:00:00.000Z",
    "happenedAt": "2025-11-27T21:30:00Z",
    "tz": "Europe/Tallinn",
    "praise": "Tea counts.",
    "tags": ["self-care"],
    "isFavorite": False,
}


def test_endpoint_paths_and_query():
    ep = APIEndpoint.moments(cursor="abc", limit=20, is_favorite=True)
    assert ep.path == "moments"
    assert dict(ep.params) == {"limit": "20", "cursor": "abc", "isFavorite": "true"}
    assert dict(APIEndpoint.moments().params) == {"limit": "50"}
    assert APIEndpoint.moment_by_client_id("x").path == "moments/by-client-id/x"
    assert APIEndpoint.enrich_moment("s1").path == "moments/s1/enrich"
    assert dict(APIEndpoint.timeline(limit=20).params) == {"limit": "20"}
    assert APIEndpoint.user_profile().path == "user/me"


def test_request_injects_headers_and_decodes_model():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"data": [MOMENT], "nextCursor": "n1", "hasNextPage": True})

    client, _ = make_client(handler)
    page = client.request(APIEndpoint.moments(limit=50), response_model=PaginatedMomentsResponse)

    assert seen["url"] == f"{BASE}/moments?limit=50"
    assert seen["headers"]["x-user-id"] == "user-123"
    assert seen["headers"]["x-app-token"] == "secret"
    assert seen["headers"]["content-type"] == "application/json"
    assert page.data[0].praise == "Tea counts."
    assert page.nextCursor == "n1"
    assert page.limitReached is False


def test_app_token_header_omitted_when_empty():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        return httpx.Response(200, json={})

    client, _ = make_client(handler, app_token="")
    client.request(APIEndpoint.user_stats())
    assert "x-app-token" not in seen["headers"]


def test_missing_user_id_raises_before_sending():
    calls = []
    client, _ = make_client(lambda r: calls.append(r) or httpx.Response(200), user_id="")
    with pytest.raises(UserIdError):
        client.request(APIEndpoint.user_profile())
    assert calls == []


def test_body_encoding_omits_none_and_formats_dates():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"item": MOMENT})

    client, _ = make_client(handler)
    body = CreateMomentRequest(
        clientId=MOMENT["clientId"],
        text="Made tea",
        submittedAt=datetime(2025, 11, 27, 22, 0, 0, 123000, tzinfo=timezone.utc),
        tz="Europe/Tallinn",
    )
    result = client.request(APIEndpoint.create_moment(), HTTPMethod.POST, body=body, response_model=MomentItemResponse)

    assert seen["body"] == {
        "clientId": MOMENT["clientId"],
        "text": "Made tea",
        "submittedAt": "2025-11-27T22:00:00Z",
        "tz": "Europe/Tallinn",
    }
    assert result.item.id == "srv-1"


def test_empty_body_allowed_without_model():
    client, _ = make_client(lambda r: httpx.Response(204))
    assert client.request(APIEndpoint.moment("srv-1"), HTTPMethod.DELETE) is None


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (400, {"message": "bad"}, ValidationError),
        (401, envelope("UNAUTHORIZED"), AuthError),
        (403, envelope("TOTAL_LIMIT_REACHED"), TotalLimitReachedError),
        (429, envelope("DAILY_LIMIT_REACHED"), DailyLimitReachedError),
        (404, envelope("MOMENT_NOT_FOUND"), NotFoundError),
        (409, envelope("ENRICHMENT_IN_PROGRESS"), EnrichmentInProgressError),
        (422, {"message": "invalid", "errors": {"text": ["too long"]}}, ValidationError),
    ],
)
def test_error_mapping(status, body, expected):
    client, sleeps = make_client(lambda r: httpx.Response(status, json=body))
    with pytest.raises(expected) as exc_info:
        client.request(APIEndpoint.moments())
    assert exc_info.value.status_code == status
    assert sleeps == []  # none of these are retried


def test_validation_errors_are_carried():
    body = {"message": "invalid", "errors": {"text": ["too long"]}}
    client, _ = make_client(lambda r: httpx.Response(422, json=body))
    with pytest.raises(ValidationError) as exc_info:
        client.request(APIEndpoint.moments())
    assert exc_info.value.errors == {"text": ["too long"]}


def test_plain_text_error_body_becomes_message():
    client, _ = make_client(lambda r: httpx.Response(404, text="no such thing"))
    with pytest.raises(NotFoundError) as exc_info:
        client.request(APIEndpoint.moment("x"))
    assert exc_info.value.message == "no such thing"


def test_server_errors_retry_with_backoff_then_succeed():
    responses = iter([httpx.Response(503), httpx.Response(500), httpx.Response(200, json={"message": "ok"})])
    client, sleeps = make_client(lambda r: next(responses))

    assert client.request(APIEndpoint.moment("s1"), HTTPMethod.PUT, body={"isFavorite": True}) == {"message": "ok"}
    assert len(sleeps) == 2
    assert 0.75 <= sleeps[0] <= 1.25
    assert 1.5 <= sleeps[1] <= 2.5


def test_retries_give_up_after_max_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client, sleeps = make_client(handler, max_retries=2)
    with pytest.raises(ServerError):
        client.request(APIEndpoint.user_stats())
    assert len(calls) == 3
    assert len(sleeps) == 2


def test_retry_disabled_per_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502)

    client, sleeps = make_client(handler)
    with pytest.raises(ServerError):
        client.request(APIEndpoint.enrich_moment("s1"), HTTPMethod.POST, retry=False)
    assert len(calls) == 1
    assert sleeps == []


def test_rate_limit_uses_retry_after():
    responses = iter([httpx.Response(429, headers={"retry-after": "7"}), httpx.Response(200, json={})])
    client, sleeps = make_client(lambda r: next(responses))
    client.request(APIEndpoint.user_stats())
    assert sleeps == [7.0]


def test_rate_limit_error_after_retries():
    client, _ = make_client(lambda r: httpx.Response(429, headers={"retry-after": "2"}), max_retries=0)
    with pytest.raises(RateLimitError) as exc_info:
        client.request(APIEndpoint.user_stats())
    assert exc_info.value.retry_after == 2
    assert exc_info.value.is_retryable


def test_transport_failures_map_to_network_and_timeout():
    def connect_fail(request):
        raise httpx.ConnectError("refused", request=request)

    def read_timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    client, sleeps = make_client(connect_fail, max_retries=1)
    with pytest.raises(NetworkError):
        client.request(APIEndpoint.user_stats())
    assert len(sleeps) == 1

    client, _ = make_client(read_timeout, max_retries=0)
    with pytest.raises(RequestTimeoutError) as exc_info:
        client.request(APIEndpoint.user_stats())
    assert exc_info.value.status_code == 408


def test_decoding_error_on_bad_shape():
    client, _ = make_client(lambda r: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(DecodingError):
        client.request(APIEndpoint.moments(), response_model=PaginatedMomentsResponse)


def test_offline_check_short_circuits():
    calls = []
    client, _ = make_client(lambda r: calls.append(r) or httpx.Response(200), connectivity_check=lambda: False)
    with pytest.raises(OfflineError):
        client.request(APIEndpoint.moments())
    assert calls == []
