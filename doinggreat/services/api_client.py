"""
REST client for the praise API.

Injects the auth headers, encodes pydantic bodies, maps failures onto the
doinggreat.core.errors taxonomy and retries transient ones with exponential
backoff (1s, 2s, 4s ... with +/-25% jitter).
"""
import enum
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Type, TypeVar

import httpx
import pydantic

from doinggreat.core.config import settings
from doinggreat.core.errors import (
    APIError,
    DecodingError,
    NetworkError,
    OfflineError,
    RateLimitError,
    RequestTimeoutError,
    UserIdError,
    error_from_response,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=pydantic.BaseModel)


class HTTPMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class APIEndpoint:
    path: str
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def moments(cls, cursor: str | None = None, limit: int = 50, is_favorite: bool | None = None) -> "APIEndpoint":
        params = [("limit", str(limit))]
        if cursor:
            params.append(("cursor", cursor))
        if is_favorite is not None:
            params.append(("isFavorite", "true" if is_favorite else "false"))
        return cls("moments", tuple(params))

    @classmethod
    def create_moment(cls) -> "APIEndpoint":
        return cls("moments")

    @classmethod
    def moment(cls, server_id: str) -> "APIEndpoint":
        return cls(f"moments/{server_id}")

    @classmethod
    def moment_by_client_id(cls, client_id: str) -> "APIEndpoint":
        return cls(f"moments/by-client-id/{client_id}")

    @classmethod
    def enrich_moment(cls, server_id: str) -> "APIEndpoint":
        return cls(f"moments/{server_id}/enrich")

    @classmethod
    def timeline(cls, cursor: str | None = None, limit: int = 20) -> "APIEndpoint":
        params = [("limit", str(limit))]
        if cursor:
            params.append(("cursor", cursor))
        return cls("timeline", tuple(params))

    @classmethod
    def user_profile(cls) -> "APIEndpoint":
        return cls("user/me")

    @classmethod
    def user_stats(cls) -> "APIEndpoint":
        return cls("user/stats")

    @classmethod
    def submit_feedback(cls) -> "APIEndpoint":
        return cls("user/feedback")


class APIClient:
    def __init__(
        self,
        user_id_provider=None,
        http_client: httpx.Client | None = None,
        base_url: str | None = None,
        app_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        initial_retry_delay: float | None = None,
        connectivity_check: Callable[[], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.user_id_provider = user_id_provider
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.app_token = settings.app_token if app_token is None else app_token
        self.timeout = timeout if timeout is not None else settings.network_timeout
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.initial_retry_delay = (
            settings.initial_retry_delay if initial_retry_delay is None else initial_retry_delay
        )
        self._connectivity_check = connectivity_check
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def url_for(self, endpoint: APIEndpoint) -> str:
        return f"{self.base_url}/{endpoint.path}"

    def _headers(self) -> dict[str, str]:
        user_id = self.user_id_provider.user_id if self.user_id_provider else None
        if not user_id:
            raise UserIdError()
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            settings.user_id_header: user_id,
        }
        if self.app_token:
            headers[settings.app_token_header] = self.app_token
        return headers

    def retry_delay(self, attempt: int, error: APIError | None = None) -> float:
        if isinstance(error, RateLimitError) and error.retry_after:
            return float(error.retry_after)
        base = self.initial_retry_delay * (2 ** attempt)
        jitter = base * 0.25 * (random.random() - 0.5) * 2
        return base + jitter

    def request(
        self,
        endpoint: APIEndpoint,
        method: HTTPMethod = HTTPMethod.GET,
        body: pydantic.BaseModel | dict | None = None,
        response_model: Type[T] | None = None,
        retry: bool = True,
    ):
        """Perform one API call. Returns a `response_model` instance, or the raw JSON (or None) without one."""
        headers = self._headers()
        if self._connectivity_check is not None and not self._connectivity_check():
            raise OfflineError()

        attempt = 0
        while True:
            try:
                return self._send(endpoint, method, body, response_model, headers)
            except APIError as e:
                if retry and e.is_retryable and attempt < self.max_retries:
                    delay = self.retry_delay(attempt, e)
                    logger.debug(
                        "%s %s failed (attempt %d/%d): %s. Retrying in %.0fms",
                        method.value,
                        endpoint.path,
                        attempt + 1,
                        self.max_retries,
                        e.message,
                        delay * 1000,
                    )
                    self._sleep(delay)
                    attempt += 1
                    continue
                if attempt > 0:
                    logger.warning(
                        "%s %s gave up after %d attempts: %s", method.value, endpoint.path, attempt + 1, e.message
                    )
                raise

    def _send(self, endpoint, method, body, response_model, headers):
        url = self.url_for(endpoint)
        content = None
        if body is not None:
            if isinstance(body, pydantic.BaseModel):
                content = body.model_dump_json(exclude_none=True)
            else:
                content = json.dumps(body)

        logger.debug("API Request: %s %s params=%s", method.value, url, dict(endpoint.params))
        start = time.perf_counter()
        try:
            response = self._http.request(
                method.value,
                url,
                params=list(endpoint.params) or None,
                content=content,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError() from e
        except httpx.TransportError as e:
            raise NetworkError() from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.DEBUG
        logger.log(level, "API Response: %s %s %d %.0fms", method.value, endpoint.path, response.status_code, elapsed_ms)

        if not response.is_success:
            raise error_from_response(response)

        if response_model is None:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None
        try:
            return response_model.model_validate_json(response.content)
        except pydantic.ValidationError as e:
            logger.error("Failed to decode %s response: %s", endpoint.path, e)
            raise DecodingError(cause=e) from e
