"""Rate-limited, retrying, optionally caching HTTP client shared by all adapters."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from functools import wraps
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport
from pydantic import ValidationError

from wikipeople.config.http_resilience import (
    RETRYABLE_STATUSES,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)
from wikipeople.config.storage import get_http_cache_path
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._client import UseClientDefault
    from httpx._types import (
        HeaderTypes,
        QueryParamTypes,
        RequestData,
        TimeoutTypes,
        URLTypes,
    )

log = getLogger(__name__)

__all__ = [
    "CacheConfig",
    "ExternalServiceError",
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "RetryPolicy",
    "build_retry",
    "decode_json",
    "ensure_success",
    "unavailable_on_failure",
]


class ExternalServiceError(RuntimeError):
    """An external call failed after the transport gave up retrying."""

    def __init__(
        self,
        message: str,
        *,
        source: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code
        self.retryable = retryable


class RequestOptions(TypedDict, total=False):
    data: RequestData | None
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    timeout: TimeoutTypes | UseClientDefault


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    event_hooks: dict[str, list[Callable[[httpx.Response], Awaitable[None] | None]]]
    transport: httpx.AsyncBaseTransport


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


class ResilientClient:
    """``httpx.AsyncClient`` behind a retry transport, a rate limiter and a cache.

    ``transport`` replaces the network transport underneath the retry layer;
    tests pass an ``httpx.MockTransport`` here.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )

        retry_transport = RetryTransport(transport=transport, retry=build_retry(config.retry))

        storage, policy = _build_cache_components(config.cache)

        headers = dict(config.default_headers) if config.default_headers else None
        event_hooks = {"response": list(config.response_hooks)} if config.response_hooks else None

        client_kwargs: AsyncClientOptions = {
            "timeout": config.timeout_seconds,
            "transport": retry_transport,
        }
        if config.base_url is not None:
            client_kwargs["base_url"] = config.base_url
        if headers is not None:
            client_kwargs["headers"] = headers
        if event_hooks is not None:
            client_kwargs["event_hooks"] = event_hooks

        if storage is not None:
            self._client = AsyncCacheClient(**client_kwargs, storage=storage, policy=policy)
        else:
            self._client = httpx.AsyncClient(**client_kwargs)

    @property
    def name(self) -> str:
        return self.config.name

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        async def do_request() -> httpx.Response:
            return await self._client.request(method, url, **kwargs)

        return await self._send(do_request)

    async def get(
        self,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(
        self,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            return await func()
        async with self._limiter:
            return await func()


def ensure_success(response: httpx.Response, *, source: str) -> None:
    """Raise a tagged error for a non-2xx response the transport did not recover."""

    if response.is_success:
        return
    status = response.status_code
    raise ExternalServiceError(
        f"{source} answered HTTP {status} for {response.request.url}",
        source=source,
        status_code=status,
        retryable=status in RETRYABLE_STATUSES,
    )


def decode_json(response: httpx.Response, *, source: str) -> object:
    """Parse a JSON body, tolerating a wrong content type when the body looks like JSON."""

    content_type = response.headers.get("content-type", "")
    text = response.text
    if "json" not in content_type.lower() and not text.lstrip().startswith(("{", "[")):
        raise ExternalServiceError(
            f"{source} returned {content_type or 'an untyped body'} instead of JSON",
            source=source,
            status_code=response.status_code,
        )
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExternalServiceError(
            f"{source} returned malformed JSON: {exc}",
            source=source,
            status_code=response.status_code,
        ) from exc


FAILURES: tuple[type[Exception], ...] = (ExternalServiceError, httpx.HTTPError, ValidationError)


def unavailable_on_failure[**P, T](
    source: str,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | Unavailable]]]:
    """Turn external failures raised by an adapter method into :class:`Unavailable`."""

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T | Unavailable]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | Unavailable:
            try:
                return await func(*args, **kwargs)
            except FAILURES as exc:
                log.warning("%s unavailable in %s: %s", source, func.__name__, exc)
                return Unavailable(source=source, reason=str(exc) or type(exc).__name__)

        return wrapper

    return decorator


class _ShouldCacheResponseFilter(BaseFilter[HishelCacheResponse]):
    """Hishel response filter that delegates to a simple JSON predicate."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _build_cache_components(
    config: CacheConfig | None,
) -> tuple[AsyncSqliteStorage | None, FilterPolicy | None]:
    if config is None or not config.enabled:
        return None, None

    if config.backend not in {"sqlite", "memory"}:
        msg = f"Unsupported cache backend: {config.backend}"
        raise ValueError(msg)

    if config.backend == "sqlite":
        database_path = config.sqlite_path or str(get_http_cache_path())
    else:
        database_path = ":memory:"
    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )

    policy: FilterPolicy | None = None
    if config.should_cache is not None:
        policy = FilterPolicy(response_filters=[_ShouldCacheResponseFilter(config.should_cache)])

    return storage, policy
