"""Provider fetchers: "cache, else queue a fetch" for one resource kind each.

Every fetcher composes the cache store and the request queue (which in
turn consults the rate limiter):

    request(id)
      ├─ fresh cache entry?  -> FetchOutcome(status="ready", data=<model>)
      └─ otherwise           -> submit a job, FetchOutcome(status="queued", signature=...)

The queued job fetches from the upstream client, validates the payload
into its model, writes it to the cache and finally awaits the optional
``on_ready`` callback with the model.  The orchestration service uses
``on_ready`` to cascade team -> matches -> players; callbacks must only
*submit* further work, never await it, since they run inside a queue
worker.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from src.interfaces.page_parser import ITeamPageParser
from src.interfaces.stats_provider import IMatchDataProvider, ITeamPageProvider
from src.models.cache import make_key, match_key, player_key, team_key
from src.models.esports import MatchDetail, PlayerProfile, TeamMatches
from src.models.import_result import FetchOutcome
from src.models.queue import QueuedResult
from src.services.cache_service import CacheService
from src.services.request_queue import RequestQueue
from src.utils.errors import InternalError, RequestValidationError
from src.utils.logging import get_logger

ModelT = TypeVar("ModelT", bound=BaseModel)
OnReady = Callable[[Any], Awaitable[None]]
OnError = Callable[[Exception], None]


def validate_numeric_id(value: Any, resource: str) -> str:
    """Return *value* as a digit string or raise RequestValidationError."""
    text = str(value).strip() if value is not None else ""
    if not text.isdigit():
        raise RequestValidationError(f"Invalid {resource} id: {value!r}")
    return text


def _error_callback(on_error: OnError) -> Callable[[asyncio.Future], None]:
    def callback(future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if isinstance(exc, Exception):
            on_error(exc)

    return callback


class ResourceFetcher(ABC, Generic[ModelT]):
    """Cache-aside access to one resource kind of one provider."""

    provider: str = ""
    resource: str = ""
    model: type[BaseModel] = BaseModel
    timeout_scale: float = 1.0

    def __init__(self, cache: CacheService, queue: RequestQueue, ttl: float) -> None:
        self._cache = cache
        self._queue = queue
        self._ttl = ttl
        self._logger = get_logger(__name__)

    @property
    def ttl(self) -> float:
        return self._ttl

    @abstractmethod
    def cache_key(self, resource_id: str) -> str:
        """Return the cache key holding *resource_id*."""

    @abstractmethod
    async def _load(self, resource_id: str) -> ModelT:
        """Fetch *resource_id* from upstream and validate it into the model."""

    def signature(self, resource_id: str) -> str:
        return f"{self.provider}-{self.resource}-{resource_id}"

    def _validate(self, payload: Any, resource_id: str) -> ModelT:
        try:
            return self.model.model_validate(payload)  # type: ignore[return-value]
        except ValidationError as exc:
            raise InternalError(
                f"Unexpected {self.resource} payload for {resource_id}: {exc.error_count()} errors",
                provider_name=self.provider,
            ) from exc

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------

    async def get_cached(self, resource_id: Any) -> ModelT | None:
        """Return the fresh cached model for *resource_id*, or ``None``."""
        rid = validate_numeric_id(resource_id, self.resource)
        data = await self._cache.get(self.cache_key(rid))
        if data is None:
            return None
        try:
            return self.model.model_validate(data)  # type: ignore[return-value]
        except ValidationError:
            self._logger.warning("cache_payload_invalid", key=self.cache_key(rid))
            return None

    async def invalidate(self, resource_id: Any) -> None:
        rid = validate_numeric_id(resource_id, self.resource)
        await self._cache.invalidate(self.cache_key(rid))

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def _executor(self, resource_id: str, on_ready: OnReady | None) -> Callable[[], Awaitable[ModelT]]:
        async def run() -> ModelT:
            model = await self._load(resource_id)
            await self._cache.set(self.cache_key(resource_id), model, self._ttl)
            if on_ready is not None:
                try:
                    await on_ready(model)
                except Exception as exc:  # noqa: BLE001
                    # The payload is cached; a failing follow-up must not undo that.
                    self._logger.error(
                        "on_ready_failed",
                        provider=self.provider,
                        resource=self.resource,
                        resource_id=resource_id,
                        error=str(exc),
                    )
            return model

        return run

    async def request(
        self,
        resource_id: Any,
        force: bool = False,
        on_ready: OnReady | None = None,
        on_error: OnError | None = None,
    ) -> FetchOutcome:
        """Return cached data, or queue a background fetch and return its signature.

        With ``force=True`` the cached entry is invalidated first and a
        fetch is always queued.  ``on_error`` is called with the exception
        if the queued job fails (including timeouts and cleared queues).
        """
        rid = validate_numeric_id(resource_id, self.resource)
        key = self.cache_key(rid)
        if force:
            await self.invalidate(rid)
        else:
            cached = await self.get_cached(rid)
            if cached is not None:
                return FetchOutcome(status="ready", provider=self.provider, key=key, data=cached)

        signature = self.signature(rid)
        submitted = self._queue.submit(
            self.provider, signature, self._executor(rid, on_ready), self.timeout_scale
        )
        if on_error is not None and isinstance(submitted, asyncio.Future):
            submitted.add_done_callback(_error_callback(on_error))
        return FetchOutcome(
            status="queued",
            provider=self.provider,
            key=key,
            signature=signature,
            already_in_flight=isinstance(submitted, QueuedResult),
        )

    async def fetch(self, resource_id: Any, force: bool = False) -> ModelT | None:
        """Return the model, waiting for a queued fetch if needed.

        Returns ``None`` when an identical fetch was already in flight;
        its result lands in the cache.
        """
        rid = validate_numeric_id(resource_id, self.resource)
        if force:
            await self.invalidate(rid)
        else:
            cached = await self.get_cached(rid)
            if cached is not None:
                return cached
        result = await self._queue.enqueue(
            self.provider, self.signature(rid), self._executor(rid, None), self.timeout_scale
        )
        if isinstance(result, QueuedResult):
            return None
        return result


class TeamMatchesFetcher(ResourceFetcher[TeamMatches]):
    """Team name and match listing from Dotabuff team pages.

    The raw HTML of every listing page is cached alongside the parsed
    result under ``dotabuff:team:{id}:page-{n}``.  One job may fetch up to
    ``client.max_pages`` pages, so its timeout is scaled by that count.
    """

    resource = "team"
    model = TeamMatches

    def __init__(
        self,
        cache: CacheService,
        queue: RequestQueue,
        ttl: float,
        client: ITeamPageProvider,
        parser: ITeamPageParser,
    ) -> None:
        super().__init__(cache, queue, ttl)
        self._client = client
        self._parser = parser
        self.provider = client.get_provider_name()
        self.timeout_scale = float(client.max_pages)

    def cache_key(self, resource_id: str) -> str:
        return team_key(resource_id, provider=self.provider)

    def page_key(self, resource_id: str, page: int) -> str:
        return make_key(self.provider, "team", resource_id, f"page-{page}")

    async def _load(self, resource_id: str) -> TeamMatches:
        pages = await self._client.get_team_match_pages(resource_id)
        for number, html in enumerate(pages, start=1):
            await self._cache.set(self.page_key(resource_id, number), html, self._ttl)
        return self._parser.parse_team_matches(pages, resource_id)

    async def invalidate(self, resource_id: Any) -> None:
        rid = validate_numeric_id(resource_id, self.resource)
        await self._cache.invalidate(self.cache_key(rid))
        await self._cache.invalidate_pattern(make_key(self.provider, "team", rid, "page-*"))


class MatchFetcher(ResourceFetcher[MatchDetail]):
    """Match detail payloads from the match-data API."""

    resource = "match"
    model = MatchDetail

    def __init__(
        self, cache: CacheService, queue: RequestQueue, ttl: float, client: IMatchDataProvider
    ) -> None:
        super().__init__(cache, queue, ttl)
        self._client = client
        self.provider = client.get_provider_name()

    def cache_key(self, resource_id: str) -> str:
        return match_key(resource_id, provider=self.provider)

    async def _load(self, resource_id: str) -> MatchDetail:
        return self._validate(await self._client.get_match(resource_id), resource_id)


class PlayerFetcher(ResourceFetcher[PlayerProfile]):
    """Player profile payloads from the match-data API."""

    resource = "player"
    model = PlayerProfile

    def __init__(
        self, cache: CacheService, queue: RequestQueue, ttl: float, client: IMatchDataProvider
    ) -> None:
        super().__init__(cache, queue, ttl)
        self._client = client
        self.provider = client.get_provider_name()

    def cache_key(self, resource_id: str) -> str:
        return player_key(resource_id, provider=self.provider)

    async def _load(self, resource_id: str) -> PlayerProfile:
        payload = await self._client.get_player(resource_id)
        if isinstance(payload, dict) and payload.get("account_id") is None and not payload.get("profile"):
            # OpenDota omits the profile for private accounts.
            payload = {**payload, "account_id": int(resource_id)}
        return self._validate(payload, resource_id)
