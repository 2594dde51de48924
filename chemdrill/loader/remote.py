"""Remote Pool Loader - Cache, remote fetch with retry, bundled fallback.

Load order for a (category, pool_type):
1. Fresh, non-empty pool in the CacheStore
2. GET <endpoint>?type=<pool_type>&category=<category>, retried on
   network errors, then validated, parsed and written through to cache
3. Bundled dataset (not cached, so the next load tries remote again)
4. DataUnavailable
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import ValidationError

from ..config import DrillConfig
from ..exceptions import (
    DataUnavailable,
    DrillError,
    NetworkFailure,
    NetworkTimeout,
    ValidationFailure,
)
from ..models.enums import Category, PoolSource, PoolType
from ..models.schemas import QuestionPool, QuestionRecord
from ..storage.cache_store import CacheStore
from .fallback import FallbackDatasets
from .schemas import parse_pool, parse_records
from .validation import validate_envelope

logger = logging.getLogger(__name__)


class RemotePoolLoader:
    """Multi-tier question pool loader.

    Concurrent loads of the same pool share a single in-flight task; each
    caller awaits it through ``asyncio.shield`` so cancelling one caller
    does not cancel the fetch for the others.

    Example:
        >>> async with RemotePoolLoader(cache, config, fallback=FallbackDatasets()) as loader:
        ...     pool = await loader.load("inorganic", "inorganic-new")
        >>> pool.source
        <PoolSource.REMOTE: 'remote'>
    """

    def __init__(
        self,
        cache: CacheStore,
        config: DrillConfig | None = None,
        client: httpx.AsyncClient | None = None,
        fallback: FallbackDatasets | None = None,
        strict: bool = False,
    ):
        self.cache = cache
        self.config = config or DrillConfig()
        self.fallback = fallback
        self.strict = strict
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)
        self._inflight: dict[str, asyncio.Task[QuestionPool]] = {}

    def cache_key(self, category: Category, pool_type: PoolType) -> str:
        return self.cache.key_for(category.value, pool_type.value)

    async def load(self, category: Category | str, pool_type: PoolType | str) -> QuestionPool:
        """Load a pool through cache, remote and fallback tiers.

        Raises:
            DataUnavailable: every tier failed
        """
        category, pool_type = Category(category), PoolType(pool_type)
        key = self.cache_key(category, pool_type)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(category, pool_type, key))
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight load: {key}")
        return await asyncio.shield(task)

    async def _load(self, category: Category, pool_type: PoolType, key: str) -> QuestionPool:
        cached = await self._from_cache(key)
        if cached is not None:
            logger.debug(f"Pool from cache: {key} ({cached.size} records)")
            return cached

        try:
            records = await self._fetch_with_retry(category, pool_type)
        except DrillError as e:
            cause: DrillError = e
        else:
            pool = QuestionPool(
                category=category,
                pool_type=pool_type,
                records=records,
                source=PoolSource.REMOTE,
            )
            await self.cache.set(key, pool.model_dump(mode="json"))
            logger.info(f"Pool loaded from remote: {key} ({pool.size} records)")
            return pool

        return self._from_fallback(category, pool_type, cause)

    async def _from_cache(self, key: str) -> QuestionPool | None:
        cached = await self.cache.get(key, ttl=self.config.pool_ttl)
        if not cached:
            return None
        try:
            pool = QuestionPool.model_validate(cached)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached pool {key}: {e.error_count()} error(s)")
            await self.cache.delete(key)
            return None
        if pool.is_empty:
            return None
        return pool.model_copy(update={"source": PoolSource.CACHE})

    def _from_fallback(self, category: Category, pool_type: PoolType, cause: DrillError) -> QuestionPool:
        result = self.fallback.load(category, pool_type) if self.fallback is not None else None
        if result is not None and not result.is_empty:
            logger.warning(
                f"Remote load failed for {category.value}/{pool_type.value} ({cause}), "
                f"using bundled dataset ({len(result.records)} records)"
            )
            return QuestionPool(
                category=category,
                pool_type=pool_type,
                records=result.records,
                source=PoolSource.FALLBACK,
            )

        logger.error(f"No data for {category.value}/{pool_type.value}: {cause}")
        raise DataUnavailable(category.value, pool_type.value, cause)

    async def _fetch_with_retry(self, category: Category, pool_type: PoolType) -> list[QuestionRecord]:
        if not self.config.pool_endpoint:
            raise NetworkFailure("No pool endpoint configured", {"pool_type": pool_type.value})

        attempts = self.config.retry_count + 1
        last_error: DrillError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(category, pool_type)
            except ValidationFailure:
                raise
            except (NetworkTimeout, NetworkFailure) as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        f"Attempt {attempt}/{attempts} failed for {category.value}/{pool_type.value}: {e}, "
                        f"retrying in {self.config.retry_delay}s"
                    )
                    await asyncio.sleep(self.config.retry_delay)
        raise last_error

    async def _fetch_once(self, category: Category, pool_type: PoolType) -> list[QuestionRecord]:
        details = {"category": category.value, "pool_type": pool_type.value}
        try:
            response = await self.client.get(
                self.config.pool_endpoint,
                params={"type": pool_type.value, "category": category.value},
                timeout=self.config.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise NetworkTimeout(f"Request timed out after {self.config.request_timeout}s", details) from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Request failed: {e}", details) from e

        if not response.is_success:
            raise NetworkFailure(f"HTTP {response.status_code}", {**details, "status": response.status_code})

        envelope = validate_envelope(response.text, pool_type)
        if envelope.csv is not None:
            result = parse_pool(envelope.csv, pool_type, strict=self.strict)
        else:
            result = parse_records(envelope.items or [], pool_type, strict=self.strict)

        if result.is_empty:
            raise ValidationFailure(
                f"Response has no valid {pool_type.value} records",
                {**details, "rows": result.total_rows, "rejected": len(result.issues)},
            )
        return result.records

    async def invalidate(self, category: Category | str, pool_type: PoolType | str) -> None:
        """Drop the cached pool so the next load goes remote."""
        await self.cache.delete(self.cache_key(Category(category), PoolType(pool_type)))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> RemotePoolLoader:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
