"""SyncOrchestrator -- 缓存优先加载 + 基于水位线的增量同步

水位线语义：provider 已确认持久化的最大消息 id。
只有该 provider 本轮增量写入缓存成功后才推进，且只增不减。
"""

import asyncio
from dataclasses import dataclass, field

import structlog

from ..models import Message, SyncMode, SyncReport
from ..providers.base import MessageProvider
from ..store.exceptions import CacheError
from ..store.protocols import MessageCache
from .aggregator import AggregationEngine
from .merge import merge_messages

log = structlog.get_logger()


@dataclass
class _ProviderDelta:
    provider_key: str
    watermark: int | None
    messages: list[Message] = field(default_factory=list)
    error: Exception | None = None


class SyncOrchestrator:
    """协调 AggregationEngine 与 MessageCache"""

    def __init__(self, engine: AggregationEngine, cache: MessageCache) -> None:
        self._engine = engine
        self._cache = cache

    @property
    def engine(self) -> AggregationEngine:
        return self._engine

    @property
    def cache(self) -> MessageCache:
        return self._cache

    async def load_initial(self, limit: int | None = None) -> list[Message]:
        """启动加载：缓存非空则直接返回缓存，否则全量拉取并写入缓存

        缓存读写失败只降级为网络拉取，不向调用方抛出。
        首次写入不设置水位线，之后的第一次增量同步按全量处理。
        """
        try:
            cached = await self._cache.get_cached(limit)
        except CacheError as e:
            log.warning("cache_read_failed", operation="load_initial", error=str(e))
            cached = []

        if cached:
            log.info("initial_load_from_cache", message_count=len(cached))
            return cached

        messages = await self._engine.fetch_all(None, limit)
        if messages:
            try:
                await self._cache.upsert_messages(messages)
            except CacheError as e:
                log.warning("cache_seed_failed", message_count=len(messages), error=str(e))

        log.info("initial_load_from_network", message_count=len(messages))
        return messages

    async def sync_incremental(self, limit: int | None = None) -> SyncReport:
        """增量同步一轮

        1. 并发向每个 provider 请求水位线之后的新消息
        2. 逐个 provider 持久化其增量，成功后推进该 provider 的水位线
        3. 新消息与缓存快照合并去重（新数据优先）后返回

        所有 provider 都没有新消息（包括全部失败）时退化为全量 fetch_all，
        结果不写入缓存。
        """
        deltas = list(
            await asyncio.gather(*(self._fetch_delta(p) for p in self._engine.providers))
        )
        failed = [d.provider_key for d in deltas if d.error is not None]

        pool = [d for d in deltas if d.messages]
        if not pool:
            log.info("incremental_pool_empty", failed=failed)
            messages = await self._engine.fetch_all(None, limit)
            return SyncReport(messages=messages, mode=SyncMode.FULL, failed=failed)

        new_messages: list[Message] = []
        advanced: dict[str, int] = {}
        for delta in pool:
            new_messages.extend(delta.messages)
            new_mark = await self._persist_delta(delta)
            if new_mark is not None:
                advanced[delta.provider_key] = new_mark

        try:
            snapshot = await self._cache.get_cached(limit)
        except CacheError as e:
            log.warning("cache_read_failed", operation="sync_incremental", error=str(e))
            snapshot = []

        merged = merge_messages(new_messages, snapshot, limit=limit)
        log.info(
            "sync_incremental_completed",
            new_count=len(new_messages),
            contributed=[d.provider_key for d in pool],
            failed=failed,
            advanced=advanced,
        )
        return SyncReport(
            messages=merged,
            mode=SyncMode.INCREMENTAL,
            contributed=[d.provider_key for d in pool],
            failed=failed,
            advanced=advanced,
        )

    async def _fetch_delta(self, provider: MessageProvider) -> _ProviderDelta:
        provider_key = provider.provider_key()
        try:
            watermark = await self._cache.get_watermark(provider_key)
        except CacheError as e:
            log.warning("watermark_read_failed", provider_key=provider_key, error=str(e))
            watermark = None

        result = await self._engine.call_provider(
            provider,
            lambda p: p.fetch_messages_since_id(watermark),
            "fetch_messages_since_id",
        )
        return _ProviderDelta(
            provider_key=provider_key,
            watermark=watermark,
            messages=result.messages,
            error=result.error,
        )

    async def _persist_delta(self, delta: _ProviderDelta) -> int | None:
        """写入单个 provider 的增量，返回推进后的水位线（未推进返回 None）"""
        try:
            await self._cache.upsert_messages(delta.messages)
        except CacheError as e:
            # 水位线保持不变，下一轮重新请求同一段增量
            log.warning(
                "delta_persist_failed",
                provider_key=delta.provider_key,
                message_count=len(delta.messages),
                error=str(e),
            )
            return None

        new_mark = max(m.id for m in delta.messages)
        if delta.watermark is not None and new_mark <= delta.watermark:
            return None

        try:
            await self._cache.set_watermark(delta.provider_key, new_mark)
        except CacheError as e:
            log.warning(
                "watermark_update_failed",
                provider_key=delta.provider_key,
                error=str(e),
            )
            return None
        return new_mark
