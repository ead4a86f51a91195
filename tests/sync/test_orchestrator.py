"""SyncOrchestrator 测试

测试内容：
1. load_initial: 缓存优先；缓存为空时全量拉取并写入（不设水位）
2. sync_incremental: 水位推进、写失败不推进、写入按 provider 隔离
3. 增量池为空时退化为全量拉取
4. 水位只增不减
5. Telegram 非目标会话的 update 堆积不阻塞同步
"""

from unittest.mock import AsyncMock

import httpx
from unifeed.models import MessageSource, SyncMode
from unifeed.providers import ProviderAuthError, TelegramProvider
from unifeed.store import CacheError
from unifeed.sync import AggregationEngine, SyncOrchestrator


def _orchestrator(cache, *providers) -> SyncOrchestrator:
    return SyncOrchestrator(AggregationEngine(list(providers)), cache)


def _disk_full(operation: str = "upsert_messages") -> CacheError:
    return CacheError(operation, OSError("disk full"))


class TestLoadInitial:
    async def test_cache_hit_skips_network(self, cache, fake_provider, make_message):
        await cache.upsert_messages([make_message(1), make_message(2, minutes=1)])
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(3)])

        messages = await _orchestrator(cache, provider).load_initial()

        assert [m.id for m in messages] == [2, 1]
        assert provider.fetch_calls == []

    async def test_cold_start_fetches_and_seeds(self, cache, fake_provider, make_message):
        provider = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(1), make_message(2, minutes=1)],
        )

        messages = await _orchestrator(cache, provider).load_initial()

        assert [m.id for m in messages] == [2, 1]
        assert await cache.count_messages() == 2
        # 首次写入不设置水位
        assert await cache.get_watermark("Telegram") is None

    async def test_cache_read_failure_falls_back_to_network(
        self, cache, fake_provider, make_message
    ):
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(1)])
        cache.get_cached = AsyncMock(side_effect=_disk_full("get_cached"))

        messages = await _orchestrator(cache, provider).load_initial()

        assert [m.id for m in messages] == [1]

    async def test_seed_failure_still_returns_messages(
        self, cache, fake_provider, make_message
    ):
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(1)])
        cache.upsert_messages = AsyncMock(side_effect=_disk_full())

        messages = await _orchestrator(cache, provider).load_initial()

        assert [m.id for m in messages] == [1]

    async def test_limit(self, cache, fake_provider, make_message):
        provider = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(i, minutes=i) for i in range(5)],
        )

        messages = await _orchestrator(cache, provider).load_initial(limit=2)
        assert [m.id for m in messages] == [4, 3]


class TestSyncIncremental:
    async def test_advances_watermark(self, cache, fake_provider, make_message):
        """缓存有 Telegram#3 且水位为 3，provider 返回 #4"""
        await cache.upsert_messages([make_message(3, minutes=0)])
        await cache.set_watermark("Telegram", 3)
        provider = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(3, minutes=0), make_message(4, minutes=1)],
        )

        report = await _orchestrator(cache, provider).sync_incremental()

        assert provider.since_id_calls == [3]
        assert report.mode == SyncMode.INCREMENTAL
        assert report.messages[0].identity == (MessageSource.TELEGRAM, 4)
        assert [m.id for m in report.messages] == [4, 3]
        assert report.contributed == ["Telegram"]
        assert report.advanced == {"Telegram": 4}
        assert await cache.get_watermark("Telegram") == 4
        assert await cache.count_messages() == 2

    async def test_cold_watermark_requests_everything(
        self, cache, fake_provider, make_message
    ):
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(5), make_message(9)])

        report = await _orchestrator(cache, provider).sync_incremental()

        assert provider.since_id_calls == [None]
        assert report.advanced == {"Telegram": 9}

    async def test_persist_failure_keeps_watermark(self, cache, fake_provider, make_message):
        await cache.set_watermark("Telegram", 3)
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(4)])
        orchestrator = _orchestrator(cache, provider)

        real_upsert = cache.upsert_messages
        cache.upsert_messages = AsyncMock(side_effect=_disk_full())
        report = await orchestrator.sync_incremental()

        # 本轮仍返回新消息，但水位不变
        assert [m.id for m in report.messages] == [4]
        assert report.advanced == {}
        assert await cache.get_watermark("Telegram") == 3

        # 下一轮用同一水位重新请求
        cache.upsert_messages = real_upsert
        report = await orchestrator.sync_incremental()
        assert provider.since_id_calls == [3, 3]
        assert report.advanced == {"Telegram": 4}

    async def test_writes_isolated_per_provider(self, cache, fake_provider, make_message):
        telegram = fake_provider(MessageSource.TELEGRAM, [make_message(10)])
        discord = fake_provider(
            MessageSource.DISCORD,
            [make_message(20, source=MessageSource.DISCORD)],
            channel="c1",
        )

        real_upsert = cache.upsert_messages

        async def flaky_upsert(messages):
            if messages[0].source == MessageSource.DISCORD:
                raise _disk_full()
            await real_upsert(messages)

        cache.upsert_messages = flaky_upsert
        report = await _orchestrator(cache, telegram, discord).sync_incremental()

        assert report.advanced == {"Telegram": 10}
        assert await cache.get_watermark("Telegram") == 10
        assert await cache.get_watermark("Discord:c1") is None
        assert {m.source for m in report.messages} == {
            MessageSource.TELEGRAM,
            MessageSource.DISCORD,
        }

    async def test_failed_provider_does_not_block_others(
        self, cache, fake_provider, make_message
    ):
        healthy = fake_provider(MessageSource.TELEGRAM, [make_message(1)])
        broken = fake_provider(MessageSource.JIRA, error=ProviderAuthError("Jira", 401))

        report = await _orchestrator(cache, healthy, broken).sync_incremental()

        assert report.mode == SyncMode.INCREMENTAL
        assert report.failed == ["Jira"]
        assert report.advanced == {"Telegram": 1}
        assert await cache.get_watermark("Jira") is None

    async def test_same_id_across_sources(self, cache, fake_provider, make_message):
        telegram = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(42, source=MessageSource.TELEGRAM)],
        )
        discord = fake_provider(
            MessageSource.DISCORD,
            [make_message(42, source=MessageSource.DISCORD, minutes=1)],
            channel="c1",
        )

        report = await _orchestrator(cache, telegram, discord).sync_incremental()

        assert [m.identity for m in report.messages] == [
            (MessageSource.DISCORD, 42),
            (MessageSource.TELEGRAM, 42),
        ]
        assert await cache.count_messages() == 2

    async def test_new_version_wins_over_snapshot(self, cache, fake_provider, make_message):
        await cache.upsert_messages([make_message(5, content="old")])
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(5, content="new")])

        report = await _orchestrator(cache, provider).sync_incremental()

        assert [m.content for m in report.messages] == ["new"]

    async def test_watermark_never_moves_backward(self, cache, fake_provider, make_message):
        await cache.set_watermark("Telegram", 10)
        provider = fake_provider(MessageSource.TELEGRAM)
        # provider 忽略水位返回旧消息
        provider.fetch_messages_since_id = AsyncMock(return_value=[make_message(5)])

        report = await _orchestrator(cache, provider).sync_incremental()

        assert report.advanced == {}
        assert await cache.get_watermark("Telegram") == 10

    async def test_watermark_read_failure_bootstraps(
        self, cache, fake_provider, make_message
    ):
        provider = fake_provider(MessageSource.TELEGRAM, [make_message(1)])
        cache.get_watermark = AsyncMock(side_effect=_disk_full("get_sync_state"))

        report = await _orchestrator(cache, provider).sync_incremental()

        assert provider.since_id_calls == [None]
        assert [m.id for m in report.messages] == [1]


class TestFullFallback:
    async def test_empty_pool_falls_back_to_fetch_all(
        self, cache, fake_provider, make_message
    ):
        await cache.set_watermark("Telegram", 5)
        provider = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(4, minutes=0), make_message(5, minutes=1)],
        )

        report = await _orchestrator(cache, provider).sync_incremental()

        assert report.mode == SyncMode.FULL
        assert provider.fetch_calls == [None]
        assert [m.id for m in report.messages] == [5, 4]
        # 全量结果不写入缓存、不推进水位
        assert await cache.count_messages() == 0
        assert await cache.get_watermark("Telegram") == 5

    async def test_all_providers_failed(self, cache, fake_provider):
        broken = fake_provider(MessageSource.JIRA, error=RuntimeError("down"))

        report = await _orchestrator(cache, broken).sync_incremental()

        assert report.mode == SyncMode.FULL
        assert report.failed == ["Jira"]
        assert report.messages == []

    async def test_no_providers(self, cache):
        report = await _orchestrator(cache).sync_incremental()
        assert report.mode == SyncMode.FULL
        assert report.messages == []

    async def test_fallback_respects_limit(self, cache, fake_provider, make_message):
        await cache.set_watermark("Telegram", 100)
        provider = fake_provider(
            MessageSource.TELEGRAM,
            [make_message(i, minutes=i) for i in range(5)],
        )

        report = await _orchestrator(cache, provider).sync_incremental(limit=2)
        assert [m.id for m in report.messages] == [4, 3]


class TestTelegramBacklog:
    async def test_filtered_backlog_does_not_stall_sync(self, cache):
        """整页非目标会话的 update 堆积时，目标会话的消息仍能送达并推进水位"""
        updates = [
            {"update_id": i, "message": {"chat": {"id": 999}, "date": 1_704_110_400}}
            for i in range(1, 101)
        ]
        updates.append(
            {
                "update_id": 101,
                "message": {"chat": {"id": 100}, "date": 1_704_110_460, "text": "wanted"},
            }
        )

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal updates
            offset = request.url.params.get("offset")
            if offset is not None:
                updates = [u for u in updates if u["update_id"] >= int(offset)]
            return httpx.Response(200, json={"ok": True, "result": updates[:100]})

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="https://api.telegram.org/bot1:x",
        )
        provider = TelegramProvider(bot_token="1:x", chat_ids=["100"], client=client)
        orchestrator = _orchestrator(cache, provider)

        first = await orchestrator.sync_incremental()
        assert first.mode == SyncMode.FULL
        assert [m.id for m in first.messages] == [101]

        second = await orchestrator.sync_incremental()
        assert second.mode == SyncMode.INCREMENTAL
        assert second.advanced == {"Telegram": 101}
        assert await cache.get_watermark("Telegram") == 101
