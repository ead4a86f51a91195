"""gateway 测试配置 -- 手动组装 app.state（绕过 lifespan）+ httpx AsyncClient"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from unifeed.models import MessageSource
from unifeed.sync import AggregationEngine, RefreshScheduler, SyncOrchestrator


@pytest_asyncio.fixture
async def providers(fake_provider, make_message):
    """Telegram（内部路由）+ 一个 Discord 频道"""
    telegram = fake_provider(
        MessageSource.TELEGRAM,
        [make_message(1, minutes=0), make_message(2, minutes=10)],
    )
    discord = fake_provider(
        MessageSource.DISCORD,
        [make_message(7, source=MessageSource.DISCORD, minutes=5, channel_id="c1")],
        channel="c1",
    )
    return telegram, discord


@pytest_asyncio.fixture
async def test_app(cache, providers):
    from unifeed.gateway.main import create_app

    app = create_app()

    engine = AggregationEngine(list(providers))
    orchestrator = SyncOrchestrator(engine, cache)
    app.state.cache = cache
    app.state.engine = engine
    app.state.orchestrator = orchestrator
    app.state.scheduler = RefreshScheduler(orchestrator, interval_s=30, limit=100)

    yield app


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
