"""FastAPI 应用主文件

app 创建 + lifespan 管理：缓存初始化/关闭 + provider 组装 + 刷新调度 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from ..config import (
    get_db_path,
    get_message_limit,
    get_provider_timeout_s,
    get_refresh_interval_s,
)
from ..providers import build_providers, load_providers_config
from ..store import create_message_cache
from ..sync import AggregationEngine, RefreshScheduler, SyncOrchestrator
from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import health, messages, send, sync

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时加载初始消息并开始定时刷新，关闭时清理连接"""
    cache = await create_message_cache(get_db_path())
    app.state.cache = cache

    providers_config = load_providers_config()
    if not providers_config.has_any_provider():
        log.warning("no_providers_configured")

    engine = AggregationEngine(
        build_providers(providers_config),
        provider_timeout_s=get_provider_timeout_s(),
    )
    orchestrator = SyncOrchestrator(engine, cache)
    limit = get_message_limit()
    scheduler = RefreshScheduler(
        orchestrator,
        interval_s=get_refresh_interval_s(),
        limit=limit,
    )
    app.state.engine = engine
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    scheduler.seed(await orchestrator.load_initial(limit))
    scheduler.start()
    log.info(
        "gateway_started",
        provider_keys=engine.provider_keys,
        message_count=len(scheduler.messages),
        refresh_interval_s=scheduler.interval_s,
    )

    yield

    await scheduler.stop()
    await engine.aclose()
    await cache.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="unifeed Gateway",
        version="0.1.0",
        description="多来源统一消息流 API",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)

    setup_logging()

    app.include_router(messages.router, tags=["messages"])
    app.include_router(sync.router, tags=["sync"])
    app.include_router(send.router, tags=["send"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
