"""依赖注入模块 -- 通过 FastAPI Depends 注入同步组件

组件实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request

from ..store import SqliteMessageCache
from ..sync import AggregationEngine, RefreshScheduler, SyncOrchestrator


def get_cache(request: Request) -> SqliteMessageCache:
    return request.app.state.cache


def get_engine(request: Request) -> AggregationEngine:
    return request.app.state.engine


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler
