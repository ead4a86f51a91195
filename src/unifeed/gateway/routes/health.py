"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、WAL 模式、provider 数量、刷新状态。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from ...store import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    检查项：
    1. sqlite: 数据库连通性（失败时整体 503）
    2. wal_mode: 日志模式是否为 WAL
    3. providers: 已启用的 provider key 列表（为空不影响就绪）
    4. refresh_state: 刷新调度器状态
    """
    checks: dict = {}
    all_ok = True

    # 1. SQLite 连通性 + WAL
    try:
        conn = request.app.state.cache.conn
        cursor = await conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["wal_mode"] = await verify_wal_mode(conn)
    except Exception as e:
        log.warning("readiness_sqlite_failed", error_type=type(e).__name__, error=str(e))
        checks["sqlite"] = "unavailable"
        all_ok = False

    # 2. Provider 列表
    engine = getattr(request.app.state, "engine", None)
    checks["providers"] = engine.provider_keys if engine is not None else []

    # 3. 刷新调度器
    scheduler = getattr(request.app.state, "scheduler", None)
    checks["refresh_state"] = scheduler.state.value if scheduler is not None else "stopped"

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
