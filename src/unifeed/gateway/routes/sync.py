"""同步控制路由

POST /api/sync: 手动刷新（与定时刷新同一路径，在途时为 no-op）。
PUT /api/interaction: 设置"用户正在交互"标记，交互期间抑制刷新。
GET /api/sync-state/{provider_key}: 查询 provider 的水位线记录。
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...models import RefreshState, SyncMode
from ...store import CacheError
from ..deps import get_cache, get_scheduler

log = structlog.get_logger()

router = APIRouter()


class SyncResponse(BaseModel):
    """手动刷新响应

    ran=False 表示刷新被抑制（已有刷新在途或用户正在交互），
    其余字段描述最近一次完成的刷新。
    """

    ran: bool
    state: RefreshState
    mode: SyncMode | None = None
    message_count: int
    contributed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    advanced: dict[str, int] = Field(default_factory=dict)


class InteractionRequest(BaseModel):
    """交互状态请求体"""

    active: bool = Field(description="用户是否正在交互（如正在输入）")


class InteractionResponse(BaseModel):
    interacting: bool


class SyncStateResponse(BaseModel):
    """水位线记录"""

    provider_key: str
    last_message_id: int | None
    last_sync: datetime


@router.post("/api/sync", response_model=SyncResponse)
async def trigger_sync(scheduler=Depends(get_scheduler)):
    """手动触发一轮增量同步"""
    ran = await scheduler.refresh()
    report = scheduler.last_report
    return SyncResponse(
        ran=ran,
        state=scheduler.state,
        mode=report.mode if report else None,
        message_count=len(scheduler.messages),
        contributed=report.contributed if report else [],
        failed=report.failed if report else [],
        advanced=report.advanced if report else {},
    )


@router.put("/api/interaction", response_model=InteractionResponse)
async def set_interaction(body: InteractionRequest, scheduler=Depends(get_scheduler)):
    """设置交互标记"""
    scheduler.set_interacting(body.active)
    log.info("interaction_changed", active=body.active)
    return InteractionResponse(interacting=scheduler.interacting)


@router.get("/api/sync-state/{provider_key}", response_model=SyncStateResponse)
async def get_sync_state(provider_key: str, cache=Depends(get_cache)):
    """查询单个 provider 的水位线"""
    try:
        state = await cache.get_sync_state(provider_key)
    except CacheError as e:
        log.error("get_sync_state_failed", provider_key=provider_key, error=str(e))
        raise HTTPException(status_code=503, detail="message cache unavailable") from e

    if state is None:
        raise HTTPException(status_code=404, detail=f"No sync state for {provider_key}")
    return SyncStateResponse(
        provider_key=state.provider_key,
        last_message_id=state.last_message_id,
        last_sync=state.last_sync,
    )
