"""消息查询路由

GET /api/messages: 缓存中的消息流（最新在前）。
GET /api/messages/live: 直接向所有 provider 全量拉取（不读写缓存）。
GET /api/messages/since: 某时间点之后的缓存消息（不含附件）。

缓存读失败不致命：两个缓存读接口都退化为向 provider 实时拉取。
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ...config import get_message_limit
from ...models import Message, ensure_utc
from ...store import CacheError
from ..deps import get_cache, get_engine

log = structlog.get_logger()

router = APIRouter()


class MessageListResponse(BaseModel):
    """消息列表响应"""

    messages: list[Message]
    count: int


def _response(messages: list[Message]) -> MessageListResponse:
    return MessageListResponse(messages=messages, count=len(messages))


@router.get("/api/messages", response_model=MessageListResponse)
async def list_messages(
    limit: int | None = Query(default=None, ge=1, le=1000, description="返回条数上限"),
    cache=Depends(get_cache),
    engine=Depends(get_engine),
):
    """读取缓存消息流，按 timestamp 倒序"""
    limit = limit or get_message_limit()
    try:
        messages = await cache.get_cached(limit)
    except CacheError as e:
        log.warning("list_messages_cache_failed", error=str(e))
        messages = await engine.fetch_all(None, limit)
    return _response(messages)


@router.get("/api/messages/live", response_model=MessageListResponse)
async def live_messages(
    since: datetime | None = Query(default=None, description="只拉取此时间之后的消息"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="返回条数上限"),
    engine=Depends(get_engine),
):
    """并发向所有 provider 拉取，单个 provider 失败只是缺少其消息"""
    if since is not None:
        since = ensure_utc(since)
    messages = await engine.fetch_all(since, limit or get_message_limit())
    return _response(messages)


@router.get("/api/messages/since", response_model=MessageListResponse)
async def messages_since(
    ts: datetime = Query(description="时间下限（不含），无时区按 UTC"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="返回条数上限"),
    cache=Depends(get_cache),
    engine=Depends(get_engine),
):
    """读取 ts 之后的缓存消息，按 timestamp 倒序"""
    limit = limit or get_message_limit()
    try:
        messages = await cache.get_since(ts, limit)
    except CacheError as e:
        log.warning("messages_since_cache_failed", error=str(e))
        messages = await engine.fetch_all(ensure_utc(ts), limit)
    return _response(messages)
