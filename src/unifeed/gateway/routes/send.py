"""消息发送路由

POST /api/send: 发送消息到指定 source/channel。
- 200: 发送成功
- 404: 没有匹配的 provider
- 502: provider 返回失败

发送成功后经调度器刷新一轮，让刚发出的消息进入消息流。
刷新同样受单飞与交互抑制约束。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ...models import MessageSource
from ..deps import get_engine, get_scheduler

router = APIRouter()


class SendRequest(BaseModel):
    """发送请求体"""

    source: MessageSource = Field(description="目标来源")
    content: str = Field(min_length=1, description="消息文本")
    channel_id: str | None = Field(default=None, description="目标频道，省略时由 provider 路由")


@router.post("/api/send")
async def send_message(
    body: SendRequest,
    engine=Depends(get_engine),
    scheduler=Depends(get_scheduler),
):
    """发送消息，结果统一以 SendResult 结构返回"""
    result = await engine.send(body.content, body.source, body.channel_id)

    if result.success:
        status_code = 200
        await scheduler.refresh()
    elif result.provider_key is None:
        status_code = 404
    else:
        status_code = 502

    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
