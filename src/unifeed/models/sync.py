"""同步相关模型 -- SyncState / SyncReport / SendResult"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from .enums import MessageSource, SyncMode
from .message import Message


class SyncState(BaseModel):
    """每个 provider_key 一行的同步水位

    首次增量同步成功时创建，之后每次产出新消息的增量同步更新，从不删除。
    """

    provider_key: str = Field(description="provider 实例的稳定标识")
    last_message_id: int | None = Field(
        default=None,
        description="水位：已观察到的最大消息 ID",
    )
    last_sync: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="最近一次推进水位的时间",
    )


class SyncReport(BaseModel):
    """一轮同步的结果

    部分 provider 失败时本轮仍视为成功，failed 中列出失败的 provider_key。
    """

    messages: list[Message] = Field(default_factory=list, description="合并后的有序消息")
    mode: SyncMode = Field(default=SyncMode.INCREMENTAL, description="本轮实际路径")
    contributed: list[str] = Field(
        default_factory=list,
        description="贡献了新消息的 provider_key",
    )
    failed: list[str] = Field(default_factory=list, description="调用失败的 provider_key")
    advanced: dict[str, int] = Field(
        default_factory=dict,
        description="本轮推进的水位 provider_key -> last_message_id",
    )


class SendResult(BaseModel):
    """发送结果 -- 失败对调用方可见，不静默丢弃"""

    success: bool
    source: MessageSource
    channel_id: str | None = None
    provider_key: str | None = Field(default=None, description="实际使用的 provider")
    error: str = Field(default="", description="失败原因")
