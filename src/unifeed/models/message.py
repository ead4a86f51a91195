"""Message Domain Model -- 所有 provider 的统一消息格式

身份键为 (source, id) 组合：id 只在单个 source 内唯一，
不同 provider 可能产生相同的数字 id，任何存储或内存索引都必须使用组合键。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from .enums import AttachmentType, MessageSource

# author 缺失时的占位名
UNKNOWN_AUTHOR = "Unknown"

MessageIdentity = tuple[MessageSource, int]


def ensure_utc(value: datetime) -> datetime:
    """naive datetime 视为 UTC，aware datetime 转换为 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Attachment(BaseModel):
    """消息附件

    url 可能是可直接下载的地址，也可能是 provider 内部引用
    （需经 provider.resolve_attachment_url() 解析后才能下载）。
    """

    filename: str = Field(description="文件名")
    url: str = Field(description="下载地址或 provider 内部引用")
    file_type: AttachmentType = Field(
        default=AttachmentType.OTHER,
        description="附件类型",
    )
    size: int | None = Field(default=None, ge=0, description="文件大小（字节）")


class Message(BaseModel):
    """Message 数据模型

    timestamp 是系统内唯一的排序键，统一为 UTC。
    attachments 保持 provider 原始顺序。
    channel_id 为 None 表示回复路由由 provider 内部处理。
    """

    id: int = Field(ge=0, description="provider 内部数字 ID，仅在 source 内唯一")
    source: MessageSource = Field(description="消息来源")
    content: str = Field(default="", description="文本内容（非聊天类 provider 为合成摘要）")
    timestamp: datetime = Field(description="消息时间（UTC）")
    author: str = Field(default=UNKNOWN_AUTHOR, description="作者显示名")
    attachments: list[Attachment] = Field(default_factory=list, description="附件列表")
    channel_id: str | None = Field(default=None, description="回复路由作用域")

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("author", mode="before")
    @classmethod
    def _author_never_empty(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return UNKNOWN_AUTHOR
        return value

    @property
    def identity(self) -> MessageIdentity:
        """组合身份键 (source, id)"""
        return (self.source, self.id)
