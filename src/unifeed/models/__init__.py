"""unifeed Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    AttachmentType,
    MessageSource,
    RefreshState,
    SyncMode,
    classify_attachment,
)
from .message import UNKNOWN_AUTHOR, Attachment, Message, MessageIdentity, ensure_utc
from .sync import SendResult, SyncReport, SyncState

__all__ = [
    # 枚举
    "MessageSource",
    "AttachmentType",
    "RefreshState",
    "SyncMode",
    "classify_attachment",
    # Message
    "Message",
    "MessageIdentity",
    "Attachment",
    "UNKNOWN_AUTHOR",
    "ensure_utc",
    # 同步
    "SyncState",
    "SyncReport",
    "SendResult",
]
