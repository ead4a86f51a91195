"""枚举定义 -- 消息来源、附件类型、刷新状态机

MessageSource 的取值即 messages.source 列中持久化的字符串，
修改取值会导致已缓存数据无法读回。
"""

from enum import StrEnum


class MessageSource(StrEnum):
    """消息来源 -- 本实例固定四个 provider"""

    TELEGRAM = "Telegram"
    DISCORD = "Discord"
    GITHUB = "Github"
    JIRA = "Jira"


class AttachmentType(StrEnum):
    """附件类型"""

    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    DOCUMENT = "Document"
    OTHER = "Other"


class RefreshState(StrEnum):
    """刷新调度器状态机

    Idle -> Refreshing: 定时器到期（或手动刷新）且用户未在输入且当前为 Idle
    Refreshing -> Idle: 本轮同步结束（无论成功失败）
    """

    IDLE = "Idle"
    REFRESHING = "Refreshing"


class SyncMode(StrEnum):
    """同步轮次实际走的路径"""

    INCREMENTAL = "incremental"
    # 增量池为空时降级为全量拉取
    FULL = "full"


# 扩展名 -> 附件类型（MIME 缺失时使用，大小写不敏感）
_EXTENSION_TYPES: dict[str, AttachmentType] = {
    "jpg": AttachmentType.IMAGE,
    "jpeg": AttachmentType.IMAGE,
    "png": AttachmentType.IMAGE,
    "gif": AttachmentType.IMAGE,
    "webp": AttachmentType.IMAGE,
    "mp4": AttachmentType.VIDEO,
    "avi": AttachmentType.VIDEO,
    "mov": AttachmentType.VIDEO,
    "mkv": AttachmentType.VIDEO,
    "mp3": AttachmentType.AUDIO,
    "wav": AttachmentType.AUDIO,
    "ogg": AttachmentType.AUDIO,
    "pdf": AttachmentType.DOCUMENT,
    "doc": AttachmentType.DOCUMENT,
    "docx": AttachmentType.DOCUMENT,
    "txt": AttachmentType.DOCUMENT,
}

# MIME 顶级类型 -> 附件类型
_MIME_TYPES: dict[str, AttachmentType] = {
    "image": AttachmentType.IMAGE,
    "video": AttachmentType.VIDEO,
    "audio": AttachmentType.AUDIO,
    "text": AttachmentType.DOCUMENT,
    "application": AttachmentType.DOCUMENT,
}


def classify_attachment(filename: str, mime: str | None = None) -> AttachmentType:
    """根据 MIME 类型（优先）或文件扩展名推断附件类型

    Args:
        filename: 文件名
        mime: MIME 类型，如 "image/png"；None 或空串时退回扩展名判断

    Returns:
        AttachmentType，无法识别时为 OTHER
    """
    if mime:
        top_level = mime.split("/", 1)[0].strip().lower()
        return _MIME_TYPES.get(top_level, AttachmentType.OTHER)

    if "." not in filename:
        return AttachmentType.OTHER
    extension = filename.rsplit(".", 1)[-1].lower()
    return _EXTENSION_TYPES.get(extension, AttachmentType.OTHER)
