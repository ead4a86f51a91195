"""Store Protocol 接口定义

定义 MessageCache 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models import Message, SyncState


class MessageCache(Protocol):
    """消息缓存接口

    独占持久化的 Message / Attachment / SyncState 记录。
    任一操作都可能抛出 CacheError。
    """

    async def get_cached(self, limit: int | None = None) -> list[Message]:
        """读取缓存消息（含附件），按 timestamp 倒序"""
        ...

    async def get_since(
        self,
        since: datetime,
        limit: int | None = None,
    ) -> list[Message]:
        """读取 since 之后的缓存消息（不含附件），按 timestamp 倒序"""
        ...

    async def upsert_messages(self, messages: list[Message]) -> None:
        """按组合键幂等写入消息，附件整组替换"""
        ...

    async def get_watermark(self, provider_key: str) -> int | None:
        """读取 provider 水位"""
        ...

    async def get_sync_state(self, provider_key: str) -> SyncState | None:
        """读取 provider 完整同步状态"""
        ...

    async def set_watermark(
        self,
        provider_key: str,
        last_message_id: int,
        synced_at: datetime | None = None,
    ) -> None:
        """写入 provider 水位（upsert，单调性由调用方保证）"""
        ...
