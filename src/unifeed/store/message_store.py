"""MessageCache SQLite 实现

三张逻辑表：messages（组合键 source + message_id）、attachments（整组替换）、
sync_state（每个 provider_key 一行）。

时间戳以定宽 UTC ISO-8601 文本存储，字典序即时间序。
所有存储异常统一包装为 CacheError 抛出，写操作失败自动回滚。
"""

from collections import defaultdict
from datetime import UTC, datetime

import aiosqlite
import structlog

from ..models import (
    Attachment,
    AttachmentType,
    Message,
    MessageSource,
    SyncState,
    ensure_utc,
)
from .exceptions import CacheError

log = structlog.get_logger()

_MESSAGE_COLUMNS = "source, message_id, content, ts, author, channel_id"

# 同一时间戳的消息按组合键排序，保证两次查询选中同一批行
_ORDER_BY = "ORDER BY ts DESC, source ASC, message_id DESC"

# aiosqlite 连接关闭后抛出 ValueError
_STORAGE_ERRORS = (aiosqlite.Error, ValueError)


def format_ts(value: datetime) -> str:
    """datetime -> 定宽 UTC 文本"""
    return ensure_utc(value).isoformat(timespec="microseconds")


def _sql_limit(limit: int | None) -> int:
    # SQLite 中 LIMIT -1 表示不限制
    return -1 if limit is None else limit


class SqliteMessageCache:
    """MessageCache 的 SQLite 实现

    缓存自身不加锁：同一时间只有一轮同步访问它（由刷新调度器的 single-flight 保证）。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    async def get_cached(self, limit: int | None = None) -> list[Message]:
        """读取缓存消息（含附件），按 timestamp 倒序"""
        try:
            cursor = await self._conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages {_ORDER_BY} LIMIT ?",
                (_sql_limit(limit),),
            )
            rows = await cursor.fetchall()

            # 一次查询取回这批消息的全部附件，避免逐条查询
            cursor = await self._conn.execute(
                f"""
                SELECT a.source, a.message_id, a.filename, a.url, a.file_type, a.size
                FROM attachments a
                JOIN (
                    SELECT source, message_id FROM messages {_ORDER_BY} LIMIT ?
                ) m ON a.source = m.source AND a.message_id = m.message_id
                ORDER BY a.source, a.message_id, a.position ASC
                """,
                (_sql_limit(limit),),
            )
            attachment_rows = await cursor.fetchall()
        except _STORAGE_ERRORS as e:
            raise CacheError("get_cached", e) from e

        attachments: dict[tuple[str, int], list[Attachment]] = defaultdict(list)
        for row in attachment_rows:
            attachments[(row[0], row[1])].append(self._row_to_attachment(row))

        messages = []
        for row in rows:
            message = self._row_to_message(row, attachments.get((row[0], row[1]), []))
            if message is not None:
                messages.append(message)
        return messages

    async def get_since(
        self,
        since: datetime,
        limit: int | None = None,
    ) -> list[Message]:
        """读取 since 之后的缓存消息，按 timestamp 倒序

        此路径不加载附件，供低延迟增量视图使用。
        """
        try:
            cursor = await self._conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE ts > ? {_ORDER_BY} LIMIT ?",
                (format_ts(since), _sql_limit(limit)),
            )
            rows = await cursor.fetchall()
        except _STORAGE_ERRORS as e:
            raise CacheError("get_since", e) from e

        messages = []
        for row in rows:
            message = self._row_to_message(row, [])
            if message is not None:
                messages.append(message)
        return messages

    async def upsert_messages(self, messages: list[Message]) -> None:
        """幂等写入消息

        同一组合键重复写入时完整覆盖消息行，并整组替换附件（先删后写）。
        整批在一个事务内提交，失败回滚。
        """
        if not messages:
            return

        cached_at = format_ts(datetime.now(UTC))
        try:
            for message in messages:
                source = message.source.value
                await self._conn.execute(
                    """
                    INSERT INTO messages (source, message_id, content, ts, author,
                                          channel_id, cached_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(source, message_id) DO UPDATE SET
                        content = excluded.content,
                        ts = excluded.ts,
                        author = excluded.author,
                        channel_id = excluded.channel_id,
                        cached_at = excluded.cached_at
                    """,
                    (
                        source,
                        message.id,
                        message.content,
                        format_ts(message.timestamp),
                        message.author,
                        message.channel_id,
                        cached_at,
                    ),
                )

                await self._conn.execute(
                    "DELETE FROM attachments WHERE source = ? AND message_id = ?",
                    (source, message.id),
                )
                if message.attachments:
                    await self._conn.executemany(
                        """
                        INSERT INTO attachments (source, message_id, position, filename,
                                                 url, file_type, size)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                source,
                                message.id,
                                position,
                                attachment.filename,
                                attachment.url,
                                attachment.file_type.value,
                                attachment.size,
                            )
                            for position, attachment in enumerate(message.attachments)
                        ],
                    )

            await self._conn.commit()
        except _STORAGE_ERRORS as e:
            await self._rollback()
            raise CacheError("upsert_messages", e) from e

    async def get_watermark(self, provider_key: str) -> int | None:
        """读取 provider 的水位，不存在时返回 None"""
        state = await self.get_sync_state(provider_key)
        return state.last_message_id if state else None

    async def get_sync_state(self, provider_key: str) -> SyncState | None:
        """读取 provider 的完整同步状态行"""
        try:
            cursor = await self._conn.execute(
                "SELECT provider_key, last_message_id, last_sync "
                "FROM sync_state WHERE provider_key = ?",
                (provider_key,),
            )
            row = await cursor.fetchone()
        except _STORAGE_ERRORS as e:
            raise CacheError("get_sync_state", e) from e

        if row is None:
            return None
        return SyncState(
            provider_key=row[0],
            last_message_id=row[1],
            last_sync=datetime.fromisoformat(row[2]),
        )

    async def set_watermark(
        self,
        provider_key: str,
        last_message_id: int,
        synced_at: datetime | None = None,
    ) -> None:
        """写入 provider 水位（upsert）

        注意：单调性由调用方保证，此处直接覆盖。
        """
        last_sync = format_ts(synced_at or datetime.now(UTC))
        try:
            await self._conn.execute(
                """
                INSERT INTO sync_state (provider_key, last_message_id, last_sync)
                VALUES (?, ?, ?)
                ON CONFLICT(provider_key) DO UPDATE SET
                    last_message_id = excluded.last_message_id,
                    last_sync = excluded.last_sync
                """,
                (provider_key, last_message_id, last_sync),
            )
            await self._conn.commit()
        except _STORAGE_ERRORS as e:
            await self._rollback()
            raise CacheError("set_watermark", e) from e

    async def count_messages(self) -> int:
        """缓存消息总数"""
        try:
            cursor = await self._conn.execute("SELECT COUNT(*) FROM messages")
            row = await cursor.fetchone()
        except _STORAGE_ERRORS as e:
            raise CacheError("count_messages", e) from e
        return row[0] if row else 0

    async def close(self) -> None:
        await self._conn.close()

    async def _rollback(self) -> None:
        try:
            await self._conn.rollback()
        except _STORAGE_ERRORS as e:
            log.warning("cache_rollback_failed", error=str(e))

    @staticmethod
    def _row_to_message(
        row: aiosqlite.Row,
        attachments: list[Attachment],
    ) -> Message | None:
        """将数据库行转换为 Message 模型，未知 source 的行跳过"""
        try:
            source = MessageSource(row[0])
        except ValueError:
            log.warning("cached_message_unknown_source", source=row[0], message_id=row[1])
            return None
        return Message(
            id=row[1],
            source=source,
            content=row[2],
            timestamp=datetime.fromisoformat(row[3]),
            author=row[4],
            channel_id=row[5],
            attachments=attachments,
        )

    @staticmethod
    def _row_to_attachment(row: aiosqlite.Row) -> Attachment:
        """将附件行转换为 Attachment 模型"""
        try:
            file_type = AttachmentType(row[4])
        except ValueError:
            file_type = AttachmentType.OTHER
        return Attachment(
            filename=row[2],
            url=row[3],
            file_type=file_type,
            size=row[5],
        )
