"""全局 pytest 配置 -- 临时 SQLite 缓存 + 测试消息构造"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from unifeed.models import Attachment, Message, MessageSource
from unifeed.providers import MessageProvider
from unifeed.store import SqliteMessageCache, create_message_cache
from unifeed.store.sqlite_init import init_db

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    conn = await aiosqlite.connect(str(tmp_path / "conn.db"))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def cache(tmp_db_path: Path) -> AsyncGenerator[SqliteMessageCache, None]:
    """提供基于临时数据库的消息缓存"""
    message_cache = await create_message_cache(str(tmp_db_path))
    yield message_cache
    await message_cache.close()


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """构造测试消息：minutes 为相对 BASE_TIME 的分钟偏移"""

    def _make(
        message_id: int,
        source: MessageSource = MessageSource.TELEGRAM,
        minutes: int = 0,
        content: str | None = None,
        author: str = "alice",
        channel_id: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> Message:
        return Message(
            id=message_id,
            source=source,
            content=content if content is not None else f"{source.value} #{message_id}",
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            author=author,
            channel_id=channel_id,
            attachments=attachments or [],
        )

    return _make


class FakeProvider(MessageProvider):
    """内存 provider：返回预置消息，可注入失败与延迟"""

    def __init__(
        self,
        source: MessageSource,
        messages: list[Message] | None = None,
        channel: str | None = None,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._source = source
        self._channel = channel
        self.messages = list(messages or [])
        self.error = error
        self.delay_s = delay_s
        self.send_error: Exception | None = None
        self.fetch_calls: list[datetime | None] = []
        self.since_id_calls: list[int | None] = []
        self.sent: list[str] = []
        self.closed = False

    async def _respond(self) -> list[Message]:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.messages)

    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        self.fetch_calls.append(since)
        messages = await self._respond()
        if since is not None:
            messages = [m for m in messages if m.timestamp > since]
        return messages

    async def fetch_messages_since_id(self, last_id: int | None) -> list[Message]:
        self.since_id_calls.append(last_id)
        messages = await self._respond()
        if last_id is not None:
            messages = [m for m in messages if m.id > last_id]
        return messages

    async def send_message(self, content: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(content)

    def source(self) -> MessageSource:
        return self._source

    def channel_id(self) -> str | None:
        return self._channel

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider() -> Callable[..., FakeProvider]:
    """构造 FakeProvider 的工厂"""
    return FakeProvider
