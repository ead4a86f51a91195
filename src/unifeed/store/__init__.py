"""unifeed Store -- SQLite 持久化实现

提供工厂函数创建消息缓存实例。
"""

from pathlib import Path

import aiosqlite

from .exceptions import CacheError
from .message_store import SqliteMessageCache, format_ts
from .protocols import MessageCache
from .sqlite_init import init_db, verify_wal_mode


async def create_message_cache(db_path: str) -> SqliteMessageCache:
    """创建消息缓存

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        SqliteMessageCache 实例（持有独立连接，使用方负责 close）
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return SqliteMessageCache(conn)


__all__ = [
    "CacheError",
    "MessageCache",
    "SqliteMessageCache",
    "create_message_cache",
    "format_ts",
    "init_db",
    "verify_wal_mode",
]
