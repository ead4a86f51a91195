"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# messages 表 DDL -- 主键为 (source, message_id) 组合键
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    source      TEXT NOT NULL,
    message_id  INTEGER NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    ts          TEXT NOT NULL,
    author      TEXT NOT NULL,
    channel_id  TEXT,
    cached_at   TEXT NOT NULL,

    PRIMARY KEY (source, message_id)
);
"""

_MESSAGES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_messages_ts ON messages(ts DESC);",
    "CREATE INDEX IF NOT EXISTS idx_messages_source ON messages(source);",
]

# attachments 表 DDL -- 每次写入消息时整组替换
_ATTACHMENTS_DDL = """
CREATE TABLE IF NOT EXISTS attachments (
    attachment_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    source         TEXT NOT NULL,
    message_id     INTEGER NOT NULL,
    position       INTEGER NOT NULL,
    filename       TEXT NOT NULL,
    url            TEXT NOT NULL,
    file_type      TEXT NOT NULL,
    size           INTEGER,

    FOREIGN KEY (source, message_id)
        REFERENCES messages(source, message_id) ON DELETE CASCADE
);
"""

_ATTACHMENTS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_attachments_message "
        "ON attachments(source, message_id, position);"
    ),
]

# sync_state 表 DDL -- 每个 provider_key 一行
_SYNC_STATE_DDL = """
CREATE TABLE IF NOT EXISTS sync_state (
    provider_key     TEXT PRIMARY KEY,
    last_message_id  INTEGER,
    last_sync        TEXT NOT NULL
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_MESSAGES_DDL)
    await conn.execute(_ATTACHMENTS_DDL)
    await conn.execute(_SYNC_STATE_DDL)

    # 创建索引
    for idx_sql in _MESSAGES_INDEXES + _ATTACHMENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
