"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、消息条数上限、刷新间隔、单 provider 调用超时等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("UNIFEED_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "UNIFEED_DB_PATH",
        str(_get_base_dir() / "sqlite" / "unifeed.db"),
    )


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def get_message_limit() -> int:
    """获取返回给消费方的消息条数上限"""
    limit = _get_int("UNIFEED_MESSAGE_LIMIT", 100)
    return limit if limit > 0 else 100


def get_refresh_interval_s() -> float:
    """获取定时刷新间隔（秒）"""
    interval = _get_int("UNIFEED_REFRESH_INTERVAL_S", 30)
    return float(interval) if interval > 0 else 30.0


def get_provider_timeout_s() -> float | None:
    """获取单个 provider 调用超时（秒），0 表示不限制"""
    timeout = _get_int("UNIFEED_PROVIDER_TIMEOUT_S", 30)
    return float(timeout) if timeout > 0 else None


# 终端/CLI 输出时的内容预览长度
MESSAGE_PREVIEW_LENGTH: int = 200
