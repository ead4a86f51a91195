"""unifeed Providers -- 消息来源抽象层

同步核心只依赖 MessageProvider 接口。
"""

from .base import HttpProvider, MessageProvider, parse_int_id, parse_timestamp
from .config import ProvidersConfig, load_providers_config
from .discord import DiscordProvider
from .exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
    UnsupportedOperationError,
)
from .github import GitHubProvider
from .jira import JiraProvider
from .registry import build_providers
from .telegram import TelegramProvider

__all__ = [
    # 接口
    "MessageProvider",
    "HttpProvider",
    "parse_timestamp",
    "parse_int_id",
    # 实现
    "TelegramProvider",
    "DiscordProvider",
    "GitHubProvider",
    "JiraProvider",
    # 配置
    "ProvidersConfig",
    "load_providers_config",
    "build_providers",
    # 异常
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderAuthError",
    "UnsupportedOperationError",
]
