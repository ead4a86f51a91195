"""根据配置组装 provider 列表"""

import structlog

from .base import MessageProvider
from .config import ProvidersConfig
from .discord import DiscordProvider
from .github import GitHubProvider
from .jira import JiraProvider
from .telegram import TelegramProvider

log = structlog.get_logger()


def build_providers(config: ProvidersConfig) -> list[MessageProvider]:
    """按配置创建 provider 实例

    - Telegram: 每个 bot 一个实例（按 chat_ids 过滤）
    - Discord: 每个频道一个实例
    - GitHub: notifications 与 events 各一个实例
    - Jira: 一组项目一个实例
    """
    providers: list[MessageProvider] = []
    timeout_s = float(config.timeout_s)

    if config.telegram is not None:
        providers.append(
            TelegramProvider(
                bot_token=config.telegram.bot_token.get_secret_value(),
                chat_ids=config.telegram.chat_ids,
                timeout_s=timeout_s,
            )
        )

    if config.discord is not None:
        for channel_id in config.discord.channel_ids:
            providers.append(
                DiscordProvider(
                    user_token=config.discord.user_token.get_secret_value(),
                    channel_id=channel_id,
                    timeout_s=timeout_s,
                )
            )

    if config.github is not None:
        for feed in ("notifications", "events"):
            providers.append(
                GitHubProvider(
                    token=config.github.token.get_secret_value(),
                    username=config.github.username,
                    feed=feed,
                    timeout_s=timeout_s,
                )
            )

    if config.jira is not None:
        providers.append(
            JiraProvider(
                base_url=config.jira.base_url,
                email=config.jira.email,
                api_token=config.jira.api_token.get_secret_value(),
                project_keys=config.jira.project_keys,
                timezone=config.jira.timezone,
                timeout_s=timeout_s,
            )
        )

    log.info(
        "providers_built",
        provider_keys=[p.provider_key() for p in providers],
    )
    return providers
