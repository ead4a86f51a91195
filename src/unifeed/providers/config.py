"""ProvidersConfig -- Provider 配置加载

从环境变量加载配置。某一类 provider 只有在其全部必需变量都存在时才启用。
"""

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class TelegramConfig(BaseModel):
    """Telegram Bot 配置"""

    bot_token: SecretStr
    chat_ids: list[str] = Field(default_factory=list, description="只同步这些会话，空表示全部")


class DiscordConfig(BaseModel):
    """Discord 配置 -- 每个频道一个 provider 实例"""

    user_token: SecretStr
    channel_ids: list[str] = Field(min_length=1)


class GitHubConfig(BaseModel):
    """GitHub 配置"""

    token: SecretStr
    username: str


class JiraConfig(BaseModel):
    """Jira 配置"""

    base_url: str
    email: str
    api_token: SecretStr
    project_keys: list[str] = Field(min_length=1)
    timezone: str = Field(default="UTC", description="API 用户 profile 时区，JQL 时间按此解释")


class ProvidersConfig(BaseModel):
    """全部 provider 配置

    环境变量:
        TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_IDS
        DISCORD_USER_TOKEN, DISCORD_CHANNEL_IDS
        GITHUB_TOKEN, GITHUB_USERNAME
        JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN, JIRA_PROJECT_KEY, JIRA_TIMEZONE
        UNIFEED_HTTP_TIMEOUT_S: 单次 HTTP 请求超时（秒，默认 30）
    """

    telegram: TelegramConfig | None = None
    discord: DiscordConfig | None = None
    github: GitHubConfig | None = None
    jira: JiraConfig | None = None
    timeout_s: int = Field(default=30, ge=1, description="单次 HTTP 请求超时（秒）")

    def has_any_provider(self) -> bool:
        return any(
            section is not None
            for section in (self.telegram, self.discord, self.github, self.jira)
        )


def _split_list(value: str) -> list[str]:
    """逗号分隔 -> 去空白、去空项"""
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_timezone(value: str | None) -> str:
    if not value:
        return "UTC"
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(
            "invalid_timezone_config",
            env_var="JIRA_TIMEZONE",
            value=value,
            fallback="UTC",
        )
        return "UTC"
    return value


def load_providers_config() -> ProvidersConfig:
    """从环境变量加载 Provider 配置

    缺失或为空的 provider 配置被忽略（不阻塞启动），
    无效的超时值或时区记录 warning 并使用默认值。

    Returns:
        ProvidersConfig 实例
    """
    kwargs: dict = {}
    env = os.environ

    if token := env.get("TELEGRAM_BOT_TOKEN"):
        kwargs["telegram"] = TelegramConfig(
            bot_token=SecretStr(token),
            chat_ids=_split_list(env.get("TELEGRAM_CHAT_IDS", "")),
        )

    token, channels = env.get("DISCORD_USER_TOKEN"), env.get("DISCORD_CHANNEL_IDS")
    if token and channels and _split_list(channels):
        kwargs["discord"] = DiscordConfig(
            user_token=SecretStr(token),
            channel_ids=_split_list(channels),
        )

    token, username = env.get("GITHUB_TOKEN"), env.get("GITHUB_USERNAME")
    if token and username:
        kwargs["github"] = GitHubConfig(token=SecretStr(token), username=username)

    base_url, email = env.get("JIRA_BASE_URL"), env.get("JIRA_EMAIL")
    api_token, projects = env.get("JIRA_API_TOKEN"), env.get("JIRA_PROJECT_KEY")
    if base_url and email and api_token and projects and _split_list(projects):
        kwargs["jira"] = JiraConfig(
            base_url=base_url,
            email=email,
            api_token=SecretStr(api_token),
            project_keys=_split_list(projects),
            timezone=_load_timezone(env.get("JIRA_TIMEZONE")),
        )

    if val := env.get("UNIFEED_HTTP_TIMEOUT_S"):
        try:
            timeout_s = int(val)
            if timeout_s >= 1:
                kwargs["timeout_s"] = timeout_s
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="UNIFEED_HTTP_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return ProvidersConfig(**kwargs)
