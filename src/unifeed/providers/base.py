"""MessageProvider 抽象基类 -- 同步核心依赖的唯一 provider 接口

同步核心只通过此接口访问 provider，不依赖任何 provider 私有细节。
任何操作都可能因 I/O 或认证失败抛出 ProviderError；
"没有新数据"必须返回空列表而不是抛异常。
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
import structlog

from ..models import Attachment, Message, MessageSource, ensure_utc
from .exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
    UnsupportedOperationError,
)

log = structlog.get_logger()

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_timestamp(value: str | None) -> datetime | None:
    """解析 provider 返回的 ISO-8601 时间（兼容 Z 和 +0000 写法），失败返回 None"""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _COMPACT_OFFSET.sub(r"\1:\2", text)
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_int_id(value: Any) -> int | None:
    """将 provider 返回的 ID（字符串或数字）转换为非负整数，失败返回 None"""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed >= 0 else None


class MessageProvider(ABC):
    """消息来源 + 发送目标

    子类至少实现 fetch_messages / send_message / source。
    """

    @abstractmethod
    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        """全量（有界）拉取最新消息，上限由各实现自行控制"""

    async def fetch_messages_since_id(self, last_id: int | None) -> list[Message]:
        """增量拉取 ID 大于 last_id 的消息

        last_id 为 None 表示冷启动，默认等同于全量拉取。
        默认实现为全量拉取后按 ID 过滤；有原生增量接口的 provider 应覆盖。
        """
        messages = await self.fetch_messages(None)
        if last_id is None:
            return messages
        return [m for m in messages if m.id > last_id]

    @abstractmethod
    async def send_message(self, content: str) -> None:
        """发送文本消息，失败抛出 ProviderError"""

    async def send_message_with_attachment(self, content: str, attachment_path: str) -> None:
        """发送带附件的消息，默认不支持"""
        raise UnsupportedOperationError(self.provider_key(), "send_message_with_attachment")

    @abstractmethod
    def source(self) -> MessageSource:
        """消息来源标签"""

    def channel_id(self) -> str | None:
        """回复路由作用域，None 表示由 provider 内部路由"""
        return None

    def provider_key(self) -> str:
        """provider 实例的稳定标识，同类型多频道时必须可区分"""
        channel = self.channel_id()
        if channel is None:
            return self.source().value
        return f"{self.source().value}:{channel}"

    async def resolve_attachment_url(self, attachment: Attachment) -> str:
        """将附件引用解析为可下载地址

        默认附件 url 即可直接下载；url 为 provider 内部引用的实现需覆盖。
        """
        return attachment.url

    async def download_attachment(self, attachment: Attachment, save_path: str | Path) -> Path:
        """下载附件到本地，默认不支持"""
        raise UnsupportedOperationError(self.provider_key(), "download_attachment")

    async def aclose(self) -> None:
        """释放 provider 持有的连接资源"""


class HttpProvider(MessageProvider):
    """基于 httpx 的 provider 公共实现

    统一处理超时、连接错误与 HTTP 状态码到 ProviderError 体系的映射，
    每次调用的时延由 timeout_s 约束。
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 30.0,
        auth: httpx.Auth | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            base_url: API 基础 URL
            headers: 公共请求头（含认证头）
            timeout_s: 单次请求超时（秒）
            auth: httpx 认证对象
            client: 外部注入的 AsyncClient（测试用），注入时由调用方负责关闭
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout_s,
            auth=auth,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """发送请求并映射错误

        Raises:
            ProviderUnavailableError: 连接失败、超时或 5xx
            ProviderAuthError: 401/403
            ProviderError: 其它 4xx
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.provider_key(), e) from e

        status = response.status_code
        if status in (401, 403):
            raise ProviderAuthError(self.provider_key(), status)
        if status >= 500:
            raise ProviderUnavailableError(self.provider_key(), f"HTTP {status}")
        if status >= 400:
            raise ProviderError(
                f"{self.provider_key()} 请求失败: HTTP {status} {response.text[:200]}"
            )
        return response

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        response = await self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.provider_key()} 返回了无法解析的 JSON") from e

    async def download_attachment(self, attachment: Attachment, save_path: str | Path) -> Path:
        """解析附件地址后流式写入本地文件"""
        url = await self.resolve_attachment_url(attachment)
        path = Path(save_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise ProviderError(
                        f"{self.provider_key()} 附件下载失败: HTTP {response.status_code}"
                    )
                with path.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.provider_key(), e) from e

        log.info(
            "attachment_downloaded",
            provider_key=self.provider_key(),
            filename=attachment.filename,
            path=str(path),
        )
        return path

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
