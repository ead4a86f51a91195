"""AggregationEngine -- 并发扇出 + 合并

对全部 provider 同时发起同一请求（每个 provider 一个并发调用，不排队），
单个 provider 失败只意味着它本轮贡献零条消息，不重试、不影响其他 provider。
fetch_all 不读写缓存。
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import structlog

from ..models import Attachment, Message, MessageSource, SendResult
from ..providers.base import MessageProvider
from .merge import merge_messages

log = structlog.get_logger()

ProviderCall = Callable[[MessageProvider], Awaitable[list[Message]]]


@dataclass
class ProviderFetchResult:
    """单个 provider 一次调用的结果，error 不为 None 时 messages 为空"""

    provider: MessageProvider
    messages: list[Message] = field(default_factory=list)
    error: Exception | None = None

    @property
    def provider_key(self) -> str:
        return self.provider.provider_key()


class AggregationEngine:
    """多 provider 聚合引擎

    provider_timeout_s 为每个 provider 调用的超时上限，到期只取消该 provider 的调用；
    None 表示不限制（由 provider 自身的 I/O 超时兜底）。
    """

    def __init__(
        self,
        providers: list[MessageProvider],
        provider_timeout_s: float | None = None,
    ) -> None:
        self._providers = list(providers)
        self._provider_timeout_s = provider_timeout_s

    @property
    def providers(self) -> list[MessageProvider]:
        return list(self._providers)

    @property
    def provider_keys(self) -> list[str]:
        return [p.provider_key() for p in self._providers]

    async def call_provider(
        self,
        provider: MessageProvider,
        call: ProviderCall,
        operation: str,
    ) -> ProviderFetchResult:
        """带超时地调用单个 provider，任何异常都转换为失败结果"""
        try:
            if self._provider_timeout_s is not None:
                messages = await asyncio.wait_for(call(provider), self._provider_timeout_s)
            else:
                messages = await call(provider)
        except Exception as e:
            log.warning(
                "provider_call_failed",
                provider_key=provider.provider_key(),
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ProviderFetchResult(provider=provider, error=e)
        return ProviderFetchResult(provider=provider, messages=list(messages))

    async def fan_out(self, call: ProviderCall, operation: str) -> list[ProviderFetchResult]:
        """对所有 provider 并发执行同一调用，结果顺序与 provider 注册顺序一致"""
        return list(
            await asyncio.gather(
                *(self.call_provider(p, call, operation) for p in self._providers)
            )
        )

    async def fetch_all(
        self,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """并发全量拉取并合并

        Args:
            since: 透传给每个 provider 的时间下限
            limit: 合并后截断条数

        Returns:
            按 timestamp 倒序的消息列表
        """
        results = await self.fan_out(lambda p: p.fetch_messages(since), "fetch_messages")
        merged = merge_messages(*(r.messages for r in results), limit=limit)

        log.info(
            "fetch_all_completed",
            provider_count=len(results),
            failed=[r.provider_key for r in results if r.error is not None],
            message_count=len(merged),
        )
        return merged

    def find_provider(
        self,
        source: MessageSource,
        channel_id: str | None = None,
    ) -> MessageProvider | None:
        """按 source + channel 选择 provider

        优先精确匹配 channel_id；找不到时退回同 source 下由 provider 内部路由
        （channel_id 为 None）的实例。
        """
        same_source = [p for p in self._providers if p.source() == source]
        for provider in same_source:
            if provider.channel_id() == channel_id:
                return provider
        for provider in same_source:
            if provider.channel_id() is None:
                return provider
        return None

    async def send(
        self,
        content: str,
        target_source: MessageSource,
        target_channel: str | None = None,
        attachment_path: str | None = None,
    ) -> SendResult:
        """发送消息到匹配的 provider

        发送是用户主动操作，失败不抛出而是返回 success=False 的 SendResult，
        由消费方展示失败提示。
        """
        provider = self.find_provider(target_source, target_channel)
        if provider is None:
            log.warning(
                "send_no_matching_provider",
                source=target_source.value,
                channel_id=target_channel,
            )
            return SendResult(
                success=False,
                source=target_source,
                channel_id=target_channel,
                error=f"No provider configured for {target_source.value}"
                + (f" channel {target_channel}" if target_channel else ""),
            )

        provider_key = provider.provider_key()
        try:
            if attachment_path is not None:
                await provider.send_message_with_attachment(content, attachment_path)
            else:
                await provider.send_message(content)
        except Exception as e:
            log.error(
                "send_failed",
                provider_key=provider_key,
                error_type=type(e).__name__,
                error=str(e),
            )
            return SendResult(
                success=False,
                source=target_source,
                channel_id=target_channel,
                provider_key=provider_key,
                error=str(e),
            )

        log.info("message_sent", provider_key=provider_key)
        return SendResult(
            success=True,
            source=target_source,
            channel_id=target_channel,
            provider_key=provider_key,
        )

    async def download_attachment(
        self,
        message: Message,
        attachment: Attachment,
        save_path: str | Path,
    ) -> Path:
        """通过消息所属 provider 下载附件（含 url 解析步骤）

        Raises:
            LookupError: 没有匹配的 provider
            ProviderError: 解析或下载失败
        """
        provider = self.find_provider(message.source, message.channel_id)
        if provider is None:
            raise LookupError(f"No provider configured for {message.source.value}")
        return await provider.download_attachment(attachment, save_path)

    async def aclose(self) -> None:
        """关闭所有 provider 的连接"""
        for provider in self._providers:
            try:
                await provider.aclose()
            except Exception as e:
                log.warning(
                    "provider_close_failed",
                    provider_key=provider.provider_key(),
                    error=str(e),
                )
