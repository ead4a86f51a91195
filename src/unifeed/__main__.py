"""CLI 入口模块 -- python -m unifeed <command>

支持的命令：
  sync                            执行一轮增量同步并打印消息
  show [limit]                    打印缓存中的消息
  send <source> <text> [channel]  发送消息
"""

import asyncio
import sys

from .config import (
    MESSAGE_PREVIEW_LENGTH,
    get_db_path,
    get_message_limit,
    get_provider_timeout_s,
)
from .models import Message, MessageSource

USAGE = """用法: python -m unifeed <command>
命令:
  sync                            执行一轮增量同步并打印消息
  show [limit]                    打印缓存中的消息
  send <source> <text> [channel]  发送消息（source: Telegram/Discord/Github/Jira）"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    from .gateway.middleware.logging_config import setup_logging

    setup_logging()
    command, args = sys.argv[1], sys.argv[2:]

    if command == "sync":
        asyncio.run(run_sync())
    elif command == "show":
        try:
            limit = int(args[0]) if args else get_message_limit()
        except ValueError:
            print(f"无效的条数: {args[0]}")
            sys.exit(1)
        asyncio.run(show_cached(limit))
    elif command == "send":
        if len(args) < 2:
            print(USAGE)
            sys.exit(1)
        source = parse_source(args[0])
        if source is None:
            print(f"未知来源: {args[0]}")
            print("可用来源: " + ", ".join(s.value for s in MessageSource))
            sys.exit(1)
        channel = args[2] if len(args) > 2 else None
        ok = asyncio.run(send_message(source, args[1], channel))
        if not ok:
            sys.exit(2)
    else:
        print(f"未知命令: {command}")
        print("可用命令: sync, show, send")
        sys.exit(1)


def parse_source(value: str) -> MessageSource | None:
    """大小写不敏感地解析来源名"""
    for source in MessageSource:
        if source.value.lower() == value.lower():
            return source
    return None


def format_message(message: Message) -> str:
    """单行摘要：时间 [来源] 作者: 内容预览"""
    content = " ".join(message.content.split())
    if len(content) > MESSAGE_PREVIEW_LENGTH:
        content = content[:MESSAGE_PREVIEW_LENGTH] + "..."
    suffix = f" (+{len(message.attachments)} 附件)" if message.attachments else ""
    return (
        f"{message.timestamp:%Y-%m-%d %H:%M} [{message.source.value}] "
        f"{message.author}: {content}{suffix}"
    )


async def _build_orchestrator():
    from .providers import build_providers, load_providers_config
    from .store import create_message_cache
    from .sync import AggregationEngine, SyncOrchestrator

    cache = await create_message_cache(get_db_path())
    engine = AggregationEngine(
        build_providers(load_providers_config()),
        provider_timeout_s=get_provider_timeout_s(),
    )
    return SyncOrchestrator(engine, cache)


async def run_sync() -> None:
    """执行一轮增量同步"""
    orchestrator = await _build_orchestrator()
    try:
        report = await orchestrator.sync_incremental(get_message_limit())
        for message in report.messages:
            print(format_message(message))
        print(
            f"同步完成（{report.mode.value}）: {len(report.messages)} 条消息，"
            f"新增来源 {report.contributed or '-'}，失败 {report.failed or '-'}"
        )
    finally:
        await orchestrator.engine.aclose()
        await orchestrator.cache.close()


async def show_cached(limit: int) -> None:
    """打印缓存中的消息"""
    from .store import create_message_cache

    cache = await create_message_cache(get_db_path())
    try:
        messages = await cache.get_cached(limit)
        for message in messages:
            print(format_message(message))
        print(f"共 {len(messages)} 条缓存消息")
    finally:
        await cache.close()


async def send_message(source: MessageSource, text: str, channel: str | None) -> bool:
    """发送消息并打印结果"""
    orchestrator = await _build_orchestrator()
    try:
        result = await orchestrator.engine.send(text, source, channel)
    finally:
        await orchestrator.engine.aclose()
        await orchestrator.cache.close()

    if result.success:
        print(f"已发送到 {result.provider_key}")
    else:
        print(f"发送失败: {result.error}")
    return result.success


if __name__ == "__main__":
    main()
