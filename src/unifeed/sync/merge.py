"""内存合并：按组合身份去重 + 按时间倒序排序 + 截断"""

from collections.abc import Iterable

from ..models import Message, MessageIdentity


def merge_messages(
    *batches: Iterable[Message],
    limit: int | None = None,
) -> list[Message]:
    """合并多批消息

    同一组合身份 (source, id) 只保留最先出现的一条，
    因此较新的数据应作为靠前的 batch 传入。
    排序为稳定排序：时间戳相同的消息保持到达顺序。

    Args:
        *batches: 消息批次
        limit: 截断条数，None 表示不截断

    Returns:
        按 timestamp 倒序（最新在前）的消息列表
    """
    seen: set[MessageIdentity] = set()
    merged: list[Message] = []
    for batch in batches:
        for message in batch:
            if message.identity in seen:
                continue
            seen.add(message.identity)
            merged.append(message)

    merged.sort(key=lambda m: m.timestamp, reverse=True)
    if limit is not None:
        return merged[:limit]
    return merged
