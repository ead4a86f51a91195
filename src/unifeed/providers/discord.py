"""DiscordProvider -- 单个频道的消息来源

消息 ID 为 snowflake（随时间单调递增），增量拉取使用 after=<水位>。
附件 url 可直接下载。
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from ..models import Attachment, Message, MessageSource, classify_attachment
from .base import HttpProvider, parse_int_id, parse_timestamp

log = structlog.get_logger()

DISCORD_API_URL = "https://discord.com/api/v10"

# 单次拉取的条数上限（Discord API 最大 100）
MESSAGES_LIMIT = 100


class DiscordProvider(HttpProvider):
    """Discord 频道 provider -- 每个频道一个实例，provider_key 为 Discord:<channel_id>"""

    def __init__(
        self,
        user_token: str,
        channel_id: str,
        timeout_s: float = 30.0,
        client=None,
    ) -> None:
        self._channel_id = channel_id
        super().__init__(
            base_url=DISCORD_API_URL,
            headers={"Authorization": user_token},
            timeout_s=timeout_s,
            client=client,
        )

    def source(self) -> MessageSource:
        return MessageSource.DISCORD

    def channel_id(self) -> str | None:
        return self._channel_id

    @property
    def _messages_path(self) -> str:
        return f"/channels/{self._channel_id}/messages"

    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        """拉取频道最新消息，since 在本地按时间过滤（Discord 不支持按时间查询）"""
        messages = await self._list_messages({"limit": MESSAGES_LIMIT})
        if since is not None:
            messages = [m for m in messages if m.timestamp > since]
        return messages

    async def fetch_messages_since_id(self, last_id: int | None) -> list[Message]:
        params: dict[str, Any] = {"limit": MESSAGES_LIMIT}
        if last_id is not None:
            params["after"] = str(last_id)
        return await self._list_messages(params)

    async def send_message(self, content: str) -> None:
        await self._request("POST", self._messages_path, json={"content": content})
        log.info("discord_message_sent", channel_id=self._channel_id)

    async def send_message_with_attachment(self, content: str, attachment_path: str) -> None:
        path = Path(attachment_path)
        with path.open("rb") as fh:
            await self._request(
                "POST",
                self._messages_path,
                data={"payload_json": json.dumps({"content": content})},
                files={"files[0]": (path.name, fh.read())},
            )
        log.info("discord_attachment_sent", channel_id=self._channel_id, filename=path.name)

    async def _list_messages(self, params: dict[str, Any]) -> list[Message]:
        data = await self._request_json("GET", self._messages_path, params=params)
        if not isinstance(data, list):
            return []

        messages = []
        for item in data:
            message = self._parse_message(item)
            if message is not None:
                messages.append(message)
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages

    def _parse_message(self, item: dict[str, Any]) -> Message | None:
        message_id = parse_int_id(item.get("id"))
        timestamp = parse_timestamp(item.get("timestamp"))
        if message_id is None or timestamp is None:
            return None

        attachments = []
        for raw in item.get("attachments") or []:
            url = raw.get("url")
            if not url:
                continue
            filename = raw.get("filename") or "attachment"
            attachments.append(
                Attachment(
                    filename=filename,
                    url=url,
                    file_type=classify_attachment(filename, raw.get("content_type")),
                    size=raw.get("size"),
                )
            )

        return Message(
            id=message_id,
            source=MessageSource.DISCORD,
            content=item.get("content") or "",
            timestamp=timestamp,
            author=(item.get("author") or {}).get("username"),
            attachments=attachments,
            channel_id=self._channel_id,
        )
