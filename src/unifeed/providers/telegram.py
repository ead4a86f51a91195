"""TelegramProvider -- Telegram Bot API

getUpdates 的 offset 参数天然支持增量拉取：offset = 水位 + 1。
以 update_id 作为消息 ID（同一 bot 内单调递增）。

只确认（offset 越过）已写入缓存的 update：缓存写失败时水位不前进，
下一轮用同一 offset 仍能拿到同一批 update。例外是批次开头连续被丢弃的
update（非目标会话、不含消息或缺少日期），它们永远不会产生消息，
provider 记下其最大 update_id 作为 offset 下限，否则积满一页后会堵住后续消息。

附件 url 保存的是 file_id（provider 内部引用），下载前需调用 getFile 解析。
"""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from ..models import Attachment, AttachmentType, Message, MessageSource, classify_attachment
from .base import HttpProvider, parse_int_id
from .exceptions import ProviderError

log = structlog.get_logger()

TELEGRAM_API_URL = "https://api.telegram.org"

# 单次 getUpdates 的条数上限（Bot API 最大 100）
UPDATES_LIMIT = 100

# 携带附件的 message 字段 -> 缺省文件名
_MEDIA_FIELDS: dict[str, str] = {
    "document": "document",
    "video": "video.mp4",
    "audio": "audio.mp3",
    "voice": "voice.ogg",
    "animation": "animation.mp4",
}


class TelegramProvider(HttpProvider):
    """Telegram Bot provider

    一个 bot 对应一个 provider。配置 chat_ids 时只保留这些会话的消息，
    发送默认投递到第一个会话（由 provider 内部路由，channel_id 为 None）。
    """

    def __init__(
        self,
        bot_token: str,
        chat_ids: list[str] | None = None,
        timeout_s: float = 30.0,
        client=None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_ids = [str(c) for c in chat_ids or []]
        # 批次开头连续被丢弃的 update 的最大 ID
        self._skipped_through: int | None = None
        super().__init__(
            base_url=f"{TELEGRAM_API_URL}/bot{bot_token}",
            timeout_s=timeout_s,
            client=client,
        )

    def source(self) -> MessageSource:
        return MessageSource.TELEGRAM

    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        """拉取尚未确认的 update（offset 只越过开头被丢弃的 update）"""
        messages = await self._get_updates(offset=self._offset_for(None))
        if since is not None:
            messages = [m for m in messages if m.timestamp > since]
        return messages

    async def fetch_messages_since_id(self, last_id: int | None) -> list[Message]:
        """以 offset = last_id + 1 拉取新 update"""
        return await self._get_updates(offset=self._offset_for(last_id))

    async def send_message(self, content: str) -> None:
        chat_id = self._default_chat()
        await self._call("POST", "/sendMessage", json={"chat_id": chat_id, "text": content})
        log.info("telegram_message_sent", chat_id=chat_id)

    async def send_message_with_attachment(self, content: str, attachment_path: str) -> None:
        chat_id = self._default_chat()
        path = Path(attachment_path)
        with path.open("rb") as fh:
            await self._call(
                "POST",
                "/sendDocument",
                data={"chat_id": chat_id, "caption": content},
                files={"document": (path.name, fh.read())},
            )
        log.info("telegram_document_sent", chat_id=chat_id, filename=path.name)

    async def resolve_attachment_url(self, attachment: Attachment) -> str:
        """file_id -> getFile -> 可下载地址"""
        result = await self._call("GET", "/getFile", params={"file_id": attachment.url})
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not file_path:
            raise ProviderError(f"{self.provider_key()} getFile 未返回 file_path")
        return f"{TELEGRAM_API_URL}/file/bot{self._bot_token}/{file_path}"

    def _offset_for(self, last_id: int | None) -> int | None:
        floors = [i for i in (last_id, self._skipped_through) if i is not None]
        return max(floors) + 1 if floors else None

    def _default_chat(self) -> str:
        if not self._chat_ids:
            raise ProviderError(
                f"{self.provider_key()} 未配置 chat_id，无法发送",
                recoverable=False,
            )
        return self._chat_ids[0]

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        """调用 Bot API，ok=false 视为 provider 错误"""
        data = await self._request_json(method, path, **kwargs)
        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise ProviderError(f"{self.provider_key()} Bot API 调用失败: {description}")
        return data.get("result")

    async def _get_updates(self, offset: int | None) -> list[Message]:
        params: dict[str, Any] = {
            "limit": UPDATES_LIMIT,
            "allowed_updates": '["message", "channel_post"]',
        }
        if offset is not None:
            params["offset"] = offset
        updates = await self._call("GET", "/getUpdates", params=params) or []

        messages = []
        leading_skips = True
        for update in sorted(updates, key=lambda u: parse_int_id(u.get("update_id")) or 0):
            message = self._parse_update(update)
            if message is not None:
                messages.append(message)
                leading_skips = False
            elif leading_skips:
                self._mark_skipped(parse_int_id(update.get("update_id")))
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages

    def _mark_skipped(self, update_id: int | None) -> None:
        if update_id is None:
            return
        if self._skipped_through is None or update_id > self._skipped_through:
            self._skipped_through = update_id
            log.debug("telegram_updates_skipped", skipped_through=update_id)

    def _parse_update(self, update: dict[str, Any]) -> Message | None:
        update_id = parse_int_id(update.get("update_id"))
        msg = update.get("message") or update.get("channel_post")
        if update_id is None or not isinstance(msg, dict):
            return None

        chat_id = str((msg.get("chat") or {}).get("id", ""))
        if self._chat_ids and chat_id not in self._chat_ids:
            return None

        date = msg.get("date")
        if not isinstance(date, int):
            return None

        sender = msg.get("from") or {}
        author = sender.get("username") or sender.get("first_name")

        return Message(
            id=update_id,
            source=MessageSource.TELEGRAM,
            content=msg.get("text") or msg.get("caption") or "",
            timestamp=datetime.fromtimestamp(date, tz=UTC),
            author=author,
            attachments=self._parse_attachments(msg),
            channel_id=chat_id or None,
        )

    @staticmethod
    def _parse_attachments(msg: dict[str, Any]) -> list[Attachment]:
        attachments = []

        photos = msg.get("photo")
        if isinstance(photos, list) and photos:
            # 同一张图的多个尺寸，取最大的一张
            largest = photos[-1]
            attachments.append(
                Attachment(
                    filename="photo.jpg",
                    url=largest.get("file_id", ""),
                    file_type=AttachmentType.IMAGE,
                    size=largest.get("file_size"),
                )
            )

        for field, default_name in _MEDIA_FIELDS.items():
            media = msg.get(field)
            if not isinstance(media, dict) or not media.get("file_id"):
                continue
            filename = media.get("file_name") or default_name
            attachments.append(
                Attachment(
                    filename=filename,
                    url=media["file_id"],
                    file_type=classify_attachment(filename, media.get("mime_type")),
                    size=media.get("file_size"),
                )
            )
        return attachments
