"""GitHubProvider -- 通知与用户事件（只读）

内容为合成摘要而非原始文本。notifications 与 events 的 ID 不在同一序列，
因此拆成两个 provider 实例（各自独立水位）：Github:notifications / Github:events。
"""

from datetime import datetime
from typing import Any, Literal

from ..models import Message, MessageSource
from .base import HttpProvider, parse_int_id, parse_timestamp
from .exceptions import UnsupportedOperationError

GITHUB_API_URL = "https://api.github.com"

GitHubFeed = Literal["notifications", "events"]


def _summarize_event(event: dict[str, Any], actor: str, repo: str) -> str:
    """将 GitHub 事件转换为一行摘要"""
    event_type = event.get("type") or "Unknown"
    payload = event.get("payload") or {}
    if event_type == "PushEvent":
        commits = len(payload.get("commits") or [])
        return f"{actor} pushed {commits} commits to {repo}"
    if event_type == "IssuesEvent":
        action = payload.get("action") or "unknown"
        title = (payload.get("issue") or {}).get("title") or "issue"
        return f"{actor} {action} issue: {title} in {repo}"
    if event_type == "PullRequestEvent":
        action = payload.get("action") or "unknown"
        title = (payload.get("pull_request") or {}).get("title") or "PR"
        return f"{actor} {action} PR: {title} in {repo}"
    return f"{actor} {event_type} in {repo}"


class GitHubProvider(HttpProvider):
    """GitHub 只读 provider"""

    def __init__(
        self,
        token: str,
        username: str,
        feed: GitHubFeed = "notifications",
        timeout_s: float = 30.0,
        client=None,
    ) -> None:
        self._username = username
        self._feed = feed
        super().__init__(
            base_url=GITHUB_API_URL,
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "unifeed",
            },
            timeout_s=timeout_s,
            client=client,
        )

    def source(self) -> MessageSource:
        return MessageSource.GITHUB

    def provider_key(self) -> str:
        return f"{self.source().value}:{self._feed}"

    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        if self._feed == "notifications":
            params = {"since": since.isoformat()} if since is not None else None
            items = await self._request_json("GET", "/notifications", params=params)
            parse = self._parse_notification
        else:
            items = await self._request_json("GET", f"/users/{self._username}/events")
            parse = self._parse_event

        messages = []
        for item in items if isinstance(items, list) else []:
            message = parse(item)
            if message is None:
                continue
            if since is not None and message.timestamp <= since:
                continue
            messages.append(message)
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages

    async def send_message(self, content: str) -> None:
        raise UnsupportedOperationError(self.provider_key())

    @staticmethod
    def _parse_notification(item: dict[str, Any]) -> Message | None:
        notification_id = parse_int_id(item.get("id"))
        timestamp = parse_timestamp(item.get("updated_at"))
        if notification_id is None or timestamp is None:
            return None

        subject = (item.get("subject") or {}).get("title") or "No title"
        reason = item.get("reason") or "notification"
        repo = (item.get("repository") or {}).get("full_name") or "unknown/repo"
        return Message(
            id=notification_id,
            source=MessageSource.GITHUB,
            content=f"{repo}: {subject} ({reason})",
            timestamp=timestamp,
            author="GitHub",
        )

    @staticmethod
    def _parse_event(item: dict[str, Any]) -> Message | None:
        event_id = parse_int_id(item.get("id"))
        timestamp = parse_timestamp(item.get("created_at"))
        if event_id is None or timestamp is None:
            return None

        actor = (item.get("actor") or {}).get("login") or "Unknown"
        repo = (item.get("repo") or {}).get("name") or "unknown/repo"
        return Message(
            id=event_id,
            source=MessageSource.GITHUB,
            content=_summarize_event(item, actor, repo),
            timestamp=timestamp,
            author=actor,
        )
