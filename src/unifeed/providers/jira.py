"""JiraProvider -- 一组项目的 issue 更新

使用 issue 的数字 id 作为消息 ID（跨项目唯一），而不是从 key 中提取数字
（PROJ-1 与 OPS-1 会冲突）。发送即在第一个项目中创建 Task。

JQL 中的时间字面量按 API 用户的 profile 时区解释，
因此 updated 下限需换算到配置的时区（JIRA_TIMEZONE，默认 UTC）。
"""

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
import structlog

from ..models import Message, MessageSource, ensure_utc
from .base import HttpProvider, parse_int_id, parse_timestamp
from .exceptions import ProviderError

log = structlog.get_logger()

# 单次搜索的条数上限
SEARCH_MAX_RESULTS = 100


class JiraProvider(HttpProvider):
    """Jira 项目 provider，回复路由由 provider 内部处理"""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        project_keys: list[str],
        timezone: str = "UTC",
        timeout_s: float = 30.0,
        client=None,
    ) -> None:
        self._project_keys = project_keys
        self._tz = ZoneInfo(timezone)
        super().__init__(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout_s=timeout_s,
            auth=httpx.BasicAuth(email, api_token),
            client=client,
        )

    def source(self) -> MessageSource:
        return MessageSource.JIRA

    def build_jql(self, since: datetime | None = None) -> str:
        """构造 JQL：项目过滤 + 可选更新时间下限，按更新时间倒序"""
        if len(self._project_keys) == 1:
            jql = f"project = {self._project_keys[0]}"
        else:
            jql = f"project IN ({', '.join(self._project_keys)})"
        if since is not None:
            since_str = ensure_utc(since).astimezone(self._tz).strftime("%Y-%m-%d %H:%M")
            jql += f" AND updated >= '{since_str}'"
        return jql + " ORDER BY updated DESC"

    async def fetch_messages(self, since: datetime | None = None) -> list[Message]:
        data = await self._request_json(
            "GET",
            "/rest/api/3/search",
            params={
                "jql": self.build_jql(since),
                "maxResults": SEARCH_MAX_RESULTS,
                "fields": "summary,status,assignee,updated",
            },
        )
        issues = data.get("issues") if isinstance(data, dict) else None

        messages = []
        for issue in issues or []:
            message = self._parse_issue(issue)
            if message is not None:
                messages.append(message)
        return messages

    async def send_message(self, content: str) -> None:
        if not self._project_keys:
            raise ProviderError(
                f"{self.provider_key()} 未配置项目，无法创建 issue",
                recoverable=False,
            )
        payload = {
            "fields": {
                "project": {"key": self._project_keys[0]},
                "summary": content,
                "description": {
                    "type": "doc",
                    "version": 1,
                    "content": [
                        {
                            "type": "paragraph",
                            "content": [{"type": "text", "text": content}],
                        }
                    ],
                },
                "issuetype": {"name": "Task"},
            }
        }
        await self._request("POST", "/rest/api/3/issue", json=payload)
        log.info("jira_issue_created", project_key=self._project_keys[0])

    @staticmethod
    def _parse_issue(issue: dict[str, Any]) -> Message | None:
        issue_id = parse_int_id(issue.get("id"))
        key = issue.get("key")
        fields = issue.get("fields") or {}
        timestamp = parse_timestamp(fields.get("updated"))
        if issue_id is None or not key or timestamp is None:
            return None

        summary = fields.get("summary") or "No summary"
        status = (fields.get("status") or {}).get("name") or "Unknown"
        assignee = (fields.get("assignee") or {}).get("displayName") or "Unassigned"
        return Message(
            id=issue_id,
            source=MessageSource.JIRA,
            content=f"{key}: {summary} (Status: {status})",
            timestamp=timestamp,
            author=assignee,
        )
