"""GitHubProvider 测试 -- notifications / events 两个 feed"""

from datetime import UTC, datetime

import httpx
import pytest
from unifeed.models import MessageSource
from unifeed.providers import GitHubProvider, UnsupportedOperationError
from unifeed.providers.github import GITHUB_API_URL

NOTIFICATIONS = [
    {
        "id": "3001",
        "updated_at": "2024-01-01T12:30:00Z",
        "reason": "mention",
        "subject": {"title": "Fix flaky test"},
        "repository": {"full_name": "acme/api"},
    },
    {
        "id": "3000",
        "updated_at": "2024-01-01T11:00:00Z",
        "reason": "review_requested",
        "subject": {"title": "Add cache"},
        "repository": {"full_name": "acme/web"},
    },
]

EVENTS = [
    {
        "id": "40001",
        "type": "PushEvent",
        "created_at": "2024-01-01T12:00:00Z",
        "actor": {"login": "carol"},
        "repo": {"name": "acme/api"},
        "payload": {"commits": [{}, {}]},
    },
    {
        "id": "40002",
        "type": "PullRequestEvent",
        "created_at": "2024-01-01T12:10:00Z",
        "actor": {"login": "carol"},
        "repo": {"name": "acme/web"},
        "payload": {"action": "opened", "pull_request": {"title": "Dark mode"}},
    },
    {
        "id": "40003",
        "type": "WatchEvent",
        "created_at": "2024-01-01T12:20:00Z",
        "actor": {"login": "dave"},
        "repo": {"name": "acme/web"},
    },
]


def _provider(handler, feed="notifications") -> GitHubProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=GITHUB_API_URL)
    return GitHubProvider(token="ghp", username="carol", feed=feed, client=client)


class TestGitHubNotifications:
    def test_provider_keys_distinguish_feeds(self):
        notifications = GitHubProvider(token="t", username="u", feed="notifications")
        events = GitHubProvider(token="t", username="u", feed="events")
        assert notifications.provider_key() == "Github:notifications"
        assert events.provider_key() == "Github:events"
        assert notifications.source() == events.source() == MessageSource.GITHUB

    async def test_notification_summary(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/notifications"
            return httpx.Response(200, json=NOTIFICATIONS)

        messages = await _provider(handler).fetch_messages()

        assert [m.id for m in messages] == [3001, 3000]
        assert messages[0].content == "acme/api: Fix flaky test (mention)"
        assert messages[0].author == "GitHub"

    async def test_since_passed_and_filtered(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=NOTIFICATIONS)

        since = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        messages = await _provider(handler).fetch_messages(since)

        assert "since" in seen[0].url.params
        assert [m.id for m in messages] == [3001]

    async def test_since_id_filters_by_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=NOTIFICATIONS)

        messages = await _provider(handler).fetch_messages_since_id(3000)
        assert [m.id for m in messages] == [3001]


class TestGitHubEvents:
    async def test_event_summaries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/users/carol/events"
            return httpx.Response(200, json=EVENTS)

        messages = await _provider(handler, feed="events").fetch_messages()

        by_id = {m.id: m for m in messages}
        assert by_id[40001].content == "carol pushed 2 commits to acme/api"
        assert by_id[40002].content == "carol opened PR: Dark mode in acme/web"
        assert by_id[40003].content == "dave WatchEvent in acme/web"
        assert [m.id for m in messages] == [40003, 40002, 40001]


class TestGitHubSend:
    async def test_send_not_supported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("不应发出请求")

        with pytest.raises(UnsupportedOperationError) as exc_info:
            await _provider(handler).send_message("hi")
        assert exc_info.value.recoverable is False
