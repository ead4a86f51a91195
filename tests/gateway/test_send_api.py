"""发送接口测试

- 200: 发送成功
- 404: 没有匹配的 provider
- 502: provider 返回失败
- 422: 请求体无效
- 发送成功后刷新一轮，失败时不刷新
"""

from httpx import AsyncClient
from unifeed.providers import ProviderUnavailableError


class TestSend:
    async def test_send_to_channel(self, client: AsyncClient, providers):
        telegram, discord = providers

        resp = await client.post(
            "/api/send",
            json={"source": "Discord", "content": "hello", "channel_id": "c1"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["provider_key"] == "Discord:c1"
        assert discord.sent == ["hello"]

    async def test_internal_routing(self, client: AsyncClient, providers):
        telegram, _ = providers

        resp = await client.post(
            "/api/send",
            json={"source": "Telegram", "content": "hi", "channel_id": "chat-9"},
        )

        assert resp.status_code == 200
        assert telegram.sent == ["hi"]

    async def test_no_provider(self, client: AsyncClient):
        resp = await client.post("/api/send", json={"source": "Jira", "content": "x"})

        assert resp.status_code == 404
        data = resp.json()
        assert data["success"] is False
        assert data["error"]

    async def test_unknown_channel(self, client: AsyncClient):
        resp = await client.post(
            "/api/send",
            json={"source": "Discord", "content": "x", "channel_id": "nope"},
        )
        assert resp.status_code == 404

    async def test_provider_failure(self, client: AsyncClient, providers):
        telegram, _ = providers
        telegram.send_error = ProviderUnavailableError("Telegram", "timeout")

        resp = await client.post("/api/send", json={"source": "Telegram", "content": "x"})

        assert resp.status_code == 502
        data = resp.json()
        assert data["success"] is False
        assert data["provider_key"] == "Telegram"
        assert "timeout" in data["error"]

    async def test_success_triggers_refresh(self, client: AsyncClient, test_app, providers):
        telegram, discord = providers
        scheduler = test_app.state.scheduler

        resp = await client.post("/api/send", json={"source": "Telegram", "content": "hi"})

        assert resp.status_code == 200
        assert telegram.since_id_calls == [None]
        assert discord.since_id_calls == [None]
        assert scheduler.last_report is not None
        assert [m.id for m in scheduler.messages] == [2, 7, 1]

    async def test_failure_skips_refresh(self, client: AsyncClient, test_app, providers):
        telegram, _ = providers
        telegram.send_error = ProviderUnavailableError("Telegram", "timeout")

        resp = await client.post("/api/send", json={"source": "Telegram", "content": "x"})

        assert resp.status_code == 502
        assert telegram.since_id_calls == []
        assert test_app.state.scheduler.last_report is None

    async def test_refresh_suppressed_while_interacting(
        self, client: AsyncClient, test_app, providers
    ):
        telegram, _ = providers
        test_app.state.scheduler.set_interacting(True)

        resp = await client.post("/api/send", json={"source": "Telegram", "content": "hi"})

        assert resp.status_code == 200
        assert telegram.sent == ["hi"]
        assert telegram.since_id_calls == []

    async def test_invalid_source(self, client: AsyncClient):
        resp = await client.post("/api/send", json={"source": "Slack", "content": "x"})
        assert resp.status_code == 422

    async def test_empty_content(self, client: AsyncClient):
        resp = await client.post("/api/send", json={"source": "Telegram", "content": ""})
        assert resp.status_code == 422
