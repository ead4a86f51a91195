"""FastAPI lifespan 测试

1. 启动时创建缓存、组装同步组件并启动刷新调度
2. 关闭时停止调度并关闭连接
"""

from pathlib import Path

import pytest
from unifeed.models import RefreshState
from unifeed.store import CacheError

_PROVIDER_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "DISCORD_USER_TOKEN",
    "GITHUB_TOKEN",
    "JIRA_BASE_URL",
]


@pytest.fixture
def gateway_env(tmp_path: Path, monkeypatch) -> Path:
    db_path = tmp_path / "sqlite" / "lifespan.db"
    monkeypatch.setenv("UNIFEED_DB_PATH", str(db_path))
    monkeypatch.setenv("UNIFEED_REFRESH_INTERVAL_S", "3600")
    for name in _PROVIDER_VARS:
        monkeypatch.delenv(name, raising=False)
    return db_path


class TestLifespan:
    async def test_startup_and_shutdown(self, gateway_env: Path):
        from unifeed.gateway.main import create_app

        app = create_app()

        async with app.router.lifespan_context(app):
            assert gateway_env.exists()
            assert app.state.engine.provider_keys == []
            assert app.state.scheduler.state == RefreshState.IDLE
            assert app.state.scheduler.interval_s == 3600
            assert app.state.scheduler.messages == []
            cache = app.state.cache

        # 关闭后连接不可再用
        with pytest.raises(CacheError):
            await cache.get_cached()
