"""RefreshScheduler -- 周期刷新 + 单飞保护

状态机: Idle -> Refreshing -> Idle
- 同一时间最多一个 sync_incremental 在途，在途期间的刷新请求为 no-op
- 用户交互中（例如正在输入）定时器不触发刷新
- 失败的刷新保留上一次的消息视图
"""

import asyncio
import time
from collections.abc import Callable

import structlog

from ..models import Message, RefreshState, SyncReport
from .orchestrator import SyncOrchestrator

log = structlog.get_logger()


class RefreshScheduler:
    """刷新调度器"""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval_s: float = 30.0,
        limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval_s = interval_s
        self._limit = limit
        self._clock = clock

        self._state = RefreshState.IDLE
        self._interacting = False
        self._messages: list[Message] = []
        self._last_report: SyncReport | None = None
        self._last_refresh_at = clock()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state is RefreshState.REFRESHING

    @property
    def interacting(self) -> bool:
        return self._interacting

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    def set_interacting(self, active: bool) -> None:
        """标记用户是否正在交互；交互期间定时刷新被抑制"""
        self._interacting = active

    def seed(self, messages: list[Message]) -> None:
        """用初始加载结果填充视图，并从此刻重新计时"""
        self._messages = list(messages)
        self._last_refresh_at = self._clock()

    def is_due(self) -> bool:
        return self._clock() - self._last_refresh_at >= self._interval_s

    async def refresh(self) -> bool:
        """执行一轮刷新（手动触发与定时触发同一路径）

        Returns:
            True 表示本次确实执行了同步；交互中或已有刷新在途时返回 False
        """
        if self._interacting:
            log.debug("refresh_suppressed", reason="interacting")
            return False
        # 检查与置位之间没有 await，事件循环内不会交错
        if self._state is RefreshState.REFRESHING:
            log.debug("refresh_suppressed", reason="in_flight")
            return False
        self._state = RefreshState.REFRESHING

        try:
            report = await self._orchestrator.sync_incremental(self._limit)
        except Exception as e:
            log.error(
                "refresh_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
        else:
            self._last_report = report
            self._messages = list(report.messages)
        finally:
            self._state = RefreshState.IDLE
            self._last_refresh_at = self._clock()
        return True

    async def tick(self) -> bool:
        """定时器回调：到期才刷新"""
        if not self.is_due():
            return False
        return await self.refresh()

    def start(self) -> None:
        """启动后台定时循环（需在事件循环内调用）"""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="unifeed-refresh")
        log.info("refresh_scheduler_started", interval_s=self._interval_s)

    async def stop(self) -> None:
        """停止后台循环，等待在途刷新被取消"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("refresh_scheduler_stopped")

    async def _run(self) -> None:
        poll_s = min(1.0, self._interval_s)
        while True:
            await asyncio.sleep(poll_s)
            await self.tick()
