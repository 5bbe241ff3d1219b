"""重新处理协调模块。

设置变化后（防抖）把已完成/失败的文件恢复为 pending 并重新跑一遍批量转码。

状态机: IDLE → ARMED（计时中）→ FIRING（重置并运行）→ IDLE

批量任务运行期间的设置变化不会丢失：先记为 deferred，
任务结束后重新计时，保证之前完成的文件最终按新设置重新处理。
"""

import asyncio
from enum import Enum

from ..config import get_config
from ..models.settings import Settings
from ..store.record_store import RecordStore
from ..utils.logging_helpers import get_logger
from .batch import BatchScheduler


logger = get_logger()


class CoordinatorState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRING = "firing"


class ReprocessCoordinator:
    """设置变化驱动的重新处理协调器"""

    def __init__(
        self,
        store: RecordStore,
        scheduler: BatchScheduler,
        debounce_seconds: float | None = None,
    ):
        """初始化协调器并订阅存储的设置/处理中变化

        Args:
            store: 记录存储
            scheduler: 批量调度器
            debounce_seconds: 防抖时间，默认读取配置（0.5 秒）
        """
        self.store = store
        self.scheduler = scheduler
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else get_config().debounce_seconds
        )
        self.state = CoordinatorState.IDLE
        self.deferred = False
        self._last_key = store.settings.reprocess_key()
        self._timer: asyncio.TimerHandle | None = None
        self._firing: asyncio.Task | None = None
        self._unsubscribers = [
            store.subscribe_settings(self.on_settings_changed),
            store.subscribe_processing(self._on_processing_changed),
        ]

    def _has_finished_records(self) -> bool:
        return any(record.is_finished for record in self.store.snapshot())

    def on_settings_changed(self, settings: Settings) -> None:
        """设置变化回调"""
        # 运行中的产物可能按任意一版设置生成，不能与 _last_key 比较
        if self.store.is_processing:
            logger.debug("批量任务运行中，推迟重新处理")
            self.deferred = True
            return

        key = settings.reprocess_key()
        if key == self._last_key:
            # 改回了当前产物对应的设置，取消等待中的重新处理
            if self.state is CoordinatorState.ARMED:
                self._cancel_timer()
                self.state = CoordinatorState.IDLE
            return

        if not self._has_finished_records():
            self._last_key = key
            return

        self._arm()

    def _on_processing_changed(self, processing: bool) -> None:
        if processing or not self.deferred:
            return
        if self._has_finished_records():
            logger.debug("批量任务结束，处理推迟的设置变化")
            self._arm()
        else:
            self.deferred = False

    def _arm(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("没有运行中的事件循环，推迟重新处理")
            self.deferred = True
            return

        self._cancel_timer()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)
        if self.state is not CoordinatorState.FIRING:
            self.state = CoordinatorState.ARMED

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._start_firing()

    def _start_firing(self) -> None:
        self._firing = asyncio.get_running_loop().create_task(self._fire())

    async def _fire(self) -> None:
        self.state = CoordinatorState.FIRING
        try:
            if self.store.is_processing:
                self.deferred = True
                return

            reset_count = 0
            for record in self.store.snapshot():
                if record.is_finished:
                    self.store.reset_record(record.id)
                    reset_count += 1
            self.deferred = False
            key = self.store.settings.reprocess_key()

            logger.info(f"设置已变化，重新处理 {reset_count} 个文件")
            await self.scheduler.run_exclusive()
            self._last_key = key
        except Exception as e:
            logger.error(f"重新处理失败: {e}")
        finally:
            if self.state is CoordinatorState.FIRING:
                self.state = (
                    CoordinatorState.ARMED if self._timer is not None else CoordinatorState.IDLE
                )

    async def flush(self) -> None:
        """立即执行等待中或推迟的重新处理，并等待其完成"""
        while True:
            if self.deferred and self._timer is None and not self.store.is_processing:
                if self._has_finished_records():
                    self._start_firing()
                else:
                    self.deferred = False
            elif self._timer is not None:
                self._cancel_timer()
                self._start_firing()

            firing = self._firing
            if firing is None or firing.done():
                return
            await firing

    def close(self) -> None:
        """取消计时器并停止订阅"""
        self._cancel_timer()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.state = CoordinatorState.IDLE
