"""并发执行器模块。

把任务划分为固定宽度的批次，批内并发、批间串行执行。
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

from ..utils.logging_helpers import get_logger


logger = get_logger()

T = TypeVar("T")
R = TypeVar("R")


def iter_batches(items: Sequence[T], width: int) -> Iterator[Sequence[T]]:
    """按顺序切分为宽度为 width 的批次（最后一批可能更短）"""
    width = max(1, width)
    for start in range(0, len(items), width):
        yield items[start : start + width]


class BatchExecutor:
    """批次并发执行器

    同一批次内的任务同时运行，全部结束（成功或失败）后才开始下一批，
    任意时刻进行中的任务数不超过批次宽度。
    """

    def __init__(self, max_width: int = 1):
        """初始化执行器

        Args:
            max_width: 批次宽度上限
        """
        self.max_width = max(1, max_width)

    def get_width(self, task_count: int) -> int:
        """实际批次宽度，不超过任务数"""
        return max(1, min(self.max_width, task_count))

    async def execute(
        self,
        items: Sequence[T],
        task_function: Callable[[T], Awaitable[R]],
    ) -> list[R | BaseException]:
        """执行任务

        Args:
            items: 任务参数列表
            task_function: 协程函数

        Returns:
            list: 与 items 顺序一致的结果，失败的任务对应异常对象
        """
        if not items:
            return []

        width = self.get_width(len(items))
        results: list[R | BaseException] = []

        for index, batch in enumerate(iter_batches(items, width), start=1):
            logger.debug(f"开始第 {index} 批，共 {len(batch)} 个任务")
            settled = await asyncio.gather(
                *(task_function(item) for item in batch), return_exceptions=True
            )
            for item, result in zip(batch, settled):
                if isinstance(result, BaseException):
                    logger.warning(f"任务异常结束: {item} - {result}")
            results.extend(settled)

        return results
