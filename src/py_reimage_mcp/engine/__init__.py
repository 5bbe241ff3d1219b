"""图像转码处理引擎模块。

包含批量调度、批次并发执行和设置变化后的重新处理协调。
"""

from .batch import BatchScheduler, resolve_output_format
from .concurrent_executor import BatchExecutor, iter_batches
from .coordinator import CoordinatorState, ReprocessCoordinator


__all__ = [
    "BatchExecutor",
    "BatchScheduler",
    "CoordinatorState",
    "ReprocessCoordinator",
    "iter_batches",
    "resolve_output_format",
]
