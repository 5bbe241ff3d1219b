"""批量处理结果模型。

根据记录快照汇总一次批量转码的统计信息。
"""

from collections.abc import Iterable
from typing import Any

from humanize import naturalsize
from pydantic import BaseModel, Field

from .file_record import FileRecord, FileStatus


class BatchSummary(BaseModel):
    """批量转码统计"""

    total: int = Field(0, description="记录总数")
    completed: int = Field(0, description="成功数量")
    failed: int = Field(0, description="失败数量")
    pending: int = Field(0, description="待处理数量")
    processing: int = Field(0, description="处理中数量")
    total_original_size: int = Field(0, description="成功文件的原始总大小")
    total_encoded_size: int = Field(0, description="成功文件的编码后总大小")

    @classmethod
    def from_records(cls, records: Iterable[FileRecord]) -> "BatchSummary":
        summary: dict[str, Any] = {
            "total": 0,
            "completed": 0,
            "failed": 0,
            "pending": 0,
            "processing": 0,
            "total_original_size": 0,
            "total_encoded_size": 0,
        }
        for record in records:
            summary["total"] += 1
            match record.status:
                case FileStatus.COMPLETED:
                    summary["completed"] += 1
                    if record.artifact is not None:
                        summary["total_original_size"] += record.artifact.original_size
                        summary["total_encoded_size"] += record.artifact.size
                case FileStatus.ERROR:
                    summary["failed"] += 1
                case FileStatus.PENDING:
                    summary["pending"] += 1
                case FileStatus.PROCESSING:
                    summary["processing"] += 1
        return cls(**summary)

    def get_total_size_saved(self) -> int:
        """总节省大小"""
        return max(0, self.total_original_size - self.total_encoded_size)

    def get_success_rate(self) -> float:
        """成功率（百分比）"""
        finished = self.completed + self.failed
        if finished == 0:
            return 0.0
        return self.completed / finished * 100

    def get_summary(self) -> str:
        """批量处理摘要"""
        size_saved = naturalsize(self.get_total_size_saved(), binary=True)
        return (
            f"处理 {self.completed}/{self.total} 个文件 "
            f"(成功率 {self.get_success_rate():.1f}%), "
            f"总节省 {size_saved}"
        )
