"""文件记录模型。

每个提交的图像对应一条 FileRecord，记录处理状态机、进度和转码产物。
"""

from enum import Enum
from pathlib import Path
from typing import Any

from humanize import naturalsize
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import OutputFormat, get_mime_type


class FileStatus(str, Enum):
    """文件处理状态"""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


def make_file_id(name: str, size: int, last_modified: int) -> str:
    """由 (文件名, 字节数, 修改时间) 生成去重键"""
    return f"{name}-{size}-{last_modified}"


class SourceFile(BaseModel):
    """源文件句柄，持有原始字节"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="文件名")
    size: int = Field(ge=0, description="文件大小（字节）")
    last_modified: int = Field(0, description="修改时间（毫秒时间戳）")
    mime_type: str = Field("", description="声明的 MIME 类型")
    data: bytes = Field(b"", repr=False, description="原始字节")
    path: Path | None = Field(None, description="来源路径")

    @property
    def file_id(self) -> str:
        return make_file_id(self.name, self.size, self.last_modified)

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        mime_type: str = "",
        last_modified: int = 0,
    ) -> "SourceFile":
        return cls(
            name=name,
            size=len(data),
            last_modified=last_modified,
            mime_type=mime_type,
            data=data,
        )


class ProcessedArtifact(BaseModel):
    """一次成功编码的产物，重新处理时整体替换，不会原地修改"""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False, description="编码后的字节")
    format: OutputFormat = Field(description="实际输出格式")
    width: int = Field(gt=0, description="输出宽度")
    height: int = Field(gt=0, description="输出高度")
    size: int = Field(ge=0, description="编码后大小（字节）")
    original_size: int = Field(ge=0, description="原始大小（字节）")

    @property
    def mime_type(self) -> str:
        return get_mime_type(self.format)

    def get_size_saved(self) -> int:
        """节省的字节数"""
        return max(0, self.original_size - self.size)

    def get_reduction_rate(self) -> int:
        """体积缩减比例（百分比，四舍五入）"""
        if self.original_size == 0:
            return 0
        return round((self.original_size - self.size) / self.original_size * 100)

    def get_summary(self) -> str:
        """转码结果摘要"""
        return (
            f"{naturalsize(self.original_size, binary=True)} → "
            f"{naturalsize(self.size, binary=True)} "
            f"({self.format.value}, {self.width}×{self.height}, "
            f"{self.get_reduction_rate()}% 缩减)"
        )


class FileRecord(BaseModel):
    """单个文件的处理记录

    状态与产物/错误信息的一致性由模型校验保证。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="去重键")
    source: SourceFile = Field(description="源文件句柄")
    preview: bytes | None = Field(None, repr=False, description="预览图")
    status: FileStatus = Field(FileStatus.PENDING, description="处理状态")
    progress: int = Field(0, ge=0, le=100, description="进度 0-100")
    artifact: ProcessedArtifact | None = Field(None, description="转码产物")
    error: str | None = Field(None, description="错误信息")

    @model_validator(mode="after")
    def validate_status_consistency(self) -> "FileRecord":
        match self.status:
            case FileStatus.COMPLETED:
                if self.artifact is None or self.error is not None:
                    raise ValueError("completed 状态必须有产物且没有错误信息")
            case FileStatus.ERROR:
                if self.error is None or self.artifact is not None:
                    raise ValueError("error 状态必须有错误信息且没有产物")
            case _:
                if self.artifact is not None or self.error is not None:
                    raise ValueError(f"{self.status.value} 状态不能带有产物或错误信息")
        return self

    @classmethod
    def from_source(cls, source: SourceFile) -> "FileRecord":
        return cls(id=source.file_id, source=source)

    def evolve(self, **changes: Any) -> "FileRecord":
        """合并部分字段，生成新的（重新校验过的）记录"""
        return FileRecord(**{**dict(self), **changes})

    @property
    def is_finished(self) -> bool:
        return self.status in (FileStatus.COMPLETED, FileStatus.ERROR)
