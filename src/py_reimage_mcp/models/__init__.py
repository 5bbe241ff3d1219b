"""数据模型包。

定义文件记录、转码设置和结果统计等数据结构。
"""

from .constants import (
    ImageFormats,
    OutputFormat,
    Preset,
    PresetValues,
    ProgressSteps,
    format_from_mime_type,
    get_mime_type,
    get_pillow_format,
    mime_type_from_extension,
)
from .file_record import (
    FileRecord,
    FileStatus,
    ProcessedArtifact,
    SourceFile,
    make_file_id,
)
from .results import BatchSummary
from .settings import CodecOptions, Settings


__all__ = [
    "BatchSummary",
    "CodecOptions",
    "FileRecord",
    "FileStatus",
    "ImageFormats",
    "OutputFormat",
    "Preset",
    "PresetValues",
    "ProcessedArtifact",
    "ProgressSteps",
    "Settings",
    "SourceFile",
    "format_from_mime_type",
    "get_mime_type",
    "get_pillow_format",
    "make_file_id",
    "mime_type_from_extension",
]
