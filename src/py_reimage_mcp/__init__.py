"""批量图像缩放与转码库。

基于 Pillow 的批量图像缩放、锐化和 jpg/png/webp/avif 转码。
"""

__version__ = "0.1.0"
__author__ = "crper"
__description__ = "批量图像缩放与转码，支持 AVIF 两级编码"

# 核心功能导出
from .models import BatchSummary, FileRecord, FileStatus, OutputFormat, Preset, Settings
from .transcoder import ImageTranscoder


__all__ = [
    "BatchSummary",
    "FileRecord",
    "FileStatus",
    "ImageTranscoder",
    "OutputFormat",
    "Preset",
    "Settings",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
