"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

# 从导出模块导入
from .archive import artifact_filename, build_archive, write_archive, write_artifact

# 从文件助手模块导入
from .file_helpers import find_image_files, get_image_mime_type, load_source_file

# 从日志工具模块导入
from .logging_helpers import configure_logging, get_logger

# 从消息格式化模块导入
from .message_formatter import MessageFormatter

# 从命名助手模块导入
from .naming_helpers import (
    ensure_unique_path,
    get_output_filename,
    make_unique_name,
    strip_extension,
)


__all__ = [
    "MessageFormatter",
    "artifact_filename",
    "build_archive",
    "configure_logging",
    "ensure_unique_path",
    "find_image_files",
    "get_image_mime_type",
    "get_logger",
    "get_output_filename",
    "load_source_file",
    "make_unique_name",
    "strip_extension",
    "write_archive",
    "write_artifact",
]
