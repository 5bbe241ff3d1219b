"""工具函数模块。

从本地路径读取源文件，以及在目录中查找图像文件。
"""

from collections.abc import Iterator
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..models.constants import ImageFormats, mime_type_from_extension
from ..models.file_record import SourceFile
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter


logger = get_logger()


def find_image_files(
    directory: str | Path,
    recursive: bool = True,
) -> Iterator[Path]:
    """查找目录中支持的图像文件（jpg/png/webp/avif）。

    Args:
        directory: 搜索目录
        recursive: 是否递归搜索子目录

    Yields:
        Path: 图像文件路径（按路径排序）
    """
    directory = Path(directory)

    if not directory.exists():
        logger.warning(MessageFormatter.directory_not_found(directory))
        return

    if not directory.is_dir():
        logger.warning(MessageFormatter.path_not_directory(directory))
        return

    pattern = "**/*" if recursive else "*"

    for file_path in sorted(directory.glob(pattern)):
        if file_path.is_file() and file_path.suffix.lower() in ImageFormats.SUPPORTED_EXTENSIONS:
            yield file_path


def get_image_mime_type(file_path: str | Path) -> str | None:
    """通过 Pillow 识别文件内容获取 MIME 类型

    Returns:
        str | None: MIME 类型，如 'image/jpeg'，无法识别时返回 None
    """
    try:
        with Image.open(file_path) as img:
            if img.format:
                return ImageFormats.PILLOW_MIME_TYPES.get(
                    img.format, Image.MIME.get(img.format)
                )
            return None
    except (OSError, UnidentifiedImageError) as e:
        logger.debug(MessageFormatter.operation_failed("获取 MIME 类型", file_path, e))
        return None


def load_source_file(file_path: str | Path, read_data: bool = True) -> SourceFile:
    """读取本地文件为源文件句柄

    修改时间取文件 mtime（毫秒），MIME 类型优先按扩展名推断，
    其次由 Pillow 识别文件内容。

    Args:
        file_path: 文件路径
        read_data: 是否读取文件字节；为 False 时只读取元数据（用于先校验再读取）

    Raises:
        FileNotFoundError: 文件不存在
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(MessageFormatter.file_not_found(path))

    stat = path.stat()
    mime_type = mime_type_from_extension(path.name) or get_image_mime_type(path) or ""

    return SourceFile(
        name=path.name,
        size=stat.st_size,
        last_modified=int(stat.st_mtime * 1000),
        mime_type=mime_type,
        data=path.read_bytes() if read_data else b"",
        path=path,
    )
