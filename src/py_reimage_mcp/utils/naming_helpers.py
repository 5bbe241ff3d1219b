"""文件命名工具模块。

生成导出文件名，并保证写入目录或压缩包时名称不冲突。
"""

import itertools
import re
from collections.abc import Container
from pathlib import Path

from ..models.constants import OutputFormat


_EXTENSION_PATTERN = re.compile(r"\.[^.]+$")


def strip_extension(name: str) -> str:
    """去掉最后一个扩展名"""
    return _EXTENSION_PATTERN.sub("", name)


def get_output_filename(
    original_name: str,
    output_format: OutputFormat | str,
    width: int,
    quality: int,
) -> str:
    """生成导出文件名: {原文件名}_w{宽度}_q{质量}.{格式}

    Examples:
        >>> get_output_filename("photo.jpg", "webp", 2048, 80)
        'photo_w2048_q80.webp'
    """
    extension = OutputFormat(output_format).value
    return f"{strip_extension(original_name)}_w{width}_q{quality}.{extension}"


def make_unique_name(name: str, taken: Container[str]) -> str:
    """名称已被占用时添加数字后缀: photo.webp → photo_1.webp"""
    if name not in taken:
        return name

    stem = strip_extension(name)
    suffix = name[len(stem) :]
    for counter in itertools.count(1):
        candidate = f"{stem}_{counter}{suffix}"
        if candidate not in taken:
            return candidate

    return name  # pragma: no cover


def ensure_unique_path(path: Path) -> Path:
    """确保路径唯一，如果文件已存在则添加数字后缀"""
    if not path.exists():
        return path

    for counter in itertools.count(1):
        new_path = path.parent / f"{path.stem}_{counter}{path.suffix}"
        if not new_path.exists():
            return new_path

    return path  # pragma: no cover
