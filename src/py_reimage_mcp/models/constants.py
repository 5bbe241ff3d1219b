"""图像转码相关常量定义。

输出格式、MIME 类型、扩展名和预设等映射集中在这里，避免硬编码重复。
"""

from enum import Enum
from typing import Final


class OutputFormat(str, Enum):
    """输出格式枚举，ORIGINAL 表示沿用源文件格式"""

    JPG = "jpg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"
    ORIGINAL = "original"


class Preset(str, Enum):
    """质量预设"""

    HIGH_QUALITY = "high-quality"
    BALANCED = "balanced"
    HIGH_COMPRESSION = "high-compression"


class ImageFormats:
    """格式映射表"""

    # 输出格式 -> Pillow 格式名
    PILLOW_FORMATS: Final[dict[OutputFormat, str]] = {
        OutputFormat.JPG: "JPEG",
        OutputFormat.PNG: "PNG",
        OutputFormat.WEBP: "WEBP",
        OutputFormat.AVIF: "AVIF",
    }

    # 输出格式 -> MIME 类型
    MIME_TYPES: Final[dict[OutputFormat, str]] = {
        OutputFormat.JPG: "image/jpeg",
        OutputFormat.PNG: "image/png",
        OutputFormat.WEBP: "image/webp",
        OutputFormat.AVIF: "image/avif",
    }

    # 入口接受的 MIME 类型和扩展名
    SUPPORTED_MIME_TYPES: Final[frozenset[str]] = frozenset(MIME_TYPES.values())
    SUPPORTED_EXTENSIONS: Final[tuple[str, ...]] = (
        ".jpg",
        ".jpeg",
        ".png",
        ".webp",
        ".avif",
    )

    # 扩展名 -> MIME 类型
    EXTENSION_MIME_TYPES: Final[dict[str, str]] = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".webp": "image/webp",
        ".avif": "image/avif",
    }

    # Pillow 识别出的格式名 -> MIME 类型
    PILLOW_MIME_TYPES: Final[dict[str, str]] = {
        "JPEG": "image/jpeg",
        "PNG": "image/png",
        "WEBP": "image/webp",
        "AVIF": "image/avif",
    }


class PresetValues:
    """预设对应的 (质量, 最大边长)"""

    VALUES: Final[dict[Preset, tuple[int, int]]] = {
        Preset.HIGH_QUALITY: (95, 4096),
        Preset.BALANCED: (80, 2048),
        Preset.HIGH_COMPRESSION: (60, 1920),
    }


class ProgressSteps:
    """单个文件处理流程中的进度节点"""

    START: Final[int] = 0
    DECODED: Final[int] = 10
    RESIZED: Final[int] = 30
    PIXELS_EXTRACTED: Final[int] = 50
    ENCODING: Final[int] = 70
    DONE: Final[int] = 100


# 便捷访问函数
def get_mime_type(output_format: OutputFormat | str) -> str:
    """获取输出格式的 MIME 类型，未知格式按 JPEG 处理"""
    return ImageFormats.MIME_TYPES.get(OutputFormat(output_format), "image/jpeg")


def get_pillow_format(output_format: OutputFormat | str) -> str:
    """获取 Pillow 保存时使用的格式名"""
    return ImageFormats.PILLOW_FORMATS[OutputFormat(output_format)]


def format_from_mime_type(mime_type: str | None) -> OutputFormat:
    """根据源文件 MIME 类型推断输出格式（用于 original）"""
    for output_format, mime in ImageFormats.MIME_TYPES.items():
        if mime == (mime_type or "").lower():
            return output_format
    return OutputFormat.JPG


def mime_type_from_extension(filename: str) -> str | None:
    """根据扩展名推断 MIME 类型"""
    lowered = filename.lower()
    for ext, mime in ImageFormats.EXTENSION_MIME_TYPES.items():
        if lowered.endswith(ext):
            return mime
    return None
