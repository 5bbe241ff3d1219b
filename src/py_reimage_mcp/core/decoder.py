"""解码模块。

把源文件字节解码为按 EXIF 方向校正过的 RGB/RGBA 图像，并生成预览图。
"""

import asyncio
from io import BytesIO

from PIL import Image, ImageOps

from ..config import get_config
from ..exceptions import DecodeError, handle_image_errors
from ..models.file_record import SourceFile
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


@handle_image_errors("图像解码")
def decode_image(source: SourceFile) -> Image.Image:
    """解码源文件

    Args:
        source: 源文件句柄

    Returns:
        Image.Image: 已完全加载的 RGB 或 RGBA 图像，调用方负责关闭

    Raises:
        DecodeError: 数据为空或无法解码
    """
    if not source.data:
        raise DecodeError(MessageFormatter.decode_failed("源文件没有数据"))

    with Image.open(BytesIO(source.data)) as opened:
        opened.load()
        oriented = ImageOps.exif_transpose(opened)

    mode = "RGBA" if oriented.has_transparency_data else "RGB"
    if oriented.mode == mode:
        return oriented

    try:
        return oriented.convert(mode)
    finally:
        oriented.close()


async def async_decode_image(source: SourceFile) -> Image.Image:
    """在工作线程中解码"""
    return await asyncio.to_thread(decode_image, source)


def create_preview(source: SourceFile, max_side: int | None = None) -> bytes:
    """生成预览图字节（带透明度时为 PNG，否则为 JPEG）"""
    max_side = max_side or get_config().processing.PREVIEW_MAX_SIZE
    image = decode_image(source)
    try:
        image.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
        buffer = BytesIO()
        if image.mode == "RGBA":
            image.save(buffer, format="PNG", optimize=True)
        else:
            image.save(buffer, format="JPEG", quality=80)
        return buffer.getvalue()
    finally:
        image.close()


async def async_create_preview(source: SourceFile, max_side: int | None = None) -> bytes:
    """在工作线程中生成预览图"""
    return await asyncio.to_thread(create_preview, source, max_side)
