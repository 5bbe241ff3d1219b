"""缩放引擎模块。

按最大边长等比缩小图像，只缩小不放大。缩放使用 Lanczos 重采样，
并叠加一次针对缩小伪影的轻度 USM 锐化。
"""

import asyncio
import math
from dataclasses import dataclass

from PIL import Image, ImageFilter

from ..config import get_config
from ..exceptions import ResizeError
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


@dataclass
class ResizeResult:
    """缩放结果"""

    image: Image.Image
    width: int
    height: int
    was_resized: bool


def round_half_up(value: float) -> int:
    """四舍五入（.5 向上取整）"""
    return math.floor(value + 0.5)


def compute_target_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """计算缩放后的尺寸

    长边缩放到恰好 max_dimension，短边按同一比例缩放并四舍五入。
    两边都不超过 max_dimension 时原样返回。

    Raises:
        ResizeError: 尺寸或最大边长不是正数
    """
    if width <= 0 or height <= 0:
        raise ResizeError(MessageFormatter.resize_failed(f"图像尺寸无效 {width}×{height}"))
    if max_dimension <= 0:
        raise ResizeError(MessageFormatter.resize_failed(f"最大边长无效 {max_dimension}"))

    if width <= max_dimension and height <= max_dimension:
        return width, height

    if width > height:
        return max_dimension, max(1, round_half_up(height * max_dimension / width))
    return max(1, round_half_up(width * max_dimension / height)), max_dimension


def resize_image(image: Image.Image | None, max_dimension: int) -> ResizeResult:
    """按最大边长缩放图像

    不需要缩放时返回像素完全相同的副本。

    Args:
        image: 解码后的图像
        max_dimension: 最大边长（像素）

    Returns:
        ResizeResult: 缩放结果

    Raises:
        ResizeError: 像素缓冲缺失或尺寸无效
    """
    if image is None:
        raise ResizeError(MessageFormatter.resize_failed("像素缓冲不存在"))

    try:
        width, height = image.size
        target_width, target_height = compute_target_size(width, height, max_dimension)

        if (target_width, target_height) == (width, height):
            return ResizeResult(image.copy(), width, height, was_resized=False)

        resized = image.resize((target_width, target_height), Image.Resampling.LANCZOS)
        resized = _sharpen(resized)
    except ResizeError:
        raise
    except (ValueError, OSError) as e:
        raise ResizeError(MessageFormatter.resize_failed(str(e))) from e

    logger.debug(f"缩放 {width}×{height} → {target_width}×{target_height}")
    return ResizeResult(resized, target_width, target_height, was_resized=True)


def _sharpen(image: Image.Image) -> Image.Image:
    """对颜色通道做轻度 USM 锐化，透明通道保持不变"""
    codec = get_config().codec
    unsharp = ImageFilter.UnsharpMask(
        radius=codec.UNSHARP_RADIUS,
        percent=codec.UNSHARP_PERCENT,
        threshold=codec.UNSHARP_THRESHOLD,
    )

    if image.mode == "RGBA":
        alpha = image.getchannel("A")
        sharpened = image.convert("RGB").filter(unsharp)
        sharpened.putalpha(alpha)
        return sharpened

    if image.mode in ("RGB", "L"):
        return image.filter(unsharp)

    return image


async def async_resize_image(image: Image.Image | None, max_dimension: int) -> ResizeResult:
    """在工作线程中执行缩放"""
    return await asyncio.to_thread(resize_image, image, max_dimension)
