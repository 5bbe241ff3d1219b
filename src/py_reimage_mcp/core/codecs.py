"""编码层模块。

把 0-100 的质量设置映射为各格式的编码参数，并执行实际编码。
JPEG/PNG/WebP 直接使用 Pillow 编码；AVIF 采用两级策略：
优先使用 Pillow 内置编码器，失败时回退到延迟加载的软件编码器。
"""

import asyncio
import importlib
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from typing import Any, Protocol

from PIL import Image

from ..config import get_config
from ..exceptions import EncodeError, EncodeErrorKind, classify_encode_error
from ..models.constants import OutputFormat, get_pillow_format
from ..models.settings import CodecOptions
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .resize import round_half_up


logger = get_logger()

# AVIF 文件头中的 ftyp 品牌
AVIF_BRANDS = (b"avif", b"avis")


@dataclass
class PixelBuffer:
    """原始像素缓冲（RGB 或 RGBA）"""

    data: bytes
    width: int
    height: int
    mode: str = "RGBA"

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def has_alpha(self) -> bool:
        return self.mode == "RGBA"

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        """从图像中提取原始像素"""
        mode = "RGBA" if "A" in image.getbands() else "RGB"
        converted = image if image.mode == mode else image.convert(mode)
        try:
            return cls(converted.tobytes(), converted.width, converted.height, mode)
        finally:
            if converted is not image:
                converted.close()

    def to_image(self) -> Image.Image:
        return Image.frombytes(self.mode, (self.width, self.height), self.data)

    def release(self) -> None:
        """释放像素数据"""
        self.data = b""


@dataclass
class EncodeResult:
    """编码结果，actual_format 为实际写出的格式"""

    data: bytes
    actual_format: OutputFormat

    @property
    def size(self) -> int:
        return len(self.data)


# ============================================================================
# 质量参数映射
# ============================================================================


def choose_avif_speed(pixel_count: int | None, quality: float) -> int:
    """根据像素数和质量选择 AVIF 编码速度（0 最慢，10 最快）

    图像越大或要求的质量越低，速度越快。
    """
    speed = 6
    if pixel_count is not None:
        if pixel_count > 10_000_000:
            speed = 10
        elif pixel_count > 4_000_000:
            speed = 8
    if quality < 50:
        speed += 2
    return max(0, min(10, speed))


def map_quality_to_codec_options(
    output_format: OutputFormat | str,
    quality: float,
    near_lossless: bool = False,
    pixel_count: int | None = None,
) -> CodecOptions:
    """把 0-100 的质量设置映射为编码参数

    Args:
        output_format: 输出格式
        quality: 界面上的质量值 0-100
        near_lossless: 近无损（只对 webp 透传）
        pixel_count: 像素数，用于选择 AVIF 速度

    Returns:
        CodecOptions: 编码参数
    """
    match OutputFormat(output_format):
        case OutputFormat.JPG:
            # 质量 0-100 映射到 40-92
            return CodecOptions(quality=round_half_up(40 + quality / 100 * 52))
        case OutputFormat.WEBP:
            return CodecOptions(
                quality=round_half_up(40 + quality / 100 * 52),
                near_lossless=True if near_lossless else None,
            )
        case OutputFormat.PNG:
            # 压缩级别 0-9
            return CodecOptions(level=round_half_up(quality / 100 * 9))
        case OutputFormat.AVIF:
            return CodecOptions(
                quality=round_half_up(quality),
                speed=choose_avif_speed(pixel_count, quality),
            )
        case _:
            return CodecOptions()


# ============================================================================
# Pillow 原生编码
# ============================================================================


def prepare_for_format(image: Image.Image, output_format: OutputFormat) -> Image.Image:
    """为目标格式准备图像，JPEG 不支持透明度，合成到白色背景上"""
    if output_format is OutputFormat.JPG:
        if image.mode == "RGBA":
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel("A"))
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
    return image


def get_save_parameters(
    output_format: OutputFormat, options: CodecOptions
) -> dict[str, Any]:
    """获取 Pillow 保存参数"""
    codec = get_config().codec

    match output_format:
        case OutputFormat.JPG:
            quality = options.quality if options.quality is not None else 80
            return {
                "quality": quality,
                "optimize": True,
                "progressive": codec.JPEG_PROGRESSIVE,
                # 高质量使用 4:2:2，其余使用标准的 4:2:0
                "subsampling": 1 if quality >= 85 else 2,
            }
        case OutputFormat.PNG:
            # optimize=True 会强制使用级别 9，这里保持映射出的级别
            return {
                "compress_level": options.level if options.level is not None else 6,
                "optimize": False,
            }
        case OutputFormat.WEBP:
            quality = options.quality if options.quality is not None else 80
            if options.near_lossless:
                # Pillow 没有近无损开关，使用无损模式，quality 表示压缩力度
                return {
                    "lossless": True,
                    "quality": quality,
                    "method": codec.WEBP_METHOD,
                    "exact": False,
                }
            return {
                "quality": quality,
                "method": codec.WEBP_METHOD,
                "alpha_quality": 100 if quality >= 85 else quality,
            }
        case OutputFormat.AVIF:
            return {
                "quality": options.quality if options.quality is not None else 80,
                "speed": options.speed if options.speed is not None else 6,
            }
        case _:
            raise ValueError(f"不支持的输出格式: {output_format}")


def encode_with_pillow(
    pixels: PixelBuffer, output_format: OutputFormat, options: CodecOptions
) -> bytes:
    """使用 Pillow 编码像素缓冲"""
    image = pixels.to_image()
    prepared = prepare_for_format(image, output_format)
    try:
        buffer = BytesIO()
        prepared.save(
            buffer,
            format=get_pillow_format(output_format),
            **get_save_parameters(output_format, options),
        )
        return buffer.getvalue()
    finally:
        if prepared is not image:
            prepared.close()
        image.close()


def is_avif_data(data: bytes) -> bool:
    """检查数据是否为 AVIF（ISOBMFF ftyp 品牌）"""
    return len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in AVIF_BRANDS


@lru_cache(maxsize=1)
def native_avif_supported() -> bool:
    """检测 Pillow 是否具备 AVIF 编码能力

    通过一次 1x1 编码探测，结果在进程生命周期内缓存。
    """
    try:
        buffer = BytesIO()
        Image.new("RGB", (1, 1), color="red").save(buffer, format="AVIF")
        supported = is_avif_data(buffer.getvalue())
    except Exception as e:
        logger.debug(f"Pillow 原生 AVIF 编码不可用: {e}")
        return False

    if supported:
        logger.debug("✅ Pillow 原生 AVIF 编码可用")
    return supported


# ============================================================================
# AVIF 软件编码器（延迟加载）
# ============================================================================


class SoftwareAvifEncoder(Protocol):
    """软件 AVIF 编码器接口"""

    def encode(self, pixels: PixelBuffer, options: CodecOptions) -> bytes: ...


class PillowHeifAvifEncoder:
    """基于 pillow_heif (libheif + aom) 的 AVIF 编码器"""

    def __init__(self, module: Any):
        self._heif = module

    def encode(self, pixels: PixelBuffer, options: CodecOptions) -> bytes:
        heif_file = self._heif.from_bytes(
            mode=pixels.mode,
            size=(pixels.width, pixels.height),
            data=pixels.data,
        )
        # aom 的 speed 取值范围为 0-9
        speed = min(9, options.speed if options.speed is not None else 6)
        buffer = BytesIO()
        heif_file.save(
            buffer,
            format="AVIF",
            quality=options.quality if options.quality is not None else 80,
            enc_params={"speed": str(speed)},
        )
        return buffer.getvalue()


def load_pillow_heif_encoder() -> SoftwareAvifEncoder:
    """导入 pillow_heif 并创建编码器"""
    module = importlib.import_module("pillow_heif")
    if not hasattr(module, "register_avif_opener"):
        # 0.22 及以后的版本移除了 AVIF 支持
        raise ImportError("当前安装的 pillow_heif 不提供 AVIF 编码模块")
    return PillowHeifAvifEncoder(module)


class SoftwareEncoderHandle:
    """软件编码器的共享句柄

    第一次使用时加载并缓存；并发调用共享同一个加载中的 Future，
    不会重复加载。加载失败不会被缓存，下次调用会重新尝试。
    """

    def __init__(self, loader: Callable[[], SoftwareAvifEncoder] = load_pillow_heif_encoder):
        self._loader = loader
        self._encoder: SoftwareAvifEncoder | None = None
        self._loading: asyncio.Future[SoftwareAvifEncoder] | None = None
        self.load_attempts = 0

    @property
    def is_loaded(self) -> bool:
        return self._encoder is not None

    async def get(self) -> SoftwareAvifEncoder:
        """获取编码器，必要时加载"""
        if self._encoder is not None:
            return self._encoder

        loop = asyncio.get_running_loop()
        if self._loading is None or self._loading.get_loop() is not loop:
            self._loading = loop.create_task(self._load())

        # shield: 单个调用方被取消时不影响共享的加载任务
        return await asyncio.shield(self._loading)

    async def _load(self) -> SoftwareAvifEncoder:
        self.load_attempts += 1
        logger.info("加载 AVIF 软件编码器")
        try:
            encoder = await asyncio.to_thread(self._loader)
        except Exception as e:
            logger.warning(f"AVIF 软件编码器加载失败: {e}")
            self._loading = None
            raise
        self._encoder = encoder
        self._loading = None
        return encoder

    def reset(self) -> None:
        """丢弃已加载的编码器（主要用于测试）"""
        self._encoder = None
        self._loading = None


# ============================================================================
# AVIF 两级编码
# ============================================================================


class AvifEncoder:
    """AVIF 两级编码器

    1. 像素数超过上限直接拒绝
    2. 环境支持时优先使用 Pillow 原生编码
    3. 原生编码不可用、失败或输出不是 AVIF 时回退到软件编码器
    """

    def __init__(
        self,
        software: SoftwareEncoderHandle | None = None,
        native_supported: Callable[[], bool] = native_avif_supported,
        native_encode: Callable[[PixelBuffer, CodecOptions], bytes] | None = None,
    ):
        self.software = software or SoftwareEncoderHandle()
        self._native_supported = native_supported
        self._native_encode = native_encode or (
            lambda pixels, options: encode_with_pillow(pixels, OutputFormat.AVIF, options)
        )

    async def encode(self, pixels: PixelBuffer, options: CodecOptions) -> EncodeResult:
        max_pixels = get_config().codec.AVIF_MAX_PIXELS
        if pixels.pixel_count > max_pixels:
            raise EncodeError(
                EncodeErrorKind.IMAGE_TOO_LARGE,
                MessageFormatter.image_too_large(pixels.width, pixels.height),
            )

        if self._native_supported():
            data = await self._try_native(pixels, options)
            if data is not None:
                return EncodeResult(data, OutputFormat.AVIF)

        try:
            data = await self._encode_software(pixels, options)
        except Exception as e:
            error = classify_encode_error(e, "AVIF")
            substitute = get_config().codec.AVIF_SUBSTITUTE_FORMAT
            if substitute and error.kind in (
                EncodeErrorKind.MODULE_LOAD_FAILURE,
                EncodeErrorKind.NETWORK_FAILURE,
            ):
                return await self._encode_substitute(pixels, options, substitute, error)
            logger.error(f"AVIF 编码失败: {error.message}")
            raise error from e

        return EncodeResult(data, OutputFormat.AVIF)

    async def _try_native(self, pixels: PixelBuffer, options: CodecOptions) -> bytes | None:
        """原生编码，失败返回 None"""
        try:
            data = await asyncio.to_thread(self._native_encode, pixels, options)
        except Exception as e:
            logger.warning(f"原生 AVIF 编码失败，回退到软件编码器: {e}")
            return None

        if not is_avif_data(data):
            logger.warning("原生 AVIF 编码输出不是 AVIF 数据，回退到软件编码器")
            return None
        return data

    async def _encode_software(self, pixels: PixelBuffer, options: CodecOptions) -> bytes:
        encoder = await self.software.get()
        timeout = get_config().codec.AVIF_ENCODE_TIMEOUT
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(encoder.encode, pixels, options), timeout
            )
        except asyncio.TimeoutError as e:
            raise EncodeError(EncodeErrorKind.TIMEOUT, str(e)) from e

        if not data:
            raise EncodeError(EncodeErrorKind.UNKNOWN, "AVIF 编码结果为空")
        if not is_avif_data(data):
            raise EncodeError(EncodeErrorKind.UNKNOWN, "AVIF 编码结果格式异常")
        return data

    async def _encode_substitute(
        self,
        pixels: PixelBuffer,
        options: CodecOptions,
        substitute: str,
        error: EncodeError,
    ) -> EncodeResult:
        """软件编码器不可用时改用替代格式，避免直接丢弃文件"""
        output_format = OutputFormat(substitute)
        logger.warning(f"{error.message} 改用 {output_format.value} 编码")
        substitute_options = map_quality_to_codec_options(
            output_format,
            options.quality if options.quality is not None else 80,
            bool(options.near_lossless),
            pixels.pixel_count,
        )
        try:
            data = await asyncio.to_thread(
                encode_with_pillow, pixels, output_format, substitute_options
            )
        except Exception as e:
            raise classify_encode_error(e, output_format.value.upper()) from e
        return EncodeResult(data, output_format)


_avif_encoder: AvifEncoder | None = None


def get_avif_encoder() -> AvifEncoder:
    """获取进程级共享的 AVIF 编码器"""
    global _avif_encoder
    if _avif_encoder is None:
        _avif_encoder = AvifEncoder()
    return _avif_encoder


async def encode_image(
    pixels: PixelBuffer,
    output_format: OutputFormat | str,
    options: CodecOptions,
    avif_encoder: AvifEncoder | None = None,
) -> EncodeResult:
    """编码像素缓冲

    Args:
        pixels: 原始像素
        output_format: 具体的输出格式（不能是 original）
        options: 映射后的编码参数
        avif_encoder: 指定 AVIF 编码器，默认使用进程级共享实例

    Returns:
        EncodeResult: 编码后的字节和实际格式

    Raises:
        EncodeError: 编码失败（已归类）
    """
    output_format = OutputFormat(output_format)
    if output_format is OutputFormat.ORIGINAL:
        raise ValueError("编码前必须确定具体的输出格式")
    if not pixels.data or pixels.width <= 0 or pixels.height <= 0:
        raise EncodeError(EncodeErrorKind.UNKNOWN, "无效的图像数据", output_format.value.upper())

    if output_format is OutputFormat.AVIF:
        return await (avif_encoder or get_avif_encoder()).encode(pixels, options)

    try:
        data = await asyncio.to_thread(encode_with_pillow, pixels, output_format, options)
    except Exception as e:
        raise classify_encode_error(e, output_format.value.upper()) from e
    return EncodeResult(data, output_format)
