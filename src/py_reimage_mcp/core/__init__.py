"""核心模块包。

缩放引擎、编码层、解码和输入校验。
"""

from .codecs import (
    AvifEncoder,
    EncodeResult,
    PixelBuffer,
    SoftwareEncoderHandle,
    choose_avif_speed,
    encode_image,
    get_avif_encoder,
    map_quality_to_codec_options,
    native_avif_supported,
)
from .decoder import async_create_preview, async_decode_image, create_preview, decode_image
from .resize import ResizeResult, async_resize_image, compute_target_size, resize_image
from .validation import ensure_valid, is_image_file, validate_file, validate_files


__all__ = [
    "AvifEncoder",
    "EncodeResult",
    "PixelBuffer",
    "ResizeResult",
    "SoftwareEncoderHandle",
    "async_create_preview",
    "async_decode_image",
    "async_resize_image",
    "choose_avif_speed",
    "compute_target_size",
    "create_preview",
    "decode_image",
    "encode_image",
    "ensure_valid",
    "get_avif_encoder",
    "is_image_file",
    "map_quality_to_codec_options",
    "native_avif_supported",
    "resize_image",
    "validate_file",
    "validate_files",
]
