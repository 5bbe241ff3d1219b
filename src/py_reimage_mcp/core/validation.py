"""输入校验模块。

入口处校验提交的文件：只接受 JPEG/PNG/WebP/AVIF（按声明类型或扩展名），
并拒绝超过大小上限的文件。被拒绝的文件不会进入记录存储。
"""

from collections.abc import Iterable

from ..config import get_config
from ..exceptions import ValidationError
from ..models.constants import ImageFormats
from ..models.file_record import SourceFile
from ..utils.message_formatter import MessageFormatter


def is_image_file(source: SourceFile) -> bool:
    """按声明的 MIME 类型或扩展名判断是否为支持的图像"""
    return source.mime_type.lower() in ImageFormats.SUPPORTED_MIME_TYPES or (
        source.name.lower().endswith(ImageFormats.SUPPORTED_EXTENSIONS)
    )


def validate_file(source: SourceFile) -> str | None:
    """校验单个文件

    Returns:
        str | None: 错误信息，校验通过时为 None
    """
    if not is_image_file(source):
        return MessageFormatter.unsupported_format(source.name)

    limits = get_config().validation
    if source.size > limits.max_file_size_bytes:
        return MessageFormatter.file_too_large(source.name, limits.MAX_FILE_SIZE_MB)

    return None


def validate_files(
    sources: Iterable[SourceFile],
) -> tuple[list[SourceFile], list[str]]:
    """批量校验，每个被拒绝的文件对应一条错误信息

    Returns:
        tuple: (通过校验的文件, 错误信息列表)
    """
    valid: list[SourceFile] = []
    errors: list[str] = []

    for source in sources:
        error = validate_file(source)
        if error is None:
            valid.append(source)
        else:
            errors.append(error)

    return valid, errors


def ensure_valid(source: SourceFile) -> SourceFile:
    """校验单个文件，失败时抛出 ValidationError"""
    error = validate_file(source)
    if error is not None:
        raise ValidationError(error, source.file_id)
    return source
