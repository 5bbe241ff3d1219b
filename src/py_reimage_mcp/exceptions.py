"""图像转码异常处理模块。

定义统一的异常类和错误处理机制，包含现代化的异常处理装饰器。
"""

from collections.abc import Callable
from enum import Enum
from functools import wraps
from typing import TypeVar
from urllib.error import URLError

from PIL.Image import DecompressionBombError, UnidentifiedImageError

from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()
T = TypeVar("T")


# 统一的异常类型
class ReimageError(Exception):
    """转码相关错误基类"""

    def __init__(self, message: str, file_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.file_id = file_id


class ValidationError(ReimageError):
    """输入校验错误 - 只在入口处抛出，不会进入文件记录"""

    pass


class DecodeError(ReimageError):
    """图像解码错误"""

    pass


class ResizeError(ReimageError):
    """缩放错误（像素缓冲缺失或尺寸无效）"""

    pass


class EncodeErrorKind(str, Enum):
    """编码错误类别，每个类别对应一条可操作的用户提示"""

    IMAGE_TOO_LARGE = "image_too_large"
    TIMEOUT = "timeout"
    OUT_OF_MEMORY = "out_of_memory"
    MODULE_LOAD_FAILURE = "module_load_failure"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


class EncodeError(ReimageError):
    """编码错误，kind 为归类后的错误类别"""

    def __init__(
        self,
        kind: EncodeErrorKind,
        detail: str = "",
        format_name: str = "AVIF",
        file_id: str | None = None,
    ):
        self.kind = kind
        self.detail = detail
        self.format_name = format_name
        super().__init__(self._build_message(), file_id)

    def _build_message(self) -> str:
        match self.kind:
            case EncodeErrorKind.IMAGE_TOO_LARGE:
                return self.detail or MessageFormatter.image_too_large()
            case EncodeErrorKind.TIMEOUT:
                return MessageFormatter.encode_timeout(self.format_name)
            case EncodeErrorKind.OUT_OF_MEMORY:
                return MessageFormatter.encode_out_of_memory(self.format_name)
            case EncodeErrorKind.MODULE_LOAD_FAILURE:
                return MessageFormatter.encoder_module_failed(self.format_name)
            case EncodeErrorKind.NETWORK_FAILURE:
                return MessageFormatter.encoder_network_failed(self.format_name)
            case _:
                return MessageFormatter.encode_failed(self.format_name, self.detail)


def classify_encode_error(error: BaseException, format_name: str = "AVIF") -> EncodeError:
    """把任意编码器异常归类为 EncodeError

    已经归类过的 EncodeError 原样返回。
    """
    if isinstance(error, EncodeError):
        return error

    message = str(error)
    lowered = message.lower()

    if isinstance(error, TimeoutError) or "timeout" in lowered or "timed out" in lowered:
        kind = EncodeErrorKind.TIMEOUT
    elif isinstance(error, MemoryError) or "memory" in lowered:
        kind = EncodeErrorKind.OUT_OF_MEMORY
    elif isinstance(error, ConnectionError | URLError) or any(
        word in lowered for word in ("network", "fetch", "connection")
    ):
        kind = EncodeErrorKind.NETWORK_FAILURE
    elif isinstance(error, ImportError) or any(
        word in lowered for word in ("module", "wasm", "plugin")
    ):
        kind = EncodeErrorKind.MODULE_LOAD_FAILURE
    else:
        kind = EncodeErrorKind.UNKNOWN

    return EncodeError(kind, message or type(error).__name__, format_name)


# 现代化异常处理装饰器
def handle_image_errors(operation_name: str = "图像解码"):
    """统一的图像解码异常处理装饰器

    Args:
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except ReimageError:
                raise
            except UnidentifiedImageError as e:
                logger.error(f"{operation_name} - 无法识别图像格式: {e}")
                raise DecodeError(MessageFormatter.decode_failed("无法识别图像格式")) from e
            except DecompressionBombError as e:
                logger.error(f"{operation_name} - 图像过大: {e}")
                raise DecodeError(
                    MessageFormatter.decode_failed(f"图像像素过多，可能存在安全风险: {e}")
                ) from e
            except OSError as e:
                logger.error(f"{operation_name} - 数据读取失败: {e}")
                raise DecodeError(MessageFormatter.decode_failed(str(e))) from e
            except (ValueError, TypeError) as e:
                logger.error(f"{operation_name} - 参数错误: {e}")
                raise DecodeError(MessageFormatter.decode_failed(str(e))) from e

        return wrapper

    return decorator


class ErrorHandler:
    """统一错误处理器

    把单个文件任务中的异常转换为记录上的错误文本，并记录日志。
    """

    @staticmethod
    def _log_error(
        operation: str, target: str, error: BaseException, level: str = "error"
    ) -> None:
        """标准化的错误日志记录

        Args:
            operation: 操作名称（如"图像转码"）
            target: 相关文件标识
            error: 异常对象
            level: 日志级别 ("error", "warning", "debug")
        """
        log_msg = MessageFormatter.format_error(operation, target, error)  # type: ignore[arg-type]
        getattr(logger, level, logger.error)(log_msg)

    @staticmethod
    def to_user_message(
        error: BaseException, file_id: str = "", operation: str = "图像转码"
    ) -> str:
        """把异常转换为展示在文件记录上的错误文本"""
        match error:
            case EncodeError(kind=EncodeErrorKind.IMAGE_TOO_LARGE) as ee:
                ErrorHandler._log_error(operation, file_id, ee, "warning")
                return ee.message
            case EncodeError() as ee:
                ErrorHandler._log_error(operation, file_id, ee, "error")
                return ee.message
            case ResizeError() | DecodeError() as re:
                ErrorHandler._log_error(operation, file_id, re, "warning")
                return re.message
            case ReimageError() as rie:
                ErrorHandler._log_error(operation, file_id, rie, "error")
                return rie.message
            case MemoryError():
                ErrorHandler._log_error(operation, file_id, error, "error")
                return MessageFormatter.encode_out_of_memory("")
            case _:
                ErrorHandler._log_error(operation, file_id, error, "error")
                return MessageFormatter.processing_failed(str(error))
