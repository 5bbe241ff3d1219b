"""消息格式化工具模块。

提供统一的错误消息、用户提示消息格式化功能。
"""

from pathlib import Path
from typing import Any


class MessageFormatter:
    """统一的消息格式化器"""

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        """文件不存在错误消息"""
        return f"文件不存在: {file_path}"

    @staticmethod
    def directory_not_found(dir_path: str | Path) -> str:
        """目录不存在错误消息"""
        return f"目录不存在: {dir_path}"

    @staticmethod
    def path_not_directory(path: str | Path) -> str:
        """路径不是目录错误消息"""
        return f"路径不是目录: {path}"

    @staticmethod
    def no_artifact(name: str) -> str:
        """没有可导出产物的消息"""
        return f"文件尚未转码完成，没有可导出的结果: {name}"

    @staticmethod
    def record_not_found(file_id: str) -> str:
        """记录不存在错误消息"""
        return f"文件记录不存在: {file_id}"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def validation_error(field: str, value: Any, reason: str | None = None) -> str:
        """参数验证错误消息"""
        msg = f"参数验证失败 - {field}: {value}"
        if reason:
            msg += f" ({reason})"
        return msg

    @staticmethod
    def format_error(operation: str, target: str | Path, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{target}]: {error}"

    # ------------------------------------------------------------------
    # 输入校验
    # ------------------------------------------------------------------

    @staticmethod
    def unsupported_format(name: str) -> str:
        return f"不支持的文件格式: {name}"

    @staticmethod
    def file_too_large(name: str, max_size_mb: float) -> str:
        return f"文件过大: {name} (最大 {max_size_mb:g}MB)"

    # ------------------------------------------------------------------
    # 处理失败（按错误类别给出可操作的提示）
    # ------------------------------------------------------------------

    @staticmethod
    def decode_failed(detail: str) -> str:
        return f"图像解码失败: {detail}"

    @staticmethod
    def resize_failed(detail: str) -> str:
        return f"图像缩放失败: {detail}"

    @staticmethod
    def image_too_large(width: int | None = None, height: int | None = None) -> str:
        if width and height:
            return f"图像过大（{width}×{height}px），请缩小尺寸后再试。"
        return "图像过大，请缩小尺寸后再试。"

    @staticmethod
    def encode_timeout(format_name: str) -> str:
        return f"{format_name}编码超时，请缩小图像尺寸或降低质量。"

    @staticmethod
    def encode_out_of_memory(format_name: str) -> str:
        return f"内存不足导致{format_name}编码失败，请缩小图像尺寸。"

    @staticmethod
    def encoder_module_failed(format_name: str) -> str:
        return f"{format_name}编码模块加载失败，请确认已安装对应的编码器。"

    @staticmethod
    def encoder_network_failed(format_name: str) -> str:
        return f"{format_name}编码处理失败，请检查网络连接。"

    @staticmethod
    def encode_failed(format_name: str, detail: str) -> str:
        return f"{format_name}编码失败: {detail}"

    @staticmethod
    def processing_failed(detail: str) -> str:
        return f"处理错误: {detail}" if detail else "处理错误"
