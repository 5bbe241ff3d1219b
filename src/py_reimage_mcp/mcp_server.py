"""批量图像转码 MCP 服务器。

把会话中的图像批量缩放并转码为 jpg/png/webp/avif，支持预设、
设置变化后自动重新转码，以及 zip / 单文件导出。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ReimageError
from .models import BatchSummary, FileRecord, Settings
from .store import SettingsRepository
from .transcoder import ImageTranscoder
from .utils.logging_helpers import configure_logging, get_logger
from .utils.message_formatter import MessageFormatter


# MCP 服务器响应类型定义
MCPResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> MCPResponse:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result: MCPResponse = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def validation_error(message: str, field: str | None = None) -> MCPResponse:
        """构建验证错误结果。"""
        details = {"field": field} if field else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="validation",
            details=details,
        )

    @staticmethod
    def file_error(message: str, file_id: str | None = None) -> MCPResponse:
        """构建文件相关错误结果。"""
        details = {"file_id": file_id} if file_id else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="file",
            details=details,
        )

    @staticmethod
    def processing_error(message: str, operation: str | None = None) -> MCPResponse:
        """构建处理错误结果。"""
        details = {"operation": operation} if operation else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="processing",
            details=details,
        )


def format_record(record: FileRecord) -> dict[str, Any]:
    """把文件记录格式化为响应数据（不包含图像字节）"""
    result: dict[str, Any] = {
        "id": record.id,
        "name": record.source.name,
        "status": record.status.value,
        "progress": record.progress,
        "original_size": record.source.size,
        "has_preview": record.preview is not None,
        "error": record.error,
    }
    if record.artifact is not None:
        artifact = record.artifact
        result["result"] = {
            "format": artifact.format.value,
            "mime_type": artifact.mime_type,
            "width": artifact.width,
            "height": artifact.height,
            "size": artifact.size,
            "size_saved": artifact.get_size_saved(),
            "reduction_rate": artifact.get_reduction_rate(),
            "summary": artifact.get_summary(),
        }
    return result


def format_settings(settings: Settings) -> dict[str, Any]:
    return settings.model_dump(mode="json")


def format_summary(summary: BatchSummary) -> dict[str, Any]:
    return {
        **summary.model_dump(),
        "total_size_saved": summary.get_total_size_saved(),
        "success_rate": summary.get_success_rate(),
        "summary": summary.get_summary(),
    }


def build_status(transcoder: ImageTranscoder) -> MCPResponse:
    """会话状态：设置、统计和所有文件记录"""
    return {
        "success": True,
        "is_processing": transcoder.store.is_processing,
        "settings": format_settings(transcoder.settings),
        "summary": format_summary(transcoder.summary()),
        "files": [format_record(record) for record in transcoder.snapshot()],
    }


logger = get_logger()

# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("批量图像转码服务")

# 全局转码器实例（设置跨会话持久化）
transcoder = ImageTranscoder(settings_repository=SettingsRepository())


# ============================================================================
# 文件与转码
# ============================================================================


@mcp.tool()
async def add_images(paths: list[str], auto_process: bool = True) -> MCPResponse:
    """添加图像到转码会话

    只接受 JPEG/PNG/WebP/AVIF 文件，单个文件不超过 50MB；目录会展开为其中的图像文件。
    同名、同大小、同修改时间的文件只会添加一次。

    Args:
        paths: 文件或目录路径列表
        auto_process: 添加后立即按当前设置转码

    Returns:
        dict: 新增的文件记录、被拒绝文件的错误信息和会话统计
    """
    try:
        added, errors = await transcoder.add_files(paths, auto_process=auto_process)
        return {
            "success": bool(added) or not errors,
            "added": [format_record(record) for record in added],
            "rejected": errors,
            "summary": format_summary(transcoder.summary()),
        }
    except Exception as e:
        logger.error(MessageFormatter.operation_failed("添加图像", ", ".join(paths), e))
        return MCPResponseBuilder.processing_error(str(e), "添加图像")


@mcp.tool()
async def process_images() -> MCPResponse:
    """转码所有待处理的图像

    Returns:
        dict: 处理结束后的会话统计
    """
    try:
        summary = await transcoder.process_all()
        return {"success": True, "summary": format_summary(summary)}
    except Exception as e:
        logger.error(MessageFormatter.operation_failed("批量转码", "会话", e))
        return MCPResponseBuilder.processing_error(str(e), "批量转码")


@mcp.tool()
async def get_status() -> MCPResponse:
    """获取当前设置、处理统计和每个文件的状态"""
    return build_status(transcoder)


# ============================================================================
# 设置
# ============================================================================


@mcp.tool()
async def update_settings(
    output_format: str | None = None,
    quality: int | None = None,
    max_dimension: int | None = None,
    near_lossless: bool | None = None,
    wait: bool = True,
) -> MCPResponse:
    """修改转码设置

    已完成或失败的文件会按新设置重新转码（多次连续修改只会触发一次）。

    Args:
        output_format: 输出格式 jpg/png/webp/avif/original
        quality: 质量 0-100
        max_dimension: 最大边长（像素）
        near_lossless: 近无损（webp）
        wait: 是否等待重新转码完成

    Returns:
        dict: 新的设置和会话状态
    """
    try:
        transcoder.update_settings(
            output_format=output_format,
            quality=quality,
            max_dimension=max_dimension,
            near_lossless=near_lossless,
        )
    except (PydanticValidationError, ValueError) as e:
        return MCPResponseBuilder.validation_error(
            MessageFormatter.validation_error("设置", e.__class__.__name__, str(e))
        )

    if wait:
        await transcoder.wait_idle()
    return build_status(transcoder)


@mcp.tool()
async def apply_preset(preset: str, wait: bool = True) -> MCPResponse:
    """应用预设

    Args:
        preset: high-quality (95, 4096) / balanced (80, 2048) / high-compression (60, 1920)
        wait: 是否等待重新转码完成
    """
    try:
        transcoder.apply_preset(preset)
    except ValueError as e:
        return MCPResponseBuilder.validation_error(
            MessageFormatter.validation_error("预设", preset, str(e)), "preset"
        )

    if wait:
        await transcoder.wait_idle()
    return build_status(transcoder)


# ============================================================================
# 记录管理与导出
# ============================================================================


@mcp.tool()
async def remove_image(file_id: str) -> MCPResponse:
    """从会话中移除一个文件"""
    if not transcoder.remove_file(file_id):
        return MCPResponseBuilder.file_error(MessageFormatter.record_not_found(file_id), file_id)
    return {"success": True, "removed": file_id}


@mcp.tool()
async def clear_images() -> MCPResponse:
    """清空会话中的所有文件（保留设置）"""
    transcoder.clear()
    return {"success": True}


@mcp.tool()
async def export_zip(output_dir: str) -> MCPResponse:
    """把所有已完成的转码结果打包为 zip

    压缩包内文件名为 {原文件名}_w{宽度}_q{质量}.{格式}。

    Args:
        output_dir: 压缩包保存目录
    """
    try:
        path, names = transcoder.export_archive(Path(output_dir))
        return {"success": True, "archive_path": str(path), "files": names}
    except ReimageError as e:
        return MCPResponseBuilder.processing_error(e.message, "导出压缩包")
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("导出压缩包", output_dir, e))
        return MCPResponseBuilder.processing_error(str(e), "导出压缩包")


@mcp.tool()
async def export_image(file_id: str, output_dir: str) -> MCPResponse:
    """单独导出一个文件的转码结果

    Args:
        file_id: 文件 id（见 get_status）
        output_dir: 保存目录
    """
    try:
        path = transcoder.export_file(file_id, Path(output_dir))
        return {"success": True, "output_path": str(path)}
    except ReimageError as e:
        return MCPResponseBuilder.file_error(e.message, file_id)
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("导出文件", output_dir, e))
        return MCPResponseBuilder.processing_error(str(e), "导出文件")


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    configure_logging()
    logger.info("启动批量图像转码 MCP 服务器")
    mcp.run()


if __name__ == "__main__":
    main()
