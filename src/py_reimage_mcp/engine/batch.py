"""批量处理器模块。

按批次并发处理所有 pending 记录：解码 → 缩放 → 提取像素 → 编码 → 写回产物。
单个文件的失败只会落到该文件的记录上，不会影响同批的其他文件。
"""

import asyncio
from collections.abc import Awaitable, Callable

from PIL import Image

from ..config import get_config
from ..core.codecs import EncodeResult, PixelBuffer, encode_image, map_quality_to_codec_options
from ..core.decoder import async_decode_image
from ..core.resize import async_resize_image
from ..exceptions import ErrorHandler
from ..models.constants import (
    OutputFormat,
    ProgressSteps,
    format_from_mime_type,
    mime_type_from_extension,
)
from ..models.file_record import FileRecord, FileStatus, ProcessedArtifact, SourceFile
from ..models.results import BatchSummary
from ..models.settings import CodecOptions, Settings
from ..store.record_store import RecordStore
from ..utils.logging_helpers import get_logger
from .concurrent_executor import BatchExecutor


logger = get_logger()

Encoder = Callable[[PixelBuffer, OutputFormat, CodecOptions], Awaitable[EncodeResult]]


def resolve_output_format(settings: Settings, source: SourceFile) -> OutputFormat:
    """确定实际输出格式，original 时沿用源文件格式"""
    if settings.output_format is not OutputFormat.ORIGINAL:
        return settings.output_format
    mime_type = source.mime_type or mime_type_from_extension(source.name)
    return format_from_mime_type(mime_type)


class BatchScheduler:
    """批量转码调度器

    批次宽度为 max(1, 并行度 - 1)，为事件循环保留一个并行单元。
    """

    def __init__(
        self,
        store: RecordStore,
        executor: BatchExecutor | None = None,
        encoder: Encoder = encode_image,
    ):
        """初始化调度器

        Args:
            store: 记录存储
            executor: 批次执行器，默认按配置的并行度创建
            encoder: 编码函数（测试时可替换）
        """
        self.store = store
        self.executor = executor
        self.encoder = encoder

    def _get_executor(self) -> BatchExecutor:
        if self.executor is not None:
            return self.executor
        return BatchExecutor(max(1, get_config().get_parallelism() - 1))

    async def process_all(self) -> BatchSummary:
        """处理当前快照中的所有 pending 记录

        Returns:
            BatchSummary: 处理结束时的统计
        """
        pending = [
            record.id
            for record in self.store.snapshot()
            if record.status is FileStatus.PENDING
        ]
        if not pending:
            logger.debug("没有待处理的文件")
            return BatchSummary.from_records(self.store.snapshot())

        executor = self._get_executor()
        logger.info(
            f"开始批量转码: {len(pending)} 个文件，批次宽度 {executor.get_width(len(pending))}"
        )
        await executor.execute(pending, self.process_single_file)

        summary = BatchSummary.from_records(self.store.snapshot())
        logger.info(summary.get_summary())
        return summary

    async def run_exclusive(self) -> BatchSummary | None:
        """在“处理中”标记下运行，同一时间只允许一个批量任务

        运行期间新加入的文件会在当前批量结束后继续处理。

        Returns:
            BatchSummary | None: 已有任务在运行时返回 None
        """
        if self.store.is_processing:
            logger.debug("已有批量任务在运行，跳过")
            return None

        self.store.set_processing(True)
        try:
            summary = await self.process_all()
            while summary.pending:
                summary = await self.process_all()
            return summary
        finally:
            self.store.set_processing(False)

    async def process_single_file(self, file_id: str) -> FileRecord | None:
        """处理单个文件

        Args:
            file_id: 记录 id

        Returns:
            FileRecord | None: 处理后的记录，记录已被移除时为 None
        """
        record = self.store.get(file_id)
        if record is None or record.status is not FileStatus.PENDING:
            return record

        # 设置在任务开始时读取，处理期间的修改由重新处理负责
        settings = self.store.settings
        started = self.store.update_record(
            file_id, status=FileStatus.PROCESSING, progress=ProgressSteps.START
        )
        if started is None:
            return None

        image: Image.Image | None = None
        resized: Image.Image | None = None
        pixels: PixelBuffer | None = None
        try:
            image = await async_decode_image(record.source)
            if not self._advance(file_id, ProgressSteps.DECODED):
                return None

            result = await async_resize_image(image, settings.max_dimension)
            resized = result.image
            if not self._advance(file_id, ProgressSteps.RESIZED):
                return None

            pixels = await asyncio.to_thread(PixelBuffer.from_image, resized)
            if not self._advance(file_id, ProgressSteps.PIXELS_EXTRACTED):
                return None

            output_format = resolve_output_format(settings, record.source)
            options = map_quality_to_codec_options(
                output_format,
                settings.quality,
                settings.near_lossless,
                pixels.pixel_count,
            )
            if not self._advance(file_id, ProgressSteps.ENCODING):
                return None

            encoded = await self.encoder(pixels, output_format, options)
            artifact = ProcessedArtifact(
                data=encoded.data,
                format=encoded.actual_format,
                width=result.width,
                height=result.height,
                size=encoded.size,
                original_size=record.source.size,
            )
            logger.debug(f"✅ {record.source.name}: {artifact.get_summary()}")
            return self.store.update_record(
                file_id,
                status=FileStatus.COMPLETED,
                progress=ProgressSteps.DONE,
                artifact=artifact,
                error=None,
            )

        except Exception as e:
            message = ErrorHandler.to_user_message(e, record.source.name)
            return self.store.update_record(
                file_id, status=FileStatus.ERROR, artifact=None, error=message
            )

        finally:
            if pixels is not None:
                pixels.release()
            if resized is not None:
                resized.close()
            if image is not None:
                image.close()

    def _advance(self, file_id: str, progress: int) -> bool:
        """更新进度，记录已被移除时返回 False"""
        if self.store.update_record(file_id, progress=progress) is None:
            logger.debug(f"记录已移除，停止处理: {file_id}")
            return False
        return True
