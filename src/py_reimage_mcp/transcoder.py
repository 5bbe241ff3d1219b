"""图像批量转码器接口。

组合记录存储、批量调度器和重新处理协调器，提供“添加 → 转码 → 调整设置 → 导出”
的完整流程。
"""

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .core.decoder import async_create_preview
from .core.validation import validate_file
from .engine.batch import BatchScheduler
from .engine.coordinator import ReprocessCoordinator
from .exceptions import ReimageError
from .models import BatchSummary, FileRecord, Preset, Settings, SourceFile
from .store import InMemoryRecordStore, RecordStore, SettingsRepository
from .utils import (
    MessageFormatter,
    find_image_files,
    load_source_file,
    write_archive,
    write_artifact,
)
from .utils.logging_helpers import get_logger


logger = get_logger()

FileInput = str | Path | SourceFile


class ImageTranscoder:
    """批量图像转码器。

    文件通过 add_files 进入会话，校验失败的文件不会生成记录；
    设置变化后已完成的文件会在防抖后自动按新设置重新转码。
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        settings_repository: SettingsRepository | None = None,
        scheduler: BatchScheduler | None = None,
        debounce_seconds: float | None = None,
    ):
        """初始化转码器。

        Args:
            store: 记录存储，默认创建内存存储
            settings_repository: 设置持久化，仅在未传入 store 时使用
            scheduler: 批量调度器，默认基于 store 创建
            debounce_seconds: 设置变化的防抖时间
        """
        self.store = (
            store if store is not None else InMemoryRecordStore(repository=settings_repository)
        )
        self.scheduler = scheduler or BatchScheduler(self.store)
        self.coordinator = ReprocessCoordinator(self.store, self.scheduler, debounce_seconds)
        self._background: set[asyncio.Task] = set()

        logger.debug("初始化图像转码器")

    # ------------------------------------------------------------------
    # 添加文件
    # ------------------------------------------------------------------

    async def add_files(
        self,
        files: Iterable[FileInput],
        auto_process: bool = True,
        wait: bool = True,
    ) -> tuple[list[FileRecord], list[str]]:
        """添加文件（路径、目录或源文件句柄）

        Args:
            files: 待添加的文件，目录会展开为其中的图像文件
            auto_process: 添加后是否立即开始转码
            wait: 是否等待本次转码结束

        Returns:
            tuple: (新增的记录, 被拒绝文件的错误信息)
        """
        sources, errors = self._load_sources(files)
        added = self.store.add_records(sources)
        if errors:
            logger.warning(f"{len(errors)} 个文件未通过校验")
        logger.info(f"添加 {len(added)} 个文件")

        await asyncio.gather(*(self._attach_preview(record) for record in added))

        if auto_process and added:
            if wait:
                await self.scheduler.run_exclusive()
            else:
                self._spawn(self.scheduler.run_exclusive())

        return [self.store.get(record.id) or record for record in added], errors

    def _load_sources(self, files: Iterable[FileInput]) -> tuple[list[SourceFile], list[str]]:
        sources: list[SourceFile] = []
        errors: list[str] = []

        for item in files:
            if isinstance(item, SourceFile):
                error = validate_file(item)
                if error is None:
                    sources.append(item)
                else:
                    errors.append(error)
                continue

            path = Path(item).expanduser()
            paths = list(find_image_files(path)) if path.is_dir() else [path]
            for file_path in paths:
                try:
                    source = load_source_file(file_path, read_data=False)
                    error = validate_file(source)
                    if error is not None:
                        errors.append(error)
                        continue
                    sources.append(source.model_copy(update={"data": file_path.read_bytes()}))
                except FileNotFoundError as e:
                    errors.append(str(e))
                except OSError as e:
                    errors.append(MessageFormatter.operation_failed("读取文件", file_path, e))

        return sources, errors

    async def _attach_preview(self, record: FileRecord) -> None:
        try:
            preview = await async_create_preview(record.source)
        except ReimageError as e:
            # 无法解码的文件在转码时会得到明确的错误信息
            logger.debug(f"生成预览失败: {record.source.name} - {e}")
            return
        self.store.update_record(record.id, preview=preview)

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # 转码
    # ------------------------------------------------------------------

    async def process_all(self) -> BatchSummary:
        """转码所有 pending 文件；已有任务在运行时等待其结束"""
        summary = await self.scheduler.run_exclusive()
        if summary is None:
            await self.wait_idle()
            summary = self.summary()
        return summary

    async def wait_idle(self) -> None:
        """等待后台转码和等待中的重新处理全部完成"""
        while True:
            while self._background:
                await asyncio.gather(*list(self._background))
            await self.coordinator.flush()
            if not self.store.is_processing:
                return
            await self._wait_processing_finished()

    async def _wait_processing_finished(self) -> None:
        finished = asyncio.Event()
        unsubscribe = self.store.subscribe_processing(
            lambda processing: None if processing else finished.set()
        )
        try:
            if self.store.is_processing:
                await finished.wait()
        finally:
            unsubscribe()

    # ------------------------------------------------------------------
    # 设置
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self.store.settings

    def update_settings(self, **changes: Any) -> Settings:
        """修改部分设置，已完成的文件会在防抖后重新转码"""
        changes = {key: value for key, value in changes.items() if value is not None}
        return self.store.set_settings(**changes)

    def apply_preset(self, preset: Preset | str) -> Settings:
        """应用预设"""
        return self.store.apply_preset(preset)

    # ------------------------------------------------------------------
    # 记录管理
    # ------------------------------------------------------------------

    def get(self, file_id: str) -> FileRecord | None:
        return self.store.get(file_id)

    def remove_file(self, file_id: str) -> bool:
        """移除文件，正在处理中的任务结果会被丢弃"""
        removed = self.store.remove_record(file_id)
        if removed:
            logger.info(f"已移除文件: {file_id}")
        return removed

    def clear(self) -> None:
        self.store.clear()
        logger.info("已清空所有文件")

    def snapshot(self) -> list[FileRecord]:
        return self.store.snapshot()

    def summary(self) -> BatchSummary:
        return BatchSummary.from_records(self.store.snapshot())

    # ------------------------------------------------------------------
    # 导出
    # ------------------------------------------------------------------

    def export_archive(self, output_dir: str | Path) -> tuple[Path, list[str]]:
        """把所有已完成的结果打包为 zip

        Raises:
            ReimageError: 没有可导出的结果
        """
        records = [record for record in self.store.snapshot() if record.artifact is not None]
        if not records:
            raise ReimageError("没有可导出的转码结果")
        return write_archive(records, self.settings.quality, output_dir)

    def export_file(self, file_id: str, output_dir: str | Path) -> Path:
        """单独导出一个文件的转码结果

        Raises:
            ReimageError: 记录不存在或尚未完成
        """
        record = self.store.get(file_id)
        if record is None:
            raise ReimageError(MessageFormatter.record_not_found(file_id), file_id)
        if record.artifact is None:
            raise ReimageError(MessageFormatter.no_artifact(record.source.name), file_id)
        return write_artifact(record, self.settings.quality, output_dir)

    def close(self) -> None:
        """停止重新处理协调器并取消后台任务"""
        self.coordinator.close()
        for task in list(self._background):
            task.cancel()
