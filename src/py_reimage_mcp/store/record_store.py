"""文件记录存储模块。

所有组件共享的唯一状态容器：按 id 索引的记录表、当前设置和“处理中”标记。
组件依赖 RecordStore 接口而不是具体实现，便于在测试中替换。
"""

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from ..models.constants import Preset
from ..models.file_record import FileRecord, FileStatus, SourceFile
from ..models.settings import Settings
from ..utils.logging_helpers import get_logger
from .settings_repository import SettingsRepository


logger = get_logger()

SettingsListener = Callable[[Settings], None]
ProcessingListener = Callable[[bool], None]


class RecordStore(Protocol):
    """记录存储接口"""

    @property
    def settings(self) -> Settings: ...

    @property
    def is_processing(self) -> bool: ...

    def add_records(self, sources: Iterable[SourceFile]) -> list[FileRecord]: ...

    def update_record(self, file_id: str, **changes: Any) -> FileRecord | None: ...

    def reset_record(self, file_id: str) -> FileRecord | None: ...

    def remove_record(self, file_id: str) -> bool: ...

    def clear(self) -> None: ...

    def get(self, file_id: str) -> FileRecord | None: ...

    def snapshot(self) -> list[FileRecord]: ...

    def set_settings(self, **changes: Any) -> Settings: ...

    def apply_preset(self, preset: Preset | str) -> Settings: ...

    def set_processing(self, processing: bool) -> None: ...

    def subscribe_settings(self, listener: SettingsListener) -> Callable[[], None]: ...

    def subscribe_processing(self, listener: ProcessingListener) -> Callable[[], None]: ...


class InMemoryRecordStore:
    """内存中的记录存储

    记录按 id 存放在字典中（保持插入顺序），每次更新都替换为新的记录对象。
    对不存在的 id 的更新视为无操作，以容忍处理过程中文件被移除的情况。
    """

    def __init__(
        self,
        settings: Settings | None = None,
        repository: SettingsRepository | None = None,
    ):
        self._records: dict[str, FileRecord] = {}
        self._repository = repository
        if settings is None:
            settings = repository.load() if repository else Settings()
        self._settings = settings
        self._is_processing = False
        self._settings_listeners: list[SettingsListener] = []
        self._processing_listeners: list[ProcessingListener] = []

    # ------------------------------------------------------------------
    # 文件记录
    # ------------------------------------------------------------------

    def add_records(self, sources: Iterable[SourceFile]) -> list[FileRecord]:
        """添加新的 pending 记录，已存在的 id 直接跳过

        Returns:
            list[FileRecord]: 实际新增的记录
        """
        added: list[FileRecord] = []
        for source in sources:
            if source.file_id in self._records:
                logger.debug(f"跳过重复文件: {source.file_id}")
                continue
            record = FileRecord.from_source(source)
            self._records[record.id] = record
            added.append(record)
        return added

    def update_record(self, file_id: str, **changes: Any) -> FileRecord | None:
        """结构化合并：只修改传入的字段

        Returns:
            FileRecord | None: 更新后的记录，id 不存在时为 None
        """
        record = self._records.get(file_id)
        if record is None:
            logger.debug(f"忽略对不存在记录的更新: {file_id}")
            return None

        updated = record.evolve(**changes)
        self._records[file_id] = updated
        return updated

    def reset_record(self, file_id: str) -> FileRecord | None:
        """把记录恢复为 pending，清空进度、产物和错误信息"""
        return self.update_record(
            file_id,
            status=FileStatus.PENDING,
            progress=0,
            artifact=None,
            error=None,
        )

    def remove_record(self, file_id: str) -> bool:
        """移除记录，产物随记录一起释放"""
        return self._records.pop(file_id, None) is not None

    def clear(self) -> None:
        self._records.clear()

    def get(self, file_id: str) -> FileRecord | None:
        return self._records.get(file_id)

    def snapshot(self) -> list[FileRecord]:
        """当前所有记录的快照"""
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # 设置
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    def set_settings(self, **changes: Any) -> Settings:
        """合并部分设置字段"""
        return self._replace_settings(self._settings.merge(**changes))

    def apply_preset(self, preset: Preset | str) -> Settings:
        """应用预设（同时覆盖质量和最大边长）"""
        return self._replace_settings(self._settings.with_preset(preset))

    def _replace_settings(self, settings: Settings) -> Settings:
        if settings == self._settings:
            return settings

        self._settings = settings
        if self._repository is not None:
            self._repository.save(settings)

        for listener in list(self._settings_listeners):
            listener(settings)
        return settings

    def subscribe_settings(self, listener: SettingsListener) -> Callable[[], None]:
        self._settings_listeners.append(listener)
        return lambda: self._settings_listeners.remove(listener)

    # ------------------------------------------------------------------
    # 处理中标记
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def set_processing(self, processing: bool) -> None:
        if processing == self._is_processing:
            return

        self._is_processing = processing
        for listener in list(self._processing_listeners):
            listener(processing)

    def subscribe_processing(self, listener: ProcessingListener) -> Callable[[], None]:
        self._processing_listeners.append(listener)
        return lambda: self._processing_listeners.remove(listener)
