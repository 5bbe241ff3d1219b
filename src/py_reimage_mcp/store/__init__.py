"""状态存储包。"""

from .record_store import InMemoryRecordStore, RecordStore
from .settings_repository import SettingsRepository


__all__ = [
    "InMemoryRecordStore",
    "RecordStore",
    "SettingsRepository",
]
