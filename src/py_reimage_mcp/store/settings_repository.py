"""设置持久化模块。

只有转码设置跨会话保存（JSON 文件）；文件记录和产物只存在于当前会话。
"""

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ..config import get_config
from ..models.settings import Settings
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


class SettingsRepository:
    """基于 JSON 文件的设置存储"""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else get_config().settings_path

    def load(self) -> Settings:
        """读取设置，文件不存在或内容损坏时返回默认设置"""
        if not self.path.exists():
            return Settings()

        try:
            return Settings.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as e:
            logger.warning(MessageFormatter.operation_failed("读取设置", self.path, e))
            return Settings()

    def save(self, settings: Settings) -> bool:
        """保存设置

        Returns:
            bool: 是否写入成功
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(MessageFormatter.operation_failed("保存设置", self.path, e))
            return False

        logger.debug(f"设置已保存: {self.path}")
        return True
