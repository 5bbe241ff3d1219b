"""统一配置管理模块。

提供应用程序的全局配置管理，包括默认值、环境变量支持等。
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CodecDefaults:
    """编码相关的默认配置"""

    # AVIF 像素上限（约 10000x10000）
    AVIF_MAX_PIXELS: int = 100_000_000

    # 软件编码层的超时时间（秒），None 表示不限制
    AVIF_ENCODE_TIMEOUT: float | None = 120.0

    # 软件编码器无法加载时的替代格式，None 表示直接报错
    AVIF_SUBSTITUTE_FORMAT: str | None = "webp"

    # 原生编码参数
    JPEG_PROGRESSIVE: bool = True
    WEBP_METHOD: int = 4

    # 缩放后的锐化参数
    UNSHARP_RADIUS: float = 0.6
    UNSHARP_PERCENT: int = 160
    UNSHARP_THRESHOLD: int = 4


@dataclass(frozen=True)
class ProcessingDefaults:
    """处理相关的默认配置"""

    # 并发设置，None 时按 CPU 核心数计算
    MAX_WORKERS: int | None = None

    # 设置变更后的防抖时间（毫秒）
    DEBOUNCE_MS: int = 500

    # 预览图最长边
    PREVIEW_MAX_SIZE: int = 256

    # 导出压缩包的 deflate 级别
    ARCHIVE_COMPRESS_LEVEL: int = 6


@dataclass(frozen=True)
class ValidationDefaults:
    """输入校验相关的默认配置"""

    MAX_FILE_SIZE_MB: float = 50.0

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.MAX_FILE_SIZE_MB * 1024 * 1024)


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    # 日志级别
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 文件日志
    ENABLE_FILE_LOGGING: bool = False
    LOG_FILE_PATH: str = "py_reimage.log"
    LOG_FILE_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_FILE_BACKUP_COUNT: int = 5


def _default_settings_path() -> Path:
    return Path.home() / ".config" / "py-reimage" / "settings.json"


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.codec = CodecDefaults()
        self.processing = ProcessingDefaults()
        self.validation = ValidationDefaults()
        self.logging = LoggingDefaults()
        self.settings_path: Path = _default_settings_path()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 编码配置
        if timeout := os.getenv("REIMAGE_AVIF_ENCODE_TIMEOUT"):
            value = float(timeout)
            object.__setattr__(
                self.codec, "AVIF_ENCODE_TIMEOUT", value if value > 0 else None
            )

        if substitute := os.getenv("REIMAGE_AVIF_SUBSTITUTE_FORMAT"):
            substitute = substitute.strip().lower()
            object.__setattr__(
                self.codec,
                "AVIF_SUBSTITUTE_FORMAT",
                None if substitute in ("", "none", "off") else substitute,
            )

        # 处理配置
        if max_workers := os.getenv("REIMAGE_MAX_WORKERS"):
            object.__setattr__(self.processing, "MAX_WORKERS", int(max_workers))

        if debounce_ms := os.getenv("REIMAGE_DEBOUNCE_MS"):
            object.__setattr__(self.processing, "DEBOUNCE_MS", int(debounce_ms))

        # 校验配置
        if max_size := os.getenv("REIMAGE_MAX_FILE_SIZE_MB"):
            object.__setattr__(self.validation, "MAX_FILE_SIZE_MB", float(max_size))

        if settings_path := os.getenv("REIMAGE_SETTINGS_PATH"):
            self.settings_path = Path(settings_path).expanduser()

        # 日志配置
        if log_level := os.getenv("REIMAGE_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())

        if enable_file_log := os.getenv("REIMAGE_ENABLE_FILE_LOGGING"):
            object.__setattr__(
                self.logging,
                "ENABLE_FILE_LOGGING",
                enable_file_log.lower() in ("true", "1", "yes"),
            )

    def get_parallelism(self) -> int:
        """可用并行度（对应浏览器的 hardwareConcurrency）"""
        if self.processing.MAX_WORKERS is not None:
            return max(1, self.processing.MAX_WORKERS)
        return os.cpu_count() or 1

    @property
    def debounce_seconds(self) -> float:
        return self.processing.DEBOUNCE_MS / 1000


# 全局配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取全局配置实例"""
    return config


def reset_config():
    """重置配置（主要用于测试）"""
    global config
    config = AppConfig()
