"""导出模块。

把已完成的转码产物打包为 zip，或单独写入文件。
"""

import time
import zipfile
from collections.abc import Iterable
from io import BytesIO
from pathlib import Path

from ..config import get_config
from ..models.file_record import FileRecord
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter
from .naming_helpers import ensure_unique_path, get_output_filename, make_unique_name


logger = get_logger()


def artifact_filename(record: FileRecord, quality: int) -> str:
    """记录对应的导出文件名"""
    if record.artifact is None:
        raise ValueError(MessageFormatter.no_artifact(record.source.name))
    return get_output_filename(
        record.source.name,
        record.artifact.format,
        record.artifact.width,
        quality,
    )


def build_archive(records: Iterable[FileRecord], quality: int) -> tuple[bytes, list[str]]:
    """把带产物的记录打包为 zip（deflate，压缩级别 6）

    没有产物的记录会被跳过。

    Args:
        records: 记录列表
        quality: 写入文件名的质量值（当前设置）

    Returns:
        tuple: (zip 字节, 压缩包内的文件名列表)
    """
    level = get_config().processing.ARCHIVE_COMPRESS_LEVEL
    names: list[str] = []
    buffer = BytesIO()

    with zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=level
    ) as archive:
        for record in records:
            if record.artifact is None:
                continue
            name = make_unique_name(artifact_filename(record, quality), names)
            archive.writestr(name, record.artifact.data)
            names.append(name)

    return buffer.getvalue(), names


def write_archive(
    records: Iterable[FileRecord], quality: int, output_dir: str | Path
) -> tuple[Path, list[str]]:
    """打包并写入 reimage-processed-{毫秒时间戳}.zip

    Returns:
        tuple: (压缩包路径, 压缩包内的文件名列表)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    data, names = build_archive(records, quality)
    path = ensure_unique_path(output_dir / f"reimage-processed-{int(time.time() * 1000)}.zip")
    path.write_bytes(data)

    logger.info(f"已导出压缩包: {path} ({len(names)} 个文件)")
    return path, names


def write_artifact(record: FileRecord, quality: int, output_dir: str | Path) -> Path:
    """单独写出一个转码结果

    Raises:
        ValueError: 记录没有产物
    """
    filename = artifact_filename(record, quality)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    path = ensure_unique_path(output_dir / filename)
    path.write_bytes(record.artifact.data)  # type: ignore[union-attr]

    logger.info(f"已导出文件: {path}")
    return path
