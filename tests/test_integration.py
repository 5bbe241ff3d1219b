"""集成测试。

测试端到端功能：添加文件 → 转码 → 调整设置 → 导出。
"""

import asyncio
import io
import zipfile
from pathlib import Path

import pytest

from py_reimage_mcp.core.validation import ensure_valid, validate_file, validate_files
from py_reimage_mcp.exceptions import ReimageError, ValidationError
from py_reimage_mcp.models import FileStatus, OutputFormat, SourceFile
from py_reimage_mcp.transcoder import ImageTranscoder
from py_reimage_mcp.utils import (
    build_archive,
    find_image_files,
    get_output_filename,
    load_source_file,
    make_unique_name,
)


class TestValidation:
    """入口校验测试"""

    def test_accepts_supported_types(self, make_source):
        assert validate_file(make_source("a.jpg")) is None
        assert validate_file(SourceFile(name="b.avif", size=10)) is None
        assert validate_file(SourceFile(name="noext", size=10, mime_type="image/webp")) is None

    def test_rejects_gif(self):
        error = validate_file(SourceFile(name="anim.gif", size=10, mime_type="image/gif"))
        assert error is not None
        assert "anim.gif" in error

    def test_rejects_oversized(self):
        source = SourceFile(name="huge.png", size=50 * 1024 * 1024 + 1, mime_type="image/png")
        assert "50MB" in validate_file(source)

    def test_limit_from_environment(self, monkeypatch):
        from py_reimage_mcp.config import reset_config

        monkeypatch.setenv("REIMAGE_MAX_FILE_SIZE_MB", "1")
        reset_config()

        assert validate_file(SourceFile(name="a.png", size=2 * 1024 * 1024)) is not None

    def test_validate_files_splits(self, make_source):
        gif = SourceFile(name="a.gif", size=10, mime_type="image/gif")
        valid, errors = validate_files([make_source("a.jpg"), gif])

        assert len(valid) == 1
        assert len(errors) == 1

    def test_ensure_valid_raises(self):
        with pytest.raises(ValidationError):
            ensure_valid(SourceFile(name="a.bmp", size=10, mime_type="image/bmp"))


class TestNamingAndArchive:
    """导出命名和打包测试"""

    @pytest.mark.parametrize(
        ("name", "fmt", "expected"),
        [
            ("photo.jpg", "webp", "photo_w2048_q80.webp"),
            ("my.photo.png", "avif", "my.photo_w2048_q80.avif"),
            ("noext", "jpg", "noext_w2048_q80.jpg"),
        ],
    )
    def test_output_filename(self, name, fmt, expected):
        assert get_output_filename(name, fmt, 2048, 80) == expected

    def test_make_unique_name(self):
        assert make_unique_name("a.webp", []) == "a.webp"
        assert make_unique_name("a.webp", ["a.webp", "a_1.webp"]) == "a_2.webp"

    def test_find_image_files(self, image_dir: Path):
        names = [path.name for path in find_image_files(image_dir)]
        assert names == ["landscape.jpg", "portrait.png", "transparent.png"]

    def test_load_source_file(self, image_dir: Path):
        source = load_source_file(image_dir / "landscape.jpg")

        assert source.mime_type == "image/jpeg"
        assert source.size == len(source.data)
        assert source.last_modified > 0
        assert source.file_id.startswith("landscape.jpg-")

    def test_build_archive_skips_unfinished(self, make_source):
        transcoder = ImageTranscoder()
        asyncio.run(transcoder.add_files([make_source("a.jpg"), make_source("b.jpg")]))
        pending = make_source("c.jpg")
        asyncio.run(transcoder.add_files([pending], auto_process=False))

        data, names = build_archive(transcoder.snapshot(), 80)

        assert sorted(names) == ["a_w200_q80.webp", "b_w200_q80.webp"]
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert sorted(archive.namelist()) == names
            info = archive.getinfo(names[0])
            assert info.compress_type == zipfile.ZIP_DEFLATED


class TestImageTranscoder:
    """转码器端到端测试"""

    def test_add_directory_and_process(self, image_dir: Path):
        transcoder = ImageTranscoder()
        added, errors = asyncio.run(transcoder.add_files([image_dir]))

        assert errors == []
        assert len(added) == 3
        assert all(record.status is FileStatus.COMPLETED for record in added)
        assert all(record.preview for record in added)
        assert transcoder.summary().completed == 3

    def test_gif_rejected_without_record(self, image_dir: Path):
        """不支持的文件只返回错误，不产生记录"""
        transcoder = ImageTranscoder()
        added, errors = asyncio.run(transcoder.add_files([image_dir / "animation.gif"]))

        assert added == []
        assert len(errors) == 1
        assert transcoder.snapshot() == []

    def test_missing_path_reported(self, tmp_path: Path):
        transcoder = ImageTranscoder()
        added, errors = asyncio.run(transcoder.add_files([tmp_path / "missing.jpg"]))

        assert added == []
        assert "missing.jpg" in errors[0]

    def test_duplicate_add_ignored(self, image_dir: Path):
        transcoder = ImageTranscoder()
        asyncio.run(transcoder.add_files([image_dir / "landscape.jpg"]))
        added, _ = asyncio.run(transcoder.add_files([image_dir / "landscape.jpg"]))

        assert added == []
        assert len(transcoder.snapshot()) == 1

    def test_preset_change_reprocesses(self, make_source):
        """应用预设后已完成的文件按新尺寸重新转码"""
        transcoder = ImageTranscoder(debounce_seconds=0.01)

        async def run():
            await transcoder.add_files([make_source("wide.jpg", size=(3000, 1500))])
            transcoder.apply_preset("high-compression")
            await transcoder.wait_idle()

        asyncio.run(run())

        (record,) = transcoder.snapshot()
        assert record.status is FileStatus.COMPLETED
        assert (record.artifact.width, record.artifact.height) == (1920, 960)

    def test_wait_idle_until_processing_ends(self):
        """wait_idle 等到处理中标志清除后返回，并移除临时订阅"""
        transcoder = ImageTranscoder()
        store = transcoder.store
        listener_count = len(store._processing_listeners)

        async def run():
            store.set_processing(True)
            asyncio.get_running_loop().call_later(0.05, store.set_processing, False)
            await asyncio.wait_for(transcoder.wait_idle(), timeout=2)

        asyncio.run(run())

        assert not store.is_processing
        assert len(store._processing_listeners) == listener_count

    def test_update_settings_ignores_none(self, make_source):
        transcoder = ImageTranscoder()
        settings = transcoder.update_settings(output_format="jpg", quality=None)

        assert settings.output_format is OutputFormat.JPG
        assert settings.quality == 80

    def test_export(self, make_source, output_dir: Path):
        transcoder = ImageTranscoder()
        added, _ = asyncio.run(transcoder.add_files([make_source("a.jpg")]))

        archive_path, names = transcoder.export_archive(output_dir)
        file_path = transcoder.export_file(added[0].id, output_dir)

        assert archive_path.name.startswith("reimage-processed-")
        assert archive_path.suffix == ".zip"
        assert names == ["a_w200_q80.webp"]
        assert file_path.name == "a_w200_q80.webp"
        assert file_path.read_bytes() == transcoder.get(added[0].id).artifact.data

    def test_export_errors(self, make_source, output_dir: Path):
        transcoder = ImageTranscoder()

        with pytest.raises(ReimageError):
            transcoder.export_archive(output_dir)
        with pytest.raises(ReimageError):
            transcoder.export_file("missing", output_dir)

        added, _ = asyncio.run(transcoder.add_files([make_source()], auto_process=False))
        with pytest.raises(ReimageError):
            transcoder.export_file(added[0].id, output_dir)

    def test_remove_and_clear(self, make_source):
        transcoder = ImageTranscoder()
        added, _ = asyncio.run(
            transcoder.add_files([make_source("a.jpg"), make_source("b.jpg")], auto_process=False)
        )

        assert transcoder.remove_file(added[0].id)
        assert not transcoder.remove_file(added[0].id)
        transcoder.clear()
        assert transcoder.snapshot() == []


class TestMCPServer:
    """MCP服务器功能测试"""

    def test_mcp_server_imports(self):
        """测试MCP服务器模块导入"""
        from py_reimage_mcp.mcp_server import mcp

        assert mcp is not None

    def test_mcp_core_tools(self):
        """测试核心工具存在"""
        from py_reimage_mcp.mcp_server import (
            add_images,
            apply_preset,
            clear_images,
            export_image,
            export_zip,
            get_status,
            process_images,
            remove_image,
            update_settings,
        )

        for tool in (
            add_images,
            apply_preset,
            clear_images,
            export_image,
            export_zip,
            get_status,
            process_images,
            remove_image,
            update_settings,
        ):
            assert tool is not None

    def test_response_builder(self):
        from py_reimage_mcp.mcp_server import MCPResponseBuilder

        response = MCPResponseBuilder.validation_error("质量无效", "quality")

        assert response == {
            "success": False,
            "error": "质量无效",
            "error_type": "validation",
            "details": {"field": "quality"},
        }

    def test_build_status(self, make_source):
        from py_reimage_mcp.mcp_server import build_status

        transcoder = ImageTranscoder()
        asyncio.run(transcoder.add_files([make_source("a.jpg")]))

        status = build_status(transcoder)

        assert status["success"] is True
        assert status["settings"]["output_format"] == "webp"
        assert status["summary"]["completed"] == 1
        (file_info,) = status["files"]
        assert file_info["status"] == "completed"
        assert file_info["result"]["format"] == "webp"
        assert "data" not in file_info["result"]

    def test_version_entry(self, capsys, monkeypatch):
        from py_reimage_mcp import __main__, __version__

        monkeypatch.setattr("sys.argv", ["py-reimage-mcp", "--version"])
        __main__.main()

        assert capsys.readouterr().out.strip() == f"py-reimage-mcp {__version__}"
