"""测试配置文件。

提供测试所需的fixtures和配置。
"""

from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from py_reimage_mcp.config import get_config, reset_config
from py_reimage_mcp.models import SourceFile


def _draw_pattern(img: Image.Image) -> None:
    """画一些色块，避免纯色图像压缩结果过于特殊"""
    draw = ImageDraw.Draw(img)
    width, height = img.size
    step = max(1, min(width, height) // 10)
    for i in range(10):
        x, y = (i * step * 3) % width, (i * step * 2) % height
        color = (i * 25 % 256, i * 57 % 256, i * 91 % 256)
        if img.mode == "RGBA":
            color = (*color, 80 + i * 17)
        draw.rectangle([x, y, x + step * 2, y + step], fill=color)


def create_image_bytes(
    size: tuple[int, int] = (200, 100),
    fmt: str = "JPEG",
    mode: str = "RGB",
) -> bytes:
    """生成测试图片字节"""
    background = (255, 255, 255, 0) if mode == "RGBA" else "white"
    img = Image.new(mode, size, color=background)
    _draw_pattern(img)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


_MIME_TYPES = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp", "GIF": "image/gif"}


@pytest.fixture(autouse=True)
def app_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """隔离的全局配置：设置文件写到临时目录，缩短防抖时间，固定并行度"""
    monkeypatch.setenv("REIMAGE_SETTINGS_PATH", str(tmp_path / "settings.json"))
    monkeypatch.setenv("REIMAGE_DEBOUNCE_MS", "50")
    monkeypatch.setenv("REIMAGE_MAX_WORKERS", "3")
    reset_config()
    yield get_config()
    reset_config()


@pytest.fixture
def make_source():
    """源文件工厂fixture"""

    def factory(
        name: str = "photo.jpg",
        size: tuple[int, int] = (200, 100),
        fmt: str = "JPEG",
        mode: str = "RGB",
        last_modified: int = 1_700_000_000_000,
    ) -> SourceFile:
        data = create_image_bytes(size, fmt, mode)
        return SourceFile.from_bytes(
            name, data, mime_type=_MIME_TYPES.get(fmt, ""), last_modified=last_modified
        )

    return factory


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    """包含几种格式测试图片的目录"""
    directory = tmp_path / "images"
    directory.mkdir()
    (directory / "landscape.jpg").write_bytes(create_image_bytes((640, 320), "JPEG"))
    (directory / "portrait.png").write_bytes(create_image_bytes((240, 480), "PNG"))
    (directory / "transparent.png").write_bytes(
        create_image_bytes((300, 300), "PNG", "RGBA")
    )
    (directory / "animation.gif").write_bytes(create_image_bytes((50, 50), "GIF"))
    return directory


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """输出目录fixture"""
    path = tmp_path / "output"
    path.mkdir()
    return path
