"""缩放引擎测试。"""

import asyncio

import pytest
from PIL import Image

from py_reimage_mcp.core.resize import (
    async_resize_image,
    compute_target_size,
    resize_image,
    round_half_up,
)
from py_reimage_mcp.exceptions import ResizeError


class TestComputeTargetSize:
    """目标尺寸计算测试"""

    @pytest.mark.parametrize(
        ("size", "max_dimension", "expected"),
        [
            ((4000, 2000), 2048, (2048, 1024)),
            ((2000, 4000), 2048, (1024, 2048)),
            ((3000, 3000), 2048, (2048, 2048)),
            ((3000, 1500), 2048, (2048, 1024)),
            ((3001, 1000), 1500, (1500, 500)),
        ],
    )
    def test_long_side_scaled_to_max(self, size, max_dimension, expected):
        """长边恰好等于最大边长，短边按比例四舍五入"""
        assert compute_target_size(*size, max_dimension) == expected

    def test_small_image_unchanged(self):
        """不超过最大边长时不放大"""
        assert compute_target_size(1000, 500, 2048) == (1000, 500)
        assert compute_target_size(2048, 2048, 2048) == (2048, 2048)

    def test_extreme_aspect_ratio_keeps_one_pixel(self):
        """极端宽高比时短边至少为 1"""
        assert compute_target_size(100_000, 10, 1000) == (1000, 1)

    @pytest.mark.parametrize(
        ("width", "height", "max_dimension"),
        [(0, 10, 100), (10, -1, 100), (10, 10, 0)],
    )
    def test_invalid_dimensions(self, width, height, max_dimension):
        """非正数尺寸抛出 ResizeError"""
        with pytest.raises(ResizeError, match="^图像缩放失败"):
            compute_target_size(width, height, max_dimension)

    def test_round_half_up(self):
        """.5 向上取整"""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2


class TestResizeImage:
    """图像缩放测试"""

    def test_downscale(self):
        """4000×2000 缩放到 2048×1024"""
        image = Image.new("RGB", (4000, 2000), color="navy")
        result = resize_image(image, 2048)

        assert result.was_resized
        assert (result.width, result.height) == (2048, 1024)
        assert result.image.size == (2048, 1024)

    def test_identity_returns_copy(self):
        """无需缩放时返回像素相同的副本"""
        image = Image.new("RGB", (100, 50), color=(10, 20, 30))
        result = resize_image(image, 200)

        assert not result.was_resized
        assert result.image is not image
        assert result.image.size == (100, 50)
        assert result.image.tobytes() == image.tobytes()

    def test_alpha_channel_preserved(self):
        """锐化只作用于颜色通道，透明度保持不变"""
        image = Image.new("RGBA", (400, 200), color=(200, 50, 50, 128))
        result = resize_image(image, 200)

        assert result.image.mode == "RGBA"
        assert result.image.size == (200, 100)
        assert result.image.getchannel("A").getextrema() == (128, 128)

    def test_missing_image(self):
        """像素缓冲缺失时抛出 ResizeError"""
        with pytest.raises(ResizeError) as exc_info:
            resize_image(None, 2048)

        assert exc_info.value.message == "图像缩放失败: 像素缓冲不存在"

    def test_async_resize(self):
        """工作线程中的缩放结果一致"""
        image = Image.new("RGB", (800, 400))
        result = asyncio.run(async_resize_image(image, 400))

        assert (result.width, result.height) == (400, 200)
