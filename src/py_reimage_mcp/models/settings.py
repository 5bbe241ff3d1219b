"""转码设置模型。

进程级的转码设置，跨会话持久化；选择预设会同时覆盖质量和最大边长。
"""

from pydantic import BaseModel, ConfigDict, Field

from .constants import OutputFormat, Preset, PresetValues


class Settings(BaseModel):
    """转码设置"""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    preset: Preset = Field(Preset.BALANCED, description="质量预设")
    output_format: OutputFormat = Field(OutputFormat.WEBP, description="输出格式")
    quality: int = Field(80, ge=0, le=100, description="质量 0-100")
    max_dimension: int = Field(4096, gt=0, description="最大边长（像素）")
    near_lossless: bool = Field(False, description="近无损（仅 webp/avif 有效）")

    def with_preset(self, preset: Preset | str) -> "Settings":
        """应用预设，原子地覆盖质量和最大边长"""
        preset = Preset(preset)
        quality, max_dimension = PresetValues.VALUES[preset]
        return self.model_copy(
            update={
                "preset": preset,
                "quality": quality,
                "max_dimension": max_dimension,
            }
        )

    def merge(self, **changes) -> "Settings":
        """合并部分字段并重新校验

        包含 preset 时先应用预设，再叠加同时传入的其他字段。
        """
        base = self
        if "preset" in changes:
            base = self.with_preset(changes.pop("preset"))
        return Settings.model_validate({**base.model_dump(), **changes})

    def reprocess_key(self) -> tuple:
        """决定是否需要重新转码的字段组合"""
        return (
            self.preset,
            self.output_format,
            self.quality,
            self.max_dimension,
            self.near_lossless,
        )


class CodecOptions(BaseModel):
    """映射后的编码器参数"""

    model_config = ConfigDict(frozen=True)

    quality: int | None = Field(None, ge=0, le=100, description="编码质量")
    level: int | None = Field(None, ge=0, le=9, description="PNG 压缩级别")
    speed: int | None = Field(None, ge=0, le=10, description="AVIF 编码速度")
    near_lossless: bool | None = Field(None, description="近无损")
