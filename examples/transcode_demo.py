"""批量转码演示

把一个目录中的图像按“均衡”预设转为 webp，再切换到 avif 重新转码，
最后打包导出为 zip。

用法:
    python examples/transcode_demo.py <图片目录> [输出目录]
"""

import asyncio
import sys
from pathlib import Path

from py_reimage_mcp import ImageTranscoder
from py_reimage_mcp.utils import configure_logging


def print_records(transcoder: ImageTranscoder) -> None:
    for record in transcoder.snapshot():
        if record.artifact is not None:
            print(f"  ✅ {record.source.name}: {record.artifact.get_summary()}")
        else:
            print(f"  ❌ {record.source.name}: {record.error or record.status.value}")


async def run(images_dir: Path, output_dir: Path) -> None:
    transcoder = ImageTranscoder()
    transcoder.apply_preset("balanced")
    transcoder.update_settings(output_format="webp")

    print(f"📂 添加图片: {images_dir}")
    added, rejected = await transcoder.add_files([images_dir])
    for message in rejected:
        print(f"  ⚠️ {message}")
    print(f"已转码 {len(added)} 个文件")
    print_records(transcoder)

    print("\n🔄 切换为 avif，等待重新转码")
    transcoder.update_settings(output_format="avif")
    await transcoder.wait_idle()
    print_records(transcoder)
    print(transcoder.summary().get_summary())

    archive_path, names = transcoder.export_archive(output_dir)
    print(f"\n📦 已导出 {len(names)} 个文件: {archive_path}")
    transcoder.close()


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    configure_logging("WARNING")
    images_dir = Path(sys.argv[1])
    output_dir = Path(sys.argv[2]) if len(sys.argv) > 2 else Path("tmp/reimage_output")
    asyncio.run(run(images_dir, output_dir))


if __name__ == "__main__":
    main()
