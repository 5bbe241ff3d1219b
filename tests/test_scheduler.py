"""批量调度测试。"""

import asyncio

from py_reimage_mcp.core.codecs import EncodeResult
from py_reimage_mcp.engine import BatchExecutor, BatchScheduler, iter_batches
from py_reimage_mcp.exceptions import EncodeError, EncodeErrorKind
from py_reimage_mcp.models import FileStatus, OutputFormat, Settings, SourceFile
from py_reimage_mcp.store import InMemoryRecordStore


def fake_encoder(delay: float = 0.0, log: list | None = None):
    """不真正编码的编码器，记录调用顺序"""

    async def encode(pixels, output_format, options):
        if log is not None:
            log.append(("start", pixels.width))
        await asyncio.sleep(delay)
        if log is not None:
            log.append(("end", pixels.width))
        return EncodeResult(b"encoded", OutputFormat(output_format))

    return encode


class TestBatchExecutor:
    """批次执行器测试"""

    def test_iter_batches(self):
        assert [list(b) for b in iter_batches([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]

    def test_width_capped_by_task_count(self):
        assert BatchExecutor(8).get_width(3) == 3
        assert BatchExecutor(2).get_width(10) == 2
        assert BatchExecutor(0).get_width(0) == 1

    def test_batches_never_overlap(self):
        """下一批只在上一批全部结束后开始"""
        events = []

        async def task(item):
            events.append(("start", item))
            # 每批中第一个任务耗时更长
            await asyncio.sleep(0.03 if item % 2 == 0 else 0.005)
            events.append(("end", item))
            return item

        results = asyncio.run(BatchExecutor(2).execute([0, 1, 2, 3, 4], task))

        assert results == [0, 1, 2, 3, 4]
        for earlier, later in [((0, 1), 2), ((2, 3), 4)]:
            start_index = events.index(("start", later))
            for item in earlier:
                assert events.index(("end", item)) < start_index

    def test_failures_are_settled(self):
        """失败的任务不影响同批的其他任务"""

        async def task(item):
            if item == 1:
                raise RuntimeError("boom")
            return item

        results = asyncio.run(BatchExecutor(3).execute([0, 1, 2], task))

        assert results[0] == 0
        assert isinstance(results[1], RuntimeError)
        assert results[2] == 2


class TestBatchScheduler:
    """批量调度器测试"""

    def test_default_width_reserves_one_unit(self):
        """并行度 3 时批次宽度为 2"""
        scheduler = BatchScheduler(InMemoryRecordStore())
        assert scheduler._get_executor().max_width == 2

    def test_end_to_end_webp(self, make_source):
        """3000×1500 JPEG 按均衡预设转为 2048×1024 的 webp"""
        store = InMemoryRecordStore(Settings().with_preset("balanced"))
        store.add_records([make_source("big.jpg", size=(3000, 1500))])

        summary = asyncio.run(BatchScheduler(store).process_all())
        (record,) = store.snapshot()

        assert summary.completed == 1
        assert record.status is FileStatus.COMPLETED
        assert record.progress == 100
        assert record.artifact.format is OutputFormat.WEBP
        assert (record.artifact.width, record.artifact.height) == (2048, 1024)
        assert record.artifact.data[8:12] == b"WEBP"
        assert record.artifact.size == len(record.artifact.data)
        assert record.artifact.original_size == record.source.size

    def test_original_keeps_source_format(self, make_source):
        store = InMemoryRecordStore(Settings(output_format="original"))
        store.add_records([make_source("icon.png", size=(64, 64), fmt="PNG", mode="RGBA")])

        asyncio.run(BatchScheduler(store).process_all())
        (record,) = store.snapshot()

        assert record.artifact.format is OutputFormat.PNG
        assert record.artifact.data[:4] == b"\x89PNG"

    def test_failure_isolated(self, make_source):
        """损坏的文件只影响自己的记录"""
        store = InMemoryRecordStore()
        broken = SourceFile.from_bytes("broken.jpg", b"not an image", "image/jpeg")
        store.add_records([make_source("a.jpg"), broken, make_source("b.jpg")])

        summary = asyncio.run(BatchScheduler(store, encoder=fake_encoder()).process_all())

        assert (summary.completed, summary.failed) == (2, 1)
        broken_record = store.get(broken.file_id)
        assert broken_record.status is FileStatus.ERROR
        assert broken_record.error
        assert broken_record.artifact is None

    def test_encode_error_message(self, make_source):
        """编码错误转换为对应类别的提示"""

        async def encode(pixels, output_format, options):
            raise EncodeError(EncodeErrorKind.OUT_OF_MEMORY, format_name="WEBP")

        store = InMemoryRecordStore()
        (record,) = store.add_records([make_source()])

        asyncio.run(BatchScheduler(store, encoder=encode).process_all())

        assert "内存不足" in store.get(record.id).error

    def test_progress_before_encode(self, make_source):
        """编码开始时记录处于 processing，进度为 70"""
        store = InMemoryRecordStore()
        (record,) = store.add_records([make_source()])
        observed = []

        async def encode(pixels, output_format, options):
            current = store.get(record.id)
            observed.append((current.status, current.progress))
            return EncodeResult(b"encoded", OutputFormat(output_format))

        asyncio.run(BatchScheduler(store, encoder=encode).process_all())

        assert observed == [(FileStatus.PROCESSING, 70)]

    def test_concurrency_bounded(self, make_source):
        """同时进行的编码不超过批次宽度"""
        store = InMemoryRecordStore()
        store.add_records([make_source(f"{i}.jpg", size=(100 + i, 50)) for i in range(5)])
        active = 0
        peak = 0

        async def encode(pixels, output_format, options):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return EncodeResult(b"encoded", OutputFormat(output_format))

        scheduler = BatchScheduler(store, executor=BatchExecutor(2), encoder=encode)
        summary = asyncio.run(scheduler.process_all())

        assert summary.completed == 5
        assert peak <= 2

    def test_record_removed_mid_processing(self, make_source):
        """处理中被移除的记录不会报错，也不会重新出现"""
        store = InMemoryRecordStore()
        (record,) = store.add_records([make_source()])

        async def encode(pixels, output_format, options):
            store.remove_record(record.id)
            return EncodeResult(b"encoded", OutputFormat(output_format))

        result = asyncio.run(BatchScheduler(store, encoder=encode).process_single_file(record.id))

        assert result is None
        assert store.snapshot() == []

    def test_only_pending_processed(self, make_source):
        store = InMemoryRecordStore()
        (record,) = store.add_records([make_source()])
        scheduler = BatchScheduler(store, encoder=fake_encoder())
        asyncio.run(scheduler.process_all())
        calls = []

        async def encode(pixels, output_format, options):
            calls.append(1)
            return EncodeResult(b"again", OutputFormat(output_format))

        scheduler.encoder = encode
        asyncio.run(scheduler.process_all())

        assert calls == []
        assert store.get(record.id).artifact.data == b"encoded"


class TestRunExclusive:
    """单一批量任务测试"""

    def test_processing_flag_and_single_flight(self, make_source):
        store = InMemoryRecordStore()
        store.add_records([make_source("a.jpg"), make_source("b.jpg")])
        scheduler = BatchScheduler(store, encoder=fake_encoder(delay=0.02))
        flags = []
        store.subscribe_processing(flags.append)

        async def run():
            return await asyncio.gather(scheduler.run_exclusive(), scheduler.run_exclusive())

        first, second = asyncio.run(run())

        assert first.completed == 2
        assert second is None
        assert flags == [True, False]
        assert not store.is_processing

    def test_files_added_during_run_are_processed(self, make_source):
        """运行期间加入的文件在当前任务结束前被处理"""
        store = InMemoryRecordStore()
        store.add_records([make_source("a.jpg")])
        late = make_source("late.jpg")

        async def encode(pixels, output_format, options):
            store.add_records([late])
            return EncodeResult(b"encoded", OutputFormat(output_format))

        summary = asyncio.run(BatchScheduler(store, encoder=encode).run_exclusive())

        assert summary.completed == 2
        assert store.get(late.file_id).status is FileStatus.COMPLETED
