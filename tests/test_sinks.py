"""
Tests for FileSink, DrainGate and the one-shot writer.
"""

import asyncio

import orjson
import pyarrow.parquet as pq
import pytest

from conftest import BARS, MemorySink
from stream_export.backpressure import DrainGate
from stream_export.errors import SinkFailure
from stream_export.sinks import ByteSink, FileSink
from stream_export.writers.oneshot import write_stream


class TestFileSink:
    def test_is_a_byte_sink(self, tmp_path):
        assert isinstance(FileSink(tmp_path / "x"), ByteSink)
        assert isinstance(MemorySink(), ByteSink)

    def test_writes_in_order(self, tmp_path):
        path = tmp_path / "nested" / "out.bin"

        async def _go():
            sink = FileSink(path, high_water_mark=4)
            results = [sink.write(bytes([65 + i]) * 3) for i in range(5)]
            await sink.end()
            return sink, results

        sink, results = asyncio.run(_go())
        assert path.read_bytes() == b"AAABBBCCCDDDEEE"
        assert results[0] is True
        assert results[-1] is False
        assert sink.bytes_written == 15
        assert sink.pending_bytes == 0

    def test_end_without_writes_creates_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        asyncio.run(FileSink(path).end())
        assert path.exists()
        assert path.read_bytes() == b""

    def test_gate_waits_for_drain(self, tmp_path):
        path = tmp_path / "gate.txt"

        async def _go():
            sink = FileSink(path, high_water_mark=2)
            gate = DrainGate(sink)
            for _ in range(10):
                assert await gate.emit(b"abc") is True
                assert gate.is_open()
            await sink.end()

        asyncio.run(_go())
        assert path.read_bytes() == b"abc" * 10

    def test_write_after_end_fails(self, tmp_path):
        async def _go():
            sink = FileSink(tmp_path / "done")
            await sink.end()
            sink.write(b"late")

        with pytest.raises(SinkFailure):
            asyncio.run(_go())

    def test_io_error_surfaces_as_sink_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        async def _go():
            sink = FileSink(blocker / "out.txt", high_water_mark=1)
            await DrainGate(sink).emit(b"data")

        with pytest.raises(SinkFailure):
            asyncio.run(_go())

    def test_end_releases_file_handle(self, tmp_path):
        async def _go():
            sink = FileSink(tmp_path / "out.bin", high_water_mark=1)
            await DrainGate(sink).emit(b"abc")
            assert sink.is_open
            await sink.end()
            return sink

        assert not asyncio.run(_go()).is_open

    def test_abort_drops_queued_bytes_and_closes(self, tmp_path):
        path = tmp_path / "partial.bin"

        async def _go():
            sink = FileSink(path, high_water_mark=1)
            await DrainGate(sink).emit(b"head")
            sink.write(b"tail")
            await sink.abort()
            await sink.abort()
            return sink

        sink = asyncio.run(_go())
        assert not sink.is_open
        assert sink.pending_bytes == 0
        assert path.read_bytes() == b"head"
        with pytest.raises(SinkFailure):
            sink.write(b"late")

    def test_rejects_bad_high_water_mark(self, tmp_path):
        with pytest.raises(ValueError):
            FileSink(tmp_path / "x", high_water_mark=0)


class TestDrainGate:
    def test_failure_is_raised_from_wait(self):
        sink = MemorySink(high_water_mark=1, drain_error=OSError("boom"))

        async def _go():
            await DrainGate(sink).emit(b"x")

        with pytest.raises(SinkFailure) as info:
            asyncio.run(_go())
        assert isinstance(info.value.__cause__, OSError)


class TestWriteStream:
    def test_json_payload(self, tmp_path):
        path = tmp_path / "bars.json"
        assert asyncio.run(write_stream(BARS, "d1", "json", path, False)) is True
        parsed = orjson.loads(path.read_bytes())
        assert len(parsed) == 4
        assert parsed[0]["volume"] == 10

    def test_headers_follow_payload_width(self, tmp_path):
        path = tmp_path / "bars.csv"
        asyncio.run(write_stream([r[:5] for r in BARS], "h1", "csv", path))
        assert path.read_text().splitlines()[0] == "timestamp,open,high,low,close"

    def test_leading_empty_row_does_not_shrink_headers(self, tmp_path):
        path = tmp_path / "bars.csv"
        asyncio.run(write_stream([[], BARS[0]], "h1", "csv", path))
        lines = path.read_text().splitlines()
        assert lines[0] == "timestamp,open,high,low,close,volume"
        assert lines[1:] == ["1000,1.5,2.0,1.0,1.25,10"]

    def test_tick_parquet(self, tmp_path):
        path = tmp_path / "ticks.parquet"
        ticks = [[1000, 1.1, 1.0], [1001, 1.2, 1.1]]
        asyncio.run(write_stream(ticks, "tick", "parquet", path))
        table = pq.read_table(path)
        assert table.column_names == ["timestamp", "askPrice", "bidPrice"]
        assert table.num_rows == 2

    def test_empty_payload(self, tmp_path):
        path = tmp_path / "none.json"
        asyncio.run(write_stream([], "d1", "array", path, True))
        assert path.read_bytes() == b""
