"""
Tests for BatchStreamWriter framing across write_batch calls.
"""

import asyncio

import orjson
import pytest

from conftest import BARS, TICKS, MemorySink, write_all
from stream_export.errors import SinkFailure, WriterStateError
from stream_export.models import WriterState


def _json_rows(rows, headers=("timestamp", "open", "high", "low", "close", "volume")):
    return [dict(zip(headers, r)) for r in rows]


class TestCsv:
    def test_header_then_one_line_per_row(self, sink, make_writer):
        write_all(make_writer(sink, "csv"), BARS[:2], BARS[2:])

        lines = sink.text.split("\n")
        assert lines[0] == "timestamp,open,high,low,close,volume"
        assert lines[1] == "1000,1.5,2.0,1.0,1.25,10"
        assert len(lines) == 1 + len(BARS) + 1
        assert lines[-1] == ""
        assert "" not in lines[:-1]

    def test_no_rows_gives_header_only(self, sink, make_writer):
        write_all(make_writer(sink, "csv"), [], [[99_999, 1, 1, 1, 1, 1]])
        assert sink.text == "timestamp,open,high,low,close,volume\n"

    def test_formatted_timestamp_is_not_quoted(self, sink, make_writer):
        write_all(make_writer(sink, "csv"), BARS[:1], formatter=lambda ts: f"t{ts}")
        assert sink.text.splitlines()[1].startswith("t1000,1.5")

    def test_without_volumes(self, sink, make_writer):
        write_all(make_writer(sink, "csv", include_volumes=False), [BARS[0][:5]])
        assert sink.text.splitlines()[0] == "timestamp,open,high,low,close"


class TestJson:
    @pytest.mark.parametrize("encoding", ["json", "array"])
    @pytest.mark.parametrize("inline", [False, True])
    @pytest.mark.parametrize("split", [[4], [1, 3], [2, 2], [1, 1, 1, 1]])
    def test_any_batching_parses_as_one_array(self, encoding, inline, split, make_writer):
        sink = MemorySink()
        batches, pos = [], 0
        for n in split:
            batches.append(BARS[pos:pos + n])
            pos += n
        write_all(make_writer(sink, encoding, inline=inline), *batches)

        parsed = orjson.loads(sink.data)
        expected = _json_rows(BARS) if encoding == "json" else BARS
        assert parsed == expected

    def test_exact_bytes_multiline(self, sink, make_writer):
        write_all(make_writer(sink, "array"), BARS[:2], BARS[2:3])
        assert sink.text == (
            "[\n"
            "[1000,1.5,2.0,1.0,1.25,10],\n"
            "[2000,1.25,1.75,1.125,1.5,20]"
            ",\n"
            "[3000,1.5,1.5,1.5,1.5,30]"
            "\n]"
        )

    def test_exact_bytes_inline(self, sink, make_writer):
        write_all(make_writer(sink, "array", inline=True), BARS[:1], BARS[1:2])
        assert sink.text == "[[1000,1.5,2.0,1.0,1.25,10],[2000,1.25,1.75,1.125,1.5,20]]"
        assert "\n" not in sink.text

    def test_non_inline_rows_end_with_newline(self, sink, make_writer):
        write_all(make_writer(sink, "json"), BARS)
        lines = sink.text.split("\n")
        assert lines[0] == "["
        assert lines[-1] == "]"
        assert all(line.endswith(",") for line in lines[1:-2])

    @pytest.mark.parametrize("encoding", ["json", "array"])
    def test_no_rows_emits_nothing(self, sink, make_writer, encoding):
        write_all(make_writer(sink, encoding), [], [[50_000, 1, 1, 1, 1, 1]])
        assert sink.data == b""
        assert sink.end_calls == 1

    def test_empty_batch_then_rows_equals_rows_alone(self, make_writer):
        a, b = MemorySink(), MemorySink()
        write_all(make_writer(a, "json"), [], BARS[:2])
        write_all(make_writer(b, "json"), BARS[:2])
        assert a.data == b.data

    def test_formatter_gives_quoted_timestamps(self, sink, make_writer):
        write_all(make_writer(sink, "json"), BARS[:2], formatter=lambda ts: f"T{ts}")
        parsed = orjson.loads(sink.data)
        assert [r["timestamp"] for r in parsed] == ["T1000", "T2000"]

    def test_formatter_in_array_mode(self, sink, make_writer):
        write_all(make_writer(sink, "array", inline=True), BARS[:1], formatter=str)
        assert sink.text.startswith('[["1000",1.5')

    def test_caller_rows_are_not_mutated(self, sink, make_writer):
        rows = [list(r) for r in BARS]
        write_all(make_writer(sink, "json"), rows, formatter=lambda ts: "x")
        assert rows == BARS

    def test_tick_headers(self, sink, make_writer):
        write_all(make_writer(sink, "json", timeframe="tick"), TICKS)
        parsed = orjson.loads(sink.data)
        assert list(parsed[0]) == ["timestamp", "askPrice", "bidPrice", "askVolume", "bidVolume"]

    def test_tick_headers_without_volumes(self, sink, make_writer):
        writer = make_writer(sink, "json", timeframe="tick", include_volumes=False)
        assert writer.headers == ["timestamp", "askPrice", "bidPrice"]


class TestWindow:
    def test_half_open_window(self, sink, make_writer):
        rows = [[500, 1.0], [1000, 2.0], [2999, 3.0], [3000, 4.0]]
        writer = make_writer(sink, "array", start_timestamp=1000, end_timestamp=3000)
        write_all(writer, rows)
        assert orjson.loads(sink.data) == [[1000, 2.0], [2999, 3.0]]

    def test_empty_rows_are_dropped(self, sink, make_writer):
        write_all(make_writer(sink, "array"), [[], BARS[0], []])
        assert orjson.loads(sink.data) == [BARS[0]]


class TestLifecycle:
    def test_state_transitions(self, sink, make_writer):
        writer = make_writer(sink, "csv")
        assert writer.state is WriterState.FRESH

        async def _go():
            await writer.write_batch([])
            assert writer.state is WriterState.FRESH
            assert await writer.write_batch(BARS[:1]) is True
            assert writer.state is WriterState.WRITING
            assert await writer.close() is True

        asyncio.run(_go())
        assert writer.state is WriterState.CLOSED
        assert sink.end_calls == 1

    def test_calls_after_close_are_rejected(self, sink, make_writer):
        writer = make_writer(sink, "json")
        write_all(writer, BARS)

        with pytest.raises(WriterStateError):
            asyncio.run(writer.write_batch(BARS))
        with pytest.raises(WriterStateError):
            asyncio.run(writer.close())

    def test_context_manager_closes(self, sink, make_writer):
        async def _go():
            async with make_writer(sink, "array", inline=True) as writer:
                await writer.write_batch(BARS[:1])
            return writer

        writer = asyncio.run(_go())
        assert writer.state is WriterState.CLOSED
        assert sink.text.endswith("]")

    def test_error_inside_context_aborts_instead_of_closing(self, sink, make_writer):
        async def _go():
            async with make_writer(sink, "json") as writer:
                await writer.write_batch(BARS[:2])
                raise KeyError("upstream")

        with pytest.raises(KeyError):
            asyncio.run(_go())
        assert sink.end_calls == 0
        assert sink.abort_calls == 1
        assert not sink.text.rstrip().endswith("]")

    def test_abort_releases_sink_once(self, sink, make_writer):
        writer = make_writer(sink, "csv")

        async def _go():
            await writer.write_batch(BARS)
            await writer.abort()
            await writer.abort()

        asyncio.run(_go())
        assert writer.state is WriterState.CLOSED
        assert sink.abort_calls == 1
        assert sink.end_calls == 0
        with pytest.raises(WriterStateError):
            asyncio.run(writer.write_batch(BARS))

    def test_parquet_writer_has_no_text_framer(self, sink, make_writer):
        with pytest.raises(WriterStateError):
            make_writer(sink, "parquet")._text_framer()
        assert make_writer(sink, "csv")._text_framer() is not None

    def test_invalid_options(self, sink, make_writer):
        with pytest.raises(ValueError):
            make_writer(sink, "xml")
        with pytest.raises(ValueError):
            make_writer(sink, "csv", timeframe="w1")


class TestBackpressure:
    def test_output_identical_under_pressure(self, make_writer):
        free, tight = MemorySink(), MemorySink(high_water_mark=1)
        for s in (free, tight):
            write_all(make_writer(s, "json", flush_bytes=1), BARS[:3], BARS[3:])
        assert tight.data == free.data
        assert tight.drains > 0
        assert free.drains == 0

    def test_metrics_count_drains_and_rows(self, make_writer):
        from stream_export.telemetry.metrics import Metrics

        metrics = Metrics()
        sink = MemorySink(high_water_mark=1)
        write_all(make_writer(sink, "csv", metrics=metrics, end_timestamp=2500), BARS)
        assert metrics.rows_in == 4
        assert metrics.rows_written == 2
        assert metrics.rows_filtered == 2
        assert metrics.drain_waits >= 1
        assert metrics.bytes_emitted == len(sink.data)

    def test_drain_failure_aborts_writer(self, make_writer):
        sink = MemorySink(high_water_mark=1, drain_error=OSError("disk full"))
        writer = make_writer(sink, "csv")

        with pytest.raises(SinkFailure):
            asyncio.run(writer.write_batch(BARS))
        assert writer.state is WriterState.CLOSED
        assert sink.abort_calls == 1
        assert sink.end_calls == 0
        with pytest.raises(WriterStateError):
            asyncio.run(writer.close())
