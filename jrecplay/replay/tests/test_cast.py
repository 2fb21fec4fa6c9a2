#!/usr/bin/env python3
"""
Tests for the event stream builder and asciicast handling.
"""

import json
import struct
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from jrecplay.replay.cast import (
    CastHeader,
    CastStream,
    EventKind,
    EventStreamBuilder,
    SessionEvent,
    build_stream,
    trace_to_asciicast,
)
from jrecplay.replay.trace import TruncatedRecordError, decode_trace, encode_events


def chunk(delay, chunk_type, payload=b''):
    return struct.pack('<IHH', delay, chunk_type, len(payload)) + payload


def resize(delay, width, height):
    return chunk(delay, 2, struct.pack('<HH', width, height))


class TestEventStreamBuilder:
    """Tests for trace to asciicast conversion"""

    def test_sample_session(self):
        """Initial resize sets geometry, a later one becomes an event"""
        data = (
            resize(0, 80, 24) +
            chunk(500, 0, b'$ ') +
            chunk(1000, 1, b'ls\r') +
            resize(250, 100, 30)
        )
        lines = trace_to_asciicast(data).split('\n')

        assert json.loads(lines[0]) == {"version": 2, "width": 80, "height": 24, "duration": 1.75}
        assert json.loads(lines[1]) == [0.5, "o", "$ "]
        assert json.loads(lines[2]) == [1.5, "i", "ls\r"]
        assert json.loads(lines[3]) == [1.75, "r", "100x30"]
        assert len(lines) == 4

    def test_resize_only(self):
        stream = build_stream(resize(0, 80, 24) + resize(500, 100, 30))

        assert (stream.header.width, stream.header.height) == (80, 24)
        assert [e.to_list() for e in stream.events] == [[0.5, "r", "100x30"]]
        assert stream.header.duration == 0.5

    def test_header_key_order(self):
        text = trace_to_asciicast(resize(0, 80, 24))
        assert text == '{"version": 2, "width": 80, "height": 24, "duration": 0.0}'

    def test_default_geometry(self):
        """A trace without any resize plays at 80x24"""
        stream = build_stream(chunk(0, 0, b'hi'))
        assert (stream.header.width, stream.header.height) == (80, 24)

    def test_custom_default_geometry(self):
        builder = EventStreamBuilder(default_width=132, default_height=43)
        stream = builder.build(decode_trace(chunk(0, 0, b'hi')))
        assert (stream.header.width, stream.header.height) == (132, 43)

    def test_first_resize_anywhere(self):
        """The first resize sets the header even after output"""
        data = chunk(100, 0, b'a') + resize(100, 120, 40)
        stream = build_stream(data)

        assert (stream.header.width, stream.header.height) == (120, 40)
        assert [e.kind for e in stream.events] == [EventKind.OUTPUT]

    def test_times_never_decrease(self):
        data = b''.join(chunk(d, 0, b'x') for d in (0, 10, 0, 999, 1, 0))
        times = [e.time for e in build_stream(data).events]
        assert times == sorted(times)

    def test_duration_counts_every_delay(self):
        """Setup and unknown chunks still advance elapsed time"""
        data = (
            chunk(1000, 0, b'a') +
            chunk(500, 4, struct.pack('<HI', 1, 2)) +
            chunk(500, 7, b'??') +
            chunk(0, 0, b'b')
        )
        stream = build_stream(data)

        assert stream.header.duration == pytest.approx(2.0)
        assert [e.data for e in stream.events] == ['a', 'b']
        assert stream.events[1].time == pytest.approx(2.0)

    def test_setup_not_surfaced(self):
        builder = EventStreamBuilder()
        stream = builder.build(decode_trace(chunk(0, 4, struct.pack('<HI', 5, 6))))

        assert stream.events == []
        assert builder.setup_records == [(5, 6)]

    def test_invalid_utf8_replaced(self):
        stream = build_stream(chunk(0, 0, b'ok\xff'))
        assert stream.events[0].data == 'ok\ufffd'

    def test_empty_trace(self):
        assert trace_to_asciicast(b'') == '{"version": 2, "width": 80, "height": 24, "duration": 0.0}'

    def test_truncated_trace(self):
        with pytest.raises(TruncatedRecordError):
            build_stream(chunk(0, 0, b'a') + b'\x00')

    def test_short_resize_payload(self):
        with pytest.raises(TruncatedRecordError):
            build_stream(chunk(0, 2, b'\x50'))

    def test_incremental_feed(self):
        builder = EventStreamBuilder()
        for c in decode_trace(resize(0, 90, 20) + chunk(300, 0, b'x')):
            builder.feed(c)

        assert builder.geometry_set
        assert builder.elapsed_seconds == pytest.approx(0.3)
        assert builder.finish().header.duration == pytest.approx(0.3)

    def test_encode_decode(self):
        """Re-encoding a built stream reproduces its events"""
        data = resize(0, 100, 30) + chunk(250, 0, b'$ ') + chunk(750, 1, b'id\r') + resize(1000, 90, 20)
        original = build_stream(data)
        rebuilt = build_stream(encode_events(original.header, original.events))

        assert rebuilt.header == original.header
        assert [e.to_list() for e in rebuilt.events] == [e.to_list() for e in original.events]


class TestCastStream:
    """Tests for asciicast parsing and export"""

    def test_from_asciicast(self):
        content = '\n'.join([
            '{"version": 2, "width": 100, "height": 30, "duration": 3.0}',
            '[0.5, "o", "hello"]',
            '[1.0, "i", "x"]',
            '[2.0, "r", "80x24"]',
        ])
        stream = CastStream.from_asciicast(content)

        assert stream.header.width == 100
        assert stream.header.duration == 3.0
        assert [e.kind for e in stream.events] == [EventKind.OUTPUT, EventKind.INPUT, EventKind.RESIZE]

    def test_missing_duration_uses_last_event(self):
        content = '{"version": 2, "width": 80, "height": 24}\n[0.1, "o", "a"]\n[4.5, "o", "b"]\n'
        assert CastStream.from_asciicast(content).header.duration == 4.5

    def test_unknown_event_codes_skipped(self):
        content = '{"version": 2, "width": 80, "height": 24}\n[1.0, "m", "marker"]\n[2.0, "o", "a"]'
        stream = CastStream.from_asciicast(content)
        assert [e.data for e in stream.events] == ['a']

    @pytest.mark.parametrize("line", ['5', '[null, "o", "x"]', '[true, "o", "x"]', '[1.0, "o", 3]', '[1.0, "o"]'])
    def test_malformed_event(self, line):
        with pytest.raises(ValueError):
            CastStream.from_asciicast('{"version": 2, "width": 80, "height": 24}\n' + line)

    @pytest.mark.parametrize("header", [
        '{"version": 2, "width": null, "height": 24}',
        '{"version": 2, "width": 80, "height": "24"}',
        '{"version": 2, "width": 80, "height": 24, "duration": null}',
    ])
    def test_malformed_header(self, header):
        with pytest.raises(ValueError):
            CastStream.from_asciicast(header)

    def test_wrong_version(self):
        with pytest.raises(ValueError):
            CastStream.from_asciicast('{"version": 1, "width": 80, "height": 24}')

    def test_empty_content(self):
        with pytest.raises(ValueError):
            CastStream.from_asciicast('')

    def test_to_asciicast_parses_back(self):
        stream = CastStream(
            header=CastHeader(width=80, height=24, duration=1.0),
            events=[SessionEvent(1.0, EventKind.OUTPUT, 'done\r\n')]
        )
        parsed = CastStream.from_asciicast(stream.to_asciicast())
        assert parsed == stream

    def test_save(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "recording-0.cast"
            build_stream(chunk(0, 0, b'hi')).save(path)

            content = path.read_text()
            assert content.endswith('\n')
            assert json.loads(content.splitlines()[1]) == [0.0, "o", "hi"]
