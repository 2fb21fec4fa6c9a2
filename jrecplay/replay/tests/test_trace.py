#!/usr/bin/env python3
"""
Tests for the binary trace codec.
"""

import struct

import pytest

from jrecplay.replay.cast import CastHeader, EventKind, SessionEvent, build_stream
from jrecplay.replay.trace import (
    BinaryTraceDecoder,
    ChunkType,
    MAX_PAYLOAD_SIZE,
    TruncatedRecordError,
    decode_trace,
    encode_chunk,
    encode_events,
    encode_payload,
    encode_resize,
    encode_setup,
    parse_resize,
    parse_setup,
    split_payload,
)


def chunk(delay, chunk_type, payload=b''):
    return struct.pack('<IHH', delay, chunk_type, len(payload)) + payload


class TestBinaryTraceDecoder:
    """Tests for chunk decoding"""

    def test_decode_output_chunk(self):
        """A single output record decodes to one chunk"""
        chunks = list(decode_trace(chunk(250, 0, b'hello')))

        assert len(chunks) == 1
        assert chunks[0].delay == 250
        assert chunks[0].chunk_type == ChunkType.OUTPUT
        assert chunks[0].payload == b'hello'
        assert chunks[0].size == 5
        assert chunks[0].offset == 0

    def test_decode_known_types(self):
        data = (
            chunk(0, 2, struct.pack('<HH', 80, 24)) +
            chunk(10, 0, b'out') +
            chunk(20, 1, b'in') +
            chunk(30, 4, struct.pack('<HI', 1, 7))
        )
        types = [c.chunk_type for c in decode_trace(data)]
        assert types == [ChunkType.RESIZE, ChunkType.OUTPUT, ChunkType.INPUT, ChunkType.SETUP]

    def test_unknown_type_is_yielded(self):
        """Reserved types are still framed so the stream stays aligned"""
        data = chunk(5, 3, b'xyz') + chunk(5, 9, b'') + chunk(1, 0, b'ok')
        chunks = list(decode_trace(data))

        assert [c.chunk_type for c in chunks] == [ChunkType.UNKNOWN, ChunkType.UNKNOWN, ChunkType.OUTPUT]
        assert chunks[0].raw_type == 3
        assert chunks[1].raw_type == 9
        assert chunks[2].payload == b'ok'

    def test_offsets(self):
        data = chunk(0, 0, b'ab') + chunk(0, 1, b'c')
        chunks = list(decode_trace(data))
        assert chunks[0].offset == 0
        assert chunks[1].offset == 8 + 2

    def test_empty_buffer(self):
        assert list(decode_trace(b'')) == []

    def test_empty_payload(self):
        chunks = list(decode_trace(chunk(100, 0)))
        assert chunks[0].payload == b''
        assert chunks[0].delay_seconds == pytest.approx(0.1)

    def test_truncated_header(self):
        """Fewer than 8 bytes left is a truncated header"""
        data = chunk(0, 0, b'ok') + b'\x01\x02\x03'
        decoder = BinaryTraceDecoder(data)

        first = next(decoder)
        assert first.payload == b'ok'

        with pytest.raises(TruncatedRecordError) as exc_info:
            next(decoder)
        assert exc_info.value.offset == 10
        assert exc_info.value.needed == 8
        assert exc_info.value.available == 3

    def test_truncated_payload(self):
        """Declared size larger than the remaining bytes"""
        data = struct.pack('<IHH', 0, 0, 10) + b'short'
        with pytest.raises(TruncatedRecordError) as exc_info:
            list(decode_trace(data))
        assert exc_info.value.needed == 10
        assert exc_info.value.available == 5

    def test_stops_after_truncation(self):
        decoder = BinaryTraceDecoder(b'\x00\x00')
        with pytest.raises(TruncatedRecordError):
            next(decoder)
        assert list(decoder) == []

    def test_lazy_decoding(self):
        """Chunks before a truncated record are delivered first"""
        data = chunk(1, 0, b'a') + chunk(2, 0, b'b') + b'\xff'
        seen = []
        with pytest.raises(TruncatedRecordError):
            for c in decode_trace(data):
                seen.append(c.payload)
        assert seen == [b'a', b'b']

    def test_not_restartable(self):
        decoder = decode_trace(chunk(0, 0, b'x'))
        assert len(list(decoder)) == 1
        assert list(decoder) == []

    def test_independent_decoders(self):
        """Decoders over the same buffer do not share a cursor"""
        data = chunk(0, 0, b'a') + chunk(0, 0, b'b')
        first = decode_trace(data)
        second = decode_trace(data)

        assert next(first).payload == b'a'
        assert next(second).payload == b'a'
        assert next(first).payload == b'b'
        assert first.position == len(data)
        assert second.position == 9


class TestPayloadParsing:
    """Tests for resize and setup payloads"""

    def test_parse_resize(self):
        assert parse_resize(struct.pack('<HH', 120, 40)) == (120, 40)

    def test_parse_resize_short(self):
        with pytest.raises(TruncatedRecordError):
            parse_resize(b'\x50\x00')

    def test_parse_setup(self):
        payload = struct.pack('<HI', 1, 100) + struct.pack('<HI', 2, 200)
        assert parse_setup(payload) == [(1, 100), (2, 200)]

    def test_parse_setup_ignores_trailing_bytes(self):
        payload = struct.pack('<HI', 1, 100) + b'\x00\x01'
        assert parse_setup(payload) == [(1, 100)]

    def test_parse_setup_empty(self):
        assert parse_setup(b'') == []


class TestEncoding:
    """Tests for trace encoding"""

    def test_encode_chunk_layout(self):
        assert encode_chunk(500, ChunkType.INPUT, b'ls') == b'\xf4\x01\x00\x00\x01\x00\x02\x00ls'

    def test_encode_chunk_rejects_large_payload(self):
        with pytest.raises(ValueError):
            encode_chunk(0, ChunkType.OUTPUT, b'x' * (MAX_PAYLOAD_SIZE + 1))

    def test_encode_chunk_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            encode_chunk(-1, ChunkType.OUTPUT, b'')

    def test_encode_resize_and_setup(self):
        data = encode_resize(100, 30, delay=7) + encode_setup([(3, 9)])
        chunks = list(decode_trace(data))

        assert chunks[0].delay == 7
        assert parse_resize(chunks[0].payload) == (100, 30)
        assert parse_setup(chunks[1].payload) == [(3, 9)]

    def test_encode_payload_splits(self):
        """Oversized payloads become consecutive chunks; only the first is delayed"""
        payload = b'a' * MAX_PAYLOAD_SIZE + b'b' * 10
        chunks = list(decode_trace(encode_payload(40, ChunkType.OUTPUT, payload)))

        assert len(chunks) == 2
        assert [c.delay for c in chunks] == [40, 0]
        assert chunks[0].size == MAX_PAYLOAD_SIZE
        assert b''.join(c.payload for c in chunks) == payload

    def test_encode_events(self):
        header = CastHeader(width=100, height=30, duration=3.0)
        events = [
            SessionEvent(0.5, EventKind.OUTPUT, '$ '),
            SessionEvent(1.25, EventKind.INPUT, 'ls\r'),
            SessionEvent(2.0, EventKind.RESIZE, '120x40'),
        ]
        chunks = list(decode_trace(encode_events(header, events)))

        assert chunks[0].chunk_type == ChunkType.RESIZE
        assert parse_resize(chunks[0].payload) == (100, 30)
        assert [c.delay for c in chunks] == [0, 500, 750, 750, 1000]
        assert chunks[-1].chunk_type == ChunkType.SETUP
        assert chunks[-1].payload == b''

    def test_encode_events_no_tail(self):
        header = CastHeader(duration=1.0)
        chunks = list(decode_trace(encode_events(header, [SessionEvent(1.0, EventKind.OUTPUT, 'x')])))
        assert chunks[-1].chunk_type == ChunkType.OUTPUT

    def test_encode_events_unknown_kind(self):
        with pytest.raises(ValueError):
            encode_events(CastHeader(), [SessionEvent(0.0, 'm', 'marker')])

    def test_split_keeps_utf8_sequences(self):
        """A multi-byte character straddling the limit moves to the next chunk"""
        text = 'a' * (MAX_PAYLOAD_SIZE - 1) + '€€'
        chunks = list(decode_trace(encode_payload(0, ChunkType.OUTPUT, text.encode('utf-8'))))

        assert [c.size for c in chunks] == [MAX_PAYLOAD_SIZE - 1, 6]
        assert [c.payload.decode('utf-8') for c in chunks] == ['a' * (MAX_PAYLOAD_SIZE - 1), '€€']

    def test_split_binary_payload(self):
        """Bytes that are not UTF-8 are cut at the limit"""
        payload = b'\x80' * 10
        assert split_payload(payload, limit=4) == [b'\x80' * 4, b'\x80' * 4, b'\x80' * 2]

    def test_split_small_limit(self):
        pieces = split_payload('abéé'.encode('utf-8'), limit=4)
        assert pieces == [b'ab\xc3\xa9', b'\xc3\xa9']

        pieces = split_payload('a\U0001F600'.encode('utf-8'), limit=4)
        assert pieces == [b'a', '\U0001F600'.encode('utf-8')]

    def test_encode_events_rejects_oversized_event(self):
        """An event that cannot fit one chunk is refused rather than split"""
        header = CastHeader(duration=0.5)
        with pytest.raises(ValueError):
            encode_events(header, [SessionEvent(0.5, EventKind.OUTPUT, 'a' * 70000)])

    def test_encode_events_largest_event(self):
        header = CastHeader(width=80, height=24, duration=0.5)
        events = [SessionEvent(0.5, EventKind.OUTPUT, 'a' * (MAX_PAYLOAD_SIZE - 3) + '€')]
        rebuilt = build_stream(encode_events(header, events))

        assert rebuilt.events == events
        assert rebuilt.header == header
