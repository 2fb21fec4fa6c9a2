#!/usr/bin/env python3
"""
jrecplay Trace Codec
Decode and encode the binary terminal trace format (.trp).

Wire format (little-endian), repeating records:

    u32 delay | u16 type | u16 size | size bytes of payload

Recognized types: 0 = output, 1 = input, 2 = resize (u16 width | u16 height),
4 = setup (repeating u16 tag | u32 value). Everything else is reserved and
skipped by consumers.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .cast import CastHeader, SessionEvent


CHUNK_HEADER = struct.Struct('<IHH')
RESIZE_PAYLOAD = struct.Struct('<HH')
SETUP_RECORD = struct.Struct('<HI')

MAX_DELAY = 0xFFFFFFFF
MAX_PAYLOAD_SIZE = 0xFFFF


class TraceError(Exception):
    """Base exception for trace decoding errors."""

    pass


class TruncatedRecordError(TraceError):
    """Raised when a record header or payload runs past the end of the buffer."""

    def __init__(self, message: str, offset: int = 0, needed: int = 0, available: int = 0):
        super().__init__(message)
        self.offset = offset
        self.needed = needed
        self.available = available


class ChunkType(IntEnum):
    """Chunk type codes"""
    OUTPUT = 0
    INPUT = 1
    RESIZE = 2
    SETUP = 4
    UNKNOWN = -1

    @classmethod
    def from_wire(cls, value: int) -> 'ChunkType':
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class TraceChunk:
    """A single decoded trace record"""
    delay: int
    chunk_type: ChunkType
    payload: bytes
    raw_type: int
    offset: int = 0

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def delay_seconds(self) -> float:
        # Delay units are milliseconds
        return self.delay / 1000.0


class BinaryTraceDecoder:
    """
    Lazy iterator over the records of a trace buffer.

    Each decoder owns its own cursor. It is not restartable: once the buffer
    is exhausted, or once a truncated record has been reported, it yields
    nothing more. Create a new decoder to decode the same buffer again.
    """

    def __init__(self, data: bytes):
        self._data = memoryview(bytes(data))
        self._cursor = 0
        self._done = False

    @property
    def position(self) -> int:
        """Byte offset of the next record"""
        return self._cursor

    def __iter__(self) -> 'BinaryTraceDecoder':
        return self

    def __next__(self) -> TraceChunk:
        if self._done:
            raise StopIteration

        total = len(self._data)
        start = self._cursor
        if start == total:
            self._done = True
            raise StopIteration

        remaining = total - start
        if remaining < CHUNK_HEADER.size:
            self._done = True
            raise TruncatedRecordError(
                f"Truncated chunk header at offset {start}: "
                f"need {CHUNK_HEADER.size} bytes, {remaining} available",
                offset=start, needed=CHUNK_HEADER.size, available=remaining
            )

        delay, raw_type, size = CHUNK_HEADER.unpack_from(self._data, start)
        payload_start = start + CHUNK_HEADER.size
        available = total - payload_start
        if size > available:
            self._done = True
            raise TruncatedRecordError(
                f"Truncated chunk payload at offset {start}: "
                f"declared {size} bytes, {available} available",
                offset=start, needed=size, available=available
            )

        payload = bytes(self._data[payload_start:payload_start + size])
        self._cursor = payload_start + size

        return TraceChunk(
            delay=delay,
            chunk_type=ChunkType.from_wire(raw_type),
            payload=payload,
            raw_type=raw_type,
            offset=start
        )


def decode_trace(data: bytes) -> BinaryTraceDecoder:
    """Start decoding a trace buffer; returns a fresh chunk iterator"""
    return BinaryTraceDecoder(data)


def parse_resize(payload: bytes) -> Tuple[int, int]:
    """Read (width, height) from a resize payload"""
    if len(payload) < RESIZE_PAYLOAD.size:
        raise TruncatedRecordError(
            f"Resize payload too short: need {RESIZE_PAYLOAD.size} bytes, {len(payload)} available",
            needed=RESIZE_PAYLOAD.size, available=len(payload)
        )
    return RESIZE_PAYLOAD.unpack_from(payload, 0)


def parse_setup(payload: bytes) -> List[Tuple[int, int]]:
    """Read the (tag, value) records of a setup payload; trailing bytes are ignored"""
    count = len(payload) // SETUP_RECORD.size
    return [SETUP_RECORD.unpack_from(payload, i * SETUP_RECORD.size) for i in range(count)]


# === Encoding ===

def encode_chunk(delay: int, chunk_type: int, payload: bytes = b'') -> bytes:
    """Frame one record. Payloads over 65535 bytes must be split by the caller."""
    if not 0 <= delay <= MAX_DELAY:
        raise ValueError(f"Delay out of range: {delay}")
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(f"Payload too large for a single chunk: {len(payload)} bytes")
    return CHUNK_HEADER.pack(delay, int(chunk_type), len(payload)) + payload


def encode_resize(width: int, height: int, delay: int = 0) -> bytes:
    return encode_chunk(delay, ChunkType.RESIZE, RESIZE_PAYLOAD.pack(width, height))


def encode_setup(records: Iterable[Tuple[int, int]], delay: int = 0) -> bytes:
    payload = b''.join(SETUP_RECORD.pack(tag, value) for tag, value in records)
    return encode_chunk(delay, ChunkType.SETUP, payload)


def split_payload(payload: bytes, limit: int = MAX_PAYLOAD_SIZE) -> List[bytes]:
    """
    Cut a payload into pieces of at most `limit` bytes.

    Cuts are moved back so they never land inside a UTF-8 sequence; bytes
    that are not UTF-8 text are cut at the limit.
    """
    pieces = []
    start = 0
    while len(payload) - start > limit:
        end = start + limit
        cut = end
        # Continuation bytes are 0b10xxxxxx; a sequence is at most 4 bytes
        while cut > end - 3 and (payload[cut] & 0xC0) == 0x80:
            cut -= 1
        if (payload[cut] & 0xC0) == 0x80:
            cut = end
        pieces.append(payload[start:cut])
        start = cut
    pieces.append(payload[start:])
    return pieces


def encode_payload(delay: int, chunk_type: int, payload: bytes) -> bytes:
    """Frame a payload of any length, splitting it into consecutive chunks"""
    if len(payload) <= MAX_PAYLOAD_SIZE:
        return encode_chunk(delay, chunk_type, payload)

    parts = []
    for i, piece in enumerate(split_payload(payload)):
        parts.append(encode_chunk(delay if i == 0 else 0, chunk_type, piece))
    return b''.join(parts)


def _parse_geometry(data: str) -> Tuple[int, int]:
    width, _, height = data.partition('x')
    return int(width), int(height)


def encode_events(header: 'CastHeader', events: Iterable['SessionEvent']) -> bytes:
    """
    Render a canonical event stream into the binary trace format.

    The header geometry becomes a leading resize chunk with no delay. Event
    times are turned back into millisecond delays relative to the previous
    chunk, rounding against the running total so errors do not accumulate.
    Events must be in time order. Each event becomes exactly one chunk, so an
    output or input event over 65535 encoded bytes raises ValueError.
    """
    kinds = {'o': ChunkType.OUTPUT, 'i': ChunkType.INPUT}

    out = [encode_resize(header.width, header.height)]
    elapsed_ms = 0
    for event in events:
        target_ms = int(round(event.time * 1000))
        delay = max(0, target_ms - elapsed_ms)
        elapsed_ms += delay

        kind = getattr(event.kind, 'value', event.kind)
        if kind == 'r':
            width, height = _parse_geometry(event.data)
            out.append(encode_resize(width, height, delay))
        elif kind in kinds:
            payload = event.data.encode('utf-8')
            if len(payload) > MAX_PAYLOAD_SIZE:
                raise ValueError(f"Event at {event.time}s is {len(payload)} bytes; "
                                 f"a single chunk holds at most {MAX_PAYLOAD_SIZE}")
            out.append(encode_chunk(delay, kinds[kind], payload))
        else:
            raise ValueError(f"Unknown event kind: {kind!r}")

    # Idle time after the last event rides on an empty setup chunk
    tail = int(round(header.duration * 1000)) - elapsed_ms
    if tail > 0:
        out.append(encode_setup([], tail))

    return b''.join(out)
