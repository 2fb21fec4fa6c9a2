#!/usr/bin/env python3
"""
jrecplay Event Stream
Builds the canonical asciicast v2 event stream from decoded trace chunks.

Output:
{"version": 2, "width": 80, "height": 24, "duration": 12.5}
[0.0, "o", "output text"]
[1.5, "i", "input text"]
[3.25, "r", "100x30"]
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .trace import ChunkType, TraceChunk, decode_trace, parse_resize, parse_setup

logger = logging.getLogger('jrecplay.replay.cast')

CAST_VERSION = 2
DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24


class EventKind(str, Enum):
    """asciicast event codes"""
    OUTPUT = 'o'
    INPUT = 'i'
    RESIZE = 'r'


EVENT_CODES = {kind.value for kind in EventKind}


@dataclass
class SessionEvent:
    """A single timed terminal event"""
    time: float  # seconds since start
    kind: EventKind
    data: str

    def to_list(self) -> List[Any]:
        return [self.time, self.kind.value, self.data]

    @classmethod
    def from_list(cls, item: Any) -> 'SessionEvent':
        if not isinstance(item, list) or len(item) != 3:
            raise ValueError(f"Event must be a [time, code, data] list: {item!r}")
        time, code, data = item
        if isinstance(time, bool) or not isinstance(time, (int, float)) or time < 0:
            raise ValueError(f"Invalid event time: {time!r}")
        if not isinstance(code, str) or not isinstance(data, str):
            raise ValueError(f"Invalid event code or data: {item!r}")
        return cls(time=float(time), kind=EventKind(code), data=data)


@dataclass
class CastHeader:
    """asciicast v2 header line"""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    duration: float = 0.0
    version: int = CAST_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CastHeader':
        version = data.get('version')
        if version != CAST_VERSION:
            raise ValueError(f"Unsupported asciicast version: {version}")
        width = data.get('width', DEFAULT_WIDTH)
        height = data.get('height', DEFAULT_HEIGHT)
        duration = data.get('duration', 0.0)
        for name, value in (('width', width), ('height', height)):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"Invalid asciicast {name}: {value!r}")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            raise ValueError(f"Invalid asciicast duration: {duration!r}")
        return cls(width=width, height=height, duration=float(duration))


@dataclass
class CastStream:
    """Header plus ordered events"""
    header: CastHeader
    events: List[SessionEvent] = field(default_factory=list)

    def lines(self) -> Iterator[str]:
        yield json.dumps(self.header.to_dict())
        for event in self.events:
            yield json.dumps(event.to_list())

    def to_asciicast(self) -> str:
        """Export as asciicast text (NDJSON)"""
        return '\n'.join(self.lines())

    def save(self, path: Path) -> None:
        """Save stream to a .cast file"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_asciicast() + '\n')

    @classmethod
    def from_asciicast(cls, content: str) -> 'CastStream':
        """
        Parse asciicast v2 text.

        A header without a duration gets the time of the last event. Event
        codes other than o/i/r (markers, for instance) are skipped. Any
        other malformed line raises ValueError.
        """
        lines = content.strip().split('\n')
        if not lines or not lines[0].strip():
            raise ValueError("Empty asciicast stream")

        raw_header = json.loads(lines[0])
        if not isinstance(raw_header, dict):
            raise ValueError("Invalid asciicast header")
        header = CastHeader.from_dict(raw_header)

        events = []
        for line in lines[1:]:
            if not line.strip():
                continue
            item = json.loads(line)
            well_formed = isinstance(item, list) and len(item) == 3 and isinstance(item[1], str)
            if well_formed and item[1] not in EVENT_CODES:
                logger.debug(f"Skipping unsupported event: {line[:80]}")
                continue
            events.append(SessionEvent.from_list(item))

        if 'duration' not in raw_header and events:
            header.duration = events[-1].time

        return cls(header=header, events=events)


class EventStreamBuilder:
    """
    Turns trace chunks into a canonical event stream.

    Elapsed time advances by every chunk's delay, whatever its type. The first
    resize chunk sets the header geometry and emits no event; later ones are
    emitted as "r" events.
    """

    def __init__(self, default_width: int = DEFAULT_WIDTH, default_height: int = DEFAULT_HEIGHT):
        self.header = CastHeader(width=default_width, height=default_height)
        self.events: List[SessionEvent] = []
        self.elapsed_seconds = 0.0
        self.geometry_set = False
        self.setup_records: List[Tuple[int, int]] = []

    def feed(self, chunk: TraceChunk) -> None:
        """Process one chunk"""
        self.elapsed_seconds += chunk.delay / 1000.0

        if chunk.chunk_type == ChunkType.OUTPUT:
            self._append(EventKind.OUTPUT, chunk.payload.decode('utf-8', errors='replace'))

        elif chunk.chunk_type == ChunkType.INPUT:
            self._append(EventKind.INPUT, chunk.payload.decode('utf-8', errors='replace'))

        elif chunk.chunk_type == ChunkType.RESIZE:
            width, height = parse_resize(chunk.payload)
            if not self.geometry_set:
                self.header.width = width
                self.header.height = height
                self.geometry_set = True
            else:
                self._append(EventKind.RESIZE, f"{width}x{height}")

        elif chunk.chunk_type == ChunkType.SETUP:
            # Setup records carry no playback information
            records = parse_setup(chunk.payload)
            self.setup_records.extend(records)
            logger.debug(f"Setup chunk at offset {chunk.offset}: {len(records)} record(s)")

        else:
            logger.debug(f"Skipping chunk type {chunk.raw_type} at offset {chunk.offset}")

    def _append(self, kind: EventKind, data: str) -> None:
        self.events.append(SessionEvent(time=self.elapsed_seconds, kind=kind, data=data))

    def finish(self) -> CastStream:
        """Close the stream; duration is the total elapsed time"""
        self.header.duration = self.elapsed_seconds
        return CastStream(header=self.header, events=list(self.events))

    def build(self, chunks: Iterable[TraceChunk]) -> CastStream:
        for chunk in chunks:
            self.feed(chunk)
        return self.finish()


def build_stream(data: bytes) -> CastStream:
    """Decode a whole trace buffer into a canonical stream"""
    return EventStreamBuilder().build(decode_trace(data))


def trace_to_asciicast(data: bytes) -> str:
    return build_stream(data).to_asciicast()
