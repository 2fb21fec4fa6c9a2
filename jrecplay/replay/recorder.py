#!/usr/bin/env python3
"""
jrecplay Trace Recorder
Records terminal sessions with precise timing into the binary trace format.

Every chunk carries the milliseconds elapsed since the previous chunk. The
initial terminal size is written as a leading resize chunk so players can
size the terminal before the first output arrives.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .trace import ChunkType, encode_payload, encode_resize, encode_setup


class TraceRecorder:
    """
    Terminal session recorder - binary trace format (.trp)

    Usage:
        recorder = TraceRecorder(width=120, height=40)
        recorder.record_output("Welcome\\r\\n$ ")
        recorder.record_input("ls\\r")
        recorder.save(Path("recording-0.trp"))
    """

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        setup: Optional[Dict[int, int]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.width = width
        self.height = height
        self._clock = clock
        self.start_time = clock()
        self._elapsed_ms = 0
        self._chunks: List[bytes] = [encode_resize(width, height)]
        self._finalized = False

        self.event_count = 0
        self.bytes_in = 0
        self.bytes_out = 0

        if setup:
            self._chunks.append(encode_setup(setup.items()))

    def get_elapsed_ms(self) -> int:
        """Get milliseconds since recording started"""
        return int((self._clock() - self.start_time) * 1000)

    def _next_delay(self) -> int:
        # Delays are derived from the running total so rounding never drifts
        elapsed = self.get_elapsed_ms()
        delay = max(0, elapsed - self._elapsed_ms)
        self._elapsed_ms += delay
        return delay

    def _check_open(self) -> None:
        if self._finalized:
            raise RuntimeError("Cannot record to finalized session")

    def record_output(self, data: Union[str, bytes]) -> None:
        """Record terminal output (what the operator saw)"""
        payload = self._to_bytes(data)
        self.bytes_out += len(payload)
        self._record(ChunkType.OUTPUT, payload)

    def record_input(self, data: Union[str, bytes]) -> None:
        """Record terminal input (what the operator typed)"""
        payload = self._to_bytes(data)
        self.bytes_in += len(payload)
        self._record(ChunkType.INPUT, payload)

    def record_resize(self, width: int, height: int) -> None:
        """Record terminal resize event"""
        self._check_open()
        self.width = width
        self.height = height
        self._chunks.append(encode_resize(width, height, self._next_delay()))
        self.event_count += 1

    def _record(self, chunk_type: ChunkType, payload: bytes) -> None:
        self._check_open()
        self._chunks.append(encode_payload(self._next_delay(), chunk_type, payload))
        self.event_count += 1

    @staticmethod
    def _to_bytes(data: Union[str, bytes]) -> bytes:
        if isinstance(data, str):
            return data.encode('utf-8')
        return bytes(data)

    def finalize(self) -> bytes:
        """Stop recording and return the trace bytes"""
        if not self._finalized:
            self._finalized = True
            # Trailing idle time is kept on an empty setup chunk
            delay = self._next_delay()
            if delay:
                self._chunks.append(encode_setup([], delay))
        return self.to_bytes()

    def to_bytes(self) -> bytes:
        return b''.join(self._chunks)

    @property
    def duration_ms(self) -> int:
        return self._elapsed_ms

    def stats(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'duration_ms': self._elapsed_ms,
            'event_count': self.event_count,
            'bytes_in': self.bytes_in,
            'bytes_out': self.bytes_out,
            'finalized': self._finalized,
        }

    def save(self, path: Path) -> None:
        """Finalize and save recording to file"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'wb') as f:
            f.write(self.finalize())
