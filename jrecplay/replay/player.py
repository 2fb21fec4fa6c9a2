#!/usr/bin/env python3
"""
jrecplay Terminal Player
Renderer contract and the console renderer for canonical event streams.
"""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, TextIO, Union

from .cast import CastStream, EventKind, SessionEvent
from .errors import RendererError

logger = logging.getLogger('jrecplay.replay.player')

INPUT_STYLE = "\033[33m{}\033[0m"
RESIZE_SEQUENCE = "\x1b[8;{height};{width}t"


class PlaybackState(Enum):
    """Playback state machine"""
    STOPPED = "stopped"
    PLAYING = "playing"
    FINISHED = "finished"


class Renderer(ABC):
    """
    Consumer of a canonical event stream.

    The dispatcher calls load(), then waits for wait_ready() before start().
    """

    @abstractmethod
    def load(self, source: Union[str, bytes]) -> None:
        """Accept an asciicast stream; readiness may be signalled later"""
        pass

    @abstractmethod
    async def wait_ready(self) -> None:
        """Return once the renderer can start"""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Begin playback"""
        pass


class TerminalPlayer(Renderer):
    """
    Console playback controller
    Supports speed control and starting part way into a recording.

    Output before the start position is written without waiting, so the
    screen state is the same as if the whole session had been watched.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        speed: float = 1.0,
        realtime: bool = True,
        show_input: bool = True,
        start_at: float = 0.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.output = output or sys.stdout
        self.stream: Optional[CastStream] = None
        self.events: List[SessionEvent] = []

        self.state = PlaybackState.STOPPED
        self.speed = 1.0
        self.set_speed(speed)
        self.realtime = realtime
        self.show_input = show_input
        self.start_at = start_at
        self.current_index = 0
        self.current_time = 0.0

        self._sleep = sleep
        self._ready = asyncio.Event()

    def load(self, source: Union[str, bytes]) -> None:
        """Load an asciicast stream"""
        if isinstance(source, bytes):
            source = source.decode('utf-8', errors='replace')

        try:
            stream = CastStream.from_asciicast(source)
        except ValueError as e:
            raise RendererError(f"Cannot load event stream: {e}") from e

        self.load_stream(stream)

    def load_stream(self, stream: CastStream) -> None:
        """Load an already parsed stream"""
        self.stream = stream
        self.events = list(stream.events)
        self.stop()
        if self.start_at:
            self.seek(self.start_at)
        self._ready.set()
        logger.debug(f"Loaded {len(self.events)} event(s), {stream.header.width}x{stream.header.height}, "
                     f"{stream.header.duration:.3f}s")

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    async def wait_ready(self) -> None:
        await self._ready.wait()

    async def start(self) -> None:
        """Replay the loaded stream to the output"""
        if self.stream is None:
            raise RendererError("No event stream loaded")

        async for event in self.stream_events():
            self.render(event)

    def render(self, event: SessionEvent) -> None:
        """Write one event to the terminal"""
        if event.kind == EventKind.OUTPUT:
            self.output.write(event.data)
        elif event.kind == EventKind.INPUT:
            if not self.show_input:
                return
            self.output.write(INPUT_STYLE.format(event.data))
        elif event.kind == EventKind.RESIZE:
            width, _, height = event.data.partition('x')
            self.output.write(RESIZE_SEQUENCE.format(width=width, height=height))
        self.output.flush()

    @property
    def duration(self) -> float:
        """Total duration in seconds"""
        if self.stream is None:
            return 0.0
        return self.stream.header.duration

    def play(self) -> None:
        """Start playback, rewinding a finished stream"""
        if self.state == PlaybackState.FINISHED:
            self.seek(0)
        self.state = PlaybackState.PLAYING

    def stop(self) -> None:
        """Stop and reset playback"""
        self.state = PlaybackState.STOPPED
        self.current_index = 0
        self.current_time = 0.0

    def seek(self, time: float) -> None:
        """
        Move the playback clock to a time in seconds.

        Playback restarts from the first event; events at or before the time
        are rendered without waiting.
        """
        self.current_index = 0
        self.current_time = max(0.0, min(time, self.duration))

    def set_speed(self, speed: float) -> None:
        """Set playback speed (0.25 to 4.0)"""
        self.speed = max(0.25, min(4.0, speed))

    async def stream_events(self, realtime: Optional[bool] = None) -> AsyncIterator[SessionEvent]:
        """
        Stream events in real-time (respecting timing) or as fast as possible.

        Args:
            realtime: Wait between events based on their times; defaults to
                      the player's setting
        """
        realtime = self.realtime if realtime is None else realtime
        self.play()

        while self.current_index < len(self.events):
            if self.state != PlaybackState.PLAYING:
                return

            event = self.events[self.current_index]
            if realtime:
                delay = (event.time - self.current_time) / self.speed
                if delay > 0:
                    await self._sleep(delay)
                if self.state != PlaybackState.PLAYING:
                    return

            self.current_time = max(self.current_time, event.time)
            self.current_index += 1
            yield event

        self.current_time = self.duration
        self.state = PlaybackState.FINISHED
