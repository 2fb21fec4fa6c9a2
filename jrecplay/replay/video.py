#!/usr/bin/env python3
"""
jrecplay Video Playback
Plays a session's video segments back-to-back in a continuous loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional

from .errors import PlaybackError, RendererError

logger = logging.getLogger('jrecplay.replay.video')

EndedCallback = Callable[[], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class VideoElement(ABC):
    """
    A video surface that plays one segment at a time.

    Implementations call the ended callback when a segment finishes on its
    own, and the error callback when playback fails after it has started.
    """

    def __init__(self):
        self._on_ended: Optional[EndedCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def on_ended(self, callback: EndedCallback) -> None:
        self._on_ended = callback

    def on_error(self, callback: ErrorCallback) -> None:
        self._on_error = callback

    async def _fire_ended(self) -> None:
        if self._on_ended:
            await self._on_ended()

    async def _fire_error(self, error: Exception) -> None:
        if self._on_error:
            await self._on_error(error)

    @abstractmethod
    async def load(self, location: str) -> None:
        """Point the element at a segment (URL or path)"""
        pass

    @abstractmethod
    async def play(self) -> None:
        """Start playing the loaded segment"""
        pass

    async def close(self) -> None:
        pass


class CommandVideoElement(VideoElement):
    """
    Runs an external player per segment, e.g. ["mpv", "--really-quiet"].

    The segment location is appended to the command. Exit status 0 counts as
    the natural end of the segment; anything else is a playback error.
    """

    def __init__(self, command: List[str]):
        super().__init__()
        if not command:
            raise ValueError("Video player command is empty")
        self.command = list(command)
        self.location: Optional[str] = None
        self.process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None

    async def load(self, location: str) -> None:
        if not location:
            raise RendererError("Empty segment location")
        self.location = location

    async def play(self) -> None:
        if self.location is None:
            raise RendererError("No segment loaded")

        try:
            self.process = await asyncio.create_subprocess_exec(*self.command, self.location)
        except OSError as e:
            raise RendererError(f"Cannot start video player {self.command[0]}: {e}") from e

        self._watcher = asyncio.create_task(self._watch(self.process))

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if returncode == 0:
            await self._fire_ended()
        else:
            await self._fire_error(RendererError(f"{self.command[0]} exited with status {returncode}"))

    async def close(self) -> None:
        if self.process and self.process.returncode is None:
            self.process.terminate()
            await self.process.wait()
        if self._watcher and not self._watcher.done():
            self._watcher.cancel()


class VideoSegmentSequencer:
    """
    Plays segments in order, wrapping to the first after the last.

    One segment plays at a time and nothing is prefetched. A segment that
    fails to load or play is not retried: the sequencer stalls on it.
    """

    def __init__(
        self,
        segments: List[str],
        element: VideoElement,
        locate: Callable[[str], str] = lambda segment: segment
    ):
        if not segments:
            raise ValueError("At least one video segment is required")

        self.segments = list(segments)
        self.element = element
        self._locate = locate

        self.current_index = 0
        self.stalled = False
        self.last_error: Optional[Exception] = None
        self._halted = asyncio.Event()

        element.on_ended(self.handle_ended)
        element.on_error(self.handle_error)

    @property
    def current_segment(self) -> str:
        return self.segments[self.current_index]

    async def start(self) -> None:
        """Autoplay the first segment"""
        self.current_index = 0
        await self._play_current()

    async def handle_ended(self) -> None:
        """Advance to the next segment, wrapping to the first after the last"""
        if self._halted.is_set():
            return
        self.current_index = (self.current_index + 1) % len(self.segments)
        await self._play_current()

    async def handle_error(self, error: Exception) -> None:
        self._stall(error)

    async def _play_current(self) -> None:
        segment = self.current_segment
        logger.info(f"Playing segment {self.current_index + 1}/{len(self.segments)}: {segment}")
        try:
            await self.element.load(self._locate(segment))
            await self.element.play()
        except PlaybackError as e:
            self._stall(e)

    def _stall(self, error: Exception) -> None:
        self.stalled = True
        self.last_error = error
        logger.error(f"Video playback stalled at segment {self.current_index} ({self.current_segment}): {error}")
        self._halted.set()

    def stop(self) -> None:
        self._halted.set()

    async def wait(self) -> None:
        """Wait until playback stalls or is stopped"""
        await self._halted.wait()
