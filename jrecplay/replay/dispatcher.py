#!/usr/bin/env python3
"""
jrecplay Playback Dispatcher
Picks the playback path for a recording and drives it.

    recording.json -> first artifact extension
        .webm -> VideoSegmentSequencer over every artifact
        .trp  -> fetch, decode, build asciicast, hand to the renderer
        .cast -> fetch, hand to the renderer unchanged
"""

import asyncio
import logging
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from .cast import build_stream
from .errors import FetchError, RendererError, UnsupportedFormatError
from .manifest import RecordingDescriptor
from .player import Renderer
from .sources import ArtifactSource
from .trace import TraceError
from .video import VideoElement, VideoSegmentSequencer

logger = logging.getLogger('jrecplay.replay.dispatcher')


class PlaybackPath(Enum):
    VIDEO = "video"
    TRACE = "trace"
    CAST = "cast"


class DispatcherState(Enum):
    UNINITIALIZED = "uninitialized"
    VIDEO_PLAYING = "video_playing"
    TRACE_PLAYING = "trace_playing"


EXTENSION_PATHS = {
    '.webm': PlaybackPath.VIDEO,
    '.trp': PlaybackPath.TRACE,
    '.cast': PlaybackPath.CAST,
}


def classify(file_name: str) -> PlaybackPath:
    """Playback path for an artifact, by extension"""
    extension = PurePosixPath(file_name).suffix.lower()
    try:
        return EXTENSION_PATHS[extension]
    except KeyError:
        raise UnsupportedFormatError(f"No playback path for artifact type {extension or '(none)'}: {file_name}",
                                     file_name=file_name) from None


class PlaybackDispatcher:
    """
    Owns one playback session.

    State goes UNINITIALIZED -> VIDEO_PLAYING or TRACE_PLAYING exactly once.
    Fetch failures propagate and halt the session. Renderer and video
    failures leave the session stalled instead of raising.
    """

    def __init__(
        self,
        source: ArtifactSource,
        renderer: Optional[Renderer] = None,
        video_element: Optional[VideoElement] = None,
        ready_timeout: Optional[float] = 10.0
    ):
        self.source = source
        self.renderer = renderer
        self.video_element = video_element
        self.ready_timeout = ready_timeout

        self.state = DispatcherState.UNINITIALIZED
        self.descriptor: Optional[RecordingDescriptor] = None
        self.path: Optional[PlaybackPath] = None
        self.sequencer: Optional[VideoSegmentSequencer] = None
        self._render_error: Optional[Exception] = None

    async def start(self) -> None:
        """Fetch metadata, classify the recording and start its playback path"""
        if self.state != DispatcherState.UNINITIALIZED:
            raise RuntimeError("Playback already started")

        try:
            self.descriptor = await self.source.fetch_descriptor()
        except FetchError as e:
            logger.error(f"Cannot fetch recording metadata for session {self.source.session_id}: {e}")
            raise

        first = self.descriptor.first
        if first is None:
            raise UnsupportedFormatError(f"Recording {self.source.session_id} lists no artifacts")

        self.path = classify(first.file_name)
        logger.info(f"Session {self.source.session_id}: {self.path.value} playback, "
                    f"{len(self.descriptor.files)} artifact(s)")

        if self.path == PlaybackPath.VIDEO:
            self.state = DispatcherState.VIDEO_PLAYING
            await self._play_video()
        else:
            self.state = DispatcherState.TRACE_PLAYING
            await self._play_stream(self.path)

    async def _play_video(self) -> None:
        if self.video_element is None:
            raise RendererError("No video element configured for video playback")

        self.sequencer = VideoSegmentSequencer(
            self.descriptor.file_names,
            self.video_element,
            locate=self.source.locate
        )
        await self.sequencer.start()

    async def _play_stream(self, path: PlaybackPath) -> None:
        # The stream paths always play the first artifact
        artifact_index = 0
        file_name = self.descriptor.files[artifact_index].file_name

        try:
            payload = await self.source.fetch_artifact(file_name)
        except FetchError as e:
            logger.error(f"Cannot fetch {file_name}: {e}")
            raise

        if path == PlaybackPath.TRACE:
            try:
                stream = build_stream(payload)
            except TraceError as e:
                logger.error(f"Cannot decode trace {file_name}: {e}")
                raise
            content = stream.to_asciicast()
            logger.debug(f"Decoded {file_name}: {len(stream.events)} event(s), {stream.header.duration:.3f}s")
        else:
            content = payload.decode('utf-8', errors='replace')

        await self._render(content)

    async def _render(self, content: str) -> None:
        if self.renderer is None:
            raise RendererError("No renderer configured for terminal playback")

        try:
            self.renderer.load(content)
            await asyncio.wait_for(self.renderer.wait_ready(), timeout=self.ready_timeout)
            await self.renderer.start()
        except asyncio.TimeoutError:
            self._stall(RendererError(f"Renderer not ready after {self.ready_timeout}s"))
        except RendererError as e:
            self._stall(e)

    @property
    def stalled(self) -> bool:
        if self.sequencer is not None:
            return self.sequencer.stalled
        return self._render_error is not None

    @property
    def last_error(self) -> Optional[Exception]:
        if self.sequencer is not None:
            return self.sequencer.last_error
        return self._render_error

    def _stall(self, error: Exception) -> None:
        self._render_error = error
        logger.error(f"Playback stalled for session {self.source.session_id}: {error}")

    async def wait(self) -> None:
        """Wait for the video path to stall or stop; stream paths finish inside start()"""
        if self.sequencer is not None:
            await self.sequencer.wait()

    async def stop(self) -> None:
        if self.sequencer is not None:
            self.sequencer.stop()
        if self.video_element is not None:
            await self.video_element.close()
