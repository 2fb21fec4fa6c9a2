"""
jrecplay Replay Module
Decode recorded sessions and play them back.
"""

from .trace import (
    BinaryTraceDecoder,
    ChunkType,
    TraceChunk,
    TraceError,
    TruncatedRecordError,
    decode_trace,
    encode_events,
)
from .cast import CastHeader, CastStream, EventKind, EventStreamBuilder, SessionEvent, build_stream, trace_to_asciicast
from .recorder import TraceRecorder
from .manifest import RecordingDescriptor, RecordingFile
from .errors import PlaybackError, UnsupportedFormatError, FetchError, RendererError
from .sources import ArtifactSource, HttpArtifactSource, LocalArtifactSource, S3ArtifactSource, get_source
from .player import Renderer, TerminalPlayer, PlaybackState
from .video import VideoElement, CommandVideoElement, VideoSegmentSequencer
from .dispatcher import PlaybackDispatcher, PlaybackPath, DispatcherState, classify

__all__ = [
    'BinaryTraceDecoder',
    'ChunkType',
    'TraceChunk',
    'TraceError',
    'TruncatedRecordError',
    'decode_trace',
    'encode_events',
    'CastHeader',
    'CastStream',
    'EventKind',
    'EventStreamBuilder',
    'SessionEvent',
    'build_stream',
    'trace_to_asciicast',
    'TraceRecorder',
    'RecordingDescriptor',
    'RecordingFile',
    'PlaybackError',
    'UnsupportedFormatError',
    'FetchError',
    'RendererError',
    'ArtifactSource',
    'HttpArtifactSource',
    'LocalArtifactSource',
    'S3ArtifactSource',
    'get_source',
    'Renderer',
    'TerminalPlayer',
    'PlaybackState',
    'VideoElement',
    'CommandVideoElement',
    'VideoSegmentSequencer',
    'PlaybackDispatcher',
    'PlaybackPath',
    'DispatcherState',
    'classify',
]
