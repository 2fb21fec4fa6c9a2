"""
Playback pipeline exceptions.
"""

from typing import Optional


class PlaybackError(Exception):
    """Base exception for playback pipeline errors."""

    pass


class UnsupportedFormatError(PlaybackError):
    """Raised when a recording has no playback path for its artifact type."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class FetchError(PlaybackError):
    """Raised when recording metadata or an artifact cannot be fetched."""

    def __init__(self, message: str, location: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.location = location
        self.status_code = status_code


class RendererError(PlaybackError):
    """Raised when a renderer or video element fails to load or start."""

    pass
