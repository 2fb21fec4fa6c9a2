#!/usr/bin/env python3
"""
jrecplay Recording Manifest
The recording.json descriptor listing a session's playback artifacts.

{
    "sessionId": "3c1c3c58-...",
    "startTime": 1700000000,
    "duration": 42,
    "files": [
        {"fileName": "recording-0.webm", "startTime": 1700000000, "duration": 20},
        {"fileName": "recording-1.webm", "startTime": 1700000021, "duration": 21}
    ]
}

Only files[].fileName is required. File order is playback order.
"""

import json
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional


MANIFEST_NAME = 'recording.json'


@dataclass
class RecordingFile:
    """One playback artifact"""
    file_name: str
    start_time: Optional[int] = None
    duration: Optional[int] = None

    @property
    def extension(self) -> str:
        """Lower-cased suffix including the dot, e.g. '.trp'"""
        return PurePosixPath(self.file_name).suffix.lower()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'fileName': self.file_name}
        if self.start_time is not None:
            data['startTime'] = self.start_time
        if self.duration is not None:
            data['duration'] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecordingFile':
        if not isinstance(data, dict) or not isinstance(data.get('fileName'), str):
            raise ValueError(f"Invalid recording file entry: {data!r}")
        return cls(
            file_name=data['fileName'],
            start_time=data.get('startTime'),
            duration=data.get('duration'),
        )


@dataclass
class RecordingDescriptor:
    """Ordered list of a session's artifacts"""
    files: List[RecordingFile] = field(default_factory=list)
    session_id: Optional[str] = None
    start_time: Optional[int] = None
    duration: Optional[int] = None

    @property
    def file_names(self) -> List[str]:
        return [f.file_name for f in self.files]

    @property
    def first(self) -> Optional[RecordingFile]:
        return self.files[0] if self.files else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.session_id is not None:
            data['sessionId'] = self.session_id
        if self.start_time is not None:
            data['startTime'] = self.start_time
        if self.duration is not None:
            data['duration'] = self.duration
        data['files'] = [f.to_dict() for f in self.files]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecordingDescriptor':
        if not isinstance(data, dict) or not isinstance(data.get('files'), list):
            raise ValueError("Invalid recording descriptor: missing 'files' list")
        return cls(
            files=[RecordingFile.from_dict(f) for f in data['files']],
            session_id=data.get('sessionId'),
            start_time=data.get('startTime'),
            duration=data.get('duration'),
        )

    @classmethod
    def from_json(cls, content: str) -> 'RecordingDescriptor':
        return cls.from_dict(json.loads(content))

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
