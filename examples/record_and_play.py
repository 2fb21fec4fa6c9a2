#!/usr/bin/env python3
"""
Example: Record a terminal session and play it back

Writes a short scripted session as a binary trace into a local recordings
directory, with the recording.json descriptor next to it, then replays it
through the same dispatcher the `jrecplay play` command uses.

Usage:
    python record_and_play.py [recordings_dir]

Then, from the shell:
    jrecplay play <session_id> --source local --path <recordings_dir>
"""

import asyncio
import sys
import uuid
from pathlib import Path

from jrecplay.replay import (
    LocalArtifactSource,
    PlaybackDispatcher,
    RecordingDescriptor,
    RecordingFile,
    TerminalPlayer,
    TraceRecorder,
)

SCRIPT = [
    (0.4, 'output', "Last login: Mon Oct  5 09:12:44 2026 from 10.0.0.12\r\n$ "),
    (0.8, 'input', "uname -a\r"),
    (0.1, 'output', "Linux gateway-01 6.8.0-45-generic x86_64 GNU/Linux\r\n$ "),
    (1.0, 'resize', (100, 30)),
    (0.6, 'input', "exit\r"),
    (0.2, 'output', "logout\r\n"),
]


class ScriptClock:
    """Clock advanced by the script instead of wall time"""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def record_session(recordings_dir: Path, session_id: str) -> Path:
    clock = ScriptClock()
    recorder = TraceRecorder(width=80, height=24, clock=clock)

    for pause, kind, data in SCRIPT:
        clock.now += pause
        if kind == 'output':
            recorder.record_output(data)
        elif kind == 'input':
            recorder.record_input(data)
        else:
            recorder.record_resize(*data)

    session_dir = recordings_dir / session_id
    trace_path = session_dir / "recording-0.trp"
    recorder.save(trace_path)

    descriptor = RecordingDescriptor(
        files=[RecordingFile(file_name=trace_path.name, duration=round(recorder.duration_ms / 1000))],
        session_id=session_id,
    )
    (session_dir / "recording.json").write_text(descriptor.to_json())

    stats = recorder.stats()
    print(f"[+] Recorded {stats['event_count']} events ({stats['duration_ms']} ms) to {trace_path}")
    return session_dir


async def play_session(recordings_dir: Path, session_id: str) -> None:
    source = LocalArtifactSource(str(recordings_dir), session_id)
    dispatcher = PlaybackDispatcher(source, renderer=TerminalPlayer())

    print(f"[+] Replaying {session_id}")
    print("-" * 60)
    await dispatcher.start()
    print()
    print("-" * 60)

    if dispatcher.stalled:
        print(f"[!] Playback stalled: {dispatcher.last_error}")


def main():
    recordings_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("recordings")
    session_id = f"demo-{uuid.uuid4().hex[:8]}"

    record_session(recordings_dir, session_id)
    asyncio.run(play_session(recordings_dir, session_id))


if __name__ == '__main__':
    main()
