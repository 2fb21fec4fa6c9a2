#!/usr/bin/env python3
"""
jrecplay CLI - Main entry point

Usage:
    jrecplay play <session_id> [--source http|local|s3] [--speed 2] [--from 30]
    jrecplay info <session_id> [--json]
    jrecplay convert <recording.trp> [-o recording.cast]
    jrecplay dump <recording.trp> [--json]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from jrecplay import __version__
from jrecplay.config import ReplayConfig, load_config
from jrecplay.replay.cast import build_stream
from jrecplay.replay.dispatcher import PlaybackDispatcher, classify
from jrecplay.replay.errors import PlaybackError, UnsupportedFormatError
from jrecplay.replay.player import TerminalPlayer
from jrecplay.replay.sources import get_source
from jrecplay.replay.trace import ChunkType, TraceError, decode_trace, parse_resize, parse_setup
from jrecplay.replay.video import CommandVideoElement

logger = logging.getLogger('jrecplay.cli')


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_config(args) -> ReplayConfig:
    """Load configuration and apply command line overrides"""
    try:
        config = load_config(getattr(args, 'config', None))
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if getattr(args, 'source', None):
        config.source = args.source
    if getattr(args, 'url', None):
        config.gateway_url = args.url
    if getattr(args, 'token', None):
        config.token = args.token
    if getattr(args, 'path', None):
        config.recordings_path = args.path
    if getattr(args, 'speed', None):
        config.speed = args.speed
    if getattr(args, 'no_input', False):
        config.show_input = False
    if getattr(args, 'verbose', False):
        config.log_level = 'DEBUG'

    return config


def clip(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width - 3] + "..."


def format_table(headers: list, rows: list, max_widths: Optional[dict] = None) -> str:
    """Render rows under their headers, clipping cells to max_widths"""
    if not rows:
        return "(empty)"

    max_widths = max_widths or {}
    cells = [[str(value) for value in row] for row in rows]
    widths = []
    for i, header in enumerate(headers):
        width = max([len(header)] + [len(row[i]) for row in cells])
        widths.append(min(width, max_widths.get(header, width)))

    lines = [
        " | ".join(header.ljust(width) for header, width in zip(headers, widths)),
        "-+-".join("-" * width for width in widths),
    ]
    lines += [" | ".join(clip(value, width).ljust(width) for value, width in zip(row, widths)) for row in cells]
    return "\n".join(lines)


def read_trace(path: str) -> bytes:
    trace_path = Path(path)
    if not trace_path.exists():
        print(f"Error: Recording not found: {trace_path}", file=sys.stderr)
        sys.exit(1)
    return trace_path.read_bytes()


# === Playback Commands ===

def cmd_play(args):
    """Play a recorded session"""
    config = build_config(args)
    setup_logging(config.log_level)

    try:
        source = get_source(args.session_id, config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    player = TerminalPlayer(speed=config.speed, show_input=config.show_input, start_at=args.start_at)
    dispatcher = PlaybackDispatcher(
        source,
        renderer=player,
        video_element=CommandVideoElement(config.video_command),
        ready_timeout=config.renderer_ready_timeout_seconds
    )

    async def run():
        try:
            await dispatcher.start()
            await dispatcher.wait()
        finally:
            await dispatcher.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\n\n[Playback stopped]")
        return
    except (PlaybackError, TraceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if dispatcher.stalled:
        print(f"\nError: Playback stalled: {dispatcher.last_error}", file=sys.stderr)
        sys.exit(1)

    print("\n[End of recording]")


def cmd_info(args):
    """Show the artifacts of a recorded session"""
    config = build_config(args)
    setup_logging(config.log_level)

    try:
        source = get_source(args.session_id, config)
        descriptor = asyncio.run(source.fetch_descriptor())
    except (PlaybackError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if descriptor.first is None:
        path = "none (no artifacts)"
    else:
        try:
            path = classify(descriptor.first.file_name).value
        except UnsupportedFormatError:
            path = f"unsupported ({descriptor.first.extension or 'no extension'})"

    if args.json:
        data = descriptor.to_dict()
        data['playback'] = path
        print(json.dumps(data, indent=2))
        return

    print(f"Session ID:   {descriptor.session_id or args.session_id}")
    if descriptor.start_time is not None:
        print(f"Start Time:   {descriptor.start_time}")
    if descriptor.duration is not None:
        print(f"Duration:     {descriptor.duration}s")
    print(f"Playback:     {path}")
    print()

    headers = ["#", "File", "Start Time", "Duration"]
    rows = []
    for i, f in enumerate(descriptor.files):
        rows.append([
            str(i),
            f.file_name,
            str(f.start_time) if f.start_time is not None else "-",
            f"{f.duration}s" if f.duration is not None else "-",
        ])
    print(format_table(headers, rows, max_widths={"File": 48}))


# === Trace Commands ===

def cmd_convert(args):
    """Convert a binary trace to asciicast"""
    setup_logging('DEBUG' if args.verbose else 'WARNING')
    data = read_trace(args.input)

    try:
        stream = build_stream(data)
    except TraceError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output == '-':
        sys.stdout.write(stream.to_asciicast() + '\n')
        return

    output_path = Path(args.output) if args.output else Path(args.input).with_suffix('.cast')
    stream.save(output_path)

    header = stream.header
    print(f"Exported to {output_path} (asciicast v2, {header.width}x{header.height}, "
          f"{len(stream.events)} events, {header.duration:.1f}s)")


def describe_chunk(chunk) -> str:
    if chunk.chunk_type == ChunkType.RESIZE:
        width, height = parse_resize(chunk.payload)
        return f"{width}x{height}"
    if chunk.chunk_type == ChunkType.SETUP:
        return ", ".join(f"{tag}={value}" for tag, value in parse_setup(chunk.payload))
    if chunk.chunk_type in (ChunkType.OUTPUT, ChunkType.INPUT):
        return repr(chunk.payload.decode('utf-8', errors='replace'))
    return ""


def cmd_dump(args):
    """List the chunks of a binary trace"""
    setup_logging('DEBUG' if args.verbose else 'WARNING')
    data = read_trace(args.input)

    chunks = []
    error = None
    try:
        for chunk in decode_trace(data):
            chunks.append(chunk)
    except TraceError as e:
        error = e

    if args.json:
        entries = []
        for chunk in chunks:
            entries.append({
                'offset': chunk.offset,
                'delay': chunk.delay,
                'type': chunk.raw_type,
                'kind': chunk.chunk_type.name.lower(),
                'size': chunk.size,
                'detail': describe_chunk(chunk),
            })
        print(json.dumps({'chunks': entries, 'error': str(error) if error else None}, indent=2))
    else:
        headers = ["Offset", "Delay", "Type", "Size", "Detail"]
        rows = [
            [str(c.offset), str(c.delay), c.chunk_type.name.lower() if c.chunk_type != ChunkType.UNKNOWN
             else f"unknown({c.raw_type})", str(c.size), describe_chunk(c)]
            for c in chunks
        ]
        print(format_table(headers, rows, max_widths={"Detail": 60}))
        print(f"\nTotal: {len(chunks)} chunk(s), {len(data)} bytes")

    if error:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)


def cli(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog='jrecplay',
        description='jrecplay - Recorded session player'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # play
    play_parser = subparsers.add_parser('play', help='Play a recorded session')
    play_parser.add_argument('session_id', help='Session ID')
    play_parser.add_argument('--config', '-c', help='Path to YAML config file')
    play_parser.add_argument('--source', choices=['http', 'local', 's3'], help='Recording source')
    play_parser.add_argument('--url', '-u', help='Gateway base URL')
    play_parser.add_argument('--token', '-t', help='Recording access token')
    play_parser.add_argument('--path', '-p', help='Local recordings directory')
    play_parser.add_argument('--speed', '-s', type=float, help='Playback speed (0.25 - 4.0)')
    play_parser.add_argument('--from', dest='start_at', type=float, default=0.0, metavar='SECONDS',
                             help='Start playback SECONDS into a terminal recording')
    play_parser.add_argument('--no-input', action='store_true', help='Hide recorded input')
    play_parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    play_parser.set_defaults(func=cmd_play)

    # info
    info_parser = subparsers.add_parser('info', help='Show recording details')
    info_parser.add_argument('session_id', help='Session ID')
    info_parser.add_argument('--config', '-c', help='Path to YAML config file')
    info_parser.add_argument('--source', choices=['http', 'local', 's3'], help='Recording source')
    info_parser.add_argument('--url', '-u', help='Gateway base URL')
    info_parser.add_argument('--token', '-t', help='Recording access token')
    info_parser.add_argument('--path', '-p', help='Local recordings directory')
    info_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    info_parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    info_parser.set_defaults(func=cmd_info)

    # convert
    convert_parser = subparsers.add_parser('convert', help='Convert a .trp trace to asciicast')
    convert_parser.add_argument('input', help='Trace file')
    convert_parser.add_argument('--output', '-o', help="Output .cast file ('-' for stdout)")
    convert_parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    convert_parser.set_defaults(func=cmd_convert)

    # dump
    dump_parser = subparsers.add_parser('dump', help='List the chunks of a .trp trace')
    dump_parser.add_argument('input', help='Trace file')
    dump_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    dump_parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    dump_parser.set_defaults(func=cmd_dump)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()


def main():
    """Entry point"""
    cli()


if __name__ == '__main__':
    main()
