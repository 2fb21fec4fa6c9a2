"""
jrecplay
Replay recorded remote-access sessions: video segments or terminal traces.
"""

__version__ = "1.0.0"
