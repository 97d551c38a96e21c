"""Lyrics parsing, pure logic with no I/O.

Synced lyrics arrive as LRC text (``[mm:ss.xx] line``).  Plain lyrics have
no timing, so their lines are spread evenly over the track duration.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from pydantic import BaseModel, Field

DEFAULT_DURATION = 180  # seconds, when the track length is unknown

_TIME_TAG = re.compile(r"\[(\d{2}):(\d{2})\.(\d{2,3})\]")


class LyricLine(BaseModel):
    time: float = Field(ge=0)  # seconds from track start
    text: str


class Lyrics(BaseModel):
    lines: List[LyricLine] = Field(default_factory=list)
    synced: bool = False
    source: str = ""


def _seconds(minutes: str, seconds: str, fraction: str) -> float:
    scale = 1000 if len(fraction) == 3 else 100
    return int(minutes) * 60 + int(seconds) + int(fraction) / scale


def parse_lrc(lrc: str) -> List[LyricLine]:
    """Parse LRC text into lines sorted by time.

    A line may carry several leading time tags (a repeated chorus); each tag
    yields its own entry.  Untagged and empty lines are dropped.
    """
    lines: List[LyricLine] = []
    for raw in lrc.splitlines():
        times = []
        pos = 0
        match = _TIME_TAG.match(raw, pos)
        while match:
            times.append(_seconds(*match.groups()))
            pos = match.end()
            match = _TIME_TAG.match(raw, pos)
        text = raw[pos:].strip()
        if not text:
            continue
        lines.extend(LyricLine(time=t, text=text) for t in times)
    return sorted(lines, key=lambda line: line.time)


def spread_plain_lyrics(text: str, duration: float = 0) -> List[LyricLine]:
    """Give untimed lines evenly spaced times across *duration*."""
    rows = [row.strip() for row in text.splitlines() if row.strip()]
    if not rows:
        return []
    step = (duration if duration > 0 else DEFAULT_DURATION) / len(rows)
    return [LyricLine(time=i * step, text=row) for i, row in enumerate(rows)]


def current_line_index(lines: Sequence[LyricLine], position: float) -> int:
    """Index of the line being sung at *position*; -1 when there are no lines."""
    if not lines:
        return -1
    for i in range(len(lines) - 1, -1, -1):
        if position >= lines[i].time:
            return i
    return 0
