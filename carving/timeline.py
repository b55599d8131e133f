"""
Forensic timeline & scan counters.

The timeline is append-only and ordered by scan progress; its timestamps
are diagnostic only and never feed back into the analysis.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


def _iso_now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()) + "Z"


@dataclass(frozen=True)
class ForensicTimelineEntry:
    timestamp: str
    event: str
    description: str


@dataclass
class ScanStatistics:
    total_scanned: int = 0
    signatures_checked: int = 0
    files_carved: int = 0
    data_recovered: int = 0
    processing_time: float = 0.0    # seconds

    def record_carve(self, size: int):
        self.files_carved += 1
        self.data_recovered += size


@dataclass
class ScanProgress:
    """Snapshot handed to progress callbacks during the carving pass."""
    total_bytes: int = 0
    scanned_bytes: int = 0
    files_carved: int = 0
    is_cancelled: bool = False

    @property
    def progress_percent(self) -> float:
        if self.total_bytes == 0:
            return 100.0
        return min(100.0, (self.scanned_bytes / self.total_bytes) * 100)


class ForensicTimeline:
    """Append-only event log."""

    def __init__(self, clock: Optional[Callable[[], str]] = None):
        self._clock = clock or _iso_now
        self._entries: list[ForensicTimelineEntry] = []

    def add(self, event: str, description: str) -> ForensicTimelineEntry:
        entry = ForensicTimelineEntry(self._clock(), event, description)
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[ForensicTimelineEntry]:
        return list(self._entries)
