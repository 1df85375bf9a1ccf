"""Recording directory abstractions."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List

from ...data.models import RecordingSession


class DirectoryError(RuntimeError):
    """Raised when the recording directory cannot answer a lookup."""


class SessionDirectory(abc.ABC):
    """Resolve playlist timestamps to recording session metadata."""

    @abc.abstractmethod
    async def lookup(self, feed_id: str, playlist_timestamp: str) -> List[RecordingSession]:
        raise NotImplementedError


class SegmentIndex(abc.ABC):
    """Report which recording sessions hold audio for a time window."""

    @abc.abstractmethod
    async def playlist_timestamps(self, feed_id: str, start: datetime, end: datetime) -> List[str]:
        raise NotImplementedError


__all__ = ["DirectoryError", "SegmentIndex", "SessionDirectory"]
