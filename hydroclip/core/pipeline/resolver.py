"""Resolve playlist timestamps into recording sessions."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

from ...data.models import RecordingSession
from ...logging import get_logger
from ...services.directory.base import DirectoryError, SessionDirectory
from .control import AssemblyControl

LOGGER = get_logger(__name__)


class SegmentIndexResolver:
    def __init__(self, directory: SessionDirectory) -> None:
        self.directory = directory

    async def _lookup(self, feed_id: str, playlist_timestamp: str, control: AssemblyControl) -> List[RecordingSession]:
        try:
            return await control.guard(self.directory.lookup(feed_id, playlist_timestamp))
        except DirectoryError as exc:
            LOGGER.warning("Could not resolve session %s for feed %s: %s", playlist_timestamp, feed_id, exc)
            return []

    async def resolve(
        self,
        feed_id: str,
        playlist_timestamps: Iterable[str],
        control: Optional[AssemblyControl] = None,
    ) -> List[RecordingSession]:
        """Look up each distinct playlist timestamp concurrently.

        Failed lookups are logged and left out. The result holds one session
        per playlist timestamp, ordered by session start time.
        """

        control = control or AssemblyControl()
        keys = list(dict.fromkeys(key for key in playlist_timestamps if key))
        if not keys:
            return []

        found = await asyncio.gather(*(self._lookup(feed_id, key, control) for key in keys))
        control.raise_if_cancelled()

        sessions: Dict[str, RecordingSession] = {}
        for batch in found:
            for session in batch:
                sessions.setdefault(session.playlist_timestamp, session)
        LOGGER.debug("Resolved %d of %d playlist timestamps for feed %s", len(sessions), len(keys), feed_id)
        return sorted(sessions.values(), key=lambda session: session.start_time)


__all__ = ["SegmentIndexResolver"]
