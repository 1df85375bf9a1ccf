"""Clip orchestrator coordinating lookup, download and transcoding."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

import httpx

from ...config import get_settings
from ...data.models import ClipAssemblyResult, DroppedTime, RecordingSession, SegmentDescriptor
from ...logging import get_logger
from ...services.directory.base import DirectoryError, SegmentIndex, SessionDirectory
from ...utils.timing import Instant, parse_instant, round_seconds, seconds_between, shift_seconds
from ..audio.manifest import parse_manifest
from ..audio.selector import covered_seconds, select_segments, uncovered_seconds
from ..audio.transcoder import Transcoder
from ..errors import (
    AssemblyCancelled,
    ClipAssemblyError,
    ManifestFetchError,
    NoSegmentsFoundError,
    TranscodeError,
)
from .control import AssemblyControl
from .fetcher import SegmentFetcher
from .resolver import SegmentIndexResolver

LOGGER = get_logger(__name__)

RequestKey = Tuple[str, datetime, datetime]


@dataclass(frozen=True)
class AssemblyRequest:
    feed_id: str
    start_time: datetime
    end_time: datetime
    enabled: bool = True

    @classmethod
    def create(cls, feed_id: str, start_time: Instant, end_time: Instant, enabled: bool = True) -> "AssemblyRequest":
        return cls(feed_id, parse_instant(start_time), parse_instant(end_time), enabled)

    @property
    def key(self) -> RequestKey:
        return (self.feed_id, self.start_time, self.end_time)

    @property
    def window_seconds(self) -> float:
        return max(seconds_between(self.start_time, self.end_time), 0.0)


class AssemblyState(str, Enum):
    PENDING = "pending"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass
class _AssemblyEntry:
    control: AssemblyControl
    state: AssemblyState = AssemblyState.PENDING
    task: Optional["asyncio.Task[ClipAssemblyResult]"] = None
    result: Optional[ClipAssemblyResult] = None
    error: Optional[ClipAssemblyError] = None


@dataclass
class _SessionSegments:
    session: RecordingSession
    segments: List[SegmentDescriptor] = field(default_factory=list)


class ConcatenationOrchestrator:
    """Builds one playable clip per (feed, start, end) request.

    Identical concurrent requests share a single pipeline run, and a finished
    request (successful or terminally failed) is answered from the table
    without running again. Finished entries, artifacts included, stay in the
    table until :meth:`forget` releases them. A cancelled request is marked
    CANCELLED at once, so the next identical call starts a fresh run. The
    transcoder is an exclusive worker: access is serialized and it is always
    reset before reuse.
    """

    def __init__(
        self,
        index: SegmentIndex,
        directory: SessionDirectory,
        transcoder: Transcoder,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.index = index
        self.resolver = SegmentIndexResolver(directory)
        self.transcoder = transcoder
        self.timeout = timeout if timeout is not None else get_settings().http_timeout
        self._client = client
        self._entries: Dict[RequestKey, _AssemblyEntry] = {}
        self._transcoder_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Request table
    # ------------------------------------------------------------------
    def state(self, request: AssemblyRequest) -> Optional[AssemblyState]:
        entry = self._entries.get(request.key)
        return entry.state if entry else None

    def cancel(self, request: AssemblyRequest) -> bool:
        """Cancel an in-flight request; returns ``False`` if nothing was running."""

        entry = self._entries.get(request.key)
        if entry is None or entry.state is not AssemblyState.PENDING:
            return False
        entry.control.request_cancel()
        entry.state = AssemblyState.CANCELLED
        return True

    def forget(self, request: AssemblyRequest) -> None:
        """Drop a finished request so the next call assembles it again."""

        entry = self._entries.get(request.key)
        if entry is not None and entry.state is not AssemblyState.PENDING:
            del self._entries[request.key]

    async def assemble(
        self,
        request: AssemblyRequest,
        control: Optional[AssemblyControl] = None,
    ) -> Optional[ClipAssemblyResult]:
        """Return the clip for ``request``.

        Returns ``None`` when the request is disabled or was cancelled.
        Raises :class:`NoSegmentsFoundError` or :class:`TranscodeError` when
        no clip can be produced.
        """

        if not request.enabled:
            return None

        entry = self._entries.get(request.key)
        if entry is not None and entry.state is AssemblyState.DONE:
            if entry.error is not None:
                raise entry.error
            return entry.result
        if entry is None or entry.state is AssemblyState.CANCELLED or entry.control.is_cancelled:
            entry = _AssemblyEntry(control=control or AssemblyControl())
            self._entries[request.key] = entry
            entry.task = asyncio.ensure_future(self._run(request, entry))
        elif control is not None and control is not entry.control:
            LOGGER.debug("Joining in-flight assembly for %s; ignoring new control", request.feed_id)

        assert entry.task is not None
        try:
            return await asyncio.shield(entry.task)
        except AssemblyCancelled:
            return None

    async def close(self) -> None:
        for entry in self._entries.values():
            if entry.state is AssemblyState.PENDING:
                entry.control.request_cancel()
        pending = [entry.task for entry in self._entries.values() if entry.task and not entry.task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        async with self._transcoder_lock:
            await asyncio.to_thread(self.transcoder.close)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def _run(self, request: AssemblyRequest, entry: _AssemblyEntry) -> ClipAssemblyResult:
        try:
            result = await self._pipeline(request, entry.control)
            entry.control.raise_if_cancelled()
        except AssemblyCancelled:
            entry.state = AssemblyState.CANCELLED
            LOGGER.info("Assembly for %s cancelled", request.feed_id)
            raise
        except ClipAssemblyError as exc:
            if entry.control.is_cancelled:
                entry.state = AssemblyState.CANCELLED
                raise AssemblyCancelled() from exc
            entry.state = AssemblyState.DONE
            entry.error = exc
            LOGGER.warning("Assembly for %s failed: %s", request.feed_id, exc)
            raise
        except Exception as exc:
            LOGGER.exception("Unexpected failure assembling clip for %s", request.feed_id)
            error = ClipAssemblyError(str(exc))
            entry.state = AssemblyState.DONE
            entry.error = error
            raise error from exc

        entry.state = AssemblyState.DONE
        entry.result = result
        return result

    @contextlib.asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    async def _playlist_timestamps(self, request: AssemblyRequest, control: AssemblyControl) -> List[str]:
        try:
            return await control.guard(
                self.index.playlist_timestamps(request.feed_id, request.start_time, request.end_time)
            )
        except DirectoryError as exc:
            raise NoSegmentsFoundError(f"Segment index unavailable for feed {request.feed_id}: {exc}") from exc

    async def _load_session(
        self,
        fetcher: SegmentFetcher,
        session: RecordingSession,
        control: AssemblyControl,
    ) -> Optional[_SessionSegments]:
        try:
            text = await fetcher.fetch_manifest(session, control)
        except ManifestFetchError as exc:
            LOGGER.warning("%s", exc)
            return None
        segments = parse_manifest(
            text,
            session.start_time,
            session_id=session.playlist_timestamp,
            base_url=session.base_url,
        )
        return _SessionSegments(session=session, segments=segments)

    async def _pipeline(self, request: AssemblyRequest, control: AssemblyControl) -> ClipAssemblyResult:
        LOGGER.info(
            "Assembling clip for feed %s from %s to %s",
            request.feed_id,
            request.start_time.isoformat(),
            request.end_time.isoformat(),
        )
        async with self._http_client() as client:
            fetcher = SegmentFetcher(client)

            timestamps = await self._playlist_timestamps(request, control)
            sessions = await self.resolver.resolve(request.feed_id, timestamps, control)
            addressable = [session for session in sessions if session.is_addressable]
            if len(addressable) < len(sessions):
                LOGGER.warning("Skipping %d sessions without a playlist location", len(sessions) - len(addressable))

            loaded = await asyncio.gather(*(self._load_session(fetcher, session, control) for session in addressable))
            control.raise_if_cancelled()
            parsed = [item for item in loaded if item is not None]
            failed_sessions = [session for session, item in zip(addressable, loaded) if item is None]

            requested = select_segments((item.segments for item in parsed), request.start_time, request.end_time)
            if not requested:
                raise NoSegmentsFoundError(f"No segments cover feed {request.feed_id} in the requested window")

            outcome = await fetcher.fetch_segments(requested, control)
            if not outcome.fetched:
                raise NoSegmentsFoundError(f"All {len(requested)} segments failed to download")

        artifact = await self._transcode(outcome.fetched, control)
        surviving = outcome.segments
        dropped = self._dropped_time(request, requested, surviving, failed_sessions, len(outcome.failed))
        window_gap = uncovered_seconds(surviving, request.start_time, request.end_time)
        result = ClipAssemblyResult(
            feed_id=request.feed_id,
            start_time=request.start_time,
            end_time=request.end_time,
            ordered_segments=surviving,
            total_duration_ms=sum(segment.duration_seconds for segment in requested) * 1000.0,
            dropped_seconds=round_seconds(window_gap),
            artifact=artifact,
            dropped=dropped,
        )
        LOGGER.info(
            "Clip for feed %s ready: %s from %d segments, %ds dropped",
            request.feed_id,
            result.duration_label,
            len(surviving),
            result.dropped_seconds,
        )
        return result

    async def _transcode(
        self,
        fetched: Sequence[Tuple[SegmentDescriptor, bytes]],
        control: AssemblyControl,
    ) -> bytes:
        async with self._transcoder_lock:
            control.raise_if_cancelled()
            return await asyncio.to_thread(self._transcode_blocking, fetched)

    def _transcode_blocking(self, fetched: Sequence[Tuple[SegmentDescriptor, bytes]]) -> bytes:
        try:
            self.transcoder.reset()
            for segment, payload in fetched:
                self.transcoder.write_input(segment.name, payload)
            return self.transcoder.concatenate([segment.name for segment, _ in fetched])
        except TranscodeError:
            raise
        except Exception as exc:
            raise TranscodeError(f"Transcoder failed: {exc}") from exc

    @staticmethod
    def _dropped_time(
        request: AssemblyRequest,
        requested: Sequence[SegmentDescriptor],
        surviving: Sequence[SegmentDescriptor],
        failed_sessions: Sequence[RecordingSession],
        failed_segment_count: int,
    ) -> DroppedTime:
        start, end = request.start_time, request.end_time
        requested_cover = covered_seconds(requested, start, end)
        surviving_cover = covered_seconds(surviving, start, end)
        gap = max(request.window_seconds - requested_cover, 0.0)

        # Sessions whose playlist failed only account for time no parsed session covers.
        lost_to_sessions = 0.0
        for session in failed_sessions:
            session_end = session.end_time
            if session_end is None and session.duration is not None:
                session_end = shift_seconds(session.start_time, session.duration)
            if session_end is None:
                continue
            overlap = seconds_between(max(session.start_time, start), min(session_end, end))
            lost_to_sessions += max(overlap, 0.0)
        lost_to_sessions = min(lost_to_sessions, gap)

        return DroppedTime(
            session_gap_seconds=gap - lost_to_sessions,
            failed_session_seconds=lost_to_sessions,
            failed_segment_seconds=max(requested_cover - surviving_cover, 0.0),
            failed_session_count=len(failed_sessions),
            failed_segment_count=failed_segment_count,
        )


__all__ = [
    "AssemblyRequest",
    "AssemblyState",
    "ConcatenationOrchestrator",
]
