"""HTTP retrieval of session playlists and segment payloads."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import httpx

from ...data.models import RecordingSession, SegmentDescriptor
from ...logging import get_logger
from ..errors import ManifestFetchError, SegmentFetchError
from .control import AssemblyControl

LOGGER = get_logger(__name__)


@dataclass
class FetchOutcome:
    fetched: List[Tuple[SegmentDescriptor, bytes]] = field(default_factory=list)
    failed: List[SegmentDescriptor] = field(default_factory=list)

    @property
    def segments(self) -> List[SegmentDescriptor]:
        return [segment for segment, _ in self.fetched]


class SegmentFetcher:
    """Downloads playlists and segments through a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def _get(self, url: str, control: AssemblyControl) -> httpx.Response:
        response = await control.guard(self.client.get(url))
        response.raise_for_status()
        return response

    async def fetch_manifest(self, session: RecordingSession, control: AssemblyControl) -> str:
        try:
            response = await self._get(session.manifest_url, control)
        except (httpx.RequestError, httpx.HTTPStatusError) as exc:
            raise ManifestFetchError(session.playlist_timestamp, str(exc)) from exc
        return response.text

    async def fetch_segment(self, segment: SegmentDescriptor, control: AssemblyControl) -> bytes:
        try:
            response = await self._get(segment.url, control)
        except (httpx.RequestError, httpx.HTTPStatusError) as exc:
            raise SegmentFetchError(segment.url, str(exc)) from exc
        if not response.content:
            raise SegmentFetchError(segment.url, "empty payload")
        return response.content

    async def _fetch_or_none(self, segment: SegmentDescriptor, control: AssemblyControl) -> Optional[bytes]:
        try:
            return await self.fetch_segment(segment, control)
        except SegmentFetchError as exc:
            LOGGER.warning("%s", exc)
            return None

    async def fetch_segments(
        self,
        segments: Sequence[SegmentDescriptor],
        control: AssemblyControl,
    ) -> FetchOutcome:
        """Fetch every segment concurrently, keeping input order and skipping failures."""

        payloads = await asyncio.gather(*(self._fetch_or_none(segment, control) for segment in segments))
        control.raise_if_cancelled()

        outcome = FetchOutcome()
        for segment, payload in zip(segments, payloads):
            if payload is None:
                outcome.failed.append(segment)
            else:
                outcome.fetched.append((segment, payload))
        if outcome.failed:
            LOGGER.info("Fetched %d of %d segments", len(outcome.fetched), len(segments))
        return outcome


__all__ = ["FetchOutcome", "SegmentFetcher"]
