"""GraphQL client for the feed stream and segment directory."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ...config import get_settings
from ...data.models import RecordingSession
from ...logging import get_logger
from ...utils.timing import parse_instant, to_iso
from .base import DirectoryError, SegmentIndex, SessionDirectory

LOGGER = get_logger(__name__)

FEED_STREAMS_QUERY = """
query FeedStreams($feedId: String!, $playlistTimestamp: String!) {
  feedStreams(feedId: $feedId, filter: {playlistTimestamp: {eq: $playlistTimestamp}}) {
    results {
      startTime
      endTime
      duration
      bucket
      bucketRegion
      cloudfrontUrl
      playlistM3u8Path
      playlistPath
      playlistTimestamp
      feedId
    }
  }
}
"""

FEED_SEGMENTS_QUERY = """
query FeedSegments($feedId: String!, $startTime: DateTime!, $endTime: DateTime!, $limit: Int) {
  feedSegments(
    feedId: $feedId,
    filter: {endTime: {gte: $startTime}, startTime: {lte: $endTime}},
    limit: $limit
  ) {
    results {
      playlistTimestamp
      startTime
      endTime
    }
  }
}
"""


def session_from_payload(payload: Mapping[str, Any], feed_id: str) -> Optional[RecordingSession]:
    """Build a session from a ``feedStreams`` result; incomplete records yield ``None``."""

    playlist_timestamp = payload.get("playlistTimestamp")
    start_time = payload.get("startTime")
    if not playlist_timestamp or not start_time:
        return None
    try:
        start = parse_instant(start_time)
        end = parse_instant(payload["endTime"]) if payload.get("endTime") else None
        duration = float(payload["duration"]) if payload.get("duration") is not None else None
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring stream %s with unreadable times", playlist_timestamp)
        return None
    return RecordingSession(
        playlist_timestamp=str(playlist_timestamp),
        feed_id=str(payload.get("feedId") or feed_id),
        start_time=start,
        end_time=end,
        duration=duration,
        bucket=payload.get("bucket") or "",
        bucket_region=payload.get("bucketRegion") or "",
        playlist_m3u8_path=payload.get("playlistM3u8Path") or "",
        cloudfront_url=payload.get("cloudfrontUrl"),
    )


class GraphQLDirectory(SessionDirectory, SegmentIndex):
    """Session directory and segment index backed by the live GraphQL API."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        segment_limit: int = 1000,
    ) -> None:
        settings = get_settings()
        self.endpoint = endpoint or settings.graphql_endpoint
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.segment_limit = segment_limit
        self._client = client

    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        body = {"query": query, "variables": variables}
        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, json=body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=body)
            response.raise_for_status()
            payload = response.json()
        except (httpx.RequestError, httpx.HTTPStatusError) as exc:
            raise DirectoryError(f"GraphQL request to {self.endpoint} failed: {exc}") from exc
        except ValueError as exc:
            raise DirectoryError(f"GraphQL response from {self.endpoint} is not JSON") from exc

        if not isinstance(payload, dict):
            raise DirectoryError(f"Unexpected GraphQL payload from {self.endpoint}")
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise DirectoryError(f"GraphQL errors: {messages}")
        return payload.get("data") or {}

    async def lookup(self, feed_id: str, playlist_timestamp: str) -> List[RecordingSession]:
        data = await self._execute(
            FEED_STREAMS_QUERY,
            {"feedId": feed_id, "playlistTimestamp": playlist_timestamp},
        )
        results = (data.get("feedStreams") or {}).get("results") or []
        sessions = [session_from_payload(item, feed_id) for item in results]
        return [session for session in sessions if session is not None]

    async def playlist_timestamps(self, feed_id: str, start: datetime, end: datetime) -> List[str]:
        data = await self._execute(
            FEED_SEGMENTS_QUERY,
            {
                "feedId": feed_id,
                "startTime": to_iso(start),
                "endTime": to_iso(end),
                "limit": self.segment_limit,
            },
        )
        results = (data.get("feedSegments") or {}).get("results") or []
        timestamps = [str(item["playlistTimestamp"]) for item in results if item.get("playlistTimestamp")]
        LOGGER.debug("Feed %s has %d segments in window", feed_id, len(timestamps))
        return timestamps


__all__ = ["FEED_SEGMENTS_QUERY", "FEED_STREAMS_QUERY", "GraphQLDirectory", "session_from_payload"]
