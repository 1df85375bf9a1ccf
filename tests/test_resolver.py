from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from hydroclip.core.pipeline.resolver import SegmentIndexResolver
from hydroclip.data.models import RecordingSession
from hydroclip.services.directory.base import DirectoryError, SessionDirectory

T = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _session(playlist_timestamp: str, offset_minutes: int) -> RecordingSession:
    return RecordingSession(
        playlist_timestamp=playlist_timestamp,
        feed_id="feed-1",
        start_time=T + timedelta(minutes=offset_minutes),
        bucket="audio-bucket",
        bucket_region="us-west-2",
        playlist_m3u8_path=f"/rpi_orcasound_lab/hls/{playlist_timestamp}/live.m3u8",
    )


class FakeDirectory(SessionDirectory):
    def __init__(self, sessions: Dict[str, List[RecordingSession]], failing: set[str] | None = None) -> None:
        self.sessions = sessions
        self.failing = failing or set()
        self.calls: List[str] = []

    async def lookup(self, feed_id: str, playlist_timestamp: str) -> List[RecordingSession]:
        self.calls.append(playlist_timestamp)
        if playlist_timestamp in self.failing:
            raise DirectoryError("directory unavailable")
        return self.sessions.get(playlist_timestamp, [])


@pytest.mark.asyncio
async def test_each_timestamp_is_looked_up_once() -> None:
    directory = FakeDirectory({"100": [_session("100", 0)], "200": [_session("200", 10)]})

    sessions = await SegmentIndexResolver(directory).resolve("feed-1", ["100", "100", "200", "100", ""])

    assert sorted(directory.calls) == ["100", "200"]
    assert [session.playlist_timestamp for session in sessions] == ["100", "200"]


@pytest.mark.asyncio
async def test_failed_lookups_are_skipped() -> None:
    directory = FakeDirectory({"100": [_session("100", 0)], "200": [_session("200", 10)]}, failing={"200"})

    sessions = await SegmentIndexResolver(directory).resolve("feed-1", ["100", "200"])

    assert [session.playlist_timestamp for session in sessions] == ["100"]


@pytest.mark.asyncio
async def test_sessions_are_sorted_by_start_time() -> None:
    directory = FakeDirectory(
        {
            "300": [_session("300", 30)],
            "100": [_session("100", 0)],
            "200": [_session("200", 10), _session("200", 11)],
        }
    )

    sessions = await SegmentIndexResolver(directory).resolve("feed-1", ["300", "200", "100"])

    assert [session.playlist_timestamp for session in sessions] == ["100", "200", "300"]
    assert sessions[1].start_time == T + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_empty_input_skips_directory() -> None:
    directory = FakeDirectory({})

    assert await SegmentIndexResolver(directory).resolve("feed-1", []) == []
    assert directory.calls == []
