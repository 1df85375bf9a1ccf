from datetime import datetime, timezone

import httpx
import pytest

from hydroclip.core.errors import AssemblyCancelled, ManifestFetchError, SegmentFetchError
from hydroclip.core.pipeline.control import AssemblyControl
from hydroclip.core.pipeline.fetcher import SegmentFetcher
from hydroclip.data.models import RecordingSession, SegmentDescriptor

T = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
BASE = "https://audio-bucket.s3.us-west-2.amazonaws.com/rpi_orcasound_lab/hls/1714564800/"


def _session() -> RecordingSession:
    return RecordingSession(
        playlist_timestamp="1714564800",
        feed_id="feed-1",
        start_time=T,
        bucket="audio-bucket",
        bucket_region="us-west-2",
        playlist_m3u8_path="/rpi_orcasound_lab/hls/1714564800/live.m3u8",
    )


def _segment(index: int) -> SegmentDescriptor:
    return SegmentDescriptor(
        session_id="1714564800",
        sequence_index=index,
        url=f"{BASE}live{index:03d}.ts",
        duration_seconds=10.0,
        absolute_start_time=T,
    )


def _handler(request: httpx.Request) -> httpx.Response:
    name = request.url.path.rsplit("/", 1)[-1]
    if name == "live.m3u8":
        return httpx.Response(500)
    if name == "live001.ts":
        return httpx.Response(404)
    if name == "live002.ts":
        return httpx.Response(200, content=b"")
    return httpx.Response(200, content=name.encode())


def test_session_manifest_url() -> None:
    assert _session().manifest_url == BASE + "live.m3u8"
    assert _session().base_url == BASE


@pytest.mark.asyncio
async def test_fetch_manifest_failure_raises_manifest_error() -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        fetcher = SegmentFetcher(client)
        with pytest.raises(ManifestFetchError) as excinfo:
            await fetcher.fetch_manifest(_session(), AssemblyControl())

    assert excinfo.value.session_id == "1714564800"


@pytest.mark.asyncio
async def test_fetch_segment_failures() -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        fetcher = SegmentFetcher(client)
        control = AssemblyControl()

        assert await fetcher.fetch_segment(_segment(0), control) == b"live000.ts"
        with pytest.raises(SegmentFetchError):
            await fetcher.fetch_segment(_segment(1), control)
        with pytest.raises(SegmentFetchError, match="empty payload"):
            await fetcher.fetch_segment(_segment(2), control)


@pytest.mark.asyncio
async def test_fetch_segments_keeps_order_and_reports_failures() -> None:
    segments = [_segment(index) for index in (3, 1, 0, 2)]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        outcome = await SegmentFetcher(client).fetch_segments(segments, AssemblyControl())

    assert [segment.sequence_index for segment in outcome.segments] == [3, 0]
    assert [payload for _, payload in outcome.fetched] == [b"live003.ts", b"live000.ts"]
    assert [segment.sequence_index for segment in outcome.failed] == [1, 2]


@pytest.mark.asyncio
async def test_cancelled_control_stops_fetching() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        return httpx.Response(200, content=b"data")

    control = AssemblyControl()
    control.request_cancel()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(AssemblyCancelled):
            await SegmentFetcher(client).fetch_segments([_segment(0)], control)

    assert calls == []
