from datetime import datetime, timedelta, timezone

import pytest

from hydroclip.core.audio.manifest import advertised_duration, parse_manifest

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_segments_accumulate_absolute_start_times() -> None:
    text = "#EXTM3U\n#EXTINF:10.0,\nseg0.ts\n#EXTINF:10.0,\nseg1.ts\n#EXTINF:5.5,\nseg2.ts\n"

    segments = parse_manifest(text, START, session_id="1714564800")

    assert [segment.url for segment in segments] == ["seg0.ts", "seg1.ts", "seg2.ts"]
    assert [segment.absolute_start_time for segment in segments] == [
        START,
        START + timedelta(seconds=10),
        START + timedelta(seconds=20),
    ]
    assert segments[-1].absolute_end_time == START + timedelta(seconds=25.5)
    assert [segment.sequence_index for segment in segments] == [0, 1, 2]
    assert {segment.session_id for segment in segments} == {"1714564800"}


def test_malformed_entries_are_skipped() -> None:
    text = "\n".join(
        [
            "#EXTM3U",
            "#EXT-X-TARGETDURATION:10",
            "orphan.ts",
            "#EXTINF:abc,",
            "broken.ts",
            "#EXTINF:10,",
            "#EXTINF:4,",
            "seg-a.ts",
            "#EXTINF:6,",
            "seg-b.ts",
            "#EXTINF:3,",
        ]
    )

    segments = parse_manifest(text, START)

    assert [(segment.url, segment.duration_seconds) for segment in segments] == [("seg-a.ts", 4.0), ("seg-b.ts", 6.0)]
    assert segments[1].absolute_start_time == START + timedelta(seconds=4)
    assert segments[1].sequence_index == 1


def test_empty_manifest_yields_no_segments() -> None:
    assert parse_manifest("#EXTM3U\n", START) == []
    assert parse_manifest("", START) == []


def test_relative_uris_are_resolved_against_base_url() -> None:
    base = "https://audio-bucket.s3.us-west-2.amazonaws.com/rpi_orcasound_lab/hls/1714564800/"
    text = "#EXTINF:10,\nlive000.ts\n#EXTINF:10,\nhttps://cdn.example.org/live001.ts\n"

    segments = parse_manifest(text, START, base_url=base)

    assert segments[0].url == base + "live000.ts"
    assert segments[1].url == "https://cdn.example.org/live001.ts"


def test_naive_session_start_is_treated_as_utc() -> None:
    segments = parse_manifest("#EXTINF:10,\nseg.ts\n", START.replace(tzinfo=None))

    assert segments[0].absolute_start_time == START


def test_written_playlist_parses_back_to_same_durations() -> None:
    durations = [10.0, 10.005, 9.995, 2.5, 0.1]
    text = "#EXTM3U\n" + "".join(f"#EXTINF:{value},\nlive{index:03d}.ts\n" for index, value in enumerate(durations))

    segments = parse_manifest(text, START)

    assert [segment.duration_seconds for segment in segments] == pytest.approx(durations)
    total = (segments[-1].absolute_end_time - START).total_seconds()
    assert total == pytest.approx(sum(durations), abs=1e-3)
    assert advertised_duration(text) == pytest.approx(sum(durations))
