from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from hydroclip.core.audio.selector import covered_seconds, select_segments, uncovered_seconds
from hydroclip.data.models import SegmentDescriptor

T = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _session(session_id: str, start_offset: float, count: int, duration: float = 10.0) -> List[SegmentDescriptor]:
    return [
        SegmentDescriptor(
            session_id=session_id,
            sequence_index=index,
            url=f"{session_id}/seg{index}.ts",
            duration_seconds=duration,
            absolute_start_time=T + timedelta(seconds=start_offset + index * duration),
        )
        for index in range(count)
    ]


def test_segments_overlapping_window_are_selected() -> None:
    segments = _session("s1", 0, 6)

    selected = select_segments([segments], T + timedelta(seconds=15), T + timedelta(seconds=35))

    assert [segment.sequence_index for segment in selected] == [1, 2, 3]


def test_segment_ending_at_window_start_is_included() -> None:
    segments = _session("s1", 0, 3)

    selected = select_segments([segments], T + timedelta(seconds=10), T + timedelta(seconds=20))

    assert [segment.sequence_index for segment in selected] == [0, 1]


def test_segment_starting_at_window_end_is_excluded() -> None:
    segments = _session("s1", 0, 3)

    selected = select_segments([segments], T, T + timedelta(seconds=20))

    assert [segment.sequence_index for segment in selected] == [0, 1]


def test_sessions_are_interleaved_by_start_time() -> None:
    later = _session("s2", 25, 2)
    earlier = _session("s1", 0, 3)

    selected = select_segments([later, earlier], T, T + timedelta(seconds=60))

    assert [(segment.session_id, segment.sequence_index) for segment in selected] == [
        ("s1", 0),
        ("s1", 1),
        ("s1", 2),
        ("s2", 0),
        ("s2", 1),
    ]
    starts = [segment.absolute_start_time for segment in selected]
    assert starts == sorted(starts)


def test_duplicate_segments_are_selected_once() -> None:
    segments = _session("s1", 0, 3)

    selected = select_segments([segments, segments], T, T + timedelta(seconds=30))

    assert len(selected) == 3


def test_widening_the_window_never_drops_segments() -> None:
    segments = _session("s1", 0, 12)
    narrow = select_segments([segments], T + timedelta(seconds=40), T + timedelta(seconds=60))
    wide = select_segments([segments], T + timedelta(seconds=20), T + timedelta(seconds=90))

    assert {segment.key for segment in narrow} <= {segment.key for segment in wide}


def test_empty_window_selects_nothing() -> None:
    segments = _session("s1", 0, 3)

    assert select_segments([segments], T + timedelta(seconds=15), T + timedelta(seconds=15)) == []


def test_covered_seconds_with_gap_and_overlap() -> None:
    first = _session("s1", 0, 2)
    overlapping = _session("s2", 15, 1)
    after_gap = _session("s3", 40, 1)
    segments = first + overlapping + after_gap

    covered = covered_seconds(segments, T, T + timedelta(seconds=60))

    assert covered == pytest.approx(35.0)
    assert uncovered_seconds(segments, T, T + timedelta(seconds=60)) == pytest.approx(25.0)


def test_covered_seconds_is_clipped_to_window() -> None:
    segments = _session("s1", 0, 3)

    assert covered_seconds(segments, T + timedelta(seconds=5), T + timedelta(seconds=25)) == pytest.approx(20.0)
    assert covered_seconds([], T, T + timedelta(seconds=10)) == 0.0
