"""Window selection across one or more recording sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Sequence, Set, Tuple

import numpy as np

from ...data.models import SegmentDescriptor
from ...utils.timing import ensure_utc, seconds_between


def overlaps(segment: SegmentDescriptor, window_start: datetime, window_end: datetime) -> bool:
    """Half-open overlap: the segment ends at or after the start and begins before the end."""

    return segment.absolute_end_time >= window_start and segment.absolute_start_time < window_end


def select_segments(
    sessions: Iterable[Sequence[SegmentDescriptor]],
    window_start: datetime,
    window_end: datetime,
) -> List[SegmentDescriptor]:
    """Pick every segment overlapping the window and order them chronologically.

    ``sessions`` holds the parsed segment list of each session. Sessions are
    filtered independently and the union sorted by absolute start time, which
    interleaves restarted or overlapping sessions correctly.
    """

    window_start = ensure_utc(window_start)
    window_end = ensure_utc(window_end)
    seen: Set[Tuple[str, int]] = set()
    selected: List[SegmentDescriptor] = []
    for segments in sessions:
        for segment in segments:
            if segment.key in seen or not overlaps(segment, window_start, window_end):
                continue
            seen.add(segment.key)
            selected.append(segment)
    selected.sort(key=lambda segment: segment.absolute_start_time)
    return selected


def covered_seconds(
    segments: Iterable[SegmentDescriptor],
    window_start: datetime,
    window_end: datetime,
) -> float:
    """Seconds of the window covered by the union of the segments."""

    window_start = ensure_utc(window_start)
    window = max(seconds_between(window_start, ensure_utc(window_end)), 0.0)
    items = list(segments)
    if not items or window == 0.0:
        return 0.0

    starts = np.array([seconds_between(window_start, item.absolute_start_time) for item in items])
    ends = starts + np.array([item.duration_seconds for item in items])
    starts = np.clip(starts, 0.0, window)
    ends = np.clip(ends, 0.0, window)

    order = np.argsort(starts, kind="stable")
    starts, ends = starts[order], ends[order]
    reach = np.concatenate(([0.0], np.maximum.accumulate(ends)[:-1]))
    return float(np.sum(np.clip(ends - np.maximum(starts, reach), 0.0, None)))


def uncovered_seconds(
    segments: Iterable[SegmentDescriptor],
    window_start: datetime,
    window_end: datetime,
) -> float:
    window = max(seconds_between(ensure_utc(window_start), ensure_utc(window_end)), 0.0)
    return max(window - covered_seconds(segments, window_start, window_end), 0.0)


__all__ = ["covered_seconds", "overlaps", "select_segments", "uncovered_seconds"]
