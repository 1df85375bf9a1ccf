"""HLS media playlist parsing."""

from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import numpy as np

from ...data.models import SegmentDescriptor
from ...logging import get_logger
from ...utils.timing import ensure_utc, shift_seconds

LOGGER = get_logger(__name__)

EXTINF_TAG = "#EXTINF:"


def _parse_extinf(line: str) -> Optional[float]:
    value = line[len(EXTINF_TAG):].split(",", 1)[0].strip()
    try:
        duration = float(value)
    except ValueError:
        return None
    if not math.isfinite(duration) or duration < 0:
        return None
    return duration


def parse_manifest(
    text: str,
    session_start: datetime,
    *,
    session_id: str = "",
    base_url: Optional[str] = None,
) -> List[SegmentDescriptor]:
    """Parse a playlist into segments with absolute start times.

    Every ``#EXTINF:<seconds>,`` tag is paired with the next URI line.
    Unreadable durations, tags without a URI and URIs without a tag are
    skipped; they neither abort the parse nor advance the running clock.
    """

    entries: List[Tuple[str, float]] = []
    pending: Optional[float] = None
    pending_line = 0
    skipped = 0

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith(EXTINF_TAG):
            if pending is not None:
                skipped += 1
                LOGGER.debug("Segment tag on line %d of %s has no URI", pending_line, session_id or "manifest")
            pending = _parse_extinf(line)
            pending_line = number
            if pending is None:
                skipped += 1
                LOGGER.debug("Unreadable duration on line %d of %s", number, session_id or "manifest")
            continue
        if line.startswith("#"):
            continue
        if pending is None:
            skipped += 1
            continue
        url = urljoin(base_url, line) if base_url else line
        entries.append((url, pending))
        pending = None

    if skipped:
        LOGGER.warning("Skipped %d malformed entries in %s", skipped, session_id or "manifest")

    if not entries:
        return []

    durations = np.array([duration for _, duration in entries], dtype=np.float64)
    offsets = np.concatenate(([0.0], np.cumsum(durations)[:-1]))
    start = ensure_utc(session_start)
    return [
        SegmentDescriptor(
            session_id=session_id,
            sequence_index=index,
            url=url,
            duration_seconds=duration,
            absolute_start_time=shift_seconds(start, float(offsets[index])),
        )
        for index, (url, duration) in enumerate(entries)
    ]


def advertised_duration(text: str) -> float:
    """Sum of every readable ``#EXTINF`` duration in the playlist."""

    total = 0.0
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith(EXTINF_TAG):
            total += _parse_extinf(line) or 0.0
    return total


__all__ = ["EXTINF_TAG", "advertised_duration", "parse_manifest"]
