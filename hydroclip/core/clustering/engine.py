"""Group detections into candidate incidents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from ...data.models import (
    CATEGORY_ORDER,
    OUT_OF_RANGE,
    Bucket,
    Candidate,
    Detection,
    DetectionCategory,
)
from ...logging import get_logger
from ...utils.timing import shift_seconds, to_iso

LOGGER = get_logger(__name__)

CANDIDATE_PADDING_SECONDS = 15.0
DESCRIPTION_SEPARATOR = " • "


class SortOrder(str, Enum):
    DESC = "desc"
    ASC = "asc"
    REPORTS = "reports"


@dataclass
class _Cluster:
    hydrophone_id: str
    bucket: Bucket
    members: List[Detection] = field(default_factory=list)

    @property
    def last(self) -> Detection:
        return self.members[-1]


def _find_open_cluster(clusters: Sequence[_Cluster], hydrophone_id: str, bucket: Bucket) -> Optional[_Cluster]:
    for cluster in reversed(clusters):
        if cluster.hydrophone_id == hydrophone_id and cluster.bucket is bucket:
            return cluster
    return None


def _summary(counts: Dict[DetectionCategory, int]) -> str:
    parts = []
    for category in CATEGORY_ORDER:
        count = counts.get(category, 0)
        if not count:
            continue
        label = category.label
        if category is DetectionCategory.SIGHTING and count > 1:
            label += "s"
        parts.append(f"{count} {label}")
    return DESCRIPTION_SEPARATOR.join(parts)


def _description(members: Iterable[Detection]) -> str:
    comments = (member.comment.strip() for member in members if member.comment)
    return DESCRIPTION_SEPARATOR.join(comment for comment in comments if comment)


def _to_candidate(cluster: _Cluster, padding_seconds: float, seen_ids: Dict[str, int]) -> Candidate:
    members = tuple(cluster.members)
    start = shift_seconds(members[0].timestamp, -padding_seconds)
    end = shift_seconds(members[-1].timestamp, padding_seconds)

    counts = {category: 0 for category in CATEGORY_ORDER}
    for member in members:
        counts[member.category] += 1

    candidate_id = f"{to_iso(start)}_{to_iso(end)}_{cluster.bucket.value}"
    # Identical windows on different hydrophones would otherwise share an id.
    occurrences = seen_ids.get(candidate_id, 0)
    seen_ids[candidate_id] = occurrences + 1
    if occurrences:
        candidate_id = f"{candidate_id}-{occurrences + 1}"

    return Candidate(
        id=candidate_id,
        members=members,
        start_timestamp=start,
        end_timestamp=end,
        hydrophone_id=cluster.hydrophone_id,
        bucket=cluster.bucket,
        feed_id=members[0].feed_id,
        counts=counts,
        summary=_summary(counts),
        description=_description(members),
    )


def cluster(
    detections: Iterable[Detection],
    window_minutes: float,
    *,
    padding_seconds: float = CANDIDATE_PADDING_SECONDS,
) -> List[Candidate]:
    """Cluster detections with a single greedy pass in timestamp order.

    Each detection joins the most recently opened cluster sharing its
    hydrophone and bucket when it lies within ``window_minutes`` of that
    cluster's last member; otherwise it opens a new cluster. Clusters are
    never merged or reopened afterwards. Candidates are returned in cluster
    creation order.
    """

    ordered = sorted(detections, key=lambda detection: detection.timestamp)
    window_seconds = window_minutes * 60.0
    clusters: List[_Cluster] = []

    for detection in ordered:
        bucket = detection.bucket
        target = _find_open_cluster(clusters, detection.hydrophone_id, bucket)
        if target is not None:
            gap = abs((detection.timestamp - target.last.timestamp).total_seconds())
            if gap <= window_seconds:
                target.members.append(detection)
                continue
        clusters.append(_Cluster(hydrophone_id=detection.hydrophone_id, bucket=bucket, members=[detection]))

    seen_ids: Dict[str, int] = {}
    candidates = [_to_candidate(item, padding_seconds, seen_ids) for item in clusters]
    LOGGER.debug("Clustered %d detections into %d candidates", len(ordered), len(candidates))
    return candidates


def sort_candidates(candidates: Iterable[Candidate], order: str | SortOrder) -> List[Candidate]:
    """Return a sorted copy; an unknown order yields an empty list."""

    try:
        order = SortOrder(order)
    except ValueError:
        LOGGER.warning("Unknown candidate sort order: %s", order)
        return []

    items = list(candidates)
    if order is SortOrder.DESC:
        return sorted(items, key=lambda candidate: candidate.first_timestamp, reverse=True)
    if order is SortOrder.ASC:
        return sorted(items, key=lambda candidate: candidate.first_timestamp)
    return sorted(items, key=lambda candidate: len(candidate.members), reverse=True)


def filter_by_minimum_count(candidates: Iterable[Candidate], minimum: int) -> List[Candidate]:
    return [candidate for candidate in candidates if candidate.total_count >= minimum]


def build_candidates(
    detections: Iterable[Detection],
    window_minutes: float,
    order: str | SortOrder = SortOrder.DESC,
    minimum_count: int = 0,
    *,
    padding_seconds: float = CANDIDATE_PADDING_SECONDS,
) -> List[Candidate]:
    """Cluster, sort and threshold detections that were placed on a hydrophone."""

    in_range = [detection for detection in detections if detection.hydrophone_id != OUT_OF_RANGE]
    created = cluster(in_range, window_minutes, padding_seconds=padding_seconds)
    return filter_by_minimum_count(sort_candidates(created, order), minimum_count)


__all__ = [
    "CANDIDATE_PADDING_SECONDS",
    "SortOrder",
    "build_candidates",
    "cluster",
    "filter_by_minimum_count",
    "sort_candidates",
]
