"""Data models used by hydroclip."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.timing import ensure_utc, format_duration, shift_seconds

OUT_OF_RANGE = "out of range"


class Bucket(str, Enum):
    WHALE = "whale"
    VESSEL = "vessel"
    OTHER = "other"


class DetectionCategory(str, Enum):
    """Closed set of detection categories reported by the event sources."""

    WHALE_HUMAN = "whale (human)"
    WHALE_AI = "whale (AI)"
    VESSEL = "vessel"
    OTHER = "other"
    SIGHTING = "sighting"

    @property
    def label(self) -> str:
        return self.value

    @property
    def bucket(self) -> Bucket:
        if self in (DetectionCategory.WHALE_HUMAN, DetectionCategory.WHALE_AI, DetectionCategory.SIGHTING):
            return Bucket.WHALE
        if self is DetectionCategory.VESSEL:
            return Bucket.VESSEL
        return Bucket.OTHER

    @classmethod
    def from_label(cls, label: Optional[str]) -> "DetectionCategory":
        """Map a free-form category string onto the enumeration; unknown labels become OTHER."""

        normalised = (label or "").strip().lower()
        for member in cls:
            if member.value.lower() == normalised or member.name.lower() == normalised:
                return member
        if normalised in {"whale", "whale_human"}:
            return cls.WHALE_HUMAN
        if normalised in {"sightings"}:
            return cls.SIGHTING
        return cls.OTHER


# Order used for summaries and count columns.
CATEGORY_ORDER: Tuple[DetectionCategory, ...] = (
    DetectionCategory.WHALE_HUMAN,
    DetectionCategory.WHALE_AI,
    DetectionCategory.VESSEL,
    DetectionCategory.OTHER,
    DetectionCategory.SIGHTING,
)


class Detection(BaseModel):
    model_config = ConfigDict(frozen=True)

    hydrophone_id: str
    category: DetectionCategory
    timestamp: datetime
    comment: Optional[str] = None
    feed_id: Optional[str] = None
    id: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value):
        if isinstance(value, DetectionCategory):
            return value
        return DetectionCategory.from_label(value)

    @field_validator("timestamp")
    @classmethod
    def _normalise_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def bucket(self) -> Bucket:
        return self.category.bucket


class Feed(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Candidate(BaseModel):
    """A group of same-hydrophone, same-bucket detections close together in time."""

    model_config = ConfigDict(frozen=True)

    id: str
    members: Tuple[Detection, ...]
    start_timestamp: datetime
    end_timestamp: datetime
    hydrophone_id: str
    bucket: Bucket
    feed_id: Optional[str] = None
    counts: Dict[DetectionCategory, int] = Field(default_factory=dict)
    summary: str = ""
    description: str = ""

    @property
    def total_count(self) -> int:
        return sum(self.counts.values())

    @property
    def first_timestamp(self) -> datetime:
        return self.members[0].timestamp

    def count(self, category: DetectionCategory) -> int:
        return self.counts.get(category, 0)


@dataclass
class RecordingSession:
    """One continuous recorder run for a feed, keyed by its playlist timestamp."""

    playlist_timestamp: str
    feed_id: str
    start_time: datetime
    bucket: str
    bucket_region: str
    playlist_m3u8_path: str
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    cloudfront_url: Optional[str] = None

    @property
    def manifest_url(self) -> str:
        return f"https://{self.bucket}.s3.{self.bucket_region}.amazonaws.com{self.playlist_m3u8_path}"

    @property
    def base_url(self) -> str:
        url = self.manifest_url
        return url[: url.rfind("/") + 1]

    @property
    def is_addressable(self) -> bool:
        return bool(self.bucket and self.bucket_region and self.playlist_m3u8_path)


@dataclass(frozen=True)
class SegmentDescriptor:
    session_id: str
    sequence_index: int
    url: str
    duration_seconds: float
    absolute_start_time: datetime

    @property
    def absolute_end_time(self) -> datetime:
        return shift_seconds(self.absolute_start_time, self.duration_seconds)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.session_id, self.sequence_index)

    @property
    def name(self) -> str:
        """Flat file name safe to hand to the transcoder."""

        safe_session = "".join(ch if ch.isalnum() else "_" for ch in self.session_id)
        return f"{safe_session}-{self.sequence_index}.ts"


@dataclass
class DroppedTime:
    """Window time without audio, split by cause."""

    session_gap_seconds: float = 0.0
    failed_session_seconds: float = 0.0
    failed_segment_seconds: float = 0.0
    failed_session_count: int = 0
    failed_segment_count: int = 0

    @property
    def total_seconds(self) -> float:
        return self.session_gap_seconds + self.failed_session_seconds + self.failed_segment_seconds


@dataclass
class ClipAssemblyResult:
    feed_id: str
    start_time: datetime
    end_time: datetime
    ordered_segments: List[SegmentDescriptor]
    total_duration_ms: float
    dropped_seconds: int
    artifact: bytes
    dropped: DroppedTime = field(default_factory=DroppedTime)

    @property
    def duration_label(self) -> str:
        return format_duration(self.total_duration_ms)


__all__ = [
    "Bucket",
    "CATEGORY_ORDER",
    "Candidate",
    "ClipAssemblyResult",
    "Detection",
    "DetectionCategory",
    "DroppedTime",
    "Feed",
    "OUT_OF_RANGE",
    "RecordingSession",
    "SegmentDescriptor",
]
