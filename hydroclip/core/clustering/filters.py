"""Detection filters applied before clustering."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from ...data.models import Bucket, Detection
from ...utils.timing import ensure_utc

ALL = "all"
WHALE_BUCKET = "whale"


class DetectionFilter(BaseModel):
    """User-facing filter over hydrophone, category, time range and text."""

    model_config = ConfigDict(frozen=True)

    hydrophone: str = ALL
    category: str = ALL
    since: Optional[datetime] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: str = ""

    def _category_matches(self, detection: Detection) -> bool:
        wanted = self.category.strip().lower()
        if wanted == ALL:
            return True
        if wanted == WHALE_BUCKET:
            return detection.bucket is Bucket.WHALE
        # Unknown labels match nothing rather than falling back to OTHER.
        return detection.category.value.lower() == wanted

    def _time_matches(self, detection: Detection) -> bool:
        if self.since is not None and detection.timestamp < ensure_utc(self.since):
            return False
        day = detection.timestamp.date()
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    def _search_matches(self, detection: Detection) -> bool:
        query = self.search.strip().lower()
        if not query:
            return True
        haystacks = (detection.comment or "", detection.category.label, detection.hydrophone_id)
        return any(query in text.lower() for text in haystacks)

    def matches(self, detection: Detection) -> bool:
        if self.hydrophone != ALL and detection.hydrophone_id != self.hydrophone:
            return False
        return self._category_matches(detection) and self._time_matches(detection) and self._search_matches(detection)

    def apply(self, detections: Iterable[Detection]) -> List[Detection]:
        return [detection for detection in detections if self.matches(detection)]


__all__ = ["ALL", "DetectionFilter", "WHALE_BUCKET"]
