"""Normalise raw event-source records into :class:`Detection` objects."""

from __future__ import annotations

import html
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from ..logging import get_logger
from ..utils.timing import parse_instant
from .models import OUT_OF_RANGE, Detection, DetectionCategory, Feed

LOGGER = get_logger(__name__)

# Half-width of the box drawn around each hydrophone when placing sightings.
SIGHTING_RADIUS_MILES = 3.0
_MILES_PER_DEGREE = 69.0

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


class IngestError(ValueError):
    """Raised when a raw record cannot be turned into a detection."""


def clean_comment(text: Optional[str]) -> Optional[str]:
    """Strip markup from free-text comments; blank results become ``None``."""

    if not text:
        return None
    stripped = _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", text))).strip()
    return stripped or None


def load_feeds(payload: Iterable[Mapping[str, Any]]) -> List[Feed]:
    feeds: List[Feed] = []
    for record in payload:
        lat_lng = record.get("latLng") or {}
        try:
            feeds.append(
                Feed(
                    id=str(record["id"]),
                    name=record["name"],
                    slug=record.get("slug") or "",
                    latitude=record.get("latitude", lat_lng.get("lat")),
                    longitude=record.get("longitude", lat_lng.get("lng")),
                )
            )
        except (KeyError, ValidationError) as exc:
            LOGGER.warning("Skipping malformed feed record %r: %s", record.get("id"), exc)
    return feeds


def category_for_audio(category: Optional[str], source: Optional[str]) -> DetectionCategory:
    """Machine-sourced detections are always AI whale reports; others keep their category."""

    if (source or "").upper() == "MACHINE":
        return DetectionCategory.WHALE_AI
    if (category or "").upper() == "WHALE":
        return DetectionCategory.WHALE_HUMAN
    return DetectionCategory.from_label(category)


def assign_hydrophone(latitude: float, longitude: float, feeds: Iterable[Feed]) -> Optional[Feed]:
    """Return the feed whose bounding box contains the point; later feeds win ties."""

    lat_delta = SIGHTING_RADIUS_MILES / _MILES_PER_DEGREE
    match: Optional[Feed] = None
    for feed in feeds:
        if feed.latitude is None or feed.longitude is None:
            continue
        lng_delta = SIGHTING_RADIUS_MILES / (_MILES_PER_DEGREE * math.cos(math.radians(feed.latitude)))
        in_lat = feed.latitude - lat_delta <= latitude <= feed.latitude + lat_delta
        in_lng = feed.longitude - lng_delta <= longitude <= feed.longitude + lng_delta
        if in_lat and in_lng:
            match = feed
    return match


def detection_from_record(record: Mapping[str, Any], feeds: Iterable[Feed]) -> Detection:
    """Convert an audio detection record (human or machine) into a :class:`Detection`."""

    feed_id = record.get("feedId")
    if feed_id is None:
        raise IngestError("audio detection is missing feedId")
    feed_id = str(feed_id)
    feed = next((item for item in feeds if item.id == feed_id), None)
    try:
        return Detection(
            id=str(record["id"]) if record.get("id") is not None else None,
            hydrophone_id=feed.name if feed else OUT_OF_RANGE,
            feed_id=feed_id,
            category=category_for_audio(record.get("category"), record.get("source")),
            timestamp=parse_instant(record["timestamp"]),
            comment=record.get("description"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise IngestError(f"invalid audio detection: {exc}") from exc


def sighting_from_record(record: Mapping[str, Any], feeds: Iterable[Feed]) -> Detection:
    """Convert a sighting report into a :class:`Detection` on the nearest hydrophone."""

    feeds = list(feeds)
    try:
        latitude = float(record["latitude"])
        longitude = float(record["longitude"])
        timestamp = parse_instant(record["created"])
    except (KeyError, TypeError, ValueError) as exc:
        raise IngestError(f"invalid sighting: {exc}") from exc

    feed = assign_hydrophone(latitude, longitude, feeds)
    return Detection(
        id=str(record["id"]) if record.get("id") is not None else None,
        hydrophone_id=feed.name if feed else OUT_OF_RANGE,
        feed_id=feed.id if feed else None,
        category=DetectionCategory.SIGHTING,
        timestamp=timestamp,
        comment=clean_comment(record.get("comments")),
    )


def _normalised_record(record: Mapping[str, Any]) -> Detection:
    feed_id = record.get("feed_id") or record.get("feedId")
    try:
        return Detection(
            id=str(record["id"]) if record.get("id") is not None else None,
            hydrophone_id=record.get("hydrophone_id") or record["hydrophone"],
            feed_id=str(feed_id) if feed_id is not None else None,
            category=record.get("category"),
            timestamp=parse_instant(record["timestamp"]),
            comment=record.get("comment"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise IngestError(f"invalid detection: {exc}") from exc


def load_detections(payload: Iterable[Mapping[str, Any]], feeds: Iterable[Feed] = ()) -> List[Detection]:
    """Load a mixed list of audio detections, sightings and pre-normalised detections.

    Records that cannot be parsed (missing fields, unreadable timestamps) are
    logged and skipped so one bad row never hides the rest of the dataset.
    """

    feeds = list(feeds)
    detections: List[Detection] = []
    skipped = 0
    for record in payload:
        try:
            if "hydrophone" in record or "hydrophone_id" in record:
                detections.append(_normalised_record(record))
            elif "latitude" in record and "created" in record:
                detections.append(sighting_from_record(record, feeds))
            else:
                detections.append(detection_from_record(record, feeds))
        except IngestError as exc:
            skipped += 1
            LOGGER.warning("Skipping record %r: %s", record.get("id"), exc)
    if skipped:
        LOGGER.info("Loaded %d detections (%d skipped)", len(detections), skipped)
    return detections


def load_dataset(payload: Mapping[str, Any]) -> Dict[str, list]:
    """Load ``{"feeds": [...], "detections": [...], "sightings": [...]}`` documents."""

    feeds = load_feeds(payload.get("feeds") or [])
    records = list(payload.get("detections") or []) + list(payload.get("sightings") or [])
    return {"feeds": feeds, "detections": load_detections(records, feeds)}


__all__ = [
    "IngestError",
    "SIGHTING_RADIUS_MILES",
    "assign_hydrophone",
    "category_for_audio",
    "clean_comment",
    "detection_from_record",
    "load_dataset",
    "load_detections",
    "load_feeds",
    "sighting_from_record",
]
