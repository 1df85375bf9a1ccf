from datetime import date, datetime, timezone

from hydroclip.core.clustering.filters import DetectionFilter
from hydroclip.data.models import Detection, DetectionCategory


def _detections() -> list[Detection]:
    return [
        Detection(
            hydrophone_id="Orcasound Lab",
            category=DetectionCategory.WHALE_HUMAN,
            timestamp=datetime(2024, 5, 1, 8, tzinfo=timezone.utc),
            comment="Clear S1 calls",
        ),
        Detection(
            hydrophone_id="Port Townsend",
            category=DetectionCategory.VESSEL,
            timestamp=datetime(2024, 5, 2, 9, tzinfo=timezone.utc),
        ),
        Detection(
            hydrophone_id="Orcasound Lab",
            category=DetectionCategory.SIGHTING,
            timestamp=datetime(2024, 5, 3, 10, tzinfo=timezone.utc),
            comment="Transient pod heading north",
        ),
        Detection(
            hydrophone_id="Bush Point",
            category=DetectionCategory.OTHER,
            timestamp=datetime(2024, 5, 1, 7, tzinfo=timezone.utc),
            comment="Unknown knocking",
        ),
    ]


def test_default_filter_keeps_everything() -> None:
    assert len(DetectionFilter().apply(_detections())) == 4


def test_filter_by_hydrophone_and_category() -> None:
    kept = DetectionFilter(hydrophone="Orcasound Lab", category="sighting").apply(_detections())

    assert [d.category for d in kept] == [DetectionCategory.SIGHTING]


def test_whale_category_matches_whole_bucket() -> None:
    kept = DetectionFilter(category="whale").apply(_detections())

    assert {d.category for d in kept} == {DetectionCategory.WHALE_HUMAN, DetectionCategory.SIGHTING}


def test_search_matches_comment_category_and_hydrophone() -> None:
    assert len(DetectionFilter(search="s1 CALLS").apply(_detections())) == 1
    assert len(DetectionFilter(search="vessel").apply(_detections())) == 1
    assert len(DetectionFilter(search="townsend").apply(_detections())) == 1


def test_date_bounds_are_inclusive_by_day() -> None:
    kept = DetectionFilter(start_date=date(2024, 5, 2), end_date=date(2024, 5, 2)).apply(_detections())

    assert [d.hydrophone_id for d in kept] == ["Port Townsend"]


def test_since_excludes_older_detections() -> None:
    kept = DetectionFilter(since=datetime(2024, 5, 2, tzinfo=timezone.utc)).apply(_detections())

    assert len(kept) == 2


def test_category_labels_match_case_insensitively() -> None:
    kept = DetectionFilter(category="OTHER").apply(_detections())

    assert [d.hydrophone_id for d in kept] == ["Bush Point"]


def test_unknown_category_matches_nothing() -> None:
    assert DetectionFilter(category="orca").apply(_detections()) == []
    assert DetectionFilter(category="vessels").apply(_detections()) == []
