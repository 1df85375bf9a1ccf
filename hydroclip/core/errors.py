"""Errors raised while assembling clips."""

from __future__ import annotations


class ClipAssemblyError(RuntimeError):
    """Base class for clip assembly failures."""

    user_message = "Failed to fetch or process audio segments."


class ManifestFetchError(ClipAssemblyError):
    """A session playlist could not be downloaded; the session is skipped."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"Manifest for session {session_id} unavailable: {reason}")
        self.session_id = session_id


class SegmentFetchError(ClipAssemblyError):
    """A segment payload could not be downloaded; the segment is skipped."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Segment {url} unavailable: {reason}")
        self.url = url


class NoSegmentsFoundError(ClipAssemblyError):
    user_message = "No audio available for this time window."


class TranscodeError(ClipAssemblyError):
    user_message = "Failed to process audio."


class AssemblyCancelled(Exception):
    """Raised at a suspension point once the request has been cancelled."""


__all__ = [
    "AssemblyCancelled",
    "ClipAssemblyError",
    "ManifestFetchError",
    "NoSegmentsFoundError",
    "SegmentFetchError",
    "TranscodeError",
]
