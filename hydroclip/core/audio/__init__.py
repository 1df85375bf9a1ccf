"""Segment parsing, window selection and transcoding."""

from .manifest import parse_manifest
from .selector import covered_seconds, select_segments
from .transcoder import PassthroughTranscoder, Transcoder

__all__ = ["PassthroughTranscoder", "Transcoder", "covered_seconds", "parse_manifest", "select_segments"]
