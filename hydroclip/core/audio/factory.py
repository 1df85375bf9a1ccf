"""Factory helpers for constructing transcoder workers."""

from __future__ import annotations

from typing import Optional

from ...config import Settings, get_settings
from .ffmpeg_backend import FFmpegTranscoder
from .transcoder import PassthroughTranscoder, Transcoder


class TranscoderConfigurationError(ValueError):
    """Raised when an unknown transcoder backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "ffmpeg"
    return name.strip().lower()


def create_transcoder(name: Optional[str] = None, settings: Optional[Settings] = None) -> Transcoder:
    settings = settings or get_settings()
    backend = _normalise(name or settings.transcoder_backend)
    if backend == "ffmpeg":
        return FFmpegTranscoder(binary=settings.ffmpeg_binary, bitrate=settings.output_bitrate)
    if backend in {"passthrough", "copy", "dummy"}:
        return PassthroughTranscoder()
    raise TranscoderConfigurationError(f"Unknown transcoder backend: {name}")


__all__ = ["TranscoderConfigurationError", "create_transcoder"]
