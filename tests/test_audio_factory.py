from __future__ import annotations

import pytest

from hydroclip.config import Settings
from hydroclip.core.audio.factory import TranscoderConfigurationError, create_transcoder
from hydroclip.core.audio.ffmpeg_backend import FFmpegTranscoder
from hydroclip.core.audio.transcoder import PassthroughTranscoder
from hydroclip.core.errors import TranscodeError


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_create_transcoder_defaults_to_ffmpeg() -> None:
    transcoder = create_transcoder(settings=_settings(ffmpeg_binary="/opt/ffmpeg/bin/ffmpeg"))

    assert isinstance(transcoder, FFmpegTranscoder)


@pytest.mark.parametrize("name", ["passthrough", "COPY", " dummy "])
def test_create_transcoder_passthrough_aliases(name: str) -> None:
    assert isinstance(create_transcoder(name, settings=_settings()), PassthroughTranscoder)


def test_settings_backend_is_used_when_no_name_given() -> None:
    transcoder = create_transcoder(settings=_settings(transcoder_backend="passthrough"))

    assert isinstance(transcoder, PassthroughTranscoder)


def test_create_transcoder_rejects_unknown_backend() -> None:
    with pytest.raises(TranscoderConfigurationError) as excinfo:
        create_transcoder("sox", settings=_settings())

    assert "sox" in str(excinfo.value)


def test_passthrough_joins_in_requested_order() -> None:
    transcoder = PassthroughTranscoder()
    transcoder.write_input("b.ts", b"B")
    transcoder.write_input("a.ts", b"A")

    assert transcoder.concatenate(["a.ts", "b.ts", "a.ts"]) == b"ABA"

    transcoder.reset()
    assert transcoder.staged == []
    with pytest.raises(TranscodeError):
        transcoder.concatenate(["a.ts"])
