"""Transcoder abstractions."""

from __future__ import annotations

import abc
from typing import Dict, Sequence

from ..errors import TranscodeError


class Transcoder(abc.ABC):
    """Exclusive, reusable worker that stitches segment payloads into one artifact.

    Callers write every input, call :meth:`concatenate` once and must call
    :meth:`reset` before the worker is reused for another clip.
    """

    @abc.abstractmethod
    def write_input(self, name: str, data: bytes) -> None:
        """Stage ``data`` under ``name`` for the next concatenation."""

    @abc.abstractmethod
    def concatenate(self, ordered_names: Sequence[str]) -> bytes:
        """Join the staged inputs in the given order and return the encoded output."""

    @abc.abstractmethod
    def reset(self) -> None:
        """Discard every staged input and intermediate file."""

    def close(self) -> None:
        """Release resources held by the worker."""

        self.reset()


def check_input_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in {".", ".."}:
        raise TranscodeError(f"Invalid transcoder input name: {name!r}")
    return name


class PassthroughTranscoder(Transcoder):
    """Joins MPEG-TS payloads byte for byte without re-encoding."""

    def __init__(self) -> None:
        self._inputs: Dict[str, bytes] = {}

    @property
    def staged(self) -> Sequence[str]:
        return list(self._inputs)

    def write_input(self, name: str, data: bytes) -> None:
        self._inputs[check_input_name(name)] = bytes(data)

    def concatenate(self, ordered_names: Sequence[str]) -> bytes:
        missing = [name for name in ordered_names if name not in self._inputs]
        if missing:
            raise TranscodeError(f"Inputs were never written: {', '.join(missing)}")
        return b"".join(self._inputs[name] for name in ordered_names)

    def reset(self) -> None:
        self._inputs.clear()


__all__ = ["PassthroughTranscoder", "Transcoder", "check_input_name"]
