"""Transcoder implementation powered by the FFmpeg command line tool."""

from __future__ import annotations

import contextlib
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from ...logging import get_logger
from ..errors import TranscodeError
from .transcoder import Transcoder, check_input_name

LOGGER = get_logger(__name__)

CONCAT_LIST_NAME = "list.txt"
INTERMEDIATE_NAME = "temp.ts"
OUTPUT_NAME = "output.mp3"
_RESERVED_NAMES = {CONCAT_LIST_NAME, INTERMEDIATE_NAME, OUTPUT_NAME}


class FFmpegTranscoder(Transcoder):
    """Concatenates transport-stream segments and encodes the result to MP3.

    Inputs are staged in a private working directory. ``concatenate`` first
    joins them with the concat demuxer using stream copy, then encodes the
    intermediate stream at ``bitrate``.
    """

    def __init__(
        self,
        *,
        binary: str = "ffmpeg",
        bitrate: str = "192k",
        workdir: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._binary = binary
        self._bitrate = bitrate
        self._timeout = timeout
        self._owns_workdir = workdir is None
        self._workdir: Optional[Path] = Path(workdir) if workdir is not None else None

    @property
    def workdir(self) -> Path:
        if self._workdir is None:
            self._workdir = Path(tempfile.mkdtemp(prefix="hydroclip-"))
        self._workdir.mkdir(parents=True, exist_ok=True)
        return self._workdir

    def write_input(self, name: str, data: bytes) -> None:
        check_input_name(name)
        if name in _RESERVED_NAMES:
            raise TranscodeError(f"Input name {name!r} is reserved")
        (self.workdir / name).write_bytes(data)

    def concatenate(self, ordered_names: Sequence[str]) -> bytes:
        if not ordered_names:
            raise TranscodeError("Nothing to concatenate")

        executable = _resolve_binary(self._binary)
        if executable is None:
            raise TranscodeError(f"FFmpeg binary '{self._binary}' was not found on PATH")

        workdir = self.workdir
        missing = [name for name in ordered_names if not (workdir / name).exists()]
        if missing:
            raise TranscodeError(f"Inputs were never written: {', '.join(missing)}")

        listing = "\n".join(f"file '{name}'" for name in ordered_names)
        (workdir / CONCAT_LIST_NAME).write_text(listing + "\n")

        LOGGER.info("Concatenating %d segments with %s", len(ordered_names), executable)
        self._run(self._concat_command(executable))
        self._run(self._encode_command(executable))

        output = workdir / OUTPUT_NAME
        if not output.exists():
            raise TranscodeError("FFmpeg finished without producing output")
        return output.read_bytes()

    def reset(self) -> None:
        if self._workdir is None or not self._workdir.exists():
            return
        for entry in self._workdir.iterdir():
            with contextlib.suppress(FileNotFoundError):
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()

    def close(self) -> None:
        self.reset()
        if self._owns_workdir and self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _base_command(self, executable: str) -> List[str]:
        return [executable, "-hide_banner", "-loglevel", "error", "-nostats", "-y"]

    def _concat_command(self, executable: str) -> List[str]:
        command = self._base_command(executable)
        command.extend(["-f", "concat", "-safe", "0", "-i", CONCAT_LIST_NAME])
        command.extend(["-c", "copy", INTERMEDIATE_NAME])
        return command

    def _encode_command(self, executable: str) -> List[str]:
        command = self._base_command(executable)
        command.extend(["-i", INTERMEDIATE_NAME, "-vn", "-b:a", self._bitrate, OUTPUT_NAME])
        return command

    def _run(self, command: List[str]) -> None:
        try:
            completed = subprocess.run(  # noqa: S603 - required to spawn ffmpeg
                command,
                cwd=self.workdir,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise TranscodeError(f"Failed to launch FFmpeg binary '{command[0]}'") from exc
        except subprocess.TimeoutExpired as exc:
            raise TranscodeError(f"FFmpeg timed out after {self._timeout}s") from exc

        if completed.returncode != 0:
            stderr = (completed.stderr or b"").decode(errors="ignore").strip()
            tail = stderr.splitlines()[-1] if stderr else "no output"
            LOGGER.debug("ffmpeg stderr: %s", stderr)
            raise TranscodeError(f"FFmpeg exited with code {completed.returncode}: {tail}")


def _resolve_binary(binary: str) -> Optional[str]:
    """Return the absolute path to the requested FFmpeg binary if available."""

    if not binary:
        binary = "ffmpeg"

    found = shutil.which(binary)
    if found:
        return found

    candidate = Path(binary)
    if candidate.exists():
        return str(candidate)

    return None


__all__ = ["FFmpegTranscoder"]
