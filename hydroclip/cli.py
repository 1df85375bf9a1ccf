"""Typer CLI entry point for hydroclip."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import (
    EnvironmentSettingError,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.factory import TranscoderConfigurationError, create_transcoder
from .core.clustering.engine import SortOrder, build_candidates
from .core.clustering.filters import ALL, DetectionFilter
from .core.errors import ClipAssemblyError
from .core.pipeline.control import AssemblyControl
from .core.pipeline.orchestrator import AssemblyRequest, ConcatenationOrchestrator
from .data.ingest import load_dataset
from .data.models import Candidate, ClipAssemblyResult
from .logging import configure_logging, get_logger
from .services.directory.graphql import GraphQLDirectory

app = typer.Typer(help="Cluster hydrophone detections and assemble audio clips")
LOGGER = get_logger(__name__)


def _load_candidates(
    dataset: Path,
    window_minutes: Optional[float],
    order: str,
    minimum: Optional[int],
    detection_filter: Optional[DetectionFilter] = None,
) -> List[Candidate]:
    settings = get_settings()
    try:
        payload = json.loads(dataset.read_text())
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read dataset {dataset}: {exc}") from exc
    if isinstance(payload, list):
        payload = {"detections": payload}

    detections = load_dataset(payload)["detections"]
    if detection_filter is not None:
        detections = detection_filter.apply(detections)
    return build_candidates(
        detections,
        window_minutes if window_minutes is not None else settings.window_minutes,
        order,
        minimum if minimum is not None else settings.minimum_detections,
        padding_seconds=settings.candidate_padding_seconds,
    )


def _output_path(result: ClipAssemblyResult, output: Optional[Path], passthrough: bool) -> Path:
    if output is not None:
        return output
    suffix = "ts" if passthrough else "mp3"
    stamp = f"{result.start_time:%Y%m%dT%H%M%S}_{result.end_time:%Y%m%dT%H%M%S}"
    return get_settings().clips_dir / f"{result.feed_id}_{stamp}.{suffix}"


async def _assemble(request: AssemblyRequest, transcoder_name: Optional[str]) -> Optional[ClipAssemblyResult]:
    try:
        transcoder = create_transcoder(transcoder_name)
    except TranscoderConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    directory = GraphQLDirectory()
    orchestrator = ConcatenationOrchestrator(directory, directory, transcoder)
    control = AssemblyControl()
    try:
        return await orchestrator.assemble(request, control)
    finally:
        await orchestrator.close()


def _run_clip(request: AssemblyRequest, output: Optional[Path], transcoder_name: Optional[str]) -> None:
    try:
        result = asyncio.run(_assemble(request, transcoder_name))
    except ClipAssemblyError as exc:
        typer.echo(exc.user_message, err=True)
        LOGGER.debug("Assembly error: %s", exc)
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        typer.echo("Cancelled", err=True)
        raise typer.Exit(code=130)

    if result is None:
        typer.echo("Clip assembly did not run", err=True)
        raise typer.Exit(code=1)

    passthrough = (transcoder_name or get_settings().transcoder_backend).lower() in {"passthrough", "copy", "dummy"}
    path = _output_path(result, output, passthrough)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.artifact)
    typer.echo(f"Clip saved to {path}")
    typer.echo(f"Duration: {result.duration_label} ({len(result.ordered_segments)} segments)")
    if result.dropped_seconds:
        typer.echo(f"Missing audio: {result.dropped_seconds}s")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    configure_logging(logging.DEBUG if verbose else logging.INFO, force=verbose)


@app.command()
def candidates(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with feeds and detections"),
    window_minutes: Optional[float] = typer.Option(None, help="Maximum gap between grouped detections"),
    order: Optional[SortOrder] = typer.Option(None, help="desc, asc or reports; defaults to the sort_order setting"),
    minimum: Optional[int] = typer.Option(None, help="Minimum detections per candidate"),
    hydrophone: str = typer.Option(ALL, help="Only this hydrophone"),
    category: str = typer.Option(ALL, help="Category label, 'whale' or 'all'"),
    search: str = typer.Option("", help="Case-insensitive text search"),
    limit: Optional[int] = typer.Option(None, help="Print at most this many candidates"),
) -> None:
    """List candidate incidents found in a detections dataset."""

    detection_filter = DetectionFilter(hydrophone=hydrophone, category=category, search=search)
    order_name = order.value if order is not None else get_settings().sort_order
    found = _load_candidates(dataset, window_minutes, order_name, minimum, detection_filter)
    if limit is not None:
        found = found[:limit]
    for candidate in found:
        typer.echo(f"{candidate.id}\t{candidate.hydrophone_id}\t{candidate.summary}")
        if candidate.description:
            typer.echo(f"    {candidate.description}")
    typer.echo(f"{len(found)} candidates")


@app.command()
def clip(
    feed_id: str = typer.Argument(..., help="Feed identifier"),
    start: str = typer.Argument(..., help="Window start (ISO-8601)"),
    end: str = typer.Argument(..., help="Window end (ISO-8601)"),
    output: Optional[Path] = typer.Option(None, help="Destination file"),
    transcoder: Optional[str] = typer.Option(None, help="ffmpeg or passthrough"),
) -> None:
    """Assemble the audio recorded by a feed between two instants."""

    try:
        request = AssemblyRequest.create(feed_id, start, end)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if request.end_time <= request.start_time:
        raise typer.BadParameter("end must be after start")
    _run_clip(request, output, transcoder)


@app.command("candidate-clip")
def candidate_clip(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False),
    candidate_id: str = typer.Argument(..., help="Candidate id as printed by 'candidates'"),
    window_minutes: Optional[float] = typer.Option(None),
    hydrophone: str = typer.Option(ALL, help="Same filter as used with 'candidates'"),
    category: str = typer.Option(ALL, help="Same filter as used with 'candidates'"),
    search: str = typer.Option("", help="Same filter as used with 'candidates'"),
    output: Optional[Path] = typer.Option(None),
    transcoder: Optional[str] = typer.Option(None),
) -> None:
    """Assemble the audio for one candidate incident.

    Candidate ids depend on which detections were clustered, so pass the
    filters that were given to 'candidates' when the id was listed.
    """

    detection_filter = DetectionFilter(hydrophone=hydrophone, category=category, search=search)
    found = {
        item.id: item
        for item in _load_candidates(dataset, window_minutes, SortOrder.DESC.value, 0, detection_filter)
    }
    candidate = found.get(candidate_id)
    if candidate is None:
        raise typer.BadParameter(f"Unknown candidate: {candidate_id}")
    if not candidate.feed_id:
        raise typer.BadParameter(f"Candidate {candidate_id} is not linked to a feed")
    request = AssemblyRequest(candidate.feed_id, candidate.start_timestamp, candidate.end_timestamp)
    _run_clip(request, output, transcoder)


@app.command()
def settings() -> None:
    """Show configuration values and the variables that override them."""

    for entry in list_environment_settings():
        marker = " (overridden)" if entry.overridden else ""
        typer.echo(f"{entry.env_name}={entry.value}{marker}")


@app.command("set")
def set_setting(field: str, value: str) -> None:
    """Persist a configuration override to .env."""

    try:
        update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} updated")


@app.command("unset")
def unset_setting(field: str) -> None:
    """Remove a configuration override from .env."""

    try:
        clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} reset")


if __name__ == "__main__":  # pragma: no cover
    app()
