"""Rich console output for mega-ingest: configuration panel, stages, transfer progress."""
import time
from typing import Any, Dict, Mapping, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import ArtifactKind, IngestionResult, PipelineStage, UploadRequest


TRANSFER_PERCENT_STEP = 10
_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")

console = Console()

_STAGE_LABELS = {
    PipelineStage.VALIDATING: "Validating request",
    PipelineStage.AUTHENTICATING: "Logging into MEGA",
    PipelineStage.PROVISIONING_FOLDER: "Resolving destination folder",
    PipelineStage.CONVERTING: "Converting",
    PipelineStage.ARCHIVING: "Archiving original",
    PipelineStage.UPLOADING: "Uploading original and final artifact",
    PipelineStage.COMPLETED: "Done",
}


def _progress_bytes(progress: Any) -> Tuple[int, int]:
    """
    (uploaded, total) from whatever megapy hands to progress callbacks.

    Accepts an object with uploaded_bytes/total_bytes or an (uploaded, total)
    pair; anything else reads as no progress.
    """
    uploaded = getattr(progress, "uploaded_bytes", None)
    total = getattr(progress, "total_bytes", None)
    if uploaded is None and isinstance(progress, (tuple, list)) and len(progress) > 1:
        uploaded, total = progress[0], progress[1]
    try:
        return int(uploaded or 0), int(total or 0)
    except (TypeError, ValueError):
        return 0, 0


def _format_size(num_bytes: int) -> str:
    size = float(max(num_bytes, 0))
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} {_SIZE_UNITS[-1]}"


def render_configuration_summary(settings: Mapping[str, Any]) -> None:
    """Print the key/value panel shown before an ingest starts."""
    grid = Table.grid(padding=(0, 2))
    grid.add_column(justify="right", style="bold cyan")
    grid.add_column()
    for name, value in settings.items():
        grid.add_row(name, "-" if value is None else str(value))
    console.print(Panel(grid, title="[bold green]mega-ingest[/bold green]", border_style="blue"))


class IngestProgressDisplay:
    """Listens to pipeline events and prints one request's progress."""

    def __init__(self):
        self._started_at: Optional[float] = None
        self._last_percent: Dict[ArtifactKind, int] = {}

    def on_stage(self, stage: PipelineStage, request: UploadRequest) -> None:
        if self._started_at is None:
            self._started_at = time.monotonic()
        label = _STAGE_LABELS.get(stage, stage.value)
        console.print(f"[cyan]>[/cyan] {label} [dim]{request.file_name}[/dim]")

    def on_transfer_progress(self, artifact: ArtifactKind, progress: Any) -> None:
        uploaded, total = _progress_bytes(progress)
        if total <= 0:
            return
        percent = uploaded * 100 // total
        last = self._last_percent.get(artifact, -TRANSFER_PERCENT_STEP)
        if percent >= 100 or percent - last >= TRANSFER_PERCENT_STEP:
            self._last_percent[artifact] = percent
            console.print(
                f"  {artifact.value:>8}: {percent:3d}% ({_format_size(uploaded)}/{_format_size(total)})"
            )

    def on_finish(self, result: IngestionResult) -> None:
        elapsed = time.monotonic() - self._started_at if self._started_at else 0.0

        if result.outcomes:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Artifact")
            table.add_column("Remote path")
            table.add_column("Status")
            for outcome in result.outcomes:
                style = "green" if outcome.success else "red"
                status = outcome.status.value if outcome.success else f"{outcome.status.value}: {outcome.error}"
                table.add_row(outcome.artifact.value, f"/{outcome.remote_path}", f"[{style}]{status}[/{style}]")
            console.print(table)

        if result.success:
            console.print(f"[green]Completed:[/green] {result.file_name} ({elapsed:.1f}s)")
            return
        console.print(
            f"[red]Failed at {result.stage.value}:[/red] {result.file_name} - {result.error}"
        )
