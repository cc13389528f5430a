"""Terminal presentation: track tables and the live batch progress display."""

import logging
from typing import Dict, Optional, Sequence

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from .events import Event, EventKind
from .models import BatchRun, ContainerTrack, ExtractionTask, TaskState


def _shorten(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def display_track_list(
    container: str,
    tracks: Sequence[ContainerTrack],
    run: Optional[BatchRun] = None,
    console: Optional[Console] = None,
) -> None:
    """Print a table of subtitle tracks and, when planned, what each would become."""
    console = console or Console()
    planned: Dict[int, ExtractionTask] = {task.task_id: task for task in run.tasks} if run else {}

    console.print(f"\n{'=' * 80}")
    console.print(f"File: {container}", markup=False)
    console.print(f"{'=' * 80}")

    subtitles = [track for track in tracks if track.is_subtitle]
    if not subtitles:
        console.print("No subtitle tracks found")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", width=4)
    table.add_column("#", width=4)
    table.add_column("Language", style="green", width=8)
    table.add_column("Codec", style="yellow", width=16)
    table.add_column("Forced", width=6)
    table.add_column("Default", width=7)
    table.add_column("Track Name", width=25)
    table.add_column("Strategy", width=14)
    table.add_column("Output")

    for track in subtitles:
        task = planned.get(track.id)
        table.add_row(
            str(track.id),
            str(track.number),
            track.language,
            track.codec_id or track.codec or "-",
            "Yes" if track.forced else "No",
            "Yes" if track.default else "No",
            _shorten(track.name or "-", 25),
            task.strategy.value if task else "-",
            task.final_path.name if task else "-",
        )
    console.print(table)


class ProgressDisplay:
    """Render orchestrator events, with a rich progress bar when enabled.

    Only the thread draining the update queue calls :meth:`handle`.
    """

    def __init__(self, run: BatchRun, use_rich: bool = True) -> None:
        self.run = run
        self.use_rich = use_rich
        self.tasks: Dict[int, ExtractionTask] = {task.task_id: task for task in run.tasks}
        self.progress: Optional[Progress] = None
        self.overall: Optional[TaskID] = None
        self.current: Optional[TaskID] = None
        self._labels: Dict[int, str] = {}

    def __enter__(self) -> "ProgressDisplay":
        if self.use_rich:
            self.progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("•"),
                TimeRemainingColumn(),
                TextColumn("{task.fields[timing]}"),
            )
            self.progress.start()
            self.overall = self.progress.add_task(
                "Extracting subtitles", total=self.run.total, timing=""
            )
        return self

    def __exit__(self, *exc_info) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle(self, event: Event) -> None:
        handler = getattr(self, f"_on_{event.kind.name.lower()}", None)
        if handler is not None:
            handler(event)

    def _on_task_started(self, event: Event) -> None:
        payload = event.payload
        label = f"[{payload['index']}/{payload['total']}] {payload['track']}"
        self._labels[event.task_id] = label
        logging.info(f"{label} ({payload['strategy']})")
        if self.progress is not None:
            self.current = self.progress.add_task(
                label, total=None, timing="", visible=False
            )

    def _on_state_changed(self, event: Event) -> None:
        if event.payload["state"] != TaskState.CONVERTING.value:
            return
        task = self.tasks.get(event.task_id)
        target = task.final_path.name if task else ""
        logging.info(f"  Converting to {target}")
        if self.progress is not None and self.current is not None:
            self.progress.update(self.current, visible=True)

    def _on_command(self, event: Event) -> None:
        logging.debug(f"  Extracting to {event.payload['target']}")

    def _on_status(self, event: Event) -> None:
        status = event.payload["status"]
        if self.progress is not None and self.current is not None:
            label = self._labels.get(event.task_id, "")
            self.progress.update(self.current, description=f"{label}: {status}")
        else:
            logging.info(f"  Status: {status}")

    def _on_progress(self, event: Event) -> None:
        current, total = event.payload["current"], event.payload["total"]
        if self.progress is not None and self.current is not None:
            self.progress.update(self.current, completed=current, total=total or None)
        else:
            logging.debug(f"  Frame {current}/{total}")

    def _on_tick(self, event: Event) -> None:
        timing = f"elapsed {event.payload['elapsed']}, remaining {event.payload['remaining']}"
        if self.progress is not None and self.current is not None:
            self.progress.update(self.current, timing=timing)
        else:
            logging.debug(f"  {timing}")

    def _on_output(self, event: Event) -> None:
        logging.debug(event.payload["text"])

    def _on_task_finished(self, event: Event) -> None:
        payload = event.payload
        if self.progress is not None:
            if self.current is not None:
                self.progress.remove_task(self.current)
                self.current = None
            self.progress.update(self.overall, completed=payload["completed"])

        task = self.tasks.get(event.task_id)
        if payload["state"] == TaskState.DONE.value:
            logging.info(f"  -> {task.final_path if task else ''}")
        else:
            logging.error(f"  Failed ({payload['error']}): {payload['message']}")
        if self.progress is None:
            logging.info(
                f"  Progress: {payload['completed']}/{payload['total']} tracks "
                f"({payload['completed'] / payload['total'] * 100:.1f}%)"
            )
