"""Sequential batch processing of selected subtitle tracks.

One worker runs the tasks strictly in the order they were selected:
classification and naming happen up front in :meth:`BatchOrchestrator.plan`,
then :meth:`BatchOrchestrator.run` extracts (and converts) one task at a time.
A task-level error fails only its own task.  Everything the display needs is
emitted as :class:`~subtitle_forge.events.Event` records.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from . import languages
from .classifier import CodecFamily, codec_family, classify, native_extension
from .config import ForgeConfig
from .conversion import (
    ConversionDriver,
    MarkupConverter,
    PgsOcrConverter,
    VobSubOcrConverter,
)
from .errors import (
    CancelledError,
    FileOperationError,
    InvalidTransitionError,
    TaskError,
    UnexpectedTaskError,
    truncate_output,
)
from .events import Event, EventKind, EventSink, null_sink
from .extraction import extract_track
from .models import BatchRun, ContainerTrack, ExtractionTask, Strategy, TaskState
from .naming import NameDeriver, container_base_name
from .progress import ElapsedTicker, ProgressParser, ProgressUpdate, format_duration

DEFAULT_OCR_LANGUAGE = "eng"
TICK_INTERVAL = 0.5


class BatchOrchestrator:
    """Owns a :class:`BatchRun` and drives every task through its states."""

    def __init__(
        self,
        config: Optional[ForgeConfig] = None,
        sink: EventSink = null_sink,
        tick_interval: float = TICK_INTERVAL,
    ) -> None:
        self.config = config or ForgeConfig()
        self.sink = sink
        self.tick_interval = tick_interval
        self.cancel_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        container: Union[str, Path],
        tracks: Sequence[ContainerTrack],
        output_dir: Union[str, Path, None] = None,
        convert: Optional[bool] = None,
        selection: Optional[Sequence[int]] = None,
        convert_tracks: Optional[Mapping[int, bool]] = None,
        ocr_languages: Optional[Mapping[int, str]] = None,
    ) -> BatchRun:
        """Build the tasks for the selected subtitle tracks.

        Args:
            container: Path of the inspected MKV file.
            tracks: Tracks returned by the inspector; non-subtitle tracks are ignored.
            output_dir: Destination directory (default: next to the container).
            convert: Opt-in to OCR/markup conversion for every track.
            selection: Track ids in the order the user selected them (default: all).
            convert_tracks: Per-track override of *convert*, keyed by track id.
            ocr_languages: Per-track OCR language override, keyed by track id.
        """
        container = Path(container)
        convert = self.config.convert if convert is None else convert
        output_dir = Path(output_dir or self.config.output_dir or container.parent)
        convert_tracks = convert_tracks or {}
        ocr_languages = ocr_languages or {}

        subtitles = {track.id: track for track in tracks if track.is_subtitle}
        if selection is None:
            selected = list(subtitles.values())
        else:
            missing = [track_id for track_id in selection if track_id not in subtitles]
            if missing:
                raise ValueError(
                    f"Not subtitle track id(s) in {container.name}: "
                    f"{', '.join(str(m) for m in missing)}"
                )
            selected = [subtitles[track_id] for track_id in dict.fromkeys(selection)]

        deriver = NameDeriver(container_base_name(container))
        run = BatchRun(container=container)
        for track in selected:
            opted_in = convert_tracks.get(track.id, convert)
            strategy, extension = classify(track, convert=opted_in)
            final_path = output_dir / deriver.name_for(track, extension)
            if strategy is Strategy.PASS_THROUGH:
                intermediate = final_path
            else:
                intermediate = output_dir / deriver.name_for(track, native_extension(track))
            run.tasks.append(ExtractionTask(
                track=track,
                strategy=strategy,
                intermediate_path=intermediate,
                final_path=final_path,
                language=self._ocr_language(track, ocr_languages.get(track.id)),
            ))
        return run

    def _ocr_language(self, track: ContainerTrack, override: Optional[str]) -> str:
        if override:
            return languages.normalize(override)
        if self.config.ocr_language:
            return languages.normalize(self.config.ocr_language)
        if track.language != languages.UNDETERMINED:
            return track.language
        return DEFAULT_OCR_LANGUAGE

    # ------------------------------------------------------------------
    # Converters
    # ------------------------------------------------------------------

    def converter_for(self, task: ExtractionTask) -> ConversionDriver:
        timeout = self.config.converter_timeout
        family = codec_family(task.track)
        if family is CodecFamily.PGS:
            return PgsOcrConverter(
                self.config.pgs_script, self.config.deno, self.config.tessdata_dir, timeout
            )
        if family is CodecFamily.VOBSUB:
            return VobSubOcrConverter(self.config.vobsub2srt, timeout)
        if family is CodecFamily.MARKUP:
            return MarkupConverter(self.config.ffmpeg, timeout)
        raise ValueError(f"No converter for codec {task.track.codec_id or task.track.codec!r}")

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation; the task in progress finishes first."""
        self.cancel_event.set()

    def _emit(self, task_id: Optional[int], kind: EventKind, **payload) -> None:
        self.sink(Event(task_id, kind, payload))

    def _advance(self, task: ExtractionTask, state: TaskState) -> None:
        task.advance(state)
        self._emit(task.task_id, EventKind.STATE_CHANGED, state=state.value)

    def run(self, run: BatchRun, tasks: Optional[Iterable[ExtractionTask]] = None) -> Iterator[Tuple[ExtractionTask, TaskState]]:
        """Process tasks in order, yielding ``(task, final_state)`` after each."""
        tasks = list(run.tasks if tasks is None else tasks)
        run.started_at = datetime.now()
        self._emit(None, EventKind.BATCH_STARTED, total=run.total, container=str(run.container))

        for index, task in enumerate(tasks, start=1):
            if self.cancel_event.is_set():
                task.fail(CancelledError("Batch cancelled before this track started"))
            else:
                self._emit(
                    task.task_id, EventKind.TASK_STARTED,
                    index=index, total=len(tasks), track=task.track.describe(),
                    strategy=task.strategy.value,
                )
                self._process(task, run.container)

            run.completed += 1
            self._emit(
                task.task_id, EventKind.TASK_FINISHED,
                state=task.state.value, completed=run.completed, total=run.total,
                error=task.error_kind, message=str(task.error or ""),
            )
            yield task, task.state

        run.finished_at = datetime.now()
        self._emit(
            None, EventKind.BATCH_FINISHED,
            completed=run.completed, succeeded=len(run.succeeded), failed=len(run.failed),
        )

    def run_all(self, run: BatchRun, tasks: Optional[Iterable[ExtractionTask]] = None) -> BatchRun:
        for _ in self.run(run, tasks):
            pass
        return run

    def run_in_background(
        self, run: BatchRun, tasks: Optional[Iterable[ExtractionTask]] = None
    ) -> threading.Thread:
        """Run the batch on the single worker thread."""
        if self._worker is not None and self._worker.is_alive():
            raise RuntimeError("A batch is already running")
        self._worker = threading.Thread(
            target=self.run_all, args=(run, tasks), name="subtitle-forge-batch", daemon=True
        )
        self._worker.start()
        return self._worker

    def _process(self, task: ExtractionTask, container: Path) -> None:
        track = task.track
        try:
            self._advance(task, TaskState.EXTRACTING)
            self._emit(task.task_id, EventKind.COMMAND, target=str(task.intermediate_path))
            task.output = extract_track(
                container, track.id, task.intermediate_path,
                mkvextract=self.config.mkvextract,
                retries=self.config.retries,
                set_permissions=task.strategy is Strategy.PASS_THROUGH,
            )
            if task.needs_conversion:
                self._advance(task, TaskState.CONVERTING)
                self._convert(task)
            self._advance(task, TaskState.DONE)
            logging.debug(f"  Track {track.id} done: {task.final_path}")
        except OSError as exc:
            self._fail(task, FileOperationError(f"{type(exc).__name__}: {exc}"))
        except TaskError as exc:
            self._fail(task, exc)
        except InvalidTransitionError:
            raise
        except Exception as exc:
            logging.debug(f"  Track {track.id}: unexpected error", exc_info=True)
            self._fail(task, UnexpectedTaskError(f"{type(exc).__name__}: {exc}"))

    def _fail(self, task: ExtractionTask, exc: TaskError) -> None:
        task.fail(exc)
        self._emit(task.task_id, EventKind.STATE_CHANGED, state=task.state.value)
        if task.output:
            self._emit(
                task.task_id, EventKind.OUTPUT,
                text=truncate_output(task.output, task.log_path),
            )
        logging.debug(f"  Track {task.task_id} failed: {exc}")

    def _convert(self, task: ExtractionTask) -> None:
        converter = self.converter_for(task)
        parser = ProgressParser()

        def on_progress(update: ProgressUpdate) -> None:
            if update.status is not None:
                self._emit(task.task_id, EventKind.STATUS, status=update.status)
            else:
                self._emit(
                    task.task_id, EventKind.PROGRESS,
                    current=update.current, total=update.total, fraction=update.fraction,
                )

        def on_tick(elapsed: float) -> None:
            self._emit(
                task.task_id, EventKind.TICK,
                elapsed=format_duration(elapsed), remaining=format_duration(parser.eta()),
                fraction=parser.fraction,
            )

        with ElapsedTicker(on_tick, self.tick_interval):
            result = converter.convert(
                task.intermediate_path, task.final_path, task.language,
                parser=parser, on_progress=on_progress,
            )
        task.output = result.output
        task.log_path = result.log_path

