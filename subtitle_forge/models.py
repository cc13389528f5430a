"""Track, task and batch data model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from .errors import InvalidTransitionError, SubtitleForgeError


class TrackType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLES = "subtitles"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "TrackType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class Strategy(str, Enum):
    PASS_THROUGH = "pass-through"
    OCR_IMAGE_TO_TEXT = "ocr-image-to-text"
    MARKUP_TO_TEXT = "markup-to-text"


class TaskState(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    CONVERTING = "converting"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.DONE, TaskState.FAILED)


_TRANSITIONS: Dict[TaskState, FrozenSet[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.EXTRACTING, TaskState.FAILED}),
    TaskState.EXTRACTING: frozenset({TaskState.CONVERTING, TaskState.DONE, TaskState.FAILED}),
    TaskState.CONVERTING: frozenset({TaskState.DONE, TaskState.FAILED}),
    TaskState.DONE: frozenset(),
    TaskState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ContainerTrack:
    """One media track as reported by ``mkvmerge -J``."""

    id: int
    number: int
    type: TrackType
    codec_id: str = ""
    codec: str = ""
    language: str = "und"
    name: str = ""
    forced: bool = False
    default: bool = False

    @property
    def is_subtitle(self) -> bool:
        return self.type is TrackType.SUBTITLES

    def describe(self) -> str:
        name = f" {self.name}" if self.name else ""
        return f"Track {self.id}: {self.language} ({self.codec or self.codec_id}){name}"


@dataclass
class ExtractionTask:
    """Work item for one selected subtitle track.

    ``final_path`` is fixed when the task is planned; only ``state``,
    ``error``, ``output`` and ``log_path`` change while the batch runs, and
    ``state`` only moves forward.
    """

    track: ContainerTrack
    strategy: Strategy
    intermediate_path: Path
    final_path: Path
    language: str = "und"
    state: TaskState = TaskState.PENDING
    error: Optional[SubtitleForgeError] = None
    output: str = ""
    log_path: Optional[Path] = None

    def __setattr__(self, name: str, value) -> None:
        if name == "final_path" and "final_path" in self.__dict__:
            raise AttributeError("final_path is fixed once the task is planned")
        super().__setattr__(name, value)

    @property
    def task_id(self) -> int:
        return self.track.id

    @property
    def needs_conversion(self) -> bool:
        return self.strategy is not Strategy.PASS_THROUGH

    def advance(self, state: TaskState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Track {self.track.id}: cannot go from {self.state.value} to {state.value}"
            )
        self.state = state

    def fail(self, error: SubtitleForgeError) -> None:
        self.advance(TaskState.FAILED)
        self.error = error
        self.output = getattr(error, "output", "") or self.output
        self.log_path = getattr(error, "log_path", None) or self.log_path

    @property
    def error_kind(self) -> str:
        return type(self.error).__name__ if self.error else ""


@dataclass
class BatchRun:
    """Tasks for one "start extraction" action plus aggregate counters."""

    container: Path
    tasks: List[ExtractionTask] = field(default_factory=list)
    completed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.tasks else 1.0

    @property
    def succeeded(self) -> List[ExtractionTask]:
        return [t for t in self.tasks if t.state is TaskState.DONE]

    @property
    def failed(self) -> List[ExtractionTask]:
        return [t for t in self.tasks if t.state is TaskState.FAILED]
