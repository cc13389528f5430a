"""Structured, append-only event records passed from the worker to the display.

The batch worker never touches presentation state.  It emits :class:`Event`
records into a sink, usually a :class:`QueueSink` wrapping the single update
queue the presentation layer drains on its own thread.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional


class EventKind(str, Enum):
    BATCH_STARTED = "batch-started"
    TASK_STARTED = "task-started"
    STATE_CHANGED = "state-changed"
    COMMAND = "command"
    STATUS = "status"
    PROGRESS = "progress"
    TICK = "tick"
    OUTPUT = "output"
    TASK_FINISHED = "task-finished"
    BATCH_FINISHED = "batch-finished"


@dataclass(frozen=True)
class Event:
    task_id: Optional[int]
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def render(self) -> str:
        stamp = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        track = f"track {self.task_id}" if self.task_id is not None else "batch"
        details = " ".join(f"{key}={value}" for key, value in self.payload.items())
        return f"{stamp} [{track}] {self.kind.value} {details}".rstrip()


EventSink = Callable[[Event], None]


def null_sink(event: Event) -> None:
    pass


class EventLog:
    """Append-only, thread-safe record of every event seen."""

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        with self._lock:
            return iter(list(self._events))

    def for_task(self, task_id: int) -> List[Event]:
        return [event for event in self if event.task_id == task_id]

    def of_kind(self, kind: EventKind) -> List[Event]:
        return [event for event in self if event.kind is kind]

    def render(self) -> str:
        return "\n".join(event.render() for event in self)


class QueueSink:
    """Sink that marshals events onto one queue for the presentation thread."""

    def __init__(self, updates: Optional["queue.Queue[Event]"] = None) -> None:
        self.updates: "queue.Queue[Event]" = updates if updates is not None else queue.Queue()

    def __call__(self, event: Event) -> None:
        self.updates.put(event)

    def drain(self, timeout: Optional[float] = None) -> Iterator[Event]:
        """Yield queued events; block up to *timeout* for the first one."""
        try:
            event = self.updates.get(timeout=timeout) if timeout else self.updates.get_nowait()
        except queue.Empty:
            return
        yield event
        while True:
            try:
                yield self.updates.get_nowait()
            except queue.Empty:
                return
