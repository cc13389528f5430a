"""Tests for event records and the update queue sink."""

import threading

from subtitle_forge.events import Event, EventKind, EventLog, QueueSink


class TestEvent:
    def test_render(self) -> None:
        event = Event(3, EventKind.STATUS, {"status": "OCR"}, timestamp=0)
        rendered = event.render()
        assert "[track 3]" in rendered
        assert "status status=OCR" in rendered

    def test_batch_event_render(self) -> None:
        assert "[batch]" in Event(None, EventKind.BATCH_STARTED).render()


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log(Event(1, EventKind.TASK_STARTED))
        log(Event(2, EventKind.TASK_STARTED))
        log(Event(1, EventKind.TASK_FINISHED))
        assert len(log) == 3
        assert [e.kind for e in log.for_task(1)] == [EventKind.TASK_STARTED, EventKind.TASK_FINISHED]
        assert len(log.of_kind(EventKind.TASK_STARTED)) == 2

    def test_concurrent_appends(self) -> None:
        log = EventLog()

        def emit() -> None:
            for i in range(200):
                log(Event(i, EventKind.TICK))

        threads = [threading.Thread(target=emit) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(log) == 800


class TestQueueSink:
    def test_drain_preserves_order(self) -> None:
        sink = QueueSink()
        for i in range(3):
            sink(Event(i, EventKind.TICK))
        assert [e.task_id for e in sink.drain()] == [0, 1, 2]
        assert list(sink.drain()) == []

    def test_drain_waits_for_first_event(self) -> None:
        sink = QueueSink()
        timer = threading.Timer(0.05, sink, args=(Event(7, EventKind.TICK),))
        timer.start()
        events = list(sink.drain(timeout=5))
        timer.join()
        assert [e.task_id for e in events] == [7]
