import threading
import time

from svc_agent.progress import Progress, ProgressConsumer, ProgressQueue, ProgressTracker


def test_full_queue_drops_oldest_without_blocking():
    q = ProgressQueue(maxsize=2)
    for i in range(4):
        q.put(Progress(service="AUTH", percent=i, state="Downloading"))

    assert [e.percent for e in q.drain()] == [2, 3]
    assert q.dropped == 2


def test_tracker_emits_only_on_percent_change():
    q = ProgressQueue()
    track = ProgressTracker("AUTH", q)

    track(10, 1000)
    track(11, 1000)
    track(500, 1000)
    track(1000, 1000)

    assert [e.percent for e in q.drain()] == [1, 50, 100]


def test_tracker_ignores_unknown_total():
    q = ProgressQueue()
    ProgressTracker("AUTH", q)(4096, None)
    assert q.drain() == []


def test_consumer_renders_everything_by_stop():
    q = ProgressQueue()
    seen = []
    got_first = threading.Event()

    def render(event):
        seen.append(event)
        got_first.set()

    consumer = ProgressConsumer(q, render).start()
    q.put(Progress(service="AUTH", percent=0, state="Init"))
    assert got_first.wait(2.0)
    q.put(Progress(service="AUTH", percent=100, state="Starting..."))
    consumer.stop()

    assert [e.state for e in seen] == ["Init", "Starting..."]


def test_slow_renderer_keeps_order_and_single_thread():
    q = ProgressQueue()
    seen = []
    first_started = threading.Event()

    def render(event):
        if event.state == "first":
            first_started.set()
            time.sleep(0.5)
        seen.append((event.state, threading.current_thread().name))

    consumer = ProgressConsumer(q, render).start()
    q.put(Progress(service="AUTH", percent=0, state="first"))
    assert first_started.wait(2.0)
    q.put(Progress(service="AUTH", percent=100, state="Starting..."))

    consumer.stop(timeout=0.05)
    consumer._thread.join(5.0)

    assert [state for state, _ in seen] == ["first", "Starting..."]
    assert {name for _, name in seen} == {"progress"}
