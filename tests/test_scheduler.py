"""Tests for the debounced save scheduler."""

import threading
import time

from issuebook.scheduler import SaveScheduler, SaveState

DELAY = 0.2


class FlushRecorder:
    def __init__(self):
        self.calls = []
        self.done = threading.Event()

    def __call__(self):
        self.calls.append(time.monotonic())
        self.done.set()
        return True


def test_burst_of_requests_flushes_once_after_quiet_period():
    recorder = FlushRecorder()
    scheduler = SaveScheduler(recorder, delay=DELAY)

    for i in range(10):
        if i:
            time.sleep(DELAY / 10)
        scheduler.queue_save()
    last_call = time.monotonic()

    assert recorder.done.wait(timeout=DELAY * 10)
    time.sleep(DELAY * 2)  # any stray timer would have fired by now

    assert len(recorder.calls) == 1
    assert recorder.calls[0] - last_call >= DELAY * 0.95
    assert scheduler.state is SaveState.IDLE
    assert scheduler.flush_count == 1


def test_new_request_restarts_the_window():
    recorder = FlushRecorder()
    scheduler = SaveScheduler(recorder, delay=DELAY)

    scheduler.queue_save()
    time.sleep(DELAY * 0.6)
    scheduler.queue_save()
    time.sleep(DELAY * 0.6)
    # 1.2 windows since the first request, 0.6 since the second
    assert recorder.calls == []
    assert scheduler.pending

    assert recorder.done.wait(timeout=DELAY * 10)
    assert len(recorder.calls) == 1


def test_cancel_prevents_flush():
    recorder = FlushRecorder()
    scheduler = SaveScheduler(recorder, delay=DELAY)

    scheduler.queue_save()
    scheduler.cancel()
    assert scheduler.state is SaveState.IDLE

    time.sleep(DELAY * 2)
    assert recorder.calls == []


def test_flush_now_runs_immediately_and_drops_pending_timer():
    recorder = FlushRecorder()
    scheduler = SaveScheduler(recorder, delay=DELAY)

    scheduler.queue_save()
    assert scheduler.flush_now() is True
    assert len(recorder.calls) == 1

    time.sleep(DELAY * 2)
    assert len(recorder.calls) == 1
    assert scheduler.state is SaveState.IDLE


def test_flush_now_when_idle_still_flushes():
    recorder = FlushRecorder()
    scheduler = SaveScheduler(recorder, delay=DELAY)
    scheduler.flush_now()
    assert len(recorder.calls) == 1


def test_failing_flush_returns_to_idle():
    def _boom():
        raise RuntimeError("disk full")

    scheduler = SaveScheduler(_boom, delay=0.05)
    scheduler.queue_save()
    time.sleep(0.3)

    assert scheduler.state is SaveState.IDLE
    assert scheduler.flush_count == 0


def test_flushes_never_overlap():
    active = []
    overlaps = []
    lock = threading.Lock()

    def _slow_flush():
        with lock:
            if active:
                overlaps.append(True)
            active.append(1)
        time.sleep(0.1)
        with lock:
            active.pop()

    scheduler = SaveScheduler(_slow_flush, delay=0.05)
    scheduler.queue_save()
    time.sleep(0.07)  # first flush is running
    scheduler.queue_save()
    scheduler.flush_now()
    time.sleep(0.3)

    assert overlaps == []
