"""Tests out ttlmemo.timers"""

from __future__ import annotations

import logging
import threading

from ttlmemo.timers import ScheduledTask, ThreadingScheduler

def test_task_runs_once():
    calls = []
    task = ScheduledTask(lambda: calls.append(1))
    assert not task.done
    task.run()
    task.run()
    assert calls == [1]
    assert task.fired and task.done

def test_cancel_before_run():
    calls = []
    cancels = []
    task = ScheduledTask(lambda: calls.append(1), on_cancel=lambda: cancels.append(1))
    assert task.cancel() is True
    task.run()
    assert calls == []
    assert task.cancelled
    # cancelling again is a no-op
    assert task.cancel() is False
    assert cancels == [1]

def test_cancel_after_run():
    task = ScheduledTask(lambda: None)
    task.run()
    assert task.cancel() is False
    assert not task.cancelled

def test_callback_errors_are_logged(caplog):
    def boom():
        raise RuntimeError('boom')
    task = ScheduledTask(boom)
    with caplog.at_level(logging.ERROR, logger='ttlmemo.timers'):
        task.run()
    assert task.fired
    assert 'boom' in caplog.text

def test_threading_scheduler_fires():
    event = threading.Event()
    task = ThreadingScheduler().schedule(10, event.set)
    assert event.wait(5)
    assert task.fired

def test_threading_scheduler_cancel():
    event = threading.Event()
    task = ThreadingScheduler().schedule(50, event.set)
    assert task.cancel()
    assert not event.wait(0.2)
    assert not task.fired

def test_threading_scheduler_uses_one_thread():
    """Many pending tasks share a single worker thread."""
    scheduler = ThreadingScheduler()
    before = threading.active_count()
    tasks = [scheduler.schedule(60_000, lambda: None) for _ in range(200)]
    assert threading.active_count() <= before + 1
    assert len(scheduler) == 200
    for task in tasks:
        task.cancel()
    # cancelled tasks get compacted away
    assert len(scheduler) < 100

def test_threading_scheduler_runs_in_deadline_order():
    order = []
    done = threading.Event()
    scheduler = ThreadingScheduler()

    def late():
        order.append('late')
        done.set()

    scheduler.schedule(150, late)
    scheduler.schedule(20, lambda: order.append('early'))
    assert done.wait(5)
    assert order == ['early', 'late']

def test_threading_scheduler_cancel_one_of_many():
    fired = []
    done = threading.Event()
    scheduler = ThreadingScheduler()
    first = scheduler.schedule(20, lambda: fired.append('first'))
    scheduler.schedule(60, lambda: (fired.append('second'), done.set()))
    first.cancel()
    assert done.wait(5)
    assert fired == ['second']
