import logging
import threading
import time

import pytest

from objslots.core import metrics
from objslots.core.emitter import SignalEmitter
from objslots.core.errors import LockReentryError
from objslots.core.rwlock import RWLock
from objslots.core.signal import Signal


class SafePub(SignalEmitter, thread_safe=True, parallel=False):
    tick = Signal(int)


class ParPub(SignalEmitter, thread_safe=False, parallel=True):
    tick = Signal(int)


class SafeParPub(SignalEmitter, thread_safe=True, parallel=True):
    tick = Signal(int)


def _wait_for(pred, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def test_modes_are_fixed_per_class():
    assert SafePub.dispatch_config().thread_safe and not SafePub.dispatch_config().parallel
    assert ParPub.dispatch_config().parallel and not ParPub.dispatch_config().thread_safe

    class Child(SafeParPub):
        pass

    assert Child.dispatch_config() == SafeParPub.dispatch_config()


def test_s6_concurrent_bind_emit_unbind_cycles():
    pub = SafePub()
    errors = []
    hits = [[] for _ in range(8)]

    def worker(n):
        def cb(v, n=n):
            hits[n].append(v)

        try:
            for i in range(1000):
                pub.bind(SafePub.tick, cb)
                pub.emit(SafePub.tick, i)
                pub.unbind(cb)
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert not errors
    assert all(len(h) >= 1000 for h in hits)
    assert pub.slot_count() == 0
    assert pub.bound_signals() == ()


def test_bind_from_inside_slot_raises_instead_of_deadlocking():
    pub = SafePub()
    seen = []

    def greedy(v):
        seen.append(v)
        pub.bind(SafePub.tick, seen.append)

    pub.bind(SafePub.tick, greedy)
    with pytest.raises(LockReentryError):
        pub.emit(SafePub.tick, 1)
    assert seen == [1]
    assert pub.slot_count() == 1
    # lock was released on the way out
    pub.unbind(greedy)
    assert pub.slot_count() == 0


def test_nested_emit_on_thread_safe_emitter_is_allowed():
    class Chain(SignalEmitter, thread_safe=True, parallel=False):
        first = Signal()
        second = Signal()

    c = Chain()
    got = []
    c.bind(Chain.first, lambda: c.second())
    c.bind(Chain.second, lambda: got.append("second"))
    c.first()
    assert got == ["second"]


def test_parallel_emit_schedules_one_worker_per_slot():
    pub = ParPub()
    gate = threading.Event()
    done = []
    lock = threading.Lock()

    def slow(v):
        gate.wait(2.0)
        with lock:
            done.append(v)

    for _ in range(4):
        pub.bind(ParPub.tick, slow)
    pub.emit(ParPub.tick, 7)
    # emit returned while every worker is still blocked
    assert done == []
    gate.set()
    assert _wait_for(lambda: len(done) == 4)
    assert done == [7, 7, 7, 7]


def test_parallel_worker_exception_is_logged_not_raised(caplog, fresh_metrics):
    pub = ParPub()
    ok = threading.Event()

    def bad(v):
        raise ValueError("worker failure")

    pub.bind(ParPub.tick, bad)
    pub.bind(ParPub.tick, lambda v: ok.set())
    with caplog.at_level(logging.ERROR, logger="objslots"):
        pub.emit(ParPub.tick, 1)
        assert ok.wait(2.0)
        assert _wait_for(lambda: metrics.counter_value("slots_invoke_errors_total", signal="ParPub.tick") == 1)
    assert any("worker failure" in (r.exc_text or "") or "worker failure" in r.getMessage() for r in caplog.records)


def test_thread_safe_parallel_releases_lock_after_spawning():
    pub = SafeParPub()
    started = threading.Event()
    release = threading.Event()

    def blocker(v):
        started.set()
        release.wait(2.0)

    pub.bind(SafeParPub.tick, blocker)
    pub.emit(SafeParPub.tick, 1)
    assert started.wait(2.0)
    # the worker is still running, yet exclusive mode is available
    assert pub.unbind(blocker) == 1
    release.set()


def test_rwlock_excludes_writers_while_reading():
    lk = RWLock()
    order = []

    def writer():
        with lk.write():
            order.append("write")

    with lk.read():
        t = threading.Thread(target=writer)
        t.start()
        time.sleep(0.05)
        order.append("read-done")
    t.join(2.0)
    assert order == ["read-done", "write"]


def test_rwlock_misuse():
    lk = RWLock()
    with pytest.raises(RuntimeError):
        lk.release_read()
    with pytest.raises(RuntimeError):
        lk.release_write()
    with lk.write():
        with pytest.raises(LockReentryError):
            lk.acquire_write()
        with pytest.raises(LockReentryError):
            lk.acquire_read()
