#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the hand-off channel and the lock-retry helper.
"""

import sqlite3
import threading

import pytest

from phasher.database.manager import is_locked_error
from phasher.utils.channel import Channel, ChannelClosed
from phasher.utils.retry import retry_until


class FakeClock:
    """Deterministic clock whose sleep just advances time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def locked_then(result, failures):
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise sqlite3.OperationalError("database is locked")
        return result

    return fn, calls


class TestChannel:

    def test_all_consumers_terminate_after_close(self):
        ch = Channel()
        seen = []
        lock = threading.Lock()

        def consume():
            for item in ch:
                with lock:
                    seen.append(item)

        consumers = [threading.Thread(target=consume) for _ in range(4)]
        for t in consumers:
            t.start()
        for i in range(20):
            ch.put(i)
        ch.close()
        for t in consumers:
            t.join(timeout=5)
            assert not t.is_alive()

        assert sorted(seen) == list(range(20))

    def test_put_after_close_raises(self):
        ch = Channel()
        ch.close()
        assert ch.closed
        with pytest.raises(ChannelClosed):
            ch.put(1)

    def test_double_close_raises(self):
        ch = Channel()
        ch.close()
        with pytest.raises(ChannelClosed):
            ch.close()

    def test_items_before_close_are_delivered(self):
        ch = Channel(capacity=3)
        ch.put("a")
        ch.put("b")
        ch.close()
        assert list(ch) == ["a", "b"]
        # A drained, closed channel stays closed for late readers
        assert list(ch) == []


class TestRetryUntil:

    def test_retries_locked_errors_until_success(self):
        clock = FakeClock()
        fn, calls = locked_then("ok", failures=3)

        assert retry_until(fn, 10.0, is_locked_error, clock=clock, sleep=clock.sleep) == "ok"
        assert calls["n"] == 4
        assert len(clock.sleeps) == 3

    def test_backoff_grows_and_is_capped(self):
        clock = FakeClock()
        fn, _ = locked_then("ok", failures=12)

        retry_until(fn, 100.0, is_locked_error, base_delay=0.01, max_delay=0.08,
                    clock=clock, sleep=clock.sleep)
        assert all(s <= 0.08 for s in clock.sleeps)
        assert clock.sleeps[-1] >= 0.04  # capped delay with at most half jitter
        assert clock.sleeps[0] <= 0.01

    def test_other_errors_are_not_retried(self):
        clock = FakeClock()
        calls = {"n": 0}

        def fn():
            calls["n"] += 1
            raise sqlite3.OperationalError("no such table: key_hashes")

        with pytest.raises(sqlite3.OperationalError, match="no such table"):
            retry_until(fn, 10.0, is_locked_error, clock=clock, sleep=clock.sleep)
        assert calls["n"] == 1

    def test_gives_up_after_timeout_with_last_error(self):
        clock = FakeClock()
        fn, calls = locked_then("never", failures=10 ** 6)

        with pytest.raises(sqlite3.OperationalError, match="database is locked"):
            retry_until(fn, 1.0, is_locked_error, clock=clock, sleep=clock.sleep)
        assert calls["n"] > 1
        assert clock.now == pytest.approx(1.0)

    def test_zero_timeout_still_tries_once(self):
        clock = FakeClock()
        fn, calls = locked_then("ok", failures=0)
        assert retry_until(fn, 0, is_locked_error, clock=clock, sleep=clock.sleep) == "ok"
        assert calls["n"] == 1

    def test_on_retry_callback(self):
        clock = FakeClock()
        fn, _ = locked_then("ok", failures=2)
        attempts = []
        retry_until(fn, 5.0, is_locked_error, on_retry=lambda n, e: attempts.append(n),
                    clock=clock, sleep=clock.sleep)
        assert attempts == [1, 2]
