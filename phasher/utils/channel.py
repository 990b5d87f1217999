#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Closable hand-off channel between pipeline stages.
"""

import threading
from queue import Queue
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class ChannelClosed(RuntimeError):
    """Raised when sending on a channel that has been closed."""


class Channel(Generic[T]):
    """
    Blocking queue with close semantics.

    ``put`` blocks while the previous item has not been taken (capacity 1 by
    default). ``close`` enqueues a single sentinel; every reader that sees it
    puts it back before stopping, so any number of consumers terminate once
    the queued items are drained.
    """

    def __init__(self, capacity: int = 1):
        self._q: "Queue[object]" = Queue(maxsize=capacity)
        self._stop = object()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("send on closed channel")
        self._q.put(item)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed("channel already closed")
            self._closed = True
        self._q.put(self._stop)

    def get(self):
        """Return the next item, or raise ``ChannelClosed`` once drained."""
        item = self._q.get()
        if item is self._stop:
            self._q.put(item)
            raise ChannelClosed("channel closed")
        return item

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return
