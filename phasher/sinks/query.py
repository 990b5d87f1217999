#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Per-image exact-match lookups against the fingerprint store.
"""

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional

from ..config import DEFAULT_LOOKUP_WORKERS
from ..database.manager import FingerprintStore
from ..models.descriptor import ImageDescriptor
from ..models.fingerprint import Fingerprint
from ..models.stats import PipelineStats
from .base import Sink
from .output import ResultWriter

logger = logging.getLogger(__name__)


class QuerySink(Sink):
    """Looks up each fingerprint concurrently, with at most ``lookup_workers`` in flight."""

    name = "query"

    def __init__(self, store: FingerprintStore, writer: ResultWriter,
                 stats: Optional[PipelineStats] = None,
                 lookup_workers: int = DEFAULT_LOOKUP_WORKERS, progress=None):
        super().__init__(stats, progress)
        self.store = store
        self.writer = writer
        self._slots = threading.BoundedSemaphore(lookup_workers)
        self._pool = ThreadPoolExecutor(max_workers=lookup_workers, thread_name_prefix="lookup")
        self._futures: List[Future] = []

    def handle(self, desc: ImageDescriptor) -> None:
        self._slots.acquire()
        try:
            fut = self._pool.submit(self._lookup, desc.path, desc.fingerprint)
        except BaseException:
            self._slots.release()
            raise
        fut.add_done_callback(lambda _: self._slots.release())
        self._futures.append(fut)

    def _lookup(self, path: str, fingerprint: Fingerprint) -> None:
        try:
            matches = self.store.lookup(fingerprint)
        except sqlite3.Error as e:
            logger.error("Lookup failed for %s: %s", path, e)
            self.stats.add(lookups_failed=1)
            return
        self.stats.add(lookups=1, lookups_matched=int(bool(matches)))
        self.writer.query(path, fingerprint, matches)

    def finish(self) -> None:
        try:
            wait(self._futures)
            for fut in self._futures:
                # Output errors are fatal
                fut.result()
        finally:
            self._pool.shutdown(wait=True)
            self._futures.clear()
