#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Batched, transactional fingerprint writer.

Rows are grouped into batches and each full batch is committed on a
background thread while intake continues. A batch that fails because the
store is locked is retried until ``timeout`` seconds after its first attempt.
"""

import logging
import sqlite3
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional

from ..config import DEFAULT_BATCH_SIZE, DEFAULT_DB_TIMEOUT
from ..database.manager import FingerprintStore, is_locked_error
from ..models.descriptor import FingerprintRow, ImageDescriptor
from ..models.stats import PipelineStats
from ..utils.retry import retry_until
from .base import Sink

logger = logging.getLogger(__name__)


class StoreSink(Sink):

    name = "store"

    def __init__(self, store: FingerprintStore, stats: Optional[PipelineStats] = None,
                 batch_size: int = DEFAULT_BATCH_SIZE, timeout: float = DEFAULT_DB_TIMEOUT,
                 commit_workers: Optional[int] = None, progress=None):
        super().__init__(stats, progress)
        self.store = store
        self.batch_size = batch_size
        self.timeout = timeout
        self._batch: List[FingerprintRow] = []
        self._futures: List[Future] = []
        self._pool = ThreadPoolExecutor(max_workers=commit_workers, thread_name_prefix="commit")

    def handle(self, desc: ImageDescriptor) -> None:
        self._batch.append(desc.to_row())
        if len(self._batch) >= self.batch_size:
            self._submit()

    def on_closed(self) -> None:
        if self._batch:
            self._submit()

    def _submit(self) -> None:
        batch, self._batch = self._batch, []
        logger.debug("Submitting batch of %d rows", len(batch))
        self._futures.append(self._pool.submit(self._commit, batch))

    def _commit(self, batch: List[FingerprintRow]) -> bool:
        def on_retry(attempt: int, exc: BaseException) -> None:
            logger.debug("Store locked, retrying batch of %d (attempt %d): %s", len(batch), attempt, exc)

        try:
            inserted, duplicates = retry_until(
                lambda: self.store.insert_batch(batch),
                self.timeout,
                is_locked_error,
                on_retry=on_retry,
            )
        except sqlite3.Error as e:
            logger.error("Batch of %d rows rolled back (first key %r): %s", len(batch), batch[0].key, e)
            self.stats.add(batches_failed=1)
            return False
        logger.info("Committed batch: %d inserted, %d duplicate", inserted, duplicates)
        self.stats.add(batches_committed=1, rows_inserted=inserted, rows_duplicate=duplicates)
        return True

    def finish(self) -> None:
        try:
            wait(self._futures)
            for fut in self._futures:
                # Unexpected (non-sqlite) errors surface here
                fut.result()
        finally:
            self._pool.shutdown(wait=True)
            self._futures.clear()
