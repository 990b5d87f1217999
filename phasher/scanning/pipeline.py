#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pipeline orchestration: scanners -> fingerprint workers -> sink.

Stages talk only through two channels. Each channel is closed only after
every producer writing to it has been joined, so every consumer terminates:

    join scanners -> close intake -> join workers -> close results
    -> join sink -> wait for sink sub-tasks -> close store
"""

import logging
import sys
import threading
from typing import IO, Callable, List, Optional

from tqdm import tqdm

from ..config import Mode, PipelineConfig
from ..database.manager import FingerprintStore
from ..models.descriptor import ImageDescriptor
from ..models.fingerprint import Fingerprint
from ..models.stats import PipelineStats
from ..sinks import QuerySink, ResultWriter, ShowSink, Sink, StoreSink
from ..utils.channel import Channel
from .discovery import PathScanner
from .extractor import DecodeFn, FingerprintFn, compute_fingerprint, decode_grayscale

logger = logging.getLogger(__name__)


def fingerprint_worker(inbox: Channel, outbox: Channel, compute: FingerprintFn,
                       stats: PipelineStats) -> None:
    """Fingerprint descriptors until ``inbox`` is closed and drained."""
    for desc in inbox:
        try:
            fp = compute(desc.image)
            if not isinstance(fp, Fingerprint):
                raise TypeError(f"fingerprint function returned {type(fp).__name__}")
            desc.fingerprint = fp
        except Exception as e:
            logger.warning("Fingerprint failed for %s: %s", desc.path, e)
            stats.add(fingerprint_failed=1)
            continue
        finally:
            desc.release()
        stats.add(fingerprinted=1)
        outbox.put(desc)


class _StageThread(threading.Thread):
    """Thread that keeps the exception its target raised."""

    def __init__(self, target: Callable, args=(), name: Optional[str] = None):
        super().__init__(name=name, daemon=True)
        self._target_fn = target
        self._target_args = args
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self._target_fn(*self._target_args)
        except BaseException as e:
            self.error = e
            logger.error("%s stopped with error: %s", self.name, e, exc_info=True)


def _join_all(threads: List[_StageThread]) -> None:
    for t in threads:
        t.join()


class Pipeline:
    """One full pass over the configured input paths."""

    def __init__(self, config: PipelineConfig,
                 compute: FingerprintFn = compute_fingerprint,
                 decode: DecodeFn = decode_grayscale,
                 output: Optional[IO[str]] = None,
                 as_json: bool = False):
        self.config = config
        self.compute = compute
        self.decode = decode
        self.writer = ResultWriter(output, as_json=as_json)
        self.stats = PipelineStats()

    def open_store(self) -> Optional[FingerprintStore]:
        if not self.config.mode.needs_store:
            return None
        logger.info("Using database: %s", self.config.db_path)
        return FingerprintStore(self.config.db_path, self.config.unique_policy, self.config.db_timeout)

    def build_sink(self, store: Optional[FingerprintStore], progress=None) -> Sink:
        mode = self.config.mode
        if mode is Mode.STORE:
            return StoreSink(store, self.stats, batch_size=self.config.batch_size,
                             timeout=self.config.db_timeout, progress=progress)
        if mode is Mode.QUERY:
            return QuerySink(store, self.writer, self.stats,
                             lookup_workers=self.config.lookup_workers, progress=progress)
        return ShowSink(self.writer, self.stats, progress=progress)

    def run(self) -> PipelineStats:
        """Run every stage to completion and return the summary counters.

        Configuration and store-open errors are raised before any thread starts.
        """
        cfg = self.config
        cfg.validate()
        store = self.open_store()
        try:
            with tqdm(desc=cfg.mode.value, unit="img", disable=not cfg.progress,
                      file=sys.stderr) as progress:
                self._run_stages(store, progress)
        finally:
            if store is not None:
                store.close()
        logger.debug("Pipeline stats: %s", self.stats.to_dict())
        return self.stats

    def _run_stages(self, store: Optional[FingerprintStore], progress) -> None:
        cfg = self.config
        intake: "Channel[ImageDescriptor]" = Channel()
        results: "Channel[ImageDescriptor]" = Channel()

        sink = self.build_sink(store, progress)

        workers = [
            _StageThread(fingerprint_worker, (intake, results, self.compute, self.stats), name=f"worker-{i}")
            for i in range(cfg.workers)
        ]
        scanners = [
            _StageThread(PathScanner(cfg.key_file, decode=self.decode, stats=self.stats).scan,
                         (path, intake), name=f"scan-{i}")
            for i, path in enumerate(cfg.paths)
        ]
        sink_thread = _StageThread(sink.consume, (results,), name=f"{sink.name}-sink")

        logger.info("Starting %d workers for %d paths (%s mode)", len(workers), len(scanners), cfg.mode.value)
        for t in workers + scanners + [sink_thread]:
            t.start()

        _join_all(scanners)
        intake.close()
        _join_all(workers)
        results.close()
        sink_thread.join()
        sink.finish()

        if sink_thread.error is not None:
            raise sink_thread.error
