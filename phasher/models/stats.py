#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Run summary counters shared by all pipeline stages.
"""

import threading
from dataclasses import dataclass, field, fields
from typing import Any, Dict


@dataclass
class PipelineStats:
    """Thread-safe counters; stages call ``add`` instead of mutating fields."""
    dirs_scanned: int = 0
    dirs_failed: int = 0
    files_emitted: int = 0
    files_skipped: int = 0
    fingerprinted: int = 0
    fingerprint_failed: int = 0
    batches_committed: int = 0
    batches_failed: int = 0
    rows_inserted: int = 0
    rows_duplicate: int = 0
    lookups: int = 0
    lookups_matched: int = 0
    lookups_failed: int = 0
    shown: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, **deltas: int) -> None:
        with self._lock:
            for name, delta in deltas.items():
                setattr(self, name, getattr(self, name) + delta)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
