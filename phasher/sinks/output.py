#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Serialized result output shared by the show and query sinks.
"""

import sys
import threading
from typing import IO, List, Optional, Tuple

from .. import jsonio
from ..models.fingerprint import Fingerprint


class ResultWriter:
    """Writes one line per result; safe to call from several threads."""

    def __init__(self, stream: Optional[IO[str]] = None, as_json: bool = False):
        self.stream = stream if stream is not None else sys.stdout
        self.as_json = as_json
        self._lock = threading.Lock()

    def _write_line(self, line: str) -> None:
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()

    def show(self, path: str, fingerprint: Fingerprint) -> None:
        if self.as_json:
            with self._lock:
                jsonio.record({"path": path, "fingerprint": fingerprint.hex()}, self.stream)
            return
        self._write_line(f"{path} {fingerprint.hex()}")

    def query(self, path: str, fingerprint: Fingerprint, matches: List[Tuple[str, int]]) -> None:
        if self.as_json:
            with self._lock:
                jsonio.record({
                    "path": path,
                    "fingerprint": fingerprint.hex(),
                    "matches": [{"key": k, "frame": f} for k, f in matches],
                }, self.stream)
            return
        found = ", ".join(f"{k}:{f}" for k, f in matches)
        self._write_line(f"{path} {fingerprint.hex()} [{found}]")
