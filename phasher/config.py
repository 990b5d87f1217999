#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration and constants for the frame fingerprinting pipeline.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Pattern, Tuple

# Filenames look like "<name>-<frame>.jpg"
FRAME_PATTERN: Pattern[str] = re.compile(r"^(.*)-([0-9]+)\.jpg\Z")

# Fingerprint layout
FINGERPRINT_BITS = 128
FINGERPRINT_WORDS = 4

# Store defaults (can be overridden by CLI)
DEFAULT_BATCH_SIZE = 100
DEFAULT_DB_TIMEOUT = 30.0  # seconds
DEFAULT_LOOKUP_WORKERS = 8
SQLITE_BUSY_TIMEOUT = 0.05  # seconds; longer waits belong to the retry loop

# Lock-retry backoff
RETRY_BASE_DELAY = 0.005
RETRY_MAX_DELAY = 0.25


def default_workers() -> int:
    return os.cpu_count() or 1


class ConfigError(ValueError):
    """Invalid configuration detected before the pipeline starts."""


class Mode(Enum):
    SHOW = "show"
    STORE = "store"
    QUERY = "query"

    @property
    def needs_store(self) -> bool:
        return self is not Mode.SHOW


class UniquePolicy(Enum):
    """Which columns make a stored fingerprint row unique."""
    TUPLE = "tuple"  # (fullpath, frame, h1, h2, h3, h4)
    FRAME = "frame"  # (fullpath, frame)

    @property
    def columns(self) -> Tuple[str, ...]:
        if self is UniquePolicy.FRAME:
            return ("fullpath", "frame")
        return ("fullpath", "frame", "h1", "h2", "h3", "h4")


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a single pipeline pass needs, decided once at startup."""
    mode: Mode
    paths: Tuple[str, ...]
    db_path: Optional[Path] = None
    key_file: Optional[str] = None
    workers: int = field(default_factory=default_workers)
    db_timeout: float = DEFAULT_DB_TIMEOUT
    batch_size: int = DEFAULT_BATCH_SIZE
    lookup_workers: int = DEFAULT_LOOKUP_WORKERS
    unique_policy: UniquePolicy = UniquePolicy.TUPLE
    progress: bool = False

    def validate(self) -> None:
        if not self.paths:
            raise ConfigError("must provide one or more path arguments")
        if self.mode.needs_store and not self.db_path:
            raise ConfigError(f"--db is required for {self.mode.value} mode")
        if self.workers < 1:
            raise ConfigError(f"worker count must be positive, got {self.workers}")
        if self.batch_size < 1:
            raise ConfigError(f"batch size must be positive, got {self.batch_size}")
        if self.lookup_workers < 1:
            raise ConfigError(f"lookup worker count must be positive, got {self.lookup_workers}")
        if self.db_timeout < 0:
            raise ConfigError(f"store timeout cannot be negative, got {self.db_timeout}")
        if self.key_file is not None and not self.key_file.strip():
            raise ConfigError("key file name cannot be blank")
