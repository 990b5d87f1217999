#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Directory scanning and dedup key derivation.

Each input path is listed without recursion. Files named ``<name>-<frame>.jpg``
become descriptors; everything else is ignored. The dedup key is either the
trimmed contents of a per-directory key file or ``<dir>/<name>``.
"""

import logging
import os
from typing import Iterator, List, Optional, Tuple

from PIL import Image

from ..config import FRAME_PATTERN
from ..models.descriptor import ImageDescriptor
from ..models.stats import PipelineStats
from ..utils.channel import Channel
from .extractor import DecodeFn, decode_grayscale

logger = logging.getLogger(__name__)

# Frames are stored in a signed 64-bit INTEGER column
MAX_FRAME = 2 ** 63 - 1


def parse_frame_name(name: str) -> Optional[Tuple[str, str]]:
    """Split ``<name>-<digits>.jpg`` into (name, digits); None if it doesn't match."""
    m = FRAME_PATTERN.fullmatch(name)
    if m is None:
        return None
    return m.group(1), m.group(2)


def parse_frame_number(digits: str) -> int:
    frame = int(digits)
    if frame > MAX_FRAME:
        raise ValueError(f"frame number {digits} out of range")
    return frame


def derive_key(directory: str, name: str) -> str:
    return os.path.normpath(os.path.join(directory, name) if name else directory)


class PathScanner:
    """Turns one input directory into image descriptors."""

    def __init__(self, key_file: Optional[str] = None, decode: DecodeFn = decode_grayscale,
                 stats: Optional[PipelineStats] = None):
        self.key_file = key_file
        self.decode = decode
        self.stats = stats if stats is not None else PipelineStats()

    def list_entries(self, path: str) -> Optional[List[os.DirEntry]]:
        try:
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error("Cannot list %s: %s", path, e)
            return None
        if not entries:
            logger.warning("No files in %s", path)
            return None
        return entries

    def read_key(self, path: str) -> Optional[str]:
        key_path = os.path.join(path, self.key_file)
        logger.info("Reading key from %s", key_path)
        try:
            with open(key_path, "r", encoding="utf-8") as f:
                key = f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read key file %s: %s", key_path, e)
            return None
        if not key:
            logger.error("Expected nonempty key in %s", key_path)
            return None
        return key

    def iter_descriptors(self, path: str) -> Iterator[ImageDescriptor]:
        """
        Yield decoded descriptors for ``path``.

        Directory-level failures (unlistable, empty, bad key file) yield nothing.
        The caller owns each yielded descriptor and must release its image.
        """
        entries = self.list_entries(path)
        if entries is None:
            self.stats.add(dirs_failed=1)
            return

        dir_key = None
        if self.key_file:
            dir_key = self.read_key(path)
            if dir_key is None:
                self.stats.add(dirs_failed=1)
                return

        self.stats.add(dirs_scanned=1)
        for entry in entries:
            parsed = parse_frame_name(entry.name)
            if parsed is None:
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            full_path = os.path.join(path, entry.name)
            name, digits = parsed

            try:
                frame = parse_frame_number(digits)
            except ValueError as e:
                logger.warning("Skipping file %s; failed to parse frame: %s", full_path, e)
                self.stats.add(files_skipped=1)
                continue

            key = dir_key if dir_key is not None else derive_key(path, name)
            if not key:
                logger.warning("Skipping file %s; empty key", full_path)
                self.stats.add(files_skipped=1)
                continue

            try:
                image = self.decode(full_path)
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.warning("Skipping file %s; decode failed: %s", full_path, e)
                self.stats.add(files_skipped=1)
                continue

            logger.debug("Adding file %s", full_path)
            yield ImageDescriptor(path=full_path, key=key, frame=frame, image=image)

    def scan(self, path: str, out: Channel) -> int:
        """Push every descriptor for ``path`` onto ``out``; returns the number sent."""
        sent = 0
        for desc in self.iter_descriptors(path):
            try:
                out.put(desc)
            except BaseException:
                desc.release()
                raise
            sent += 1
        self.stats.add(files_emitted=sent)
        logger.debug("Done reading %s (%d images)", path, sent)
        return sent
