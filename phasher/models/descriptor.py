#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Data structures for images moving through the pipeline.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

from PIL import Image

from .fingerprint import Fingerprint


@dataclass
class ImageDescriptor:
    """One discovered source image, owned by exactly one stage at a time."""
    path: str
    key: str
    frame: int

    # Filled by pipeline stages
    image: Optional[Image.Image] = None
    fingerprint: Optional[Fingerprint] = None

    def release(self) -> None:
        """Close the decoded image buffer. Safe to call more than once."""
        img, self.image = self.image, None
        if img is not None:
            img.close()

    def to_row(self) -> "FingerprintRow":
        if self.fingerprint is None:
            raise ValueError(f"{self.path} has not been fingerprinted")
        h1, h2, h3, h4 = self.fingerprint.words
        return FingerprintRow(self.key, self.frame, h1, h2, h3, h4)


class FingerprintRow(NamedTuple):
    """Persisted row, in insert-statement column order."""
    key: str
    frame: int
    h1: int
    h2: int
    h3: int
    h4: int
