#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Image decoding and fingerprint computation.

The default fingerprint is the 64-bit DCT perceptual hash followed by the
64-bit difference hash of the grayscale image, giving four 32-bit words.
Any deterministic callable returning a ``Fingerprint`` can replace it.
"""

import logging
import warnings
from typing import Callable

import imagehash
from PIL import Image

from ..models.fingerprint import Fingerprint

logging.getLogger("PIL.TiffImagePlugin").setLevel(logging.WARNING)
logging.getLogger("PIL.PngImagePlugin").setLevel(logging.WARNING)

# Suppress PIL warnings
warnings.filterwarnings("ignore", category=UserWarning,
                        message=".*Palette images with Transparency expressed in bytes.*")

FingerprintFn = Callable[[Image.Image], Fingerprint]
DecodeFn = Callable[[str], Image.Image]

_HASH_SIZE = 8  # 8x8 bits per component hash


def decode_grayscale(path: str) -> Image.Image:
    """Decode an image file into a standalone grayscale image.

    Raises ``OSError`` for unreadable files and ``ValueError`` for empty images.
    """
    with Image.open(path) as im:
        gray = im.convert("L")
    if gray.width == 0 or gray.height == 0:
        gray.close()
        raise ValueError(f"empty image: {path}")
    return gray


def _hash_to_int(h: imagehash.ImageHash) -> int:
    return int(str(h), 16)


def compute_fingerprint(image: Image.Image) -> Fingerprint:
    p = _hash_to_int(imagehash.phash(image, hash_size=_HASH_SIZE))
    d = _hash_to_int(imagehash.dhash(image, hash_size=_HASH_SIZE))
    return Fingerprint.from_int((p << 64) | d)
