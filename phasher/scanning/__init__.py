"""Scanning and fingerprinting stages of the pipeline."""

from .extractor import compute_fingerprint, decode_grayscale
from .discovery import PathScanner, derive_key, parse_frame_name
from .pipeline import Pipeline, fingerprint_worker

__all__ = [
    'compute_fingerprint',
    'decode_grayscale',
    'PathScanner',
    'derive_key',
    'parse_frame_name',
    'Pipeline',
    'fingerprint_worker',
]
