"""Fingerprint store for the frame fingerprinting pipeline."""

from .manager import FingerprintStore, is_locked_error, is_unique_violation
from .init import init_db_if_needed

__all__ = ['FingerprintStore', 'init_db_if_needed', 'is_locked_error', 'is_unique_violation']
