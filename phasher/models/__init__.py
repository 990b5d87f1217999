"""Data models for the frame fingerprinting pipeline."""

from .fingerprint import Fingerprint
from .descriptor import ImageDescriptor, FingerprintRow
from .stats import PipelineStats

__all__ = ['Fingerprint', 'ImageDescriptor', 'FingerprintRow', 'PipelineStats']
