"""Frame fingerprinting pipeline - store and query perceptual hashes of numbered images."""

__version__ = "1.0.0"
__author__ = "phasher developers"

# Import key classes for convenient top-level access
from .config import ConfigError, Mode, PipelineConfig, UniquePolicy
from .database import FingerprintStore
from .models import Fingerprint, FingerprintRow, ImageDescriptor, PipelineStats
from .scanning import Pipeline, PathScanner, compute_fingerprint, decode_grayscale
from .sinks import QuerySink, ShowSink, StoreSink

__all__ = [
    # Configuration
    'ConfigError',
    'Mode',
    'PipelineConfig',
    'UniquePolicy',

    # Core classes
    'Pipeline',
    'PathScanner',
    'FingerprintStore',
    'StoreSink',
    'QuerySink',
    'ShowSink',

    # Fingerprint capability
    'compute_fingerprint',
    'decode_grayscale',

    # Data models
    'Fingerprint',
    'FingerprintRow',
    'ImageDescriptor',
    'PipelineStats',

    # Package metadata
    '__version__',
    '__author__'
]
