"""Final pipeline stages: store, query and show."""

from .base import Sink
from .output import ResultWriter
from .query import QuerySink
from .show import ShowSink
from .store import StoreSink

__all__ = ['Sink', 'ResultWriter', 'QuerySink', 'ShowSink', 'StoreSink']
