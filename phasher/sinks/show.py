from typing import Optional

from ..models.descriptor import ImageDescriptor
from ..models.stats import PipelineStats
from .base import Sink
from .output import ResultWriter


class ShowSink(Sink):
    """Prints (path, fingerprint) in arrival order. Write errors propagate."""

    name = "show"

    def __init__(self, writer: ResultWriter, stats: Optional[PipelineStats] = None, progress=None):
        super().__init__(stats, progress)
        self.writer = writer

    def handle(self, desc: ImageDescriptor) -> None:
        self.writer.show(desc.path, desc.fingerprint)
        self.stats.add(shown=1)
