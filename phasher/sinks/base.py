import logging
from typing import Optional

from ..models.descriptor import ImageDescriptor
from ..models.stats import PipelineStats
from ..utils.channel import Channel

logger = logging.getLogger(__name__)


class Sink:
    """Final pipeline stage. Exactly one instance consumes the fingerprinted channel."""

    name = "sink"

    def __init__(self, stats: Optional[PipelineStats] = None, progress=None):
        self.stats = stats if stats is not None else PipelineStats()
        self.progress = progress

    def handle(self, desc: ImageDescriptor) -> None:
        raise NotImplementedError

    def on_closed(self) -> None:
        """Called once the input channel is drained."""

    def finish(self) -> None:
        """Wait for any asynchronous work started by ``handle``."""

    def consume(self, inbox: Channel) -> None:
        """
        Drain ``inbox``. After a fatal error the remaining items are still taken
        (and dropped) so upstream stages never block; the error is re-raised
        once the channel is closed.
        """
        error = None
        for desc in inbox:
            if error is not None:
                desc.release()
                continue
            try:
                self.handle(desc)
            except Exception as e:
                logger.error("%s sink failed on %s: %s", self.name, desc.path, e)
                error = e
            finally:
                desc.release()
            if self.progress is not None:
                self.progress.update(1)
        if error is not None:
            raise error
        self.on_closed()
