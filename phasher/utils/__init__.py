"""Utility functions for the frame fingerprinting pipeline."""

from .channel import Channel, ChannelClosed
from .retry import retry_until

__all__ = ['Channel', 'ChannelClosed', 'retry_until']
