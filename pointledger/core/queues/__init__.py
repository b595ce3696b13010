"""Background queue infrastructure."""

from .base_queue import BackgroundQueue, QueueStats

__all__ = ["BackgroundQueue", "QueueStats"]
