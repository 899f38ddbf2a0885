"""Play queue and its persistence."""

from castqueue.queue.models import QueueEntry, QueueSnapshot
from castqueue.queue.play_queue import PlayQueue
from castqueue.queue.storage import QueueStore

__all__ = ["PlayQueue", "QueueEntry", "QueueSnapshot", "QueueStore"]
