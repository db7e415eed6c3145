"""Background task processing."""

from deckgate.tasks.queue import get_queue_settings, queue

__all__ = ["get_queue_settings", "queue"]
