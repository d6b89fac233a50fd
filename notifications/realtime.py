"""
Live update fan-out.

Each connected client (an open event stream) registers a callable with the
``ConnectionRegistry`` owned by the notifications app. Services call
``broadcast`` after a state change; delivery is at-most-once and only
reaches clients connected at that moment.
"""
import logging
import threading

from django.apps import apps
from django.utils import timezone

logger = logging.getLogger(__name__)


class ConnectionRegistry:

    def __init__(self):
        self._observers = set()
        self._lock = threading.Lock()

    def add(self, observer):
        with self._lock:
            self._observers.add(observer)

    def remove(self, observer):
        with self._lock:
            self._observers.discard(observer)

    def __len__(self):
        with self._lock:
            return len(self._observers)

    def broadcast(self, event, data=None):
        """Send ``{"type": event, "data": data}`` to every observer; returns deliveries."""
        message = {
            "type": event,
            "data": data if data is not None else {},
            "sent_at": timezone.now().isoformat(),
        }
        with self._lock:
            observers = list(self._observers)

        delivered = 0
        for observer in observers:
            try:
                observer(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping real-time observer after send failure: {e}")
                self.remove(observer)
        return delivered


def get_registry():
    return apps.get_app_config('notifications').registry


def broadcast(event, data=None):
    """Fire-and-forget broadcast through the app-owned registry."""
    try:
        return get_registry().broadcast(event, data)
    except Exception as e:
        logger.error(f"Error broadcasting {event}: {e}")
        return 0
