# -*- coding: utf-8 -*-
# okxtrader/core/kernel/event_bus.py
"""
In-process pub/sub.

Handlers run synchronously on the publisher's thread, in subscription order.
A handler that raises is logged and skipped; the remaining handlers still run.
"""
import logging
import threading
from collections import defaultdict

log = logging.getLogger(__name__)

DATA_CHANGED = 'data_changed'
VIEWPORT_CHANGED = 'viewport_changed'
INTENT = 'intent'


class EventBus:
    def __init__(self):
        self._handlers = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic, handler):
        with self._lock:
            self._handlers[topic].append(handler)
        return handler

    def unsubscribe(self, topic, handler):
        with self._lock:
            if handler in self._handlers.get(topic, []):
                self._handlers[topic].remove(handler)

    def publish(self, topic, message=None):
        with self._lock:
            handlers = list(self._handlers.get(topic, []))
        for handler in handlers:
            try:
                handler(message)
            except Exception:
                log.exception("handler %r failed on %s", handler, topic)
        return len(handlers)
