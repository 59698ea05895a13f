from __future__ import annotations

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Domain events published by the business modules.
PURCHASE_ORDER_CREATED = "purchase_order.created"
PURCHASE_ORDER_RECEIVED = "purchase_order.received"
LOW_STOCK_DETECTED = "inventory.low_stock"
SUGGESTED_PO_CONVERTED = "planning.suggested_po.converted"
CONTRACT_STATUS_CHANGED = "legal.contract.status_changed"
EMAIL_FAILED = "email.failed"
DATA_ROOM_ACCESS_DENIED = "data_room.access_denied"


class EventBus:
    """
    In-process event bus on top of Django's Signal dispatcher.

    - register_event(event_name): Pre-defines an event.
    - publish(event_name, **kwargs): Sends an event.
    - subscribe(event_name, handler): Registers a function to handle an event.
    """
    def __init__(self):
        self._signals = {}

    def register_event(self, event_name: str) -> Signal:
        if event_name not in self._signals:
            self._signals[event_name] = Signal()
            logger.debug("Event '%s' registered.", event_name)
        return self._signals[event_name]

    def publish(self, event_name: str, **kwargs):
        """
        Publishes an event to all subscribed handlers.

        Handlers receive ``sender`` plus the keyword arguments given here,
        commonly ``instance`` and ``company``. Returns the handler results.
        """
        if event_name not in self._signals:
            logger.debug("Event '%s' was published without subscribers.", event_name)
            return []
        logger.info("Publishing event '%s'", event_name)
        return self._signals[event_name].send(sender=self.__class__, **kwargs)

    def subscribe(self, event_name: str, handler, dispatch_uid: str | None = None):
        signal = self.register_event(event_name)
        signal.connect(handler, weak=False, dispatch_uid=dispatch_uid)
        logger.info("Handler %s subscribed to event '%s'.", handler.__name__, event_name)

    def unsubscribe(self, event_name: str, handler, dispatch_uid: str | None = None):
        signal = self._signals.get(event_name)
        if signal is not None:
            signal.disconnect(handler, dispatch_uid=dispatch_uid)


# Global instance of the event bus to be used throughout the application
event_bus = EventBus()
