import logging
from typing import Protocol

from .models import Order
from .signals import order_cancelled, order_created, order_status_updated

logger = logging.getLogger(__name__)

ORDER_CREATED = "order:created"
ORDER_STATUS_UPDATED = "order:status_updated"
ORDER_CANCELLED = "order:cancelled"


class EventPublisher(Protocol):
    """
    Anything that can be told about a committed order change.
    Delivery is fire-and-forget: implementations must not raise.
    """

    def publish(self, event: str, payload: dict) -> None:
        ...


def build_payload(order, affected_fields, actor=None) -> dict:
    return {
        "order_id": order.pk,
        "affected_fields": list(affected_fields),
        "actor": getattr(actor, "pk", actor),
        "timestamp": order.updated_at,
    }


class SignalEventPublisher:
    """
    Default publisher: fans the event out as a Django signal.
    Receiver failures are logged and swallowed (send_robust).
    """
    signals = {
        ORDER_CREATED: order_created,
        ORDER_STATUS_UPDATED: order_status_updated,
        ORDER_CANCELLED: order_cancelled,
    }

    def publish(self, event: str, payload: dict) -> None:
        signal = self.signals.get(event)
        if signal is None:
            logger.error(f"Unknown order event '{event}', dropped")
            return

        responses = signal.send_robust(sender=Order, **payload)
        for receiver, result in responses:
            if isinstance(result, Exception):
                logger.error(
                    f"Receiver {receiver!r} failed for {event}: {result}",
                    exc_info=(type(result), result, result.__traceback__),
                    extra={"order_id": payload.get("order_id"), "event": event},
                )
