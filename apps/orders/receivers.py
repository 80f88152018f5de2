import logging

from django.dispatch import receiver

from .signals import order_cancelled, order_created, order_status_updated

logger = logging.getLogger(__name__)


@receiver(order_created)
def log_order_created(sender, order_id, affected_fields, actor, timestamp, **kwargs):
    logger.info(
        f"order:created #{order_id} by {actor}",
        extra={"order_id": order_id, "user_id": actor, "event": "order:created"},
    )


@receiver(order_status_updated)
def log_order_status_updated(sender, order_id, affected_fields, actor, timestamp, **kwargs):
    logger.info(
        f"order:status_updated #{order_id} fields={affected_fields} by {actor}",
        extra={"order_id": order_id, "user_id": actor, "event": "order:status_updated"},
    )


@receiver(order_cancelled)
def log_order_cancelled(sender, order_id, affected_fields, actor, timestamp, **kwargs):
    logger.info(
        f"order:cancelled #{order_id} by {actor}",
        extra={"order_id": order_id, "user_id": actor, "event": "order:cancelled"},
    )
