# apps/orders/signals.py
from django.dispatch import Signal

# All three fire only after the order transaction has committed.
# kwargs: order_id, affected_fields, actor, timestamp
order_created = Signal()
order_status_updated = Signal()
order_cancelled = Signal()
