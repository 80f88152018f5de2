from django.db import models


class TimestampedModel(models.Model):
    """
    Common timestamps for core tables.
    Integer primary keys are kept (default auto field) because row locks
    are always taken in ascending id order.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
