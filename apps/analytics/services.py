# apps/analytics/services.py
"""
Read-only reporting over orders and stock.

Nothing here locks rows or writes; every function is a single aggregate query.
Revenue only ever counts orders whose payment_status is `completed`.
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import Avg, Count, Max, Q, Sum
from django.db.models.functions import TruncDay, TruncMonth, TruncWeek, TruncYear

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.utils.exceptions import ValidationError
from apps.utils.validators import validate_choice, validate_positive_int

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

PERIOD_TRUNCS = {
    "day": TruncDay,
    "week": TruncWeek,
    "month": TruncMonth,
    "year": TruncYear,
}

MAX_REPORT_LIMIT = 100

PAID = Q(payment_status=Order.PaymentStatus.COMPLETED)


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(value).quantize(CENTS)


def _limit(value):
    limit = validate_positive_int(value, "limit")
    if limit > MAX_REPORT_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_REPORT_LIMIT}.", field="limit")
    return limit


def _period_label(period, value):
    if period == "day":
        return value.date().isoformat()
    if period == "week":
        year, week, _ = value.isocalendar()
        return f"{year}-W{week:02d}"
    if period == "month":
        return value.strftime("%Y-%m")
    return value.strftime("%Y")


def get_order_stats(start_date=None, end_date=None) -> dict:
    qs = Order.objects.all()
    if start_date:
        qs = qs.filter(created_at__gte=start_date)
    if end_date:
        qs = qs.filter(created_at__lte=end_date)

    aggregates = {
        "total_orders": Count("id"),
        "total_revenue": Sum("total_amount", filter=PAID),
        "average_order_value": Avg("total_amount"),
    }
    for value in Order.Status.values:
        aggregates[f"{value}_orders"] = Count("id", filter=Q(status=value))

    stats = qs.aggregate(**aggregates)
    stats["total_revenue"] = _money(stats["total_revenue"])
    stats["average_order_value"] = _money(stats["average_order_value"])
    return stats


def get_revenue_by_period(period="month", limit=12) -> list:
    """
    Completed-payment revenue bucketed by day/week/month/year, newest bucket first.
    """
    period = validate_choice(period, "period", PERIOD_TRUNCS.keys())
    limit = _limit(limit)

    rows = (
        Order.objects.filter(PAID)
        .annotate(bucket=PERIOD_TRUNCS[period]("created_at"))
        .values("bucket")
        .annotate(order_count=Count("id"), revenue=Sum("total_amount"))
        .order_by("-bucket")[:limit]
    )

    return [
        {
            "period": _period_label(period, row["bucket"]),
            "order_count": row["order_count"],
            "revenue": _money(row["revenue"]),
        }
        for row in rows
    ]


def get_top_customers(limit=10) -> list:
    limit = _limit(limit)

    rows = (
        Order.objects.filter(PAID)
        .values("user_id", "user__email")
        .annotate(
            order_count=Count("id"),
            total_spent=Sum("total_amount"),
            avg_order_value=Avg("total_amount"),
            last_order_date=Max("created_at"),
        )
        .order_by("-total_spent", "user_id")[:limit]
    )

    return [
        {
            "user_id": row["user_id"],
            "email": row["user__email"],
            "order_count": row["order_count"],
            "total_spent": _money(row["total_spent"]),
            "avg_order_value": _money(row["avg_order_value"]),
            "last_order_date": row["last_order_date"],
        }
        for row in rows
    ]


def get_stock_report(low_stock_threshold=None) -> list:
    """
    Per category: product count, out-of-stock count, low-stock count
    (stock below the threshold, zero included) and average stock.
    """
    if low_stock_threshold is None:
        low_stock_threshold = getattr(settings, "LOW_STOCK_THRESHOLD", 10)

    rows = (
        Product.objects.values("category")
        .annotate(
            total_products=Count("id"),
            out_of_stock=Count("id", filter=Q(stock=0)),
            low_stock=Count("id", filter=Q(stock__lt=low_stock_threshold)),
            avg_stock=Avg("stock"),
        )
        .order_by("category")
    )

    report = []
    for row in rows:
        row["avg_stock"] = round(float(row["avg_stock"] or 0), 2)
        report.append(row)
    return report


def get_order_status_counts() -> dict:
    counts = dict.fromkeys(Order.Status.values, 0)
    for row in Order.objects.values("status").annotate(count=Count("id")).order_by():
        counts[row["status"]] = row["count"]
    return counts
