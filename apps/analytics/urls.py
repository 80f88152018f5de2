# apps/analytics/urls.py
from django.urls import path

from .views import (
    OrderStatsView,
    OrderStatusCountsView,
    RevenueByPeriodView,
    StockReportView,
    TopCustomersView,
)

urlpatterns = [
    path("orders/stats/", OrderStatsView.as_view(), name="analytics-order-stats"),
    path("orders/status-counts/", OrderStatusCountsView.as_view(), name="analytics-status-counts"),
    path("revenue/", RevenueByPeriodView.as_view(), name="analytics-revenue"),
    path("customers/top/", TopCustomersView.as_view(), name="analytics-top-customers"),
    path("stock/", StockReportView.as_view(), name="analytics-stock-report"),
]
