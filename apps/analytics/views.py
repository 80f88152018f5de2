# apps/analytics/views.py
from rest_framework import permissions, views
from rest_framework.response import Response

from apps.accounts.permissions import IsOrderStaff
from . import services
from .serializers import (
    CategoryStockSerializer,
    DateRangeSerializer,
    OrderStatsSerializer,
    RevenueBucketSerializer,
    RevenueQuerySerializer,
    StockReportQuerySerializer,
    TopCustomerSerializer,
    TopCustomersQuerySerializer,
)


class StaffReportView(views.APIView):
    """
    Reports are for admins and managers only.
    """
    permission_classes = [permissions.IsAuthenticated, IsOrderStaff]
    query_serializer_class = None

    def get_query(self, request):
        serializer = self.query_serializer_class(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class OrderStatsView(StaffReportView):
    query_serializer_class = DateRangeSerializer

    def get(self, request):
        stats = services.get_order_stats(**self.get_query(request))
        return Response(OrderStatsSerializer(stats).data)


class RevenueByPeriodView(StaffReportView):
    query_serializer_class = RevenueQuerySerializer

    def get(self, request):
        rows = services.get_revenue_by_period(**self.get_query(request))
        return Response(RevenueBucketSerializer(rows, many=True).data)


class TopCustomersView(StaffReportView):
    query_serializer_class = TopCustomersQuerySerializer

    def get(self, request):
        rows = services.get_top_customers(**self.get_query(request))
        return Response(TopCustomerSerializer(rows, many=True).data)


class StockReportView(StaffReportView):
    query_serializer_class = StockReportQuerySerializer

    def get(self, request):
        rows = services.get_stock_report(**self.get_query(request))
        return Response(CategoryStockSerializer(rows, many=True).data)


class OrderStatusCountsView(StaffReportView):
    def get(self, request):
        return Response(services.get_order_status_counts())
