# apps/analytics/serializers.py
from rest_framework import serializers


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError("start_date must be before end_date.")
        return attrs


class RevenueQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=["day", "week", "month", "year"], default="month")
    limit = serializers.IntegerField(min_value=1, max_value=100, default=12)


class TopCustomersQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)


class StockReportQuerySerializer(serializers.Serializer):
    low_stock_threshold = serializers.IntegerField(min_value=0, required=False)


class OrderStatsSerializer(serializers.Serializer):
    total_orders = serializers.IntegerField()
    pending_orders = serializers.IntegerField()
    processing_orders = serializers.IntegerField()
    shipped_orders = serializers.IntegerField()
    delivered_orders = serializers.IntegerField()
    cancelled_orders = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    average_order_value = serializers.DecimalField(max_digits=14, decimal_places=2)


class RevenueBucketSerializer(serializers.Serializer):
    period = serializers.CharField()
    order_count = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)


class TopCustomerSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    email = serializers.EmailField()
    order_count = serializers.IntegerField()
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2)
    avg_order_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    last_order_date = serializers.DateTimeField()


class CategoryStockSerializer(serializers.Serializer):
    category = serializers.CharField()
    total_products = serializers.IntegerField()
    out_of_stock = serializers.IntegerField()
    low_stock = serializers.IntegerField()
    avg_stock = serializers.FloatField()
