from rest_framework import serializers
from .models import InventoryLog


class InventoryLogSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    performed_by = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = InventoryLog
        fields = [
            'id', 'created_at', 'product_id', 'product_name', 'change_type',
            'quantity_change', 'previous_stock', 'new_stock',
            'reason', 'performed_by'
        ]


class StockAdjustmentSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    delta_quantity = serializers.IntegerField()
    reason = serializers.CharField(max_length=200)

    def validate_delta_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("Change cannot be zero.")
        return value
