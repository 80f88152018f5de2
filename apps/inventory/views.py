from rest_framework import generics, views, status
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from apps.accounts.permissions import IsOrderStaff
from .models import InventoryLog
from .serializers import InventoryLogSerializer, StockAdjustmentSerializer
from .services import StockLedger


class InventoryHistoryListAPIView(generics.ListAPIView):
    """
    Ledger history, newest first. Filters: product, change_type.
    """
    serializer_class = InventoryLogSerializer
    permission_classes = [IsAuthenticated, IsOrderStaff]
    filterset_fields = ['product', 'change_type']

    def get_queryset(self):
        return InventoryLog.objects.select_related('product', 'created_by').order_by('-id')


class AdjustStockAPIView(views.APIView):
    """
    Manual stock correction for managers.
    Business errors propagate to the DRF exception handler.
    """
    permission_classes = [IsAuthenticated, IsOrderStaff]

    def post(self, request):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        d = serializer.validated_data
        log = StockLedger.adjust(
            product_id=d['product_id'],
            delta=d['delta_quantity'],
            reason=d['reason'],
            actor=request.user,
        )
        return Response(InventoryLogSerializer(log).data, status=status.HTTP_201_CREATED)
