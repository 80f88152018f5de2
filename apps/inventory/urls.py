from django.urls import path
from .views import InventoryHistoryListAPIView, AdjustStockAPIView

urlpatterns = [
    path('history/', InventoryHistoryListAPIView.as_view(), name='inventory-history'),
    path('adjust/', AdjustStockAPIView.as_view(), name='inventory-adjust'),
]
