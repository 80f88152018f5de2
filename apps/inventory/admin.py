# apps/inventory/admin.py
from django.contrib import admin
from .models import InventoryLog


@admin.register(InventoryLog)
class InventoryLogAdmin(admin.ModelAdmin):
    list_display = (
        'created_at', 'product', 'change_type', 'quantity_change',
        'previous_stock', 'new_stock', 'reason', 'created_by',
    )
    list_filter = ('change_type', 'created_at')
    search_fields = ('reason', 'product__name')

    def has_add_permission(self, request):
        return False # Logs are immutable/system-generated

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
