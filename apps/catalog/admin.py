# apps/catalog/admin.py
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "category", "price", "stock", "updated_at")
    search_fields = ("name", "category")
    list_filter = ("category",)
    # Stock changes go through the inventory adjustment endpoint (logged)
    readonly_fields = ("stock", "created_at", "updated_at")
