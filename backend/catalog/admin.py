from django.contrib import admin
from .models import Product, StockMovement


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['product_id', 'name', 'category', 'uom', 'current_stock', 'reject_stock', 'updated_at']
    list_filter = ['category', 'uom']
    search_fields = ['product_id', 'name']
    ordering = ['product_id']
    # Stock counters change only through production and quality-check reconciliation
    readonly_fields = ['current_stock', 'reject_stock', 'last_change', 'created_at', 'updated_at']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['product', 'delta', 'balance_after', 'source_type', 'source_ref', 'created_by', 'created_at']
    list_filter = ['source_type', 'created_at']
    search_fields = ['product__product_id', 'product__name', 'source_ref', 'reason']
    ordering = ['-created_at']
    readonly_fields = ['product', 'delta', 'balance_after', 'reason', 'source_type', 'source_ref', 'created_by', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
