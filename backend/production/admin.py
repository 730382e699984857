from django.contrib import admin
from .models import Production, ProductionFinishedGood, ProductionRawMaterial, ProductionProcess, ProductionQCRecord


class ProductionFinishedGoodInline(admin.TabularInline):
    model = ProductionFinishedGood
    extra = 0
    readonly_fields = ['product', 'remain_qty', 'approved_qty', 'rejected_qty']
    exclude = ['product_snapshot']


class ProductionRawMaterialInline(admin.TabularInline):
    model = ProductionRawMaterial
    extra = 0
    readonly_fields = ['product', 'remain_qty', 'consumed_qty']
    exclude = ['product_snapshot']


class ProductionProcessInline(admin.TabularInline):
    model = ProductionProcess
    extra = 0
    readonly_fields = ['status']


@admin.register(Production)
class ProductionAdmin(admin.ModelAdmin):
    list_display = ['production_id', 'bom', 'status', 'ready_for_qc', 'qc_status', 'qc_done', 'created_by', 'created_at']
    list_filter = ['status', 'qc_status', 'ready_for_qc', 'created_at']
    search_fields = ['production_id', 'bom__bom_id']
    ordering = ['-created_at']
    # QC and stock fields change only through the reconciliation endpoints
    readonly_fields = ['production_id', 'stock_debited', 'qc_status', 'qc_done', 'approved_qty', 'rejected_qty',
                       'reject_reason', 'completed_at', 'created_at', 'updated_at']
    inlines = [ProductionFinishedGoodInline, ProductionRawMaterialInline, ProductionProcessInline]


@admin.register(ProductionQCRecord)
class ProductionQCRecordAdmin(admin.ModelAdmin):
    list_display = ['production', 'product', 'action', 'approved_quantity', 'rejected_quantity', 'created_by', 'created_at']
    list_filter = ['action', 'created_at']
    search_fields = ['production__production_id', 'product__product_id', 'product__name']
    ordering = ['-created_at']
    readonly_fields = ['production', 'finished_good', 'product', 'action', 'approved_quantity', 'rejected_quantity',
                       'reason', 'created_by', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        # Deleting must reverse stock; use the qc-history API
        return False
