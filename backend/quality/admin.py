from django.contrib import admin

from .models import GateEntry, GateEntryItem, QualityCheck


class GateEntryItemInline(admin.TabularInline):
    model = GateEntryItem
    extra = 1
    fields = ['item_name', 'item_quantity', 'ordered_quantity', 'remaining_quantity']


@admin.register(GateEntry)
class GateEntryAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'invoice_number', 'company_name', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['po_number', 'invoice_number', 'company_name']
    inlines = [GateEntryItemInline]


@admin.register(QualityCheck)
class QualityCheckAdmin(admin.ModelAdmin):
    """Read-only; checks move stock and are edited through the API"""
    list_display = ['item_name', 'gate_entry', 'approved_quantity', 'rejected_quantity', 'total_quantity',
                    'created_by', 'created_at']
    list_filter = ['created_at']
    search_fields = ['item_name', 'gate_entry__po_number']
    readonly_fields = [field.name for field in QualityCheck._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
