from django.contrib import admin
from .models import BOM, BOMRawMaterial, BOMFinishedGood


class BOMRawMaterialInline(admin.TabularInline):
    model = BOMRawMaterial
    extra = 0
    readonly_fields = ['product_snapshot']


class BOMFinishedGoodInline(admin.TabularInline):
    model = BOMFinishedGood
    extra = 0
    readonly_fields = ['product_snapshot']


@admin.register(BOM)
class BOMAdmin(admin.ModelAdmin):
    list_display = ['bom_id', 'compound_name', 'quantity', 'created_by', 'created_at']
    search_fields = ['bom_id', 'compound_name']
    ordering = ['-created_at']
    readonly_fields = ['bom_id', 'created_at', 'updated_at']
    inlines = [BOMRawMaterialInline, BOMFinishedGoodInline]
