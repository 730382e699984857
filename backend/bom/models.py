from django.conf import settings
from django.db import models
from decimal import Decimal


class BOM(models.Model):
    """Bill of materials: expected raw-material inputs and finished-good outputs"""
    bom_id = models.CharField(max_length=20, unique=True)
    compound_codes = models.JSONField(default=list, blank=True)
    compound_name = models.CharField(max_length=200, blank=True)
    part_names = models.JSONField(default=list, blank=True)
    hardnesses = models.JSONField(default=list, blank=True)
    processes = models.JSONField(default=list, blank=True, help_text="Ordered process step names")
    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    comment = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='boms')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.bom_id

    class Meta:
        db_table = 'boms'
        ordering = ['-created_at']


class BOMRawMaterial(models.Model):
    """Raw-material input line with a frozen copy of the product at authoring time"""
    bom = models.ForeignKey(BOM, on_delete=models.CASCADE, related_name='raw_materials')
    position = models.PositiveIntegerField(default=0)
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='bom_raw_material_lines')
    raw_material_name = models.CharField(max_length=200, blank=True)
    raw_material_code = models.CharField(max_length=100, blank=True)
    weight = models.CharField(max_length=50, blank=True, help_text="Quantity per unit of the first compound")
    tolerance = models.CharField(max_length=50, blank=True)
    uom = models.CharField(max_length=20, blank=True)
    category = models.CharField(max_length=100, blank=True)
    code_no = models.CharField(max_length=50, blank=True)
    comment = models.TextField(blank=True)
    product_snapshot = models.JSONField(null=True, blank=True)

    def __str__(self):
        return f"{self.bom.bom_id} / {self.raw_material_name or self.raw_material_code}"

    class Meta:
        db_table = 'bom_raw_materials'
        ordering = ['position', 'id']


class BOMFinishedGood(models.Model):
    """Output line: a compound or a part name produced by the BOM"""
    LINE_TYPE_CHOICES = [
        ('compound', 'Compound'),
        ('part_name', 'Part Name'),
    ]

    bom = models.ForeignKey(BOM, on_delete=models.CASCADE, related_name='finished_goods')
    position = models.PositiveIntegerField(default=0)
    line_type = models.CharField(max_length=20, choices=LINE_TYPE_CHOICES, default='compound')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='bom_finished_good_lines')
    reference = models.CharField(max_length=255, blank=True, help_text='Composite "<product id>-<name>" picked by the author')
    code = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=200, blank=True)
    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    tolerance = models.CharField(max_length=50, blank=True)
    uom = models.CharField(max_length=20, blank=True)
    category = models.CharField(max_length=100, blank=True)
    comment = models.TextField(blank=True)
    product_snapshot = models.JSONField(null=True, blank=True)

    def __str__(self):
        return f"{self.bom.bom_id} / {self.name or self.code or self.reference}"

    class Meta:
        db_table = 'bom_finished_goods'
        ordering = ['position', 'id']
