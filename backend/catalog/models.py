from django.conf import settings
from django.db import models
from decimal import Decimal


class Product(models.Model):
    """Inventory ledger entity: one row per raw material, compound or part"""
    product_id = models.CharField(max_length=100, unique=True, help_text="Product code, e.g. RM-1")
    name = models.CharField(max_length=200, db_index=True)
    category = models.CharField(max_length=100, blank=True)
    uom = models.CharField(max_length=20, blank=True, help_text="Unit of measure")
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    latest_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    updated_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    # Mutated only through backend.catalog.ledger
    current_stock = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    reject_stock = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    last_change = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.product_id})"

    @property
    def unit_price(self):
        """Price used for cost estimates: updated, then latest, then list price"""
        for value in (self.updated_price, self.latest_price, self.price):
            if value:
                return value
        return Decimal('0.00')

    class Meta:
        db_table = 'products'
        constraints = [
            models.CheckConstraint(condition=models.Q(current_stock__gte=0), name='product_current_stock_non_negative'),
            models.CheckConstraint(condition=models.Q(reject_stock__gte=0), name='product_reject_stock_non_negative'),
        ]


class StockMovement(models.Model):
    """Append-only trail of usable stock changes"""
    SOURCE_CHOICES = [
        ('production', 'Production'),
        ('quality_check', 'Quality Check'),
    ]

    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='movements')
    delta = models.DecimalField(max_digits=12, decimal_places=3)
    balance_after = models.DecimalField(max_digits=12, decimal_places=3)
    reason = models.CharField(max_length=255)
    source_type = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    source_ref = models.CharField(max_length=100, db_index=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.product_id} {self.delta:+} ({self.source_ref})"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', '-created_at'], name='stock_movem_product_4b8d2e_idx'),
            models.Index(fields=['source_type', 'source_ref'], name='stock_movem_source__91c7fa_idx'),
        ]
