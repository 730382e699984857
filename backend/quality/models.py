from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from backend.core.models import User


class GateEntry(models.Model):
    """Incoming delivery registered at the factory gate"""
    STATUS_CHOICES = [
        ('Entry Created', 'Entry Created'),
        ('Verified', 'Verified'),
        ('Completed', 'Completed'),
    ]

    po_number = models.CharField(max_length=100)
    invoice_number = models.CharField(max_length=100, blank=True)
    company_name = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='Entry Created')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='gate_entries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.po_number} - {self.company_name}"

    class Meta:
        db_table = 'gate_entries'
        ordering = ['-created_at']
        verbose_name_plural = 'Gate entries'


class GateEntryItem(models.Model):
    gate_entry = models.ForeignKey(GateEntry, on_delete=models.CASCADE, related_name='items')
    item_name = models.CharField(max_length=255)
    item_quantity = models.DecimalField(max_digits=12, decimal_places=3, help_text='Quantity received at the gate')
    ordered_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    remaining_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0.000'),
        help_text='Quantity not yet covered by a quality check'
    )

    def __str__(self):
        return self.item_name

    def save(self, *args, **kwargs):
        # A new item is fully uninspected
        if self.pk is None and not self.remaining_quantity:
            self.remaining_quantity = self.item_quantity
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'gate_entry_items'
        ordering = ['id']


class QualityCheck(models.Model):
    """Inspection result for one gate item; approved goes to usable stock, rejected to reject stock"""
    gate_entry = models.ForeignKey(GateEntry, on_delete=models.PROTECT, related_name='quality_checks')
    item = models.ForeignKey(GateEntryItem, on_delete=models.PROTECT, related_name='quality_checks')
    item_name = models.CharField(max_length=255)
    approved_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    rejected_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    total_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    max_allowed_quantity = models.DecimalField(max_digits=12, decimal_places=3)
    remarks = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='quality_checks')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"QC {self.item_name} ({self.gate_entry.po_number})"

    def clean(self):
        if self.approved_quantity < 0 or self.rejected_quantity < 0:
            raise ValidationError('Quantities cannot be negative')
        if self.total_quantity > self.max_allowed_quantity:
            raise ValidationError(
                f'Total quantity ({self.total_quantity}) exceeds maximum allowed ({self.max_allowed_quantity})'
            )

    def save(self, *args, **kwargs):
        self.total_quantity = (self.approved_quantity or 0) + (self.rejected_quantity or 0)
        self.full_clean()
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'quality_checks'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['gate_entry', 'item'], name='quality_che_gate_en_5c9e1b_idx'),
        ]
