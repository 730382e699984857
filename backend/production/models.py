from django.conf import settings
from django.db import models
from decimal import Decimal

ZERO = Decimal('0.000')


def remaining(estimated, done):
    """Estimated minus done, never below zero"""
    return max(ZERO, (estimated or ZERO) - (done or ZERO))


class Production(models.Model):
    """One execution of a BOM"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]
    QC_STATUS_CHOICES = [
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    production_id = models.CharField(max_length=20, unique=True)
    bom = models.ForeignKey('bom.BOM', on_delete=models.PROTECT, related_name='productions')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    stock_debited = models.BooleanField(default=False, help_text="Raw materials were consumed when the run started")
    ready_for_qc = models.BooleanField(default=False)
    qc_status = models.CharField(max_length=20, choices=QC_STATUS_CHOICES, null=True, blank=True)
    qc_done = models.BooleanField(default=False)
    approved_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    rejected_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    reject_reason = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='productions')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.production_id

    class Meta:
        db_table = 'productions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='production_status_2f6a1d_idx'),
            models.Index(fields=['qc_status'], name='production_qc_stat_7e0c3b_idx'),
        ]


class ProductionFinishedGood(models.Model):
    """Output line: estimated vs produced quantity of a compound or part"""
    production = models.ForeignKey(Production, on_delete=models.CASCADE, related_name='finished_goods')
    position = models.PositiveIntegerField(default=0)
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='production_outputs')
    reference = models.CharField(max_length=255, blank=True)
    product_snapshot = models.JSONField(null=True, blank=True)
    compound_code = models.CharField(max_length=100, blank=True)
    compound_name = models.CharField(max_length=200, blank=True)
    est_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    prod_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    remain_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    uom = models.CharField(max_length=20, blank=True)
    category = models.CharField(max_length=100, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    approved_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    rejected_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))

    def save(self, *args, **kwargs):
        self.remain_qty = remaining(self.est_qty, self.prod_qty)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.production.production_id} / {self.compound_name or self.compound_code}"

    class Meta:
        db_table = 'production_finished_goods'
        ordering = ['position', 'id']


class ProductionRawMaterial(models.Model):
    """Raw-material consumption line"""
    production = models.ForeignKey(Production, on_delete=models.CASCADE, related_name='raw_materials')
    position = models.PositiveIntegerField(default=0)
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='production_inputs')
    product_snapshot = models.JSONField(null=True, blank=True)
    raw_material_code = models.CharField(max_length=100, blank=True)
    raw_material_name = models.CharField(max_length=200, blank=True)
    est_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    used_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    remain_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    consumed_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'), help_text="Quantity debited from stock when the run started")
    uom = models.CharField(max_length=20, blank=True)
    category = models.CharField(max_length=100, blank=True)
    weight = models.CharField(max_length=50, blank=True)
    tolerance = models.CharField(max_length=50, blank=True)
    code_no = models.CharField(max_length=50, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))

    def save(self, *args, **kwargs):
        self.remain_qty = remaining(self.est_qty, self.used_qty)
        super().save(*args, **kwargs)

    @property
    def quantity_to_consume(self):
        return self.used_qty if self.used_qty > 0 else self.est_qty

    def __str__(self):
        return f"{self.production.production_id} / {self.raw_material_name or self.raw_material_code}"

    class Meta:
        db_table = 'production_raw_materials'
        ordering = ['position', 'id']


class ProductionProcess(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]

    production = models.ForeignKey(Production, on_delete=models.CASCADE, related_name='processes')
    position = models.PositiveIntegerField(default=0)
    process_name = models.CharField(max_length=200)
    work_done = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    start = models.BooleanField(default=False)
    done = models.BooleanField(default=False)
    # Derived from start/done by backend.production.state on every save
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    def __str__(self):
        return f"{self.production.production_id} / {self.process_name}"

    class Meta:
        db_table = 'production_processes'
        ordering = ['position', 'id']


class ProductionQCRecord(models.Model):
    """QC history: one row per output line per approve/reject"""
    ACTION_CHOICES = [
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    production = models.ForeignKey(Production, on_delete=models.PROTECT, related_name='qc_history')
    finished_good = models.ForeignKey(ProductionFinishedGood, on_delete=models.SET_NULL, null=True, blank=True, related_name='qc_records')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='qc_records')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    approved_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'), help_text="Usable stock credited by this record")
    rejected_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    reason = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='production_qc_records')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.production.production_id} {self.action} {self.product.product_id}"

    class Meta:
        db_table = 'production_qc_records'
        ordering = ['-created_at', '-id']
