from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('bom_create', 'BOM Created'),
        ('bom_update', 'BOM Updated'),
        ('production_start', 'Production Started'),
        ('production_ready_for_qc', 'Production Ready for QC'),
        ('production_approve', 'Production Approved'),
        ('production_reject', 'Production Rejected'),
        ('production_finish', 'Production Finished'),
        ('qc_history_delete', 'QC History Deleted'),
        ('quality_check_create', 'Quality Check Created'),
        ('quality_check_update', 'Quality Check Updated'),
        ('quality_check_delete', 'Quality Check Deleted'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, BOM id)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., production id, gate entry PO number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_5a1f0c_idx'),
            models.Index(fields=['action'], name='audit_logs_action_8c2e41_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_0d7b9e_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__e3c6a2_idx'),
        ]
