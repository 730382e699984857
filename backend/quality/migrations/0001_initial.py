# Generated manually for gate entries and gate-entry quality checks

import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='GateEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('po_number', models.CharField(max_length=100)),
                ('invoice_number', models.CharField(blank=True, max_length=100)),
                ('company_name', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('Entry Created', 'Entry Created'), ('Verified', 'Verified'), ('Completed', 'Completed')], default='Entry Created', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='gate_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'gate_entries',
                'ordering': ['-created_at'],
                'verbose_name_plural': 'Gate entries',
            },
        ),
        migrations.CreateModel(
            name='GateEntryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_name', models.CharField(max_length=255)),
                ('item_quantity', models.DecimalField(decimal_places=3, help_text='Quantity received at the gate', max_digits=12)),
                ('ordered_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('remaining_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), help_text='Quantity not yet covered by a quality check', max_digits=12)),
                ('gate_entry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='quality.gateentry')),
            ],
            options={
                'db_table': 'gate_entry_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='QualityCheck',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_name', models.CharField(max_length=255)),
                ('approved_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('rejected_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('total_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('max_allowed_quantity', models.DecimalField(decimal_places=3, max_digits=12)),
                ('remarks', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quality_checks', to=settings.AUTH_USER_MODEL)),
                ('gate_entry', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='quality_checks', to='quality.gateentry')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='quality_checks', to='quality.gateentryitem')),
            ],
            options={
                'db_table': 'quality_checks',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['gate_entry', 'item'], name='quality_che_gate_en_5c9e1b_idx')],
            },
        ),
    ]
