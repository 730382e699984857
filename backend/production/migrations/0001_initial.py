# Generated manually for production runs, their lines, process steps and QC history

import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bom', '0001_initial'),
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Production',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('production_id', models.CharField(max_length=20, unique=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed')], default='pending', max_length=20)),
                ('stock_debited', models.BooleanField(default=False, help_text='Raw materials were consumed when the run started')),
                ('ready_for_qc', models.BooleanField(default=False)),
                ('qc_status', models.CharField(blank=True, choices=[('approved', 'Approved'), ('rejected', 'Rejected')], max_length=20, null=True)),
                ('qc_done', models.BooleanField(default=False)),
                ('approved_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('rejected_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('reject_reason', models.TextField(blank=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('bom', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='productions', to='bom.bom')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='productions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'productions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='production_status_2f6a1d_idx'),
                    models.Index(fields=['qc_status'], name='production_qc_stat_7e0c3b_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProductionFinishedGood',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('reference', models.CharField(blank=True, max_length=255)),
                ('product_snapshot', models.JSONField(blank=True, null=True)),
                ('compound_code', models.CharField(blank=True, max_length=100)),
                ('compound_name', models.CharField(blank=True, max_length=200)),
                ('est_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('prod_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('remain_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('uom', models.CharField(blank=True, max_length=20)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('total_cost', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('approved_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('rejected_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_outputs', to='catalog.product')),
                ('production', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='finished_goods', to='production.production')),
            ],
            options={
                'db_table': 'production_finished_goods',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='ProductionRawMaterial',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('product_snapshot', models.JSONField(blank=True, null=True)),
                ('raw_material_code', models.CharField(blank=True, max_length=100)),
                ('raw_material_name', models.CharField(blank=True, max_length=200)),
                ('est_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('used_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('remain_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('consumed_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), help_text='Quantity debited from stock when the run started', max_digits=12)),
                ('uom', models.CharField(blank=True, max_length=20)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('weight', models.CharField(blank=True, max_length=50)),
                ('tolerance', models.CharField(blank=True, max_length=50)),
                ('code_no', models.CharField(blank=True, max_length=50)),
                ('total_cost', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_inputs', to='catalog.product')),
                ('production', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='raw_materials', to='production.production')),
            ],
            options={
                'db_table': 'production_raw_materials',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='ProductionProcess',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('process_name', models.CharField(max_length=200)),
                ('work_done', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('start', models.BooleanField(default=False)),
                ('done', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed')], default='pending', max_length=20)),
                ('production', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='processes', to='production.production')),
            ],
            options={
                'db_table': 'production_processes',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='ProductionQCRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('approved', 'Approved'), ('rejected', 'Rejected')], max_length=20)),
                ('approved_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), help_text='Usable stock credited by this record', max_digits=12)),
                ('rejected_quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_qc_records', to=settings.AUTH_USER_MODEL)),
                ('finished_good', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='qc_records', to='production.productionfinishedgood')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='qc_records', to='catalog.product')),
                ('production', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='qc_history', to='production.production')),
            ],
            options={
                'db_table': 'production_qc_records',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
