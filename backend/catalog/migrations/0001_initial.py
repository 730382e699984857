# Generated manually for the Product ledger and its stock movement trail

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
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_id', models.CharField(help_text='Product code, e.g. RM-1', max_length=100, unique=True)),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('uom', models.CharField(blank=True, help_text='Unit of measure', max_length=20)),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('latest_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('updated_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('current_stock', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('reject_stock', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('last_change', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'products',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(current_stock__gte=0), name='product_current_stock_non_negative'),
                    models.CheckConstraint(condition=models.Q(reject_stock__gte=0), name='product_reject_stock_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('delta', models.DecimalField(decimal_places=3, max_digits=12)),
                ('balance_after', models.DecimalField(decimal_places=3, max_digits=12)),
                ('reason', models.CharField(max_length=255)),
                ('source_type', models.CharField(choices=[('production', 'Production'), ('quality_check', 'Quality Check')], max_length=20)),
                ('source_ref', models.CharField(db_index=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stock_movements', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='catalog.product')),
            ],
            options={
                'db_table': 'stock_movements',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['product', '-created_at'], name='stock_movem_product_4b8d2e_idx'),
                    models.Index(fields=['source_type', 'source_ref'], name='stock_movem_source__91c7fa_idx'),
                ],
            },
        ),
    ]
