# Generated manually for BOM and its raw-material / finished-good lines

import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BOM',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bom_id', models.CharField(max_length=20, unique=True)),
                ('compound_codes', models.JSONField(blank=True, default=list)),
                ('compound_name', models.CharField(blank=True, max_length=200)),
                ('part_names', models.JSONField(blank=True, default=list)),
                ('hardnesses', models.JSONField(blank=True, default=list)),
                ('processes', models.JSONField(blank=True, default=list, help_text='Ordered process step names')),
                ('quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('comment', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='boms', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'boms',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BOMRawMaterial',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('raw_material_name', models.CharField(blank=True, max_length=200)),
                ('raw_material_code', models.CharField(blank=True, max_length=100)),
                ('weight', models.CharField(blank=True, help_text='Quantity per unit of the first compound', max_length=50)),
                ('tolerance', models.CharField(blank=True, max_length=50)),
                ('uom', models.CharField(blank=True, max_length=20)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('code_no', models.CharField(blank=True, max_length=50)),
                ('comment', models.TextField(blank=True)),
                ('product_snapshot', models.JSONField(blank=True, null=True)),
                ('bom', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='raw_materials', to='bom.bom')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bom_raw_material_lines', to='catalog.product')),
            ],
            options={
                'db_table': 'bom_raw_materials',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='BOMFinishedGood',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('line_type', models.CharField(choices=[('compound', 'Compound'), ('part_name', 'Part Name')], default='compound', max_length=20)),
                ('reference', models.CharField(blank=True, help_text='Composite "<product id>-<name>" picked by the author', max_length=255)),
                ('code', models.CharField(blank=True, max_length=100)),
                ('name', models.CharField(blank=True, max_length=200)),
                ('quantity', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('tolerance', models.CharField(blank=True, max_length=50)),
                ('uom', models.CharField(blank=True, max_length=20)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('comment', models.TextField(blank=True)),
                ('product_snapshot', models.JSONField(blank=True, null=True)),
                ('bom', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='finished_goods', to='bom.bom')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bom_finished_good_lines', to='catalog.product')),
            ],
            options={
                'db_table': 'bom_finished_goods',
                'ordering': ['position', 'id'],
            },
        ),
    ]
