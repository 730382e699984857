"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.catalog.models import Product
from backend.bom.models import BOM, BOMRawMaterial, BOMFinishedGood
from backend.bom.snapshots import capture_snapshot
from backend.quality.models import GateEntry, GateEntryItem
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=True, is_superuser=False):
        """Create a test user (staff by default so module permissions pass)"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_product(product_id=None, name=None, current_stock=Decimal('0'), reject_stock=Decimal('0'),
                       price=None, uom='KG', category='Raw Material'):
        """Create a test product"""
        if not product_id:
            product_id = f'P-{TestDataFactory.random_string(6).upper()}'
        if not name:
            name = f'Product {product_id}'
        return Product.objects.create(
            product_id=product_id,
            name=name,
            uom=uom,
            category=category,
            price=price,
            current_stock=current_stock,
            reject_stock=reject_stock,
        )

    @staticmethod
    def create_bom(raw_materials=None, finished_goods=None, processes=None, compound_codes=None,
                   bom_id=None, user=None):
        """
        Create a BOM with snapshotted lines.

        raw_materials: list of (product, weight)
        finished_goods: list of (product, quantity)
        """
        bom = BOM.objects.create(
            bom_id=bom_id or f'T-{TestDataFactory.random_string(6).upper()}',
            compound_codes=compound_codes or ['CMP-1'],
            compound_name='Test Compound',
            processes=processes if processes is not None else [],
            created_by=user,
        )
        for position, (product, weight) in enumerate(raw_materials or []):
            BOMRawMaterial.objects.create(
                bom=bom,
                position=position,
                product=product,
                raw_material_name=product.name,
                raw_material_code=product.product_id,
                weight=str(weight),
                uom=product.uom,
                category=product.category,
                product_snapshot=capture_snapshot(product),
            )
        for position, (product, quantity) in enumerate(finished_goods or []):
            BOMFinishedGood.objects.create(
                bom=bom,
                position=position,
                product=product,
                reference=f'{product.pk}-{product.name}',
                code=product.product_id,
                name=product.name,
                quantity=quantity,
                uom=product.uom,
                category=product.category,
                product_snapshot=capture_snapshot(product),
            )
        return bom

    @staticmethod
    def create_gate_entry(status='Verified', po_number=None, company_name='Test Supplier', user=None):
        """Create a test gate entry"""
        return GateEntry.objects.create(
            po_number=po_number or f'PO-{TestDataFactory.random_string(5).upper()}',
            invoice_number=f'INV-{TestDataFactory.random_string(5).upper()}',
            company_name=company_name,
            status=status,
            created_by=user,
        )

    @staticmethod
    def create_gate_item(gate_entry, item_name, item_quantity=Decimal('100')):
        """Create a gate entry item; remaining quantity starts at the received quantity"""
        return GateEntryItem.objects.create(
            gate_entry=gate_entry,
            item_name=item_name,
            item_quantity=item_quantity,
            ordered_quantity=item_quantity,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
