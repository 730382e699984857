"""
Tests for BOM authoring: identifiers, product snapshots and code lookup
"""
from django.test import TestCase
from rest_framework import status
from decimal import Decimal

from backend.bom.models import BOM
from backend.bom.serializers import bom_prefix
from backend.bom.snapshots import capture_snapshot, snapshot_lines, RAW_MATERIAL_FIELDS
from backend.catalog.models import Product
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class BOMPrefixTests(TestCase):
    """Test BOM identifier prefix derivation"""

    def test_prefix_from_first_compound_code(self):
        """Test letters of the first compound code, upper-cased, three max"""
        self.assertEqual(bom_prefix(['rub-12', 'sil-1']), 'RUB')
        self.assertEqual(bom_prefix(['N1-BR']), 'NBR')

    def test_prefix_default(self):
        """Test fallback prefix without a usable code"""
        self.assertEqual(bom_prefix([]), 'BOM')
        self.assertEqual(bom_prefix(['123']), 'BOM')


class SnapshotTests(TestCase):
    """Test product snapshot capture"""

    def setUp(self):
        self.product = TestDataFactory.create_product(product_id='RM1', name='Natural Rubber',
                                                      current_stock=Decimal('5'))

    def test_capture_snapshot(self):
        """Test snapshot copies identifying fields and stock"""
        snapshot = capture_snapshot(self.product)
        self.assertEqual(snapshot['id'], self.product.pk)
        self.assertEqual(snapshot['product_id'], 'RM1')
        self.assertEqual(snapshot['name'], 'Natural Rubber')
        self.assertEqual(Decimal(snapshot['current_stock']), Decimal('5'))
        self.assertIn('captured_at', snapshot)

    def test_snapshot_lines_fills_blank_fields(self):
        """Test blank denormalized fields are filled from the product"""
        lines = [{'product': self.product, 'weight': '2'}]
        snapshot_lines(lines, RAW_MATERIAL_FIELDS)
        self.assertEqual(lines[0]['raw_material_code'], 'RM1')
        self.assertEqual(lines[0]['raw_material_name'], 'Natural Rubber')
        self.assertEqual(lines[0]['product_snapshot']['id'], self.product.pk)

    def test_snapshot_lines_reuses_previous(self):
        """Test an existing snapshot for the same product is kept"""
        previous = {self.product.pk: {'id': self.product.pk, 'name': 'Old Name'}}
        lines = [{'product': self.product}]
        snapshot_lines(lines, RAW_MATERIAL_FIELDS, previous)
        self.assertEqual(lines[0]['product_snapshot']['name'], 'Old Name')

    def test_composite_reference_without_product(self):
        """Test a composite reference naming no product leaves the line unsnapshotted"""
        lines = [{'reference': '999999-Ghost'}]
        snapshot_lines(lines, RAW_MATERIAL_FIELDS)
        self.assertIsNone(lines[0]['product'])
        self.assertIsNone(lines[0]['product_snapshot'])


class BOMAPITests(TestCase):
    """Test BOM endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.rubber = TestDataFactory.create_product(product_id='RM1', name='Natural Rubber')
        self.carbon = TestDataFactory.create_product(product_id='RM2', name='Carbon Black')
        self.compound = TestDataFactory.create_product(product_id='CMP1', name='Rubber Compound',
                                                       category='Compound')

    def bom_payload(self, **overrides):
        data = {
            'compound_codes': ['rub-12'],
            'compound_name': 'Rubber Compound',
            'processes': ['Mixing', 'Curing'],
            'raw_materials': [
                {'product': self.rubber.id, 'weight': '2'},
                {'product': self.carbon.id, 'weight': '0.5'},
            ],
            'finished_goods': [
                {'line_type': 'compound', 'reference': f'{self.compound.id}-Rubber Compound', 'quantity': '10'},
            ],
        }
        data.update(overrides)
        return data

    def test_create_bom(self):
        """Test BOM creation assigns an identifier and snapshots every line"""
        response = self.client.post('/api/v1/bom/', self.bom_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'BOM saved successfully')

        data = response.data['data']
        self.assertEqual(data['bom_id'], 'RUB-001')
        self.assertEqual(len(data['raw_materials']), 2)
        self.assertEqual(data['raw_materials'][0]['raw_material_code'], 'RM1')
        self.assertEqual(data['raw_materials'][0]['product_snapshot']['name'], 'Natural Rubber')
        finished = data['finished_goods'][0]
        self.assertEqual(finished['product'], self.compound.id)
        self.assertEqual(finished['code'], 'CMP1')
        self.assertEqual(finished['product_snapshot']['id'], self.compound.id)
        self.assertEqual(data['processes'], ['Mixing', 'Curing'])
        self.assertTrue(AuditLog.objects.filter(action='bom_create', object_reference='RUB-001').exists())

    def test_bom_identifiers_increment(self):
        """Test consecutive BOMs with the same prefix get consecutive numbers"""
        self.client.post('/api/v1/bom/', self.bom_payload(), format='json')
        response = self.client.post('/api/v1/bom/', self.bom_payload(), format='json')
        self.assertEqual(response.data['data']['bom_id'], 'RUB-002')

    def test_create_bom_requires_raw_materials(self):
        """Test a BOM without inputs is rejected"""
        response = self.client.post('/api/v1/bom/', self.bom_payload(raw_materials=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(BOM.objects.count(), 0)

    def test_create_bom_unknown_product(self):
        """Test an explicit product id that does not exist is rejected"""
        payload = self.bom_payload(raw_materials=[{'product': 999999, 'weight': '1'}])
        response = self.client.post('/api/v1/bom/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(BOM.objects.count(), 0)

    def test_snapshot_frozen_after_product_edit(self):
        """Test later product edits do not change the stored snapshot"""
        response = self.client.post('/api/v1/bom/', self.bom_payload(), format='json')
        bom_pk = response.data['data']['id']

        Product.objects.filter(pk=self.rubber.pk).update(name='Renamed Rubber')

        response = self.client.get(f'/api/v1/bom/{bom_pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['raw_materials'][0]['product_snapshot']['name'], 'Natural Rubber')

    def test_update_keeps_snapshot_for_unchanged_product(self):
        """Test replacing lines keeps the snapshot when the product is the same"""
        response = self.client.post('/api/v1/bom/', self.bom_payload(), format='json')
        bom_pk = response.data['data']['id']
        Product.objects.filter(pk=self.rubber.pk).update(name='Renamed Rubber')

        response = self.client.put(f'/api/v1/bom/{bom_pk}/', {
            'raw_materials': [
                {'product': self.rubber.id, 'weight': '3'},
                {'product': self.compound.id, 'weight': '1'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        raw = response.data['data']['raw_materials']
        self.assertEqual(raw[0]['weight'], '3')
        self.assertEqual(raw[0]['product_snapshot']['name'], 'Natural Rubber')
        self.assertEqual(raw[1]['product_snapshot']['name'], 'Rubber Compound')
        # finished goods were not part of the update
        self.assertEqual(len(response.data['data']['finished_goods']), 1)

    def test_bom_not_found(self):
        """Test unknown BOM gives a 404 envelope"""
        response = self.client.get('/api/v1/bom/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])


class BOMLookupTests(TestCase):
    """Test compound code lookup"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.rubber = TestDataFactory.create_product(product_id='RM1', name='Natural Rubber')
        self.compound = TestDataFactory.create_product(product_id='CMP1', name='Rubber Compound')

    def test_lookup_requires_code(self):
        """Test missing code is a client error"""
        response = self.client.get('/api/v1/bom/lookup/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_lookup_unknown_code(self):
        """Test unknown code is not found"""
        response = self.client.get('/api/v1/bom/lookup/', {'code': 'NOPE'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_lookup_product_only(self):
        """Test a product not used as BOM output reports product source"""
        response = self.client.get('/api/v1/bom/lookup/', {'code': 'RM1'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['source'], 'product')
        self.assertEqual(response.data['data']['name'], 'Natural Rubber')

    def test_lookup_bom_output(self):
        """Test a code used on a BOM output line reports the BOM source"""
        TestDataFactory.create_bom(raw_materials=[(self.rubber, '1')], finished_goods=[(self.compound, '5')])
        response = self.client.get('/api/v1/bom/lookup/', {'code': 'CMP1'})
        self.assertEqual(response.data['data']['source'], 'bom.finished_goods')
