"""
Tests for gate-entry quality checks and their stock effects
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase
from rest_framework import status
from decimal import Decimal

from backend.catalog.models import Product, StockMovement
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.quality.models import GateEntry, GateEntryItem, QualityCheck


class QualityCheckModelTests(TestCase):
    """Test the max-allowed invariant on the model"""

    def setUp(self):
        self.gate_entry = TestDataFactory.create_gate_entry()
        self.item = TestDataFactory.create_gate_item(self.gate_entry, 'Natural Rubber', Decimal('50'))

    def test_total_computed_on_save(self):
        """Test total is approved plus rejected"""
        check = QualityCheck(gate_entry=self.gate_entry, item=self.item, item_name='Natural Rubber',
                             approved_quantity=Decimal('30'), rejected_quantity=Decimal('5'),
                             max_allowed_quantity=Decimal('50'))
        check.save()
        self.assertEqual(check.total_quantity, Decimal('35'))

    def test_total_above_max_rejected(self):
        """Test the save is refused rather than clamped"""
        check = QualityCheck(gate_entry=self.gate_entry, item=self.item, item_name='Natural Rubber',
                             approved_quantity=Decimal('45'), rejected_quantity=Decimal('10'),
                             max_allowed_quantity=Decimal('50'))
        with self.assertRaises(DjangoValidationError):
            check.save()
        self.assertFalse(QualityCheck.objects.exists())

    def test_new_item_remaining_starts_full(self):
        """Test a new gate item is fully uninspected"""
        self.assertEqual(self.item.remaining_quantity, Decimal('50'))


class GateEntryAPITests(TestCase):
    """Test minimal gate entry endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_and_verify(self):
        """Test a gate entry is created and then verified"""
        response = self.client.post('/api/v1/gate-entries/', {
            'po_number': 'PO-100',
            'invoice_number': 'INV-7',
            'company_name': 'Rubber Supplies Ltd',
            'items': [{'item_name': 'Natural Rubber', 'item_quantity': '50', 'ordered_quantity': '50'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['status'], 'Entry Created')
        self.assertEqual(Decimal(data['items'][0]['remaining_quantity']), Decimal('50'))

        response = self.client.patch(f"/api/v1/gate-entries/{data['id']}/verify/", {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(GateEntry.objects.get(pk=data['id']).status, 'Verified')

    def test_create_requires_items(self):
        """Test a gate entry without items is rejected"""
        response = self.client.post('/api/v1/gate-entries/', {
            'po_number': 'PO-100',
            'company_name': 'Rubber Supplies Ltd',
            'items': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class QualityCheckAPITests(TestCase):
    """Test quality check create, update, delete and listing"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(product_id='RM-1', name='Natural Rubber',
                                                      current_stock=Decimal('10'))
        self.gate_entry = TestDataFactory.create_gate_entry(po_number='PO-100')
        self.item = TestDataFactory.create_gate_item(self.gate_entry, 'Natural Rubber', Decimal('50'))

    def create_check(self, approved='30', rejected='5', **overrides):
        data = {
            'gate_entry': self.gate_entry.id,
            'item': self.item.id,
            'approved_quantity': approved,
            'rejected_quantity': rejected,
            'remarks': 'Visual check',
        }
        data.update(overrides)
        return self.client.post('/api/v1/quality-checks/', data, format='json')

    def stock(self):
        self.product.refresh_from_db()
        return self.product.current_stock, self.product.reject_stock

    def test_create_credits_stock(self):
        """Test approved goes to usable stock and rejected to reject stock"""
        response = self.create_check()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.stock(), (Decimal('40'), Decimal('5')))
        self.assertEqual(Decimal(response.data['data']['total_quantity']), Decimal('35'))
        self.item.refresh_from_db()
        self.assertEqual(self.item.remaining_quantity, Decimal('15'))

        movement = StockMovement.objects.get(product=self.product)
        self.assertEqual(movement.source_type, 'quality_check')
        self.assertEqual(movement.delta, Decimal('30'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.last_change['change_type'], 'increase')

    def test_create_requires_verified_gate_entry(self):
        """Test checks are refused before the gate entry is verified"""
        GateEntry.objects.filter(pk=self.gate_entry.pk).update(status='Entry Created')
        response = self.create_check()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stock(), (Decimal('10'), Decimal('0')))

    def test_create_unknown_gate_entry(self):
        """Test unknown gate entry is not found"""
        response = self.create_check(gate_entry=999999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_item_from_other_gate_entry(self):
        """Test item must belong to the gate entry"""
        other = TestDataFactory.create_gate_entry()
        other_item = TestDataFactory.create_gate_item(other, 'Natural Rubber')
        response = self.create_check(item=other_item.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(QualityCheck.objects.exists())

    def test_create_exceeding_received_quantity(self):
        """Test all checks on one item stay within the received quantity"""
        self.create_check(approved='30', rejected='5')
        response = self.create_check(approved='15', rejected='1')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(QualityCheck.objects.count(), 1)
        self.assertEqual(self.stock(), (Decimal('40'), Decimal('5')))

    def test_create_negative_quantity(self):
        """Test negative quantities fail validation"""
        response = self.create_check(approved='-1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_unresolved_item(self):
        """Test an item naming no product aborts without saving the check"""
        item = TestDataFactory.create_gate_item(self.gate_entry, 'Unobtainium', Decimal('5'))
        response = self.create_check(item=item.id, approved='1', rejected='0')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(QualityCheck.objects.exists())
        item.refresh_from_db()
        self.assertEqual(item.remaining_quantity, Decimal('5'))

    def test_update_adjusts_by_difference(self):
        """Test raising approved credits the difference and lowering rejected gives it back"""
        check_id = self.create_check().data['data']['id']

        response = self.client.put(f'/api/v1/quality-checks/{check_id}/', {
            'approved_quantity': '40',
            'rejected_quantity': '2',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock(), (Decimal('50'), Decimal('2')))
        self.item.refresh_from_db()
        self.assertEqual(self.item.remaining_quantity, Decimal('8'))

    def test_update_lowering_approved_floored(self):
        """Test reducing approved never takes stock below zero"""
        check_id = self.create_check().data['data']['id']
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('4'))

        response = self.client.put(f'/api/v1/quality-checks/{check_id}/', {
            'approved_quantity': '20',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock()[0], Decimal('0'))

    def test_update_above_maximum(self):
        """Test update re-validates against the received quantity"""
        check_id = self.create_check().data['data']['id']
        response = self.client.put(f'/api/v1/quality-checks/{check_id}/', {
            'approved_quantity': '60',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stock(), (Decimal('40'), Decimal('5')))

    def test_delete_reverses_stock(self):
        """Test deleting a check takes back its approved and rejected quantities"""
        check_id = self.create_check().data['data']['id']

        response = self.client.delete(f'/api/v1/quality-checks/{check_id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['reversed_qty']), Decimal('30'))
        self.assertEqual(self.stock(), (Decimal('10'), Decimal('0')))
        self.item.refresh_from_db()
        self.assertEqual(self.item.remaining_quantity, Decimal('50'))
        self.assertFalse(QualityCheck.objects.exists())

    def test_delete_floored_at_zero(self):
        """Test undo after the stock was consumed stops at zero"""
        check_id = self.create_check().data['data']['id']
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('12'))

        response = self.client.delete(f'/api/v1/quality-checks/{check_id}/')

        self.assertEqual(Decimal(response.data['data']['reversed_qty']), Decimal('12'))
        self.assertEqual(self.stock()[0], Decimal('0'))

    def test_list_requires_gate_entry(self):
        """Test listing needs a gate entry filter"""
        response = self.client.get('/api/v1/quality-checks/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_detail(self):
        """Test checks are listed per gate entry and retrievable"""
        check_id = self.create_check().data['data']['id']

        response = self.client.get('/api/v1/quality-checks/', {'gate_entry': self.gate_entry.id})
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['po_number'], 'PO-100')

        response = self.client.get(f'/api/v1/quality-checks/{check_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['item_name'], 'Natural Rubber')

    def test_available_products(self):
        """Test only verified items with uninspected quantity are offered"""
        pending = TestDataFactory.create_gate_entry(status='Entry Created')
        TestDataFactory.create_gate_item(pending, 'Carbon Black')
        self.create_check(approved='45', rejected='5')
        open_item = TestDataFactory.create_gate_item(self.gate_entry, 'Carbon Black', Decimal('20'))

        response = self.client.get('/api/v1/quality-checks/available-products/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data['data']], [open_item.id])
        self.assertEqual(GateEntryItem.objects.get(pk=self.item.pk).remaining_quantity, Decimal('0'))
