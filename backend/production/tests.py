"""
Comprehensive test suite for Production module
Tests: raw material consumption, QC approve/reject, undo, lifecycle state and edge cases
"""
from types import SimpleNamespace
from unittest import mock

from django.test import TestCase
from rest_framework import status
from decimal import Decimal

from backend.catalog import ledger
from backend.catalog.models import Product, StockMovement
from backend.core.exceptions import InsufficientStockError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.production import state
from backend.production.models import (
    Production, ProductionFinishedGood, ProductionQCRecord, ProductionRawMaterial, remaining,
)


class ProductionStateTests(TestCase):
    """Test derived status rules"""

    def test_process_status(self):
        """Test step status follows start/done flags"""
        self.assertEqual(state.derive_process_status(False, False), 'pending')
        self.assertEqual(state.derive_process_status(True, False), 'in_progress')
        self.assertEqual(state.derive_process_status(True, True), 'completed')
        self.assertEqual(state.derive_process_status(False, True), 'completed')

    def test_production_status(self):
        """Test run status from debit flag and steps"""
        idle = SimpleNamespace(status='pending', stock_debited=False)
        debited = SimpleNamespace(status='pending', stock_debited=True)
        done = SimpleNamespace(status='completed', stock_debited=False)
        started = [SimpleNamespace(start=True, done=False)]
        untouched = [SimpleNamespace(start=False, done=False)]

        self.assertEqual(state.derive_production_status(idle, untouched), 'pending')
        self.assertEqual(state.derive_production_status(idle, started), 'in_progress')
        self.assertEqual(state.derive_production_status(debited, untouched), 'in_progress')
        self.assertEqual(state.derive_production_status(done, untouched), 'completed')

    def test_can_finish(self):
        """Test finishing needs every step done"""
        self.assertTrue(state.can_finish([]))
        self.assertTrue(state.can_finish([SimpleNamespace(done=True)]))
        self.assertFalse(state.can_finish([SimpleNamespace(done=True), SimpleNamespace(done=False)]))

    def test_remaining_never_negative(self):
        """Test remaining quantity is floored at zero"""
        self.assertEqual(remaining(Decimal('10'), Decimal('4')), Decimal('6'))
        self.assertEqual(remaining(Decimal('10'), Decimal('30')), Decimal('0'))
        self.assertEqual(remaining(None, None), Decimal('0'))


class ProductionTestBase(TestCase):
    """Shared BOM: 2 kg rubber per unit, 10 units of compound, two process steps"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.rubber = TestDataFactory.create_product(product_id='RM-1', name='Natural Rubber',
                                                     current_stock=Decimal('100'))
        self.compound = TestDataFactory.create_product(product_id='CMP-1', name='Rubber Compound',
                                                       category='Compound')
        self.bom = TestDataFactory.create_bom(
            raw_materials=[(self.rubber, '2')],
            finished_goods=[(self.compound, Decimal('10'))],
            processes=['Mixing', 'Curing'],
            user=self.user,
        )

    def create_production(self, **payload):
        data = {'bom': self.bom.id}
        data.update(payload)
        return self.client.post('/api/v1/production/', data, format='json')

    def start(self, **payload):
        response = self.create_production(**payload)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data['data']

    def stock(self, product):
        product.refresh_from_db()
        return product.current_stock, product.reject_stock


class ProductionCreateTests(ProductionTestBase):
    """Test production start and raw material consumption"""

    def test_create_consumes_used_quantity(self):
        """Test used quantity is debited from the raw material"""
        data = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '30'}])

        self.assertEqual(self.stock(self.rubber)[0], Decimal('70'))
        self.assertEqual(data['production_id'], 'PROD-0001')
        self.assertEqual(data['status'], 'in_progress')
        self.assertTrue(data['stock_debited'])
        raw = data['raw_materials'][0]
        self.assertEqual(Decimal(raw['consumed_qty']), Decimal('30'))
        self.assertEqual(raw['product'], self.rubber.id)
        # est 2 x 10 = 20, used 30
        self.assertEqual(Decimal(raw['est_qty']), Decimal('20'))
        self.assertEqual(Decimal(raw['remain_qty']), Decimal('0'))

    def test_create_defaults_from_bom(self):
        """Test lines and steps come from the BOM when the payload has none"""
        data = self.start()

        self.assertEqual(self.stock(self.rubber)[0], Decimal('80'))
        self.assertEqual(len(data['finished_goods']), 1)
        self.assertEqual(data['finished_goods'][0]['product'], self.compound.id)
        self.assertEqual(Decimal(data['finished_goods'][0]['est_qty']), Decimal('10'))
        self.assertEqual([p['process_name'] for p in data['processes']], ['Mixing', 'Curing'])
        self.assertEqual([p['status'] for p in data['processes']], ['pending', 'pending'])

    def test_create_writes_movement_and_last_change(self):
        """Test the debit leaves an audit slot and a movement tagged with the production"""
        data = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '30'}])

        self.rubber.refresh_from_db()
        self.assertEqual(self.rubber.last_change['production_id'], data['production_id'])
        self.assertEqual(self.rubber.last_change['change_type'], 'decrease')
        movements = StockMovement.objects.filter(product=self.rubber, source_ref=data['production_id'])
        self.assertEqual(movements.count(), 1)
        self.assertEqual(movements.get().delta, Decimal('-30'))
        self.assertTrue(AuditLog.objects.filter(action='production_start', object_reference='PROD-0001').exists())

    def test_identifiers_increment(self):
        """Test consecutive productions get consecutive identifiers"""
        self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '1'}])
        data = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '1'}])
        self.assertEqual(data['production_id'], 'PROD-0002')

    def test_insufficient_stock(self):
        """Test a shortfall fails creation and leaves stock untouched"""
        Product.objects.filter(pk=self.rubber.pk).update(current_stock=Decimal('10'))

        response = self.create_production(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '30'}])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        shortfall = response.data['data'][0]
        self.assertEqual(shortfall['product_id'], 'RM-1')
        self.assertEqual(Decimal(shortfall['required']), Decimal('30'))
        self.assertEqual(Decimal(shortfall['available']), Decimal('10'))
        self.assertEqual(self.stock(self.rubber)[0], Decimal('10'))
        self.assertEqual(Production.objects.count(), 0)
        self.assertFalse(StockMovement.objects.exists())

    def test_shortfalls_aggregated_per_product(self):
        """Test two lines on the same product are checked against their sum"""
        Product.objects.filter(pk=self.rubber.pk).update(current_stock=Decimal('50'))

        response = self.create_production(raw_materials=[
            {'raw_material_code': 'RM-1', 'used_qty': '30'},
            {'raw_material_code': 'RM-1', 'used_qty': '30'},
        ])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(Decimal(response.data['data'][0]['required']), Decimal('60'))
        self.assertEqual(self.stock(self.rubber)[0], Decimal('50'))

    def test_every_shortfall_reported(self):
        """Test all short products are listed, not just the first"""
        TestDataFactory.create_product(product_id='RM-2', name='Carbon Black')
        Product.objects.filter(pk=self.rubber.pk).update(current_stock=Decimal('5'))

        response = self.create_production(raw_materials=[
            {'raw_material_code': 'RM-1', 'used_qty': '30'},
            {'raw_material_code': 'RM-2', 'used_qty': '3'},
        ])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual({s['product_id'] for s in response.data['data']}, {'RM-1', 'RM-2'})

    def test_later_line_failure_rolls_back_earlier_debits(self):
        """Test a failure on the second debit undoes the first"""
        carbon = TestDataFactory.create_product(product_id='RM-2', name='Carbon Black', current_stock=Decimal('10'))
        real_debit = ledger.debit_stock
        calls = []

        def flaky_debit(product, quantity, *args, **kwargs):
            calls.append(product.product_id)
            if len(calls) == 2:
                raise InsufficientStockError([ledger.shortfall_entry('Carbon Black', product, quantity, Decimal('0'))])
            return real_debit(product, quantity, *args, **kwargs)

        with mock.patch('backend.catalog.ledger.debit_stock', side_effect=flaky_debit):
            response = self.create_production(raw_materials=[
                {'raw_material_code': 'RM-1', 'used_qty': '30'},
                {'raw_material_code': 'RM-2', 'used_qty': '3'},
            ])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(len(calls), 2)
        self.assertEqual(self.stock(self.rubber)[0], Decimal('100'))
        self.assertEqual(self.stock(carbon)[0], Decimal('10'))
        self.assertEqual(Production.objects.count(), 0)
        self.assertFalse(StockMovement.objects.exists())

    def test_unresolved_raw_material(self):
        """Test a line naming no product aborts creation with 404"""
        response = self.create_production(raw_materials=[
            {'raw_material_code': 'RM-1', 'used_qty': '5'},
            {'raw_material_name': 'Unobtainium', 'used_qty': '5'},
        ])

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['data'], {'line_item': 'Unobtainium'})
        self.assertEqual(self.stock(self.rubber)[0], Decimal('100'))
        self.assertEqual(Production.objects.count(), 0)

    def test_zero_quantity_line_skipped(self):
        """Test lines with nothing to consume are not resolved or debited"""
        data = self.start(raw_materials=[
            {'raw_material_code': 'RM-1', 'used_qty': '5'},
            {'raw_material_name': 'Unobtainium', 'est_qty': '0'},
        ])
        self.assertEqual(len(data['raw_materials']), 2)
        self.assertEqual(self.stock(self.rubber)[0], Decimal('95'))

    def test_nothing_consumed_stays_pending(self):
        """Test a run that debited nothing and started no step is pending"""
        data = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'est_qty': '0'}])
        self.assertEqual(data['status'], 'pending')
        self.assertFalse(data['stock_debited'])
        self.assertEqual(self.stock(self.rubber)[0], Decimal('100'))

    def test_bom_required(self):
        """Test missing BOM is a validation error"""
        response = self.client.post('/api/v1/production/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('BOM is required', response.data['message'])

    def test_bom_not_found(self):
        """Test unknown BOM is not found"""
        response = self.client.post('/api/v1/production/', {'bom': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_negative_quantity_rejected(self):
        """Test negative quantities fail validation"""
        response = self.create_production(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '-5'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stock(self.rubber)[0], Decimal('100'))


class ProductionUpdateTests(ProductionTestBase):
    """Test manual edits, lifecycle and deletion"""

    def setUp(self):
        super().setUp()
        self.production = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '30'}])
        self.url = f"/api/v1/production/{self.production['id']}/"

    def test_update_recomputes_remaining(self):
        """Test remain_qty follows est minus produced or used"""
        fg = self.production['finished_goods'][0]
        raw = self.production['raw_materials'][0]
        response = self.client.put(self.url, {
            'finished_goods': [{'id': fg['id'], 'prod_qty': '8'}],
            'raw_materials': [{'id': raw['id'], 'est_qty': '50', 'used_qty': '35'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(Decimal(data['finished_goods'][0]['remain_qty']), Decimal('2'))
        self.assertEqual(Decimal(data['raw_materials'][0]['remain_qty']), Decimal('15'))

    def test_update_does_not_move_stock(self):
        """Test editing used quantity after start leaves stock alone"""
        raw = self.production['raw_materials'][0]
        self.client.put(self.url, {'raw_materials': [{'id': raw['id'], 'used_qty': '60'}]}, format='json')
        self.assertEqual(self.stock(self.rubber)[0], Decimal('70'))
        line = ProductionRawMaterial.objects.get(pk=raw['id'])
        self.assertEqual(line.consumed_qty, Decimal('30'))

    def test_update_foreign_line_rejected(self):
        """Test lines of another production cannot be edited"""
        response = self.client.put(self.url, {
            'finished_goods': [{'id': 999999, 'prod_qty': '8'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_process_flags_drive_status(self):
        """Test step flags recompute step status"""
        processes = self.production['processes']
        response = self.client.put(self.url, {
            'processes': [
                {'id': processes[0]['id'], 'start': True, 'done': True},
                {'id': processes[1]['id'], 'start': True},
            ],
        }, format='json')
        data = response.data['data']
        self.assertEqual([p['status'] for p in data['processes']], ['completed', 'in_progress'])
        self.assertEqual(data['status'], 'in_progress')

    def test_finish_blocked_by_unfinished_steps(self):
        """Test finish lists the steps still open"""
        response = self.client.patch(f'{self.url}finish/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['data']['unfinished_steps'], ['Mixing', 'Curing'])
        self.assertEqual(Production.objects.get(pk=self.production['id']).status, 'in_progress')

    def test_finish_idempotent(self):
        """Test finish completes once and repeated calls are no-ops"""
        processes = self.production['processes']
        self.client.put(self.url, {
            'processes': [{'id': p['id'], 'start': True, 'done': True} for p in processes],
        }, format='json')

        response = self.client.patch(f'{self.url}finish/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Production completed')
        self.assertEqual(response.data['data']['status'], 'completed')
        completed_at = response.data['data']['completed_at']
        self.assertIsNotNone(completed_at)

        response = self.client.patch(f'{self.url}finish/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Production already completed')
        self.assertEqual(response.data['data']['completed_at'], completed_at)

    def test_completed_is_sticky(self):
        """Test editing steps after completion keeps the run completed"""
        processes = self.production['processes']
        self.client.put(self.url, {
            'processes': [{'id': p['id'], 'start': True, 'done': True} for p in processes],
        }, format='json')
        self.client.patch(f'{self.url}finish/', {}, format='json')

        response = self.client.put(self.url, {
            'processes': [{'id': processes[0]['id'], 'done': False}],
        }, format='json')
        self.assertEqual(response.data['data']['status'], 'completed')

    def test_ready_for_qc(self):
        """Test ready-for-QC flag"""
        response = self.client.patch(f'{self.url}ready-for-qc/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['ready_for_qc'])

    def test_delete_without_qc_history(self):
        """Test deletion keeps the raw material debit"""
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Production.objects.exists())
        self.assertEqual(self.stock(self.rubber)[0], Decimal('70'))

    def test_delete_blocked_by_qc_history(self):
        """Test a run with QC history cannot be deleted"""
        self.client.patch(f'{self.url}approve/', {'approved_qty': '5'}, format='json')
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Production.objects.filter(pk=self.production['id']).exists())

    def test_get_production(self):
        """Test detail endpoint"""
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['bom_id'], self.bom.bom_id)

    def test_get_production_not_found(self):
        """Test unknown production"""
        response = self.client.get('/api/v1/production/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductionQCTests(ProductionTestBase):
    """Test QC approval, rejection and undo"""

    def setUp(self):
        super().setUp()
        self.production = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '30'}])
        self.url = f"/api/v1/production/{self.production['id']}/"
        self.production_id = self.production['production_id']

    def approve(self, **payload):
        return self.client.patch(f'{self.url}approve/', payload, format='json')

    def test_approve_credits_usable_and_reject_stock(self):
        """Test approval adds approved to usable and rejected to reject stock"""
        response = self.approve(approved_qty='20', rejected_qty='5')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Production approved successfully')
        self.assertEqual(self.stock(self.compound), (Decimal('20'), Decimal('5')))
        data = response.data['data']
        self.assertEqual(data['qc_status'], 'approved')
        self.assertTrue(data['qc_done'])
        self.assertEqual(Decimal(data['approved_qty']), Decimal('20'))
        self.assertEqual(Decimal(data['rejected_qty']), Decimal('5'))

    def test_approve_writes_one_movement(self):
        """Test exactly one movement of +approved for the production"""
        self.approve(approved_qty='20', rejected_qty='5')

        movements = StockMovement.objects.filter(product=self.compound, source_ref=self.production_id)
        self.assertEqual(movements.count(), 1)
        self.assertEqual(movements.get().delta, Decimal('20'))
        self.compound.refresh_from_db()
        self.assertEqual(self.compound.last_change['production_id'], self.production_id)
        self.assertEqual(self.compound.last_change['change_type'], 'increase')

        record = ProductionQCRecord.objects.get()
        self.assertEqual(record.action, 'approved')
        self.assertEqual(record.approved_quantity, Decimal('20'))
        self.assertEqual(record.rejected_quantity, Decimal('5'))
        self.assertTrue(AuditLog.objects.filter(action='production_approve').exists())

    def test_approve_defaults_to_produced_quantity(self):
        """Test produced quantity is credited when none is approved"""
        fg = self.production['finished_goods'][0]
        self.client.put(self.url, {'finished_goods': [{'id': fg['id'], 'prod_qty': '8'}]}, format='json')

        response = self.approve()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock(self.compound)[0], Decimal('8'))

    def test_approve_nothing_to_credit(self):
        """Test approval without approved or produced quantity is rejected"""
        response = self.approve()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ProductionQCRecord.objects.exists())
        self.assertFalse(Production.objects.get(pk=self.production['id']).qc_done)

    def test_reapproval_rejected(self):
        """Test a run cannot be approved twice"""
        self.approve(approved_qty='20')
        response = self.approve(approved_qty='20')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stock(self.compound)[0], Decimal('20'))
        self.assertEqual(ProductionQCRecord.objects.count(), 1)

    def test_unresolved_output_aborts_approval(self):
        """Test approval fails and credits nothing when the output product is gone"""
        self.compound.delete()

        response = self.approve(approved_qty='20')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Production.objects.get(pk=self.production['id']).qc_done)

    def test_reject_moves_output_to_reject_stock(self):
        """Test rejection touches reject stock only"""
        response = self.client.patch(f'{self.url}reject/', {
            'rejected_qty': '7',
            'reason': 'Porosity',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock(self.compound), (Decimal('0'), Decimal('7')))
        self.assertFalse(StockMovement.objects.filter(product=self.compound).exists())
        data = response.data['data']
        self.assertEqual(data['qc_status'], 'rejected')
        self.assertEqual(data['reject_reason'], 'Porosity')
        record = ProductionQCRecord.objects.get()
        self.assertEqual(record.action, 'rejected')
        self.assertEqual(record.approved_quantity, Decimal('0'))

    def test_reject_books_no_approved_quantity(self):
        """Test a requested approved quantity on rejection is not shown as approved"""
        response = self.client.patch(f'{self.url}reject/', {
            'approved_qty': '3',
            'rejected_qty': '7',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['approved_qty']), Decimal('0'))
        self.assertEqual(Decimal(response.data['data']['rejected_qty']), Decimal('7'))
        self.assertEqual(self.stock(self.compound)[0], Decimal('0'))

    def test_undo_approval(self):
        """Test deleting QC history takes the credit back and reopens QC"""
        self.approve(approved_qty='20', rejected_qty='5')
        record = ProductionQCRecord.objects.get()

        response = self.client.delete(f'/api/v1/production/qc-history/{record.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['reversed_qty']), Decimal('20'))
        self.assertEqual(self.stock(self.compound), (Decimal('0'), Decimal('0')))
        production = response.data['data']['production']
        self.assertIsNone(production['qc_status'])
        self.assertFalse(production['qc_done'])
        self.assertFalse(ProductionQCRecord.objects.exists())
        self.assertEqual(Decimal(production['approved_qty']), Decimal('0'))
        self.assertEqual(Decimal(production['rejected_qty']), Decimal('0'))

        # QC can run again without booking the rejected quantity twice
        response = self.approve(approved_qty='20', rejected_qty='5')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock(self.compound), (Decimal('20'), Decimal('5')))

    def test_undo_floored_at_zero(self):
        """Test undo after the credit was partly consumed leaves max(0, S - A)"""
        self.approve(approved_qty='20')
        Product.objects.filter(pk=self.compound.pk).update(current_stock=Decimal('15'))
        record = ProductionQCRecord.objects.get()

        response = self.client.delete(f'/api/v1/production/qc-history/{record.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['reversed_qty']), Decimal('15'))
        self.assertEqual(self.stock(self.compound)[0], Decimal('0'))

    def test_undo_rejection(self):
        """Test deleting a rejection takes its reject stock back"""
        self.client.patch(f'{self.url}reject/', {'rejected_qty': '7'}, format='json')
        Product.objects.filter(pk=self.compound.pk).update(reject_stock=Decimal('10'))
        record = ProductionQCRecord.objects.get()

        response = self.client.delete(f'/api/v1/production/qc-history/{record.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['reversed_qty']), Decimal('0'))
        self.assertEqual(self.stock(self.compound), (Decimal('0'), Decimal('3')))
        self.assertFalse(StockMovement.objects.filter(product=self.compound).exists())
        self.assertIsNone(response.data['data']['production']['qc_status'])

    def test_undo_rejection_floored_at_zero(self):
        """Test reject stock already cleared out stays at zero"""
        self.client.patch(f'{self.url}reject/', {'rejected_qty': '7'}, format='json')
        Product.objects.filter(pk=self.compound.pk).update(reject_stock=Decimal('2'))
        record = ProductionQCRecord.objects.get()

        self.client.delete(f'/api/v1/production/qc-history/{record.id}/')

        self.assertEqual(self.stock(self.compound)[1], Decimal('0'))

    def test_undo_unknown_record(self):
        """Test deleting a missing QC history entry"""
        response = self.client.delete('/api/v1/production/qc-history/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_qc_history_list_filtered(self):
        """Test QC history can be filtered by production identifier"""
        self.approve(approved_qty='20')
        other = self.start(raw_materials=[{'raw_material_code': 'RM-1', 'used_qty': '1'}])
        self.client.patch(f"/api/v1/production/{other['id']}/reject/", {'rejected_qty': '1'}, format='json')

        response = self.client.get('/api/v1/production/qc-history/')
        self.assertEqual(len(response.data['data']), 2)

        response = self.client.get('/api/v1/production/qc-history/', {'production_id': self.production_id})
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['action'], 'approved')

        response = self.client.get('/api/v1/production/qc-history/', {'action': 'rejected'})
        self.assertEqual(response.data['data'][0]['production_code'], other['production_id'])


class MultiOutputQCTests(ProductionTestBase):
    """Test per-line QC quantities on a BOM with two outputs"""

    def setUp(self):
        super().setUp()
        self.part = TestDataFactory.create_product(product_id='PRT-1', name='Gasket', category='Part')
        self.bom = TestDataFactory.create_bom(
            raw_materials=[(self.rubber, '1')],
            finished_goods=[(self.compound, Decimal('10')), (self.part, Decimal('40'))],
        )

    def test_per_line_approval(self):
        """Test each output line gets its own credit"""
        production = self.start()
        self.assertEqual(len(production['finished_goods']), 2)

        response = self.client.patch(f"/api/v1/production/{production['id']}/approve/", {
            'lines': [
                {'approved_qty': '9', 'rejected_qty': '1'},
                {'approved_qty': '38', 'rejected_qty': '2'},
            ],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.stock(self.compound), (Decimal('9'), Decimal('1')))
        self.assertEqual(self.stock(self.part), (Decimal('38'), Decimal('2')))
        self.assertEqual(Decimal(response.data['data']['approved_qty']), Decimal('47'))
        self.assertEqual(ProductionQCRecord.objects.count(), 2)

    def test_undo_one_line_keeps_other_line_totals(self):
        """Test deleting one line's QC record only removes that line's quantities"""
        production = self.start()
        self.client.patch(f"/api/v1/production/{production['id']}/approve/", {
            'lines': [
                {'approved_qty': '9', 'rejected_qty': '1'},
                {'approved_qty': '38', 'rejected_qty': '2'},
            ],
        }, format='json')
        record = ProductionQCRecord.objects.get(product=self.part)

        response = self.client.delete(f'/api/v1/production/qc-history/{record.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']['production']
        self.assertEqual(Decimal(data['approved_qty']), Decimal('9'))
        self.assertEqual(Decimal(data['rejected_qty']), Decimal('1'))
        self.assertEqual(data['qc_status'], 'approved')
        self.assertTrue(data['qc_done'])
        self.assertEqual(self.stock(self.part), (Decimal('0'), Decimal('0')))
        self.assertEqual(self.stock(self.compound), (Decimal('9'), Decimal('1')))

        line = ProductionFinishedGood.objects.get(production_id=production['id'], product=self.part)
        self.assertEqual(line.approved_qty, Decimal('0'))
        self.assertEqual(line.rejected_qty, Decimal('0'))

    def test_too_many_lines_rejected(self):
        """Test more per-line quantities than output lines is a validation error"""
        production = self.start()
        response = self.client.patch(f"/api/v1/production/{production['id']}/approve/", {
            'lines': [{'approved_qty': '1'}, {'approved_qty': '1'}, {'approved_qty': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stock(self.compound)[0], Decimal('0'))
