"""
Tests for catalog: product resolution chain, stock ledger primitives,
product endpoints and the check_ledger command
"""
from io import StringIO

from django.core.management import call_command
from django.db import transaction
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from decimal import Decimal

from backend.catalog import ledger
from backend.catalog.models import Product, StockMovement
from backend.catalog.resolution import LineReference, resolve_product, split_composite, parse_pk
from backend.core.exceptions import AmbiguousReferenceError, InsufficientStockError, ProductNotResolvedError
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ResolutionChainTests(TestCase):
    """Test each step of the product resolution chain"""

    def setUp(self):
        self.rubber = TestDataFactory.create_product(product_id='RM1', name='Natural Rubber')
        self.premium = TestDataFactory.create_product(product_id='RM2', name='Natural Rubber Premium')
        self.carbon = TestDataFactory.create_product(product_id='RM3', name='Carbon Black')

    def assertResolves(self, reference, product, strategy):
        resolution = resolve_product(reference)
        self.assertEqual(resolution.product, product)
        self.assertEqual(resolution.strategy, strategy)

    def test_direct_id(self):
        """Test a live product pk wins"""
        self.assertResolves(LineReference(product_pk=self.carbon.pk, name='Natural Rubber'), self.carbon, 'direct_id')

    def test_composite_id(self):
        """Test composite reference left part as pk"""
        self.assertResolves(LineReference(composite=f'{self.carbon.pk}-Carbon Black'), self.carbon, 'composite_id')

    def test_composite_code(self):
        """Test composite reference left part as product code"""
        self.assertResolves(LineReference(composite='RM3-Carbon Black'), self.carbon, 'composite_code')

    def test_snapshot_code(self):
        """Test snapshot product code is tried before snapshot id"""
        reference = LineReference(snapshot={'product_id': 'RM3', 'id': self.rubber.pk})
        self.assertResolves(reference, self.carbon, 'snapshot_code')

    def test_snapshot_id(self):
        """Test snapshot id is used when its code is stale"""
        reference = LineReference(snapshot={'product_id': 'RENAMED', 'id': self.carbon.pk})
        self.assertResolves(reference, self.carbon, 'snapshot_id')

    def test_stale_pk_falls_through_to_code(self):
        """Test a deleted product pk does not stop resolution"""
        self.assertResolves(LineReference(product_pk=999999, code='RM1'), self.rubber, 'code')

    def test_exact_name_preferred_over_substring(self):
        """Test case-insensitive exact name beats a longer name containing it"""
        self.assertResolves(LineReference(name='natural rubber'), self.rubber, 'name_exact')

    def test_name_substring(self):
        """Test unique substring match"""
        self.assertResolves(LineReference(name='carbon'), self.carbon, 'name_contains')

    def test_code_or_name_across_inputs(self):
        """Test a name-like code still finds the product by name"""
        self.assertResolves(LineReference(code='Carbon'), self.carbon, 'code_or_name')

    def test_ambiguous_name_raises(self):
        """Test substring matching several products is rejected, not guessed"""
        with self.assertRaises(AmbiguousReferenceError) as ctx:
            resolve_product(LineReference(name='Rubber'))
        self.assertEqual(sorted(ctx.exception.candidates), ['RM1', 'RM2'])

    def test_not_found_raises(self):
        """Test nothing matching raises instead of skipping the line"""
        with self.assertRaises(ProductNotResolvedError) as ctx:
            resolve_product(LineReference(code='NOPE', name='Unobtainium', label='Unobtainium'))
        self.assertEqual(ctx.exception.label, 'Unobtainium')

    def test_resolution_is_repeatable(self):
        """Test resolving twice gives the same product"""
        reference = LineReference(name='carbon')
        self.assertEqual(resolve_product(reference).product, resolve_product(reference).product)

    def test_helpers(self):
        """Test composite split and pk parsing"""
        self.assertEqual(split_composite('12-Rubber-Compound'), '12')
        self.assertEqual(split_composite(''), '')
        self.assertEqual(parse_pk('42'), 42)
        self.assertIsNone(parse_pk('RM1'))
        self.assertIsNone(parse_pk(0))
        self.assertIsNone(parse_pk(True))


class StockLedgerTests(TestCase):
    """Test stock ledger primitives"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(product_id='RM1', current_stock=Decimal('10'))

    def test_debit_stock(self):
        """Test debit reduces stock, records last_change and a movement"""
        with transaction.atomic():
            locked = ledger.lock_products([self.product.pk])[self.product.pk]
            movement = ledger.debit_stock(locked, Decimal('4'), 'Consumed', 'production', 'PROD-0001', user=self.user)

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('6'))
        self.assertEqual(self.product.last_change['change_type'], 'decrease')
        self.assertEqual(self.product.last_change['delta'], '-4')
        self.assertEqual(self.product.last_change['production_id'], 'PROD-0001')
        self.assertEqual(self.product.last_change['changed_by'], self.user.pk)
        self.assertEqual(movement.delta, Decimal('-4'))
        self.assertEqual(movement.balance_after, Decimal('6'))

    def test_debit_exact_stock_to_zero(self):
        """Test stock can be consumed down to exactly zero"""
        with transaction.atomic():
            ledger.debit_stock(self.product, Decimal('10'), 'Consumed', 'production', 'PROD-0001')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('0'))

    def test_debit_insufficient(self):
        """Test debit past zero raises and leaves stock unchanged"""
        with self.assertRaises(InsufficientStockError) as ctx:
            with transaction.atomic():
                ledger.debit_stock(self.product, Decimal('11'), 'Consumed', 'production', 'PROD-0001')

        shortfall = ctx.exception.shortfalls[0]
        self.assertEqual(shortfall['required'], '11')
        self.assertEqual(shortfall['available'], '10.000')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertFalse(StockMovement.objects.exists())

    def test_debit_guard_sees_concurrent_change(self):
        """Test the conditional update rejects a debit when the row changed under a stale instance"""
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('2'))
        with self.assertRaises(InsufficientStockError):
            with transaction.atomic():
                # self.product still believes it holds 10
                ledger.debit_stock(self.product, Decimal('5'), 'Consumed', 'production', 'PROD-0001')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('2'))

    def test_credit_stock(self):
        """Test credit increases stock"""
        with transaction.atomic():
            movement = ledger.credit_stock(self.product, Decimal('2.5'), 'Approved', 'production', 'PROD-0001')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('12.5'))
        self.assertEqual(self.product.last_change['change_type'], 'increase')
        self.assertEqual(movement.balance_after, Decimal('12.5'))

    def test_reverse_credit_floored(self):
        """Test reversing more than available stops at zero"""
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('3'))
        with transaction.atomic():
            movement = ledger.reverse_credit(self.product, Decimal('5'), 'Undo', 'production', 'PROD-0001')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('0'))
        self.assertEqual(movement.delta, Decimal('-3'))

    def test_reverse_credit_at_zero_is_noop(self):
        """Test nothing is written when stock is already zero"""
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('0'))
        with transaction.atomic():
            movement = ledger.reverse_credit(self.product, Decimal('5'), 'Undo', 'production', 'PROD-0001')
        self.assertIsNone(movement)
        self.assertFalse(StockMovement.objects.exists())

    def test_reject_stock_is_silent(self):
        """Test reject stock changes neither last_change nor the movement trail"""
        with transaction.atomic():
            ledger.add_reject_stock(self.product, Decimal('4'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.reject_stock, Decimal('4'))
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.last_change, {})
        self.assertFalse(StockMovement.objects.exists())

    def test_remove_reject_stock_floored(self):
        """Test reject stock never goes negative"""
        Product.objects.filter(pk=self.product.pk).update(reject_stock=Decimal('2'))
        with transaction.atomic():
            ledger.remove_reject_stock(self.product, Decimal('5'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.reject_stock, Decimal('0'))

    def test_lock_products_orders_by_pk(self):
        """Test lock returns every requested product keyed by pk"""
        other = TestDataFactory.create_product()
        with transaction.atomic():
            locked = ledger.lock_products([other.pk, self.product.pk, other.pk])
        self.assertEqual(set(locked), {self.product.pk, other.pk})


class StockLedgerAtomicTests(TransactionTestCase):
    """Test ledger refuses to run outside a transaction"""

    def test_mutation_outside_atomic_raises(self):
        """Test stock changes require an open transaction"""
        product = TestDataFactory.create_product(current_stock=Decimal('5'))
        with self.assertRaises(RuntimeError):
            ledger.credit_stock(product, Decimal('1'), 'Approved', 'production', 'PROD-0001')
        product.refresh_from_db()
        self.assertEqual(product.current_stock, Decimal('5'))


class ProductAPITests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(product_id='RM1', current_stock=Decimal('10'))

    def test_product_detail(self):
        """Test product is returned with ledger fields"""
        response = self.client.get(f'/api/v1/products/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['product_id'], 'RM1')
        self.assertEqual(Decimal(response.data['data']['current_stock']), Decimal('10'))

    def test_product_not_found(self):
        """Test unknown product gives a 404 envelope"""
        response = self.client.get('/api/v1/products/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])

    def test_product_movements_filtered_by_source(self):
        """Test movements can be narrowed to one source reference"""
        with transaction.atomic():
            ledger.debit_stock(self.product, Decimal('1'), 'Consumed', 'production', 'PROD-0001')
            ledger.debit_stock(self.product, Decimal('2'), 'Consumed', 'production', 'PROD-0002')

        response = self.client.get(f'/api/v1/products/{self.product.id}/movements/')
        self.assertEqual(len(response.data['data']), 2)

        response = self.client.get(f'/api/v1/products/{self.product.id}/movements/', {'source_ref': 'PROD-0002'})
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(Decimal(response.data['data'][0]['delta']), Decimal('-2'))


class CheckLedgerCommandTests(TestCase):
    """Test the check_ledger management command"""

    def setUp(self):
        self.product = TestDataFactory.create_product(product_id='RM1', current_stock=Decimal('10'))
        with transaction.atomic():
            ledger.debit_stock(self.product, Decimal('3'), 'Consumed', 'production', 'PROD-0001')
            ledger.credit_stock(self.product, Decimal('1'), 'Approved', 'production', 'PROD-0001')

    def test_consistent_ledger(self):
        """Test an untouched trail reports consistent"""
        out = StringIO()
        call_command('check_ledger', stdout=out)
        self.assertIn('Ledger is consistent', out.getvalue())

    def test_detects_out_of_band_change(self):
        """Test a stock edit that bypassed the ledger is reported"""
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('50'))
        out = StringIO()
        call_command('check_ledger', '--product-id', 'RM1', stdout=out)
        self.assertIn('out of sync', out.getvalue())
        self.assertIn('RM1', out.getvalue())
