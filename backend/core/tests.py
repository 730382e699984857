"""
Tests for core: identifier sequencing, error envelope, audit logging and auth
"""
from unittest import mock

from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase, RequestFactory
from rest_framework import status

from backend.bom.models import BOM
from backend.core.exceptions import (
    api_exception_handler, NotFoundError, InsufficientStockError, ProductNotResolvedError,
    AmbiguousReferenceError, IdentifierCollisionError,
)
from backend.core.models import AuditLog
from backend.core.sequences import next_identifier, save_with_identifier, format_identifier
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, get_client_ip, decimal_to_str
from decimal import Decimal


class IdentifierSequenceTests(TestCase):
    """Test PREFIX-NNNN identifier allocation"""

    def test_first_identifier(self):
        """Test sequence starts at 1 when nothing matches"""
        self.assertEqual(next_identifier(BOM, 'bom_id', 'RUB', 3), 'RUB-001')

    def test_increments_from_highest(self):
        """Test next value follows the highest existing identifier"""
        BOM.objects.create(bom_id='RUB-001')
        BOM.objects.create(bom_id='RUB-007')
        self.assertEqual(next_identifier(BOM, 'bom_id', 'RUB', 3), 'RUB-008')

    def test_ignores_other_prefixes_and_shapes(self):
        """Test hand-entered or foreign identifiers do not move the sequence"""
        BOM.objects.create(bom_id='RUB-002')
        BOM.objects.create(bom_id='RUB-7')
        BOM.objects.create(bom_id='RUB-0099')
        BOM.objects.create(bom_id='RUB-12A')
        BOM.objects.create(bom_id='RUBX-900')
        BOM.objects.create(bom_id='SIL-500')
        self.assertEqual(next_identifier(BOM, 'bom_id', 'RUB', 3), 'RUB-003')

    def test_format_identifier_pads(self):
        """Test zero padding to the configured width"""
        self.assertEqual(format_identifier('PROD', 12, 4), 'PROD-0012')

    def test_sequence_continues_past_width(self):
        """Test numbering keeps going once the counter outgrows its padding"""
        BOM.objects.create(bom_id='RUB-998')
        BOM.objects.create(bom_id='RUB-999')
        self.assertEqual(next_identifier(BOM, 'bom_id', 'RUB', 3), 'RUB-1000')

        bom = save_with_identifier(BOM(compound_name='A'), 'bom_id', 'RUB', 3)
        self.assertEqual(bom.bom_id, 'RUB-1000')
        self.assertEqual(next_identifier(BOM, 'bom_id', 'RUB', 3), 'RUB-1001')

    def test_longer_identifier_sorts_numerically(self):
        """Test PREFIX-10000 outranks PREFIX-9999 despite string order"""
        BOM.objects.create(bom_id='PROD-9999')
        BOM.objects.create(bom_id='PROD-10000')
        self.assertEqual(next_identifier(BOM, 'bom_id', 'PROD', 4), 'PROD-10001')

    def test_save_with_identifier_assigns_value(self):
        """Test instance is saved with the allocated identifier"""
        bom = save_with_identifier(BOM(compound_name='A'), 'bom_id', 'RUB', 3)
        self.assertIsNotNone(bom.pk)
        self.assertEqual(bom.bom_id, 'RUB-001')

    def test_collision_retries_with_next_value(self):
        """Test a value taken between compute and insert is retried"""
        BOM.objects.create(bom_id='RUB-001')
        with mock.patch('backend.core.sequences.next_identifier', side_effect=['RUB-001', 'RUB-002']):
            bom = save_with_identifier(BOM(), 'bom_id', 'RUB', 3)
        self.assertEqual(bom.bom_id, 'RUB-002')
        self.assertEqual(BOM.objects.count(), 2)

    def test_collision_exhausts_attempts(self):
        """Test persistent collisions end in IdentifierCollisionError"""
        BOM.objects.create(bom_id='RUB-001')
        with mock.patch('backend.core.sequences.next_identifier', return_value='RUB-001'):
            with self.assertRaises(IdentifierCollisionError):
                save_with_identifier(BOM(), 'bom_id', 'RUB', 3, attempts=2)
        self.assertEqual(BOM.objects.count(), 1)


class ExceptionHandlerTests(TestCase):
    """Test every error is rendered in the response envelope"""

    def test_service_error_envelope(self):
        """Test service errors keep their message and payload"""
        response = api_exception_handler(NotFoundError('BOM not found'), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['status'], 404)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['message'], 'BOM not found')
        self.assertIsNone(response.data['data'])

    def test_insufficient_stock_carries_shortfalls(self):
        """Test shortfall list is returned as data"""
        shortfalls = [{'line': 'Rubber', 'product_id': 'RM-1', 'name': 'Rubber',
                       'required': '10', 'available': '4', 'shortfall': '6'}]
        response = api_exception_handler(InsufficientStockError(shortfalls), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['data'], shortfalls)
        self.assertIn('RM-1', response.data['message'])

    def test_product_not_resolved_is_404(self):
        """Test unresolved line items map to not found"""
        response = api_exception_handler(ProductNotResolvedError('Mystery'), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['data'], {'line_item': 'Mystery'})

    def test_ambiguous_reference_is_400(self):
        """Test ambiguous references are client errors with candidates"""
        candidates = [{'id': 1}, {'id': 2}]
        response = api_exception_handler(AmbiguousReferenceError('Rubber', candidates), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['data']['candidates'], candidates)

    def test_identifier_collision_is_409(self):
        """Test identifier collisions surface as conflict"""
        response = api_exception_handler(IdentifierCollisionError(), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_django_validation_error_converted(self):
        """Test model validation errors become 400 envelopes"""
        response = api_exception_handler(DjangoValidationError('Total exceeds maximum'), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Total exceeds maximum')

    def test_unhandled_error_returns_none(self):
        """Test non-API errors are left to Django"""
        self.assertIsNone(api_exception_handler(RuntimeError('boom'), {}))


class AuditLogTests(TestCase):
    """Test request-level audit logging"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.factory = RequestFactory()

    def test_create_audit_log(self):
        """Test audit entry records user, ip and changes"""
        request = self.factory.post('/api/v1/production/', REMOTE_ADDR='10.0.0.5')
        request.user = self.user
        log = create_audit_log(
            request=request,
            action='production_start',
            model_name='Production',
            object_id=1,
            object_reference='PROD-0001',
            changes={'bom': 'RUB-001'},
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.ip_address, '10.0.0.5')
        self.assertEqual(log.object_id, '1')
        self.assertEqual(log.changes, {'bom': 'RUB-001'})

    def test_missing_fields_skips_log(self):
        """Test audit logging is skipped without action or object"""
        self.assertIsNone(create_audit_log(user=self.user, action='create', model_name='Production'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_forwarded_ip_preferred(self):
        """Test X-Forwarded-For wins over REMOTE_ADDR"""
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='1.2.3.4, 5.6.7.8', REMOTE_ADDR='10.0.0.5')
        self.assertEqual(get_client_ip(request), '1.2.3.4')

    def test_decimal_to_str(self):
        """Test decimals serialize without exponent"""
        self.assertEqual(decimal_to_str(Decimal('1E+1')), '10')
        self.assertIsNone(decimal_to_str(None))


class AuthAPITests(TestCase):
    """Test JWT login and the current user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='operator', password='secret-pass-1')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        """Test valid credentials return access and refresh tokens"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'operator',
            'password': 'secret-pass-1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        """Test bad credentials are rejected"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'operator',
            'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def test_me_requires_authentication(self):
        """Test unauthenticated requests get an error envelope"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def test_me_returns_user(self):
        """Test current user is returned in the envelope"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['username'], 'operator')


class PermissionTests(TestCase):
    """Test module access for non-staff users"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_user_without_module_permission_denied(self):
        """Test plain users without app permissions are forbidden"""
        user = TestDataFactory.create_user(is_staff=False)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/production/qc-history/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['success'])

    def test_user_with_module_permission_allowed(self):
        """Test any permission in the app grants module access"""
        from django.contrib.auth.models import Permission
        user = TestDataFactory.create_user(is_staff=False)
        user.user_permissions.add(Permission.objects.get(codename='view_production'))
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/production/qc-history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
