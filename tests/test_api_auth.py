"""
Tests for registration, login, JWT issuance and logout endpoints.
"""

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from factories import PASSWORD, jwt_client, make_user

User = get_user_model()


class UserRegistrationTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.url = '/api/auth/register/'
        self.payload = {
            'email': 'Alice@Campus.Local',
            'password': 'BookWorm!2026',
            'confirm_password': 'BookWorm!2026',
            'first_name': 'Alice',
            'last_name': 'Reader',
            'role': 'seller',
        }

    def test_register_seller(self):
        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'alice@campus.local')
        self.assertEqual(response.data['role'], 'seller')
        self.assertNotIn('password', response.data)

        user = User.objects.get(email='alice@campus.local')
        self.assertEqual(user.username, 'alice@campus.local')
        self.assertTrue(user.check_password('BookWorm!2026'))
        self.assertFalse(user.is_staff)

    def test_role_defaults_to_buyer(self):
        del self.payload['role']

        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'buyer')

    def test_admin_role_cannot_be_self_assigned(self):
        self.payload['role'] = 'admin'

        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)
        self.assertFalse(User.objects.exists())

    def test_duplicate_email_is_rejected_case_insensitively(self):
        make_user('alice@campus.local', User.ROLE_BUYER)

        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_password_confirmation_must_match(self):
        self.payload['confirm_password'] = 'Different!2026'

        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('confirm_password', response.data)

    def test_weak_password_is_rejected(self):
        self.payload['password'] = self.payload['confirm_password'] = '12345678'

        response = self.client.post(self.url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)


class LoginTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.url = '/api/auth/login/'
        self.user = make_user('bob@campus.local', User.ROLE_BUYER)

    def test_login_returns_tokens_and_user(self):
        response = self.client.post(
            self.url, {'email': 'BOB@campus.local', 'password': PASSWORD}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['id'], self.user.id)

        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], 'buyer')
        self.assertEqual(token['email'], 'bob@campus.local')

    def test_wrong_password_is_generic_401(self):
        response = self.client.post(
            self.url, {'email': 'bob@campus.local', 'password': 'nope'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {'detail': 'Invalid credentials'})

    def test_unknown_email_is_generic_401(self):
        response = self.client.post(
            self.url, {'email': 'nobody@campus.local', 'password': PASSWORD}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {'detail': 'Invalid credentials'})

    def test_inactive_user_cannot_log_in(self):
        self.user.is_active = False
        self.user.save()

        response = self.client.post(
            self.url, {'email': 'bob@campus.local', 'password': PASSWORD}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_missing_fields(self):
        response = self.client.post(self.url, {'email': 'bob@campus.local'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)


class TokenEndpointTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('charlie@campus.local', User.ROLE_SELLER)

    def test_obtain_pair_with_email(self):
        response = self.client.post(
            '/api/token/', {'email': 'charlie@campus.local', 'password': PASSWORD}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(AccessToken(response.data['access'])['role'], 'seller')

    def test_bearer_token_authenticates_requests(self):
        response = jwt_client(self.user).get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'charlie@campus.local')
        self.assertEqual(response.data['role'], 'seller')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_blacklists_refresh_token(self):
        login = self.client.post(
            '/api/auth/login/', {'email': 'charlie@campus.local', 'password': PASSWORD}, format='json'
        )
        refresh = login.data['refresh']

        response = self.client.post('/api/auth/logout/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/token/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
