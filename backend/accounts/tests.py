from django.test import TestCase
from rest_framework.test import APIRequestFactory

from accounts.models import User
from accounts.views import LoginView, RegisterView
from caregivers.models import CaregiverProfile
from families.models import FamilyProfile


class RegistrationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def _register(self, **data):
		payload = {'username': 'ana', 'email': 'ana@example.com', 'password': 'password123', 'role': 'family'}
		payload.update(data)
		request = self.factory.post('/api/auth/register/', payload, format='json')
		return RegisterView.as_view()(request)

	def test_family_gets_family_profile(self):
		response = self._register()

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		self.assertTrue(FamilyProfile.objects.filter(user__username='ana').exists())

	def test_caregiver_starts_unverified(self):
		response = self._register(role='caregiver')

		self.assertEqual(response.status_code, 201)
		profile = CaregiverProfile.objects.get(user__username='ana')
		self.assertEqual(profile.verification_status, CaregiverProfile.VERIFICATION_PENDING)

	def test_admin_role_cannot_self_register(self):
		response = self._register(role='admin')

		self.assertEqual(response.status_code, 400)
		self.assertFalse(User.objects.exists())

	def test_duplicate_email(self):
		self._register()
		response = self._register(username='ana2', email='ANA@example.com')

		self.assertEqual(response.status_code, 400)
		self.assertIn('email', response.data)

	def test_login(self):
		self._register()

		request = self.factory.post('/api/auth/login/', {'username': 'ana', 'password': 'password123'}, format='json')
		response = LoginView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['role'], 'family')

		request = self.factory.post('/api/auth/login/', {'username': 'ana', 'password': 'wrong'}, format='json')
		self.assertEqual(LoginView.as_view()(request).status_code, 400)
