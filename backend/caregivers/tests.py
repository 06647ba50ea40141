from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from caregivers.models import CaregiverProfile
from caregivers.services import update_caregiver_location, verify_caregiver
from caregivers.views import (
	CaregiverAvailabilityView,
	CaregiverJobsView,
	CaregiverLocationView,
	NearbyCaregiversView,
	VerifyCaregiverView,
)
from care_services.models import CareService, ServiceNotification
from services.matching import find_nearby_caregivers
from services.service_management import CaregiverNotFoundError, ServiceValidationError


class CaregiverDirectoryTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.caregiver = self._caregiver('ana', '-34.555000', specialties=['companionship'])
		self.far = self._caregiver('bruno', '-34.150000')

	def _caregiver(self, username, latitude, **kwargs):
		user = User.objects.create_user(
			username=username,
			password='pass1234',
			role=User.ROLE_CAREGIVER,
			email=f'{username}@example.com'
		)
		return CaregiverProfile.objects.create(
			user=user,
			current_latitude=Decimal(latitude),
			current_longitude=Decimal('-58.380000'),
			verification_status=CaregiverProfile.VERIFICATION_VERIFIED,
			**kwargs
		)

	def test_radius_and_specialty_filters(self):
		found = find_nearby_caregivers(-34.60, -58.38, 'companionship')
		self.assertEqual([c.caregiver_id for c in found], [self.caregiver.id])
		self.assertEqual(found[0].distance, 5.0)

		self.assertEqual(find_nearby_caregivers(-34.60, -58.38, 'elderly_care'), [])

	def test_own_radius_decides_reach(self):
		CaregiverProfile.objects.filter(id=self.far.id).update(service_radius=60000)

		found = find_nearby_caregivers(-34.60, -58.38)

		self.assertEqual([c.caregiver_id for c in found], [self.caregiver.id, self.far.id])

	def test_invalid_location_finds_nobody(self):
		self.assertEqual(find_nearby_caregivers(None, -58.38), [])
		self.assertEqual(find_nearby_caregivers(123, -58.38), [])

	def test_unavailable_caregiver_is_hidden(self):
		request = self.factory.put('/api/caregivers/availability/', {'is_available': False}, format='json')
		force_authenticate(request, user=self.caregiver.user)
		response = CaregiverAvailabilityView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data, {'is_available': False})
		self.assertEqual(find_nearby_caregivers(-34.60, -58.38), [])

	def test_nearby_view(self):
		request = self.factory.get('/api/caregivers/nearby/', {
			'latitude': '-34.600000',
			'longitude': '-58.380000',
			'service_type': 'companionship',
		})
		force_authenticate(request, user=self.far.user)
		response = NearbyCaregiversView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		self.assertNotIn('email', response.data['caregivers'][0])


class CaregiverLocationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		user = User.objects.create_user(username='carla', password='pass1234', role=User.ROLE_CAREGIVER)
		self.profile = CaregiverProfile.objects.create(user=user)

	def test_update_location_and_radius(self):
		request = self.factory.post('/api/caregivers/location/', {
			'latitude': '-34.582000',
			'longitude': '-58.380000',
			'service_radius': 10000,
		}, format='json')
		force_authenticate(request, user=self.profile.user)
		response = CaregiverLocationView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.profile.refresh_from_db()
		self.assertEqual(self.profile.current_latitude, Decimal('-34.582000'))
		self.assertEqual(self.profile.service_radius, 10000)

	def test_rejects_out_of_range_values(self):
		with self.assertRaises(ServiceValidationError):
			update_caregiver_location(self.profile, 91, 0)
		with self.assertRaises(ServiceValidationError):
			update_caregiver_location(self.profile, 0, 0, service_radius=0)

	def test_families_cannot_update_caregiver_location(self):
		family = User.objects.create_user(username='family', password='pass1234', role=User.ROLE_FAMILY)
		request = self.factory.post('/api/caregivers/location/', {'latitude': 0, 'longitude': 0}, format='json')
		force_authenticate(request, user=family)
		response = CaregiverLocationView.as_view()(request)

		self.assertEqual(response.status_code, 403)


class CaregiverJobsTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.family = User.objects.create_user(username='family', password='pass1234', role=User.ROLE_FAMILY)
		user = User.objects.create_user(username='ana', password='pass1234', role=User.ROLE_CAREGIVER)
		self.profile = CaregiverProfile.objects.create(user=user)

	def _service(self, **kwargs):
		return CareService.objects.create(
			family=self.family,
			service_type='companionship',
			scheduled_date=timezone.now(),
			**kwargs
		)

	def test_jobs_split_offers_and_assignments(self):
		offered = self._service()
		ServiceNotification.objects.create(service=offered, caregiver=self.profile, distance_km=1.0)
		declined = self._service()
		ServiceNotification.objects.create(
			service=declined, caregiver=self.profile, distance_km=1.0, status=ServiceNotification.STATUS_DECLINED
		)
		assigned = self._service(status=CareService.STATUS_ACCEPTED, caregiver=self.profile.user)

		request = self.factory.get('/api/caregivers/jobs/')
		force_authenticate(request, user=self.profile.user)
		response = CaregiverJobsView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([s['id'] for s in response.data['available']], [offered.id])
		self.assertEqual([s['id'] for s in response.data['mine']], [assigned.id])


class VerificationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = User.objects.create_user(username='admin', password='pass1234', role=User.ROLE_ADMIN)
		user = User.objects.create_user(username='ana', password='pass1234', role=User.ROLE_CAREGIVER)
		self.profile = CaregiverProfile.objects.create(user=user)

	def test_admin_verifies_caregiver(self):
		request = self.factory.post('/api/admin/caregivers/%d/verify/' % self.profile.id, {'approved': True}, format='json')
		force_authenticate(request, user=self.admin)
		response = VerifyCaregiverView.as_view()(request, caregiver_id=self.profile.id)

		self.assertEqual(response.status_code, 200)
		self.profile.refresh_from_db()
		self.assertEqual(self.profile.verification_status, CaregiverProfile.VERIFICATION_VERIFIED)

	def test_caregiver_cannot_verify_themselves(self):
		request = self.factory.post('/api/admin/caregivers/%d/verify/' % self.profile.id, {'approved': True}, format='json')
		force_authenticate(request, user=self.profile.user)
		response = VerifyCaregiverView.as_view()(request, caregiver_id=self.profile.id)

		self.assertEqual(response.status_code, 403)

	def test_reject_and_unknown_caregiver(self):
		self.assertEqual(
			verify_caregiver(self.profile.id, approved=False).verification_status,
			CaregiverProfile.VERIFICATION_REJECTED
		)
		with self.assertRaises(CaregiverNotFoundError):
			verify_caregiver(999999, approved=True)
