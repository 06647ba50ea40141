from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.db.models import F
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from caregivers.models import CaregiverProfile
from families.models import FamilyProfile
from realtime.presence import get_presence_registry
from services.matching import notify_nearby_caregivers, rematch_pending_services
from services.payments import PaymentGateway, calculate_amounts, create_checkout
from services.payments import confirm_payment, handle_payment_webhook, release_payment
from services.chat import add_message, get_messages, mark_as_read
from services.reviews import create_review, get_stats
from services.service_management import (
	ConcurrentUpdateError,
	InvalidServiceStateError,
	NotificationNotFoundError,
	NotServiceOwnerError,
	PaymentError,
	ServiceValidationError,
	cancel_service,
	delete_service,
	finish_service,
	respond_to_service,
	select_caregiver,
	start_service,
	update_service,
)
from services.service_management.lifecycle import _transition
from .models import CareService, ChatMessage, Review, ServiceNotification
from .views import (
	chat_mark_read,
	chat_messages,
	payment_webhook,
	respond,
	select_service_caregiver,
	service_list_create,
)

# Buenos Aires, and one degree of latitude in km on a 6371 km sphere
ORIGIN = (-34.60, -58.38)
KM_PER_DEGREE = 111.195


def north_of_origin(km):
	return round(ORIGIN[0] + km / KM_PER_DEGREE, 6), ORIGIN[1]


def make_family(username='family', **kwargs):
	user = User.objects.create_user(
		username=username,
		password='pass1234',
		role=User.ROLE_FAMILY,
		email=f'{username}@example.com',
		first_name=kwargs.pop('first_name', 'Laura'),
	)
	FamilyProfile.objects.create(user=user, **kwargs)
	return user


def make_caregiver(username, km=None, **kwargs):
	user = User.objects.create_user(
		username=username,
		password='pass1234',
		role=User.ROLE_CAREGIVER,
		email=f'{username}@example.com',
	)
	lat, lon = north_of_origin(km) if km is not None else (None, None)
	profile = CaregiverProfile.objects.create(
		user=user,
		current_latitude=lat,
		current_longitude=lon,
		verification_status=kwargs.pop('verification_status', CaregiverProfile.VERIFICATION_VERIFIED),
		hourly_rate=kwargs.pop('hourly_rate', Decimal('1000.00')),
		**kwargs
	)
	return profile


def make_service(family, **kwargs):
	defaults = {
		'service_type': 'companionship',
		'patient_name': 'Rosa',
		'location_latitude': ORIGIN[0],
		'location_longitude': ORIGIN[1],
		'scheduled_date': timezone.now() + timedelta(days=2),
		'duration_hours': 3,
	}
	defaults.update(kwargs)
	return CareService.objects.create(family=family, **defaults)


def offer(service, profile, status=ServiceNotification.STATUS_PENDING, matching_round=1, distance=1.0):
	return ServiceNotification.objects.create(
		service=service,
		caregiver=profile,
		distance_km=distance,
		status=status,
		matching_round=matching_round,
	)


class FakeGateway(PaymentGateway):
	"""In-memory gateway; class attributes so every instance shares state."""
	preferences = []
	payments = {}

	def create_preference(self, **kwargs):
		FakeGateway.preferences.append(kwargs)
		return {
			'id': f"pref-{kwargs['reference']}",
			'init_point': 'https://pay.example.com/checkout',
			'sandbox_init_point': 'https://sandbox.pay.example.com/checkout',
		}

	def get_payment(self, payment_id):
		return FakeGateway.payments[str(payment_id)]

	def search_payments(self, reference):
		return [p for p in FakeGateway.payments.values() if p.get('external_reference') == reference]


FAKE_GATEWAY = 'care_services.tests.FakeGateway'


class FanoutTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		self.family = make_family()
		self.service = make_service(self.family)

		self.near_generalist = make_caregiver('ana', km=5)
		self.too_far = make_caregiver('bruno', km=50)
		self.near_specialist = make_caregiver('carla', km=2, specialties=['companionship'])
		self.wrong_specialty = make_caregiver('diego', km=3, specialties=['elderly_care'])
		self.unverified = make_caregiver('eva', km=1, verification_status=CaregiverProfile.VERIFICATION_PENDING)
		self.unavailable = make_caregiver('fede', km=1, is_available=False)

	def test_offers_nearby_caregivers_closest_first(self):
		result = notify_nearby_caregivers(self.service.id)

		self.assertEqual(result, {'notified': 2})
		rows = list(ServiceNotification.objects.filter(service=self.service).order_by('distance_km'))
		self.assertEqual([r.caregiver_id for r in rows], [self.near_specialist.id, self.near_generalist.id])
		self.assertEqual([r.distance_km for r in rows], [2.0, 5.0])
		self.assertTrue(all(r.notified_via == ServiceNotification.VIA_EMAIL for r in rows))
		self.assertTrue(all(r.matching_round == 1 for r in rows))

		self.service.refresh_from_db()
		self.assertEqual(self.service.matching_rounds, 1)
		self.assertEqual(len(mail.outbox), 2)

	@patch('services.matching.fanout.email.send_service_nearby_email', side_effect=RuntimeError('smtp down'))
	def test_rows_recorded_even_when_email_fails(self, mock_email):
		result = notify_nearby_caregivers(self.service.id)

		self.assertEqual(result['notified'], 2)
		self.assertEqual(mock_email.call_count, 2)
		self.assertEqual(ServiceNotification.objects.filter(service=self.service).count(), 2)

	def test_online_caregiver_gets_push_instead_of_email(self):
		get_presence_registry().register(self.near_specialist.user_id, 'conn-1')

		notify_nearby_caregivers(self.service.id)

		pushed = ServiceNotification.objects.get(service=self.service, caregiver=self.near_specialist)
		emailed = ServiceNotification.objects.get(service=self.service, caregiver=self.near_generalist)
		self.assertEqual(pushed.notified_via, ServiceNotification.VIA_WEBSOCKET)
		self.assertEqual(emailed.notified_via, ServiceNotification.VIA_EMAIL)
		self.assertEqual([m.to for m in mail.outbox], [['ana@example.com']])

	@patch('services.matching.fanout.emit_to_caregiver', side_effect=RuntimeError('layer down'))
	def test_failed_push_falls_back_to_email(self, mock_emit):
		get_presence_registry().register(self.near_specialist.user_id, 'conn-1')

		notify_nearby_caregivers(self.service.id)

		row = ServiceNotification.objects.get(service=self.service, caregiver=self.near_specialist)
		self.assertEqual(row.notified_via, ServiceNotification.VIA_BOTH)
		self.assertEqual(len(mail.outbox), 2)

	def test_service_without_location_notifies_nobody(self):
		service = make_service(self.family, location_latitude=None, location_longitude=None)

		self.assertEqual(notify_nearby_caregivers(service.id), {'notified': 0})
		self.assertFalse(ServiceNotification.objects.filter(service=service).exists())

	def test_missing_or_closed_service_notifies_nobody(self):
		self.assertEqual(notify_nearby_caregivers(999999), {'notified': 0})

		CareService.objects.filter(id=self.service.id).update(status=CareService.STATUS_CANCELLED)
		self.assertEqual(notify_nearby_caregivers(self.service.id), {'notified': 0})

	def test_excluded_caregivers_are_skipped(self):
		result = notify_nearby_caregivers(self.service.id, exclude_caregiver_ids=[self.near_specialist.id])

		self.assertEqual(result['notified'], 1)
		self.assertEqual(
			list(ServiceNotification.objects.filter(service=self.service).values_list('caregiver_id', flat=True)),
			[self.near_generalist.id]
		)


class CreateServiceApiTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		self.factory = APIRequestFactory()
		self.family = make_family(location_latitude=ORIGIN[0], location_longitude=ORIGIN[1], address='Av. Corrientes 1234')
		self.caregiver = make_caregiver('ana', km=5)

	def _post(self, data, user=None):
		request = self.factory.post('/api/services/', data, format='json')
		force_authenticate(request, user=user or self.family)
		with self.captureOnCommitCallbacks(execute=True):
			return service_list_create(request)

	def test_create_service_fans_out_after_commit(self):
		response = self._post({
			'service_type': 'elderly_care',
			'scheduled_date': (timezone.now() + timedelta(days=1)).isoformat(),
			'duration_hours': 4,
			'location_latitude': '-34.600000',
			'location_longitude': '-58.380000',
		})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], CareService.STATUS_PENDING)
		service = CareService.objects.get(id=response.data['id'])
		self.assertEqual(service.notifications.count(), 1)
		self.assertEqual(service.notifications.get().caregiver, self.caregiver)

	def test_location_falls_back_to_family_profile(self):
		response = self._post({
			'service_type': 'companionship',
			'scheduled_date': (timezone.now() + timedelta(days=1)).isoformat(),
		})

		self.assertEqual(response.status_code, 201)
		service = CareService.objects.get(id=response.data['id'])
		self.assertEqual(service.address, 'Av. Corrientes 1234')
		self.assertAlmostEqual(float(service.location_latitude), ORIGIN[0])

	def test_caregivers_cannot_create_services(self):
		request = self.factory.post('/api/services/', {'service_type': 'companionship'}, format='json')
		force_authenticate(request, user=self.caregiver.user)
		response = service_list_create(request)

		self.assertEqual(response.status_code, 403)

	def test_invalid_service_type_is_rejected(self):
		response = self._post({
			'service_type': 'gardening',
			'scheduled_date': (timezone.now() + timedelta(days=1)).isoformat(),
		})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(CareService.objects.count(), 0)


@override_settings(PAYMENT_GATEWAY_CLASS=FAKE_GATEWAY)
class OfferLifecycleTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		FakeGateway.preferences = []
		FakeGateway.payments = {}
		self.factory = APIRequestFactory()
		self.family = make_family()
		self.service = make_service(self.family)
		self.first = make_caregiver('ana', km=2)
		self.second = make_caregiver('bruno', km=4)
		self.third = make_caregiver('carla', km=6)

	# ---------------- respond ----------------

	def test_interest_matches_service_and_emails_offline_family(self):
		offer(self.service, self.first)

		result = respond_to_service(self.first.user, self.service.id, interested=True)

		self.service.refresh_from_db()
		self.assertEqual(self.service.status, CareService.STATUS_MATCHED)
		self.assertEqual(result.extra['status'], ServiceNotification.STATUS_INTERESTED)
		self.assertIsNone(self.service.caregiver)
		self.assertEqual([m.to for m in mail.outbox], [['family@example.com']])

	def test_interest_pushes_to_online_family_without_email(self):
		offer(self.service, self.first)
		get_presence_registry().register(self.family.id, 'family-conn')

		respond_to_service(self.first.user, self.service.id, interested=True)

		self.assertEqual(len(mail.outbox), 0)

	def test_decline_leaves_service_pending(self):
		notification = offer(self.service, self.first)

		respond_to_service(self.first.user, self.service.id, interested=False)

		notification.refresh_from_db()
		self.service.refresh_from_db()
		self.assertEqual(notification.status, ServiceNotification.STATUS_DECLINED)
		self.assertIsNotNone(notification.responded_at)
		self.assertEqual(self.service.status, CareService.STATUS_PENDING)

	def test_respond_without_offer_fails(self):
		with self.assertRaises(NotificationNotFoundError):
			respond_to_service(self.first.user, self.service.id, interested=True)

	def test_respond_updates_latest_round(self):
		old = offer(self.service, self.first, matching_round=1, status=ServiceNotification.STATUS_DECLINED)
		latest = offer(self.service, self.first, matching_round=2)

		respond_to_service(self.first.user, self.service.id, interested=True)

		old.refresh_from_db()
		latest.refresh_from_db()
		self.assertEqual(old.status, ServiceNotification.STATUS_DECLINED)
		self.assertEqual(latest.status, ServiceNotification.STATUS_INTERESTED)

	def test_respond_to_closed_service_fails(self):
		offer(self.service, self.first)
		CareService.objects.filter(id=self.service.id).update(status=CareService.STATUS_CANCELLED)

		with self.assertRaises(InvalidServiceStateError):
			respond_to_service(self.first.user, self.service.id, interested=True)

	def test_respond_view(self):
		offer(self.service, self.first)

		request = self.factory.post('/api/services/%d/respond/' % self.service.id, {'interested': True}, format='json')
		force_authenticate(request, user=self.first.user)
		response = respond(request, service_id=self.service.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['service_status'], CareService.STATUS_MATCHED)

	# ---------------- select ----------------

	def _matched_with_candidates(self):
		chosen = offer(self.service, self.first, status=ServiceNotification.STATUS_INTERESTED)
		other = offer(self.service, self.second, status=ServiceNotification.STATUS_INTERESTED)
		silent = offer(self.service, self.third)
		CareService.objects.filter(id=self.service.id).update(status=CareService.STATUS_MATCHED)
		return chosen, other, silent

	def test_select_accepts_one_and_declines_other_interested(self):
		chosen, other, silent = self._matched_with_candidates()

		result = select_caregiver(self.family, self.service.id, self.first.id)

		chosen.refresh_from_db()
		other.refresh_from_db()
		silent.refresh_from_db()
		self.service.refresh_from_db()

		self.assertEqual(self.service.status, CareService.STATUS_ACCEPTED)
		self.assertEqual(self.service.caregiver, self.first.user)
		self.assertEqual(chosen.status, ServiceNotification.STATUS_ACCEPTED)
		self.assertEqual(other.status, ServiceNotification.STATUS_DECLINED)
		self.assertEqual(silent.status, ServiceNotification.STATUS_PENDING)
		self.assertEqual(result.extra['declined_candidates'], 1)

		# checkout created for the selected caregiver, caregiver emailed
		self.assertEqual(result.extra['checkout']['preference_id'], f'pref-{self.service.id}')
		self.assertEqual(self.service.payment_preference_id, f'pref-{self.service.id}')
		self.assertIn(['ana@example.com'], [m.to for m in mail.outbox])

	def test_select_survives_checkout_failure(self):
		self._matched_with_candidates()
		CaregiverProfile.objects.filter(id=self.first.id).update(hourly_rate=0)

		result = select_caregiver(self.family, self.service.id, self.first.id)

		self.service.refresh_from_db()
		self.assertEqual(self.service.status, CareService.STATUS_ACCEPTED)
		self.assertIsNone(result.extra['checkout'])

	def test_second_selection_is_rejected(self):
		self._matched_with_candidates()
		select_caregiver(self.family, self.service.id, self.first.id)

		with self.assertRaises(InvalidServiceStateError):
			select_caregiver(self.family, self.service.id, self.second.id)

		self.service.refresh_from_db()
		self.assertEqual(self.service.caregiver, self.first.user)

	def test_select_requires_matched_status(self):
		offer(self.service, self.first, status=ServiceNotification.STATUS_INTERESTED)

		with self.assertRaises(InvalidServiceStateError):
			select_caregiver(self.family, self.service.id, self.first.id)

	def test_select_requires_open_offer(self):
		self._matched_with_candidates()
		outsider = make_caregiver('zoe', km=1)

		with self.assertRaises(NotificationNotFoundError):
			select_caregiver(self.family, self.service.id, outsider.id)

	def test_select_view_hides_other_families_services(self):
		self._matched_with_candidates()
		stranger = make_family('stranger')

		request = self.factory.post(
			'/api/services/%d/select/' % self.service.id, {'caregiver_id': self.first.id}, format='json'
		)
		force_authenticate(request, user=stranger)
		response = select_service_caregiver(request, service_id=self.service.id)

		self.assertEqual(response.status_code, 404)
		self.service.refresh_from_db()
		self.assertEqual(self.service.status, CareService.STATUS_MATCHED)

	def test_stale_version_cannot_transition(self):
		self._matched_with_candidates()
		stale = CareService.objects.get(id=self.service.id)
		CareService.objects.filter(id=self.service.id).update(version=F('version') + 1)

		with self.assertRaises(ConcurrentUpdateError):
			_transition(stale, [CareService.STATUS_MATCHED], CareService.STATUS_ACCEPTED, caregiver=self.second.user)

		self.service.refresh_from_db()
		self.assertIsNone(self.service.caregiver)

	# ---------------- start / finish ----------------

	def _accepted(self):
		CareService.objects.filter(id=self.service.id).update(
			status=CareService.STATUS_ACCEPTED, caregiver=self.first.user
		)

	def test_start_and_finish_by_assigned_caregiver(self):
		self._accepted()

		start_service(self.first.user, self.service.id)
		self.service.refresh_from_db()
		self.assertEqual(self.service.status, CareService.STATUS_IN_PROGRESS)
		self.assertIsNotNone(self.service.actual_start)

		finish_service(self.first.user, self.service.id)
		self.service.refresh_from_db()
		self.first.refresh_from_db()
		self.first.user.refresh_from_db()
		self.family.refresh_from_db()

		self.assertEqual(self.service.status, CareService.STATUS_COMPLETED)
		self.assertIsNotNone(self.service.actual_end)
		self.assertEqual(self.first.total_services, 1)
		self.assertEqual(self.first.user.completed_services, 1)
		self.assertEqual(self.family.completed_services, 0)

		with self.assertRaises(InvalidServiceStateError):
			finish_service(self.first.user, self.service.id)

	def test_only_assigned_caregiver_can_start(self):
		self._accepted()

		with self.assertRaises(NotServiceOwnerError):
			start_service(self.second.user, self.service.id)

	def test_cannot_finish_before_start(self):
		self._accepted()

		with self.assertRaises(InvalidServiceStateError):
			finish_service(self.first.user, self.service.id)

	# ---------------- edit / delete / cancel ----------------

	def test_update_only_while_pending(self):
		update_service(self.family, self.service.id, patient_name='Rosa María', duration_hours=5)
		self.service.refresh_from_db()
		self.assertEqual(self.service.patient_name, 'Rosa María')
		self.assertEqual(self.service.duration_hours, 5)

		CareService.objects.filter(id=self.service.id).update(status=CareService.STATUS_MATCHED)
		with self.assertRaises(InvalidServiceStateError):
			update_service(self.family, self.service.id, notes='late change')

	def test_update_rejects_non_editable_fields(self):
		with self.assertRaises(ServiceValidationError):
			update_service(self.family, self.service.id, status=CareService.STATUS_COMPLETED)

	def test_delete_removes_pending_offers(self):
		offer(self.service, self.first)
		offer(self.service, self.second)

		result = delete_service(self.family, self.service.id)

		self.assertEqual(result.extra['notifications_removed'], 2)
		self.assertFalse(CareService.objects.filter(id=self.service.id).exists())
		self.assertEqual(ServiceNotification.objects.count(), 0)

	def test_delete_only_while_pending(self):
		CareService.objects.filter(id=self.service.id).update(status=CareService.STATUS_MATCHED)

		with self.assertRaises(InvalidServiceStateError):
			delete_service(self.family, self.service.id)

	def test_cancel_releases_caregiver_and_notifies_them(self):
		self._accepted()

		result = cancel_service(self.family, self.service.id, reason='Hospitalised')

		self.service.refresh_from_db()
		self.assertEqual(self.service.status, CareService.STATUS_CANCELLED)
		self.assertIsNone(self.service.caregiver)
		self.assertEqual(self.service.cancellation_reason, 'Hospitalised')
		self.assertTrue(result.extra['was_assigned'])
		self.assertEqual([m.to for m in mail.outbox], [['ana@example.com']])

		with self.assertRaises(InvalidServiceStateError):
			cancel_service(self.family, self.service.id)

	def test_other_family_cannot_cancel(self):
		with self.assertRaises(NotServiceOwnerError):
			cancel_service(make_family('stranger'), self.service.id)


class RematchTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		self.family = make_family()
		self.service = make_service(self.family)
		self.caregiver = make_caregiver('ana', km=3)

	def test_sweep_offers_underserved_service(self):
		result = rematch_pending_services()

		self.assertEqual(result.checked, 1)
		self.assertEqual(result.notified, 1)
		self.assertEqual(result.failed_service_ids, [])
		self.assertEqual(self.service.notifications.count(), 1)

	def test_recently_notified_caregivers_are_suppressed(self):
		rematch_pending_services()
		result = rematch_pending_services()

		self.assertEqual(result.checked, 1)
		self.assertEqual(result.notified, 0)
		self.assertEqual(self.service.notifications.count(), 1)

	@override_settings(REMATCH_SUPPRESSION_MINUTES=0)
	def test_suppression_can_be_disabled(self):
		rematch_pending_services()
		rematch_pending_services()

		rounds = sorted(self.service.notifications.values_list('matching_round', flat=True))
		self.assertEqual(rounds, [1, 2])

	def test_old_and_saturated_services_are_skipped(self):
		CareService.objects.filter(id=self.service.id).update(created_at=timezone.now() - timedelta(days=8))
		saturated = make_service(self.family)
		for matching_round in range(1, 6):
			offer(saturated, self.caregiver, matching_round=matching_round)

		result = rematch_pending_services()

		self.assertEqual(result.checked, 0)

	def test_one_failing_service_does_not_stop_the_sweep(self):
		second = make_service(self.family)
		CareService.objects.filter(id=self.service.id).update(created_at=timezone.now() - timedelta(hours=1))

		with patch(
			'services.matching.rematch.notify_nearby_caregivers',
			side_effect=[RuntimeError('boom'), {'notified': 2}]
		):
			result = rematch_pending_services()

		self.assertEqual(result.checked, 2)
		self.assertEqual(result.notified, 2)
		self.assertEqual(result.failed_service_ids, [self.service.id])
		self.assertNotIn(second.id, result.failed_service_ids)

	def test_management_command(self):
		call_command('rematch_pending_services')

		self.assertEqual(self.service.notifications.count(), 1)


@override_settings(PAYMENT_GATEWAY_CLASS=FAKE_GATEWAY)
class PaymentTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		FakeGateway.preferences = []
		FakeGateway.payments = {}
		self.factory = APIRequestFactory()
		self.family = make_family()
		self.caregiver = make_caregiver('ana', km=2, hourly_rate=Decimal('1000.00'))
		self.service = make_service(
			self.family,
			status=CareService.STATUS_ACCEPTED,
			caregiver=self.caregiver.user,
			duration_hours=3,
		)

	def _approve(self, payment_id='99', status='approved'):
		FakeGateway.payments[payment_id] = {
			'id': int(payment_id),
			'status': status,
			'external_reference': str(self.service.id),
			'transaction_amount': 3300,
		}

	def test_amounts_split(self):
		amounts = calculate_amounts(Decimal('1000'), 3)

		self.assertEqual(amounts['service_amount'], Decimal('3000.00'))
		self.assertEqual(amounts['family_commission'], Decimal('300.00'))
		self.assertEqual(amounts['caregiver_receives'], Decimal('2700.00'))
		self.assertEqual(amounts['total'], Decimal('3300.00'))

	def test_checkout_stores_amounts(self):
		checkout = create_checkout(self.family, self.service.id)

		self.service.refresh_from_db()
		self.assertEqual(checkout['total_amount'], Decimal('3300.00'))
		self.assertEqual(self.service.amount, Decimal('3000.00'))
		self.assertEqual(self.service.net_amount, Decimal('2700.00'))
		self.assertEqual(FakeGateway.preferences[0]['reference'], str(self.service.id))

	def test_checkout_requires_assigned_caregiver(self):
		pending = make_service(self.family)

		with self.assertRaises(InvalidServiceStateError):
			create_checkout(self.family, pending.id)

	def test_webhook_holds_payment_once(self):
		self._approve()

		request = self.factory.post('/api/payments/webhook/', {'type': 'payment', 'data': {'id': '99'}}, format='json')
		response = payment_webhook(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data, {'status': 'ok'})
		self.service.refresh_from_db()
		self.assertEqual(self.service.payment_status, CareService.PAYMENT_HELD)
		self.assertEqual(self.service.payment_reference, '99')
		self.assertEqual(len(mail.outbox), 1)

		# gateway retries the same notification
		handle_payment_webhook({'type': 'payment', 'data': {'id': '99'}})
		self.assertEqual(len(mail.outbox), 1)

	def test_webhook_ignores_other_topics(self):
		self.assertEqual(handle_payment_webhook({'type': 'merchant_order', 'data': {'id': '1'}}), {'status': 'ignored'})

	def test_confirm_payment_polls_gateway(self):
		create_checkout(self.family, self.service.id)
		self._approve(status='in_process')
		self.assertEqual(confirm_payment(self.family, self.service.id)['status'], 'pending')

		self._approve(status='approved')
		self.assertEqual(confirm_payment(self.family, self.service.id)['status'], 'confirmed')
		self.assertEqual(confirm_payment(self.family, self.service.id)['status'], 'already_paid')

	def test_release_requires_completed_and_held(self):
		with self.assertRaises(PaymentError):
			release_payment(self.service.id)

		CareService.objects.filter(id=self.service.id).update(payment_status=CareService.PAYMENT_HELD)
		with self.assertRaises(InvalidServiceStateError):
			release_payment(self.service.id)

		CareService.objects.filter(id=self.service.id).update(
			status=CareService.STATUS_COMPLETED, net_amount=Decimal('2700.00')
		)
		result = release_payment(self.service.id)

		self.service.refresh_from_db()
		self.assertEqual(result['status'], CareService.PAYMENT_RELEASED)
		self.assertEqual(self.service.payment_status, CareService.PAYMENT_RELEASED)
		self.assertIsNotNone(self.service.released_at)
		self.assertEqual([m.to for m in mail.outbox], [['ana@example.com']])


class ReviewTests(TestCase):
	def setUp(self):
		self.family = make_family()
		self.caregiver = make_caregiver('ana', km=2)

	def _completed_service(self):
		return make_service(self.family, status=CareService.STATUS_COMPLETED, caregiver=self.caregiver.user)

	def test_rating_is_average_rounded_to_one_decimal(self):
		create_review(self.family, self._completed_service().id, rating=4)
		create_review(self.family, self._completed_service().id, rating=5, comment='Wonderful')

		self.caregiver.refresh_from_db()
		self.assertEqual(self.caregiver.rating, Decimal('4.5'))
		self.assertEqual(self.caregiver.total_reviews, 2)

	def test_one_review_per_service(self):
		service = self._completed_service()
		create_review(self.family, service.id, rating=3)

		with self.assertRaises(InvalidServiceStateError):
			create_review(self.family, service.id, rating=5)
		self.assertEqual(Review.objects.count(), 1)

	def test_only_completed_services_can_be_reviewed(self):
		service = make_service(self.family, status=CareService.STATUS_ACCEPTED, caregiver=self.caregiver.user)

		with self.assertRaises(InvalidServiceStateError):
			create_review(self.family, service.id, rating=5)

	def test_rating_bounds(self):
		with self.assertRaises(ServiceValidationError):
			create_review(self.family, self._completed_service().id, rating=6)

	def test_stats(self):
		make_service(self.family)
		self._completed_service()

		stats = get_stats()

		self.assertEqual(stats['total_users'], 2)
		self.assertEqual(stats['total_caregivers'], 1)
		self.assertEqual(stats['total_families'], 1)
		self.assertEqual(stats['total_services'], 2)
		self.assertEqual(stats['active_services'], 1)


class ChatTests(TestCase):
	def setUp(self):
		get_presence_registry().clear()
		self.factory = APIRequestFactory()
		self.family = make_family()
		self.caregiver = make_caregiver('ana', km=2)
		self.service = make_service(self.family, status=CareService.STATUS_ACCEPTED, caregiver=self.caregiver.user)

	def test_parties_exchange_messages_in_order(self):
		add_message(self.family, self.service.id, 'Hola, can you come at 9?')
		add_message(self.caregiver.user, self.service.id, '  Yes, see you then  ')

		conversation = get_messages(self.family, self.service.id)

		self.assertEqual(conversation['service_id'], self.service.id)
		self.assertEqual(
			[(m.sender_id, m.content) for m in conversation['messages']],
			[(self.family.id, 'Hola, can you come at 9?'), (self.caregiver.user_id, 'Yes, see you then')],
		)
		self.assertEqual(conversation['last_message'].content, 'Yes, see you then')
		self.assertEqual(conversation['unread'], 1)

	def test_offline_recipient_gets_email(self):
		add_message(self.family, self.service.id, 'Hola')

		self.assertEqual([m.to for m in mail.outbox], [['ana@example.com']])
		self.assertIn('Hola', mail.outbox[0].body)

	@patch('services.chat.notify_user', return_value=True)
	def test_online_recipient_gets_push(self, mock_notify):
		get_presence_registry().register(self.family.id, 'conn-1')

		message = add_message(self.caregiver.user, self.service.id, 'On my way')

		mock_notify.assert_called_once()
		user_id, event, data = mock_notify.call_args.args
		self.assertEqual((user_id, event), (self.family.id, 'chat-message'))
		self.assertEqual(data['id'], message.id)
		self.assertEqual(data['content'], 'On my way')
		self.assertEqual(len(mail.outbox), 0)

	@patch('services.chat.notify_user', return_value=False)
	def test_failed_push_falls_back_to_email(self, mock_notify):
		get_presence_registry().register(self.family.id, 'conn-1')

		add_message(self.caregiver.user, self.service.id, 'On my way')

		self.assertEqual([m.to for m in mail.outbox], [['family@example.com']])

	@patch('services.chat.email.send_chat_message_email', side_effect=RuntimeError('smtp down'))
	def test_message_kept_when_email_fails(self, mock_email):
		add_message(self.family, self.service.id, 'Hola')

		self.assertEqual(ChatMessage.objects.count(), 1)

	def test_outsiders_cannot_read_or_write(self):
		stranger = make_caregiver('bruno', km=3)
		other_family = make_family('other')

		for user in (stranger.user, other_family):
			with self.assertRaises(NotServiceOwnerError):
				get_messages(user, self.service.id)
			with self.assertRaises(NotServiceOwnerError):
				add_message(user, self.service.id, 'hi')
		self.assertEqual(ChatMessage.objects.count(), 0)

	def test_chat_needs_an_assigned_caregiver(self):
		pending = make_service(self.family)

		with self.assertRaises(InvalidServiceStateError):
			add_message(self.family, pending.id, 'anyone?')

	def test_empty_message_is_rejected(self):
		with self.assertRaises(ServiceValidationError):
			add_message(self.family, self.service.id, '   ')

	def test_mark_as_read_only_touches_the_other_partys_messages(self):
		add_message(self.family, self.service.id, 'one')
		add_message(self.family, self.service.id, 'two')
		add_message(self.caregiver.user, self.service.id, 'three')

		self.assertEqual(mark_as_read(self.caregiver.user, self.service.id), 2)
		self.assertEqual(mark_as_read(self.caregiver.user, self.service.id), 0)
		self.assertEqual(
			list(ChatMessage.objects.values_list('content', 'is_read')),
			[('one', True), ('two', True), ('three', False)],
		)

	def test_api_send_list_and_read(self):
		request = self.factory.post(f'/api/chat/{self.service.id}/messages/', {'content': 'Hola'}, format='json')
		force_authenticate(request, user=self.family)
		response = chat_messages(request, service_id=self.service.id)
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['sender'], self.family.id)

		request = self.factory.get(f'/api/chat/{self.service.id}/messages/')
		force_authenticate(request, user=self.caregiver.user)
		response = chat_messages(request, service_id=self.service.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual([m['content'] for m in response.data['messages']], ['Hola'])
		self.assertEqual(response.data['last_message']['content'], 'Hola')
		self.assertEqual(response.data['unread'], 1)

		request = self.factory.post(f'/api/chat/{self.service.id}/read/')
		force_authenticate(request, user=self.caregiver.user)
		response = chat_mark_read(request, service_id=self.service.id)
		self.assertEqual(response.data['marked_read'], 1)

	def test_api_hides_other_families_services(self):
		request = self.factory.get(f'/api/chat/{self.service.id}/messages/')
		force_authenticate(request, user=make_family('other'))
		response = chat_messages(request, service_id=self.service.id)

		self.assertEqual(response.status_code, 404)
