import fakeredis
from asgiref.sync import sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.core import mail
from django.test import SimpleTestCase, TestCase

from accounts.models import User
from care_services.models import ServiceNotification
from care_services.tests import make_caregiver, make_family, make_service
from realtime.middleware import JWTAuthMiddlewareStack, get_user_for_token
from realtime.notifications import NEW_SERVICE_NEARBY, emit_to_caregiver, emit_to_user, handler_name
from realtime.presence import (
	InMemoryPresenceRegistry,
	RedisPresenceRegistry,
	get_presence_registry,
	reset_presence_on_startup,
	set_presence_registry,
)
from realtime.routing import websocket_urlpatterns
from services.matching import notify_nearby_caregivers


class PresenceRegistryTests(SimpleTestCase):
	def setUp(self):
		self.registry = InMemoryPresenceRegistry()

	def test_user_online_until_last_connection_closes(self):
		self.registry.register(7, 'conn-a')
		self.registry.register('7', 'conn-b')

		self.assertTrue(self.registry.is_online(7))
		self.assertEqual(self.registry.online_count(), 1)

		self.assertEqual(self.registry.unregister('conn-a'), '7')
		self.assertTrue(self.registry.is_online(7))

		self.registry.unregister('conn-b')
		self.assertFalse(self.registry.is_online(7))
		self.assertEqual(self.registry.online_count(), 0)

	def test_unknown_connection(self):
		self.assertIsNone(self.registry.unregister('nope'))
		self.assertFalse(self.registry.is_online(1))

	def test_event_names_map_to_handlers(self):
		self.assertEqual(handler_name(NEW_SERVICE_NEARBY), 'new_service_nearby')
		self.assertFalse(emit_to_user(None, NEW_SERVICE_NEARBY, {}))


class NotificationConsumerTests(SimpleTestCase):
	def setUp(self):
		get_presence_registry().clear()
		self.application = URLRouter(websocket_urlpatterns)

	def _communicator(self, user):
		communicator = WebsocketCommunicator(self.application, '/ws/notifications/')
		communicator.scope['user'] = user
		return communicator

	async def test_anonymous_connection_is_rejected(self):
		communicator = self._communicator(AnonymousUser())

		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_caregiver_receives_offers_while_connected(self):
		caregiver = User(id=41, username='ana', role=User.ROLE_CAREGIVER)
		communicator = self._communicator(caregiver)

		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		greeting = await communicator.receive_json_from()
		self.assertEqual(greeting, {'type': 'connection_established', 'user_id': 41, 'role': 'caregiver'})
		self.assertTrue(get_presence_registry().is_online(41))

		await sync_to_async(emit_to_caregiver)(41, NEW_SERVICE_NEARBY, {'service_id': 5, 'distance': 2.0})
		event = await communicator.receive_json_from()
		self.assertEqual(event, {'type': 'new-service-nearby', 'service_id': 5, 'distance': 2.0})

		await communicator.disconnect()
		self.assertFalse(get_presence_registry().is_online(41))

	async def test_register_and_ping(self):
		family = User(id=42, username='family', role=User.ROLE_FAMILY)
		communicator = self._communicator(family)
		await communicator.connect()
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'register', 'userId': 999})
		self.assertEqual(
			await communicator.receive_json_from(),
			{'type': 'registered', 'status': 'ok', 'user_id': 42}
		)
		self.assertFalse(get_presence_registry().is_online(999))

		await communicator.send_json_to({'type': 'ping'})
		self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})

		await communicator.send_json_to({'type': 'dance'})
		self.assertEqual((await communicator.receive_json_from())['type'], 'error')

		await communicator.disconnect()

	async def test_invalid_token_is_anonymous(self):
		user = await get_user_for_token('not-a-jwt')

		self.assertTrue(user.is_anonymous)


class RedisPresenceRegistryTests(SimpleTestCase):
	def setUp(self):
		self.server = fakeredis.FakeServer()
		self.now = 1000.0

	def _registry(self, instance_id):
		return RedisPresenceRegistry(
			client=fakeredis.FakeRedis(server=self.server, decode_responses=True),
			instance_id=instance_id,
			ttl=90,
			clock=lambda: self.now,
		)

	def test_restarted_process_forgets_its_connections(self):
		before_crash = self._registry('web-1')
		before_crash.register(41, 'conn-1')
		self.assertTrue(before_crash.is_online(41))

		# no unregister: the process died
		restarted = self._registry('web-1')
		restarted.reset_instance()

		self.assertFalse(restarted.is_online(41))
		self.assertEqual(restarted.online_count(), 0)

	def test_restart_keeps_other_processes_connections(self):
		self._registry('web-1').register(41, 'conn-1')
		self._registry('web-2').register(42, 'conn-2')

		self._registry('web-1').reset_instance()

		worker = self._registry('worker')
		self.assertFalse(worker.is_online(41))
		self.assertTrue(worker.is_online(42))

	def test_lease_runs_out_without_heartbeat(self):
		web = self._registry('web-1')
		worker = self._registry('worker')
		web.register(41, 'conn-1')

		self.now += 60
		web.touch('conn-1')
		self.now += 60
		self.assertTrue(worker.is_online(41))

		self.now += 60
		self.assertFalse(worker.is_online(41))

	def test_unregister(self):
		web = self._registry('web-1')
		web.register(41, 'conn-1')
		web.register(41, 'conn-2')

		self.assertEqual(web.unregister('conn-1'), '41')
		self.assertTrue(web.is_online(41))
		web.unregister('conn-2')
		self.assertFalse(web.is_online(41))
		self.assertIsNone(web.unregister('conn-2'))


class RestartDeliveryTests(TestCase):
	def setUp(self):
		self.server = fakeredis.FakeServer()
		self.family = make_family()
		self.service = make_service(self.family)
		self.caregiver = make_caregiver('ana', km=2)

	def tearDown(self):
		set_presence_registry(None)

	def _registry(self):
		return RedisPresenceRegistry(
			client=fakeredis.FakeRedis(server=self.server, decode_responses=True),
			instance_id='web-1',
		)

	def test_caregiver_connected_before_restart_is_emailed(self):
		self._registry().register(self.caregiver.user_id, 'conn-1')

		set_presence_registry(self._registry())
		reset_presence_on_startup()
		notify_nearby_caregivers(self.service.id)

		row = ServiceNotification.objects.get(service=self.service, caregiver=self.caregiver)
		self.assertEqual(row.notified_via, ServiceNotification.VIA_EMAIL)
		self.assertEqual([m.to for m in mail.outbox], [['ana@example.com']])


class WebsocketAuthStackTests(SimpleTestCase):
	def _scope(self, query_string=b''):
		return {
			'type': 'websocket',
			'path': '/ws/notifications/',
			'headers': [],
			'query_string': query_string,
		}

	async def _run(self, scope):
		seen = {}

		async def inner(scope, receive, send):
			seen.update(scope)

		await JWTAuthMiddlewareStack(inner)(scope, None, None)
		return seen

	async def test_session_is_available_to_cookie_auth(self):
		seen = await self._run(self._scope())

		self.assertIn('session', seen)
		self.assertTrue(seen['user'].is_anonymous)

	async def test_bad_token_is_anonymous(self):
		seen = await self._run(self._scope(b'token=not-a-jwt'))

		self.assertTrue(seen['user'].is_anonymous)
