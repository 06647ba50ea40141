from django.test import SimpleTestCase

from common.utils import distance_km, is_valid_coordinate


class DistanceTests(SimpleTestCase):
	def test_same_point_is_zero(self):
		self.assertEqual(distance_km(-34.60, -58.38, -34.60, -58.38), 0.0)

	def test_one_degree_of_latitude(self):
		# 2 * pi * 6371 / 360
		self.assertAlmostEqual(distance_km(0, 0, 1, 0), 111.195, places=2)

	def test_is_symmetric(self):
		there = distance_km(-34.60, -58.38, -34.92, -57.95)
		back = distance_km(-34.92, -57.95, -34.60, -58.38)
		self.assertAlmostEqual(there, back)

	def test_accepts_strings_and_decimals(self):
		from decimal import Decimal
		self.assertAlmostEqual(
			distance_km(Decimal("-34.600000"), "-58.38", -34.555, -58.38),
			5.0,
			places=1
		)


class CoordinateValidationTests(SimpleTestCase):
	def test_valid_coordinates(self):
		self.assertTrue(is_valid_coordinate(-34.60, -58.38))
		self.assertTrue(is_valid_coordinate(90, 180))

	def test_missing_or_out_of_range(self):
		self.assertFalse(is_valid_coordinate(None, -58.38))
		self.assertFalse(is_valid_coordinate(-34.60, None))
		self.assertFalse(is_valid_coordinate(91, 0))
		self.assertFalse(is_valid_coordinate(0, -181))
		self.assertFalse(is_valid_coordinate("north", 0))
