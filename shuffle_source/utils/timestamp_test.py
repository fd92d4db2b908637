#
# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Unit tests for time utilities."""

import unittest


from shuffle_source.utils.timestamp import MAX_TIMESTAMP
from shuffle_source.utils.timestamp import MAX_TIMESTAMP_MILLIS
from shuffle_source.utils.timestamp import MIN_TIMESTAMP
from shuffle_source.utils.timestamp import MIN_TIMESTAMP_MILLIS
from shuffle_source.utils.timestamp import Duration
from shuffle_source.utils.timestamp import Timestamp


class TimestampTest(unittest.TestCase):
  def test_of(self):
    interval = Timestamp(123)
    self.assertEqual(id(interval), id(Timestamp.of(interval)))
    self.assertEqual(interval, Timestamp.of(123.0))
    with self.assertRaises(TypeError):
      Timestamp.of(Duration(10))
    with self.assertRaises(TypeError):
      Timestamp.of('123')

  def test_of_millis(self):
    self.assertEqual(Timestamp.of_millis(1500), Timestamp(micros=1500000))
    self.assertEqual(Timestamp.of_millis(-1), Timestamp(micros=-1000))

  def test_millis_rounds_toward_zero(self):
    self.assertEqual(Timestamp(micros=1999).millis(), 1)
    self.assertEqual(Timestamp(micros=-1999).millis(), -1)
    self.assertEqual(MIN_TIMESTAMP.millis(), MIN_TIMESTAMP_MILLIS)
    self.assertEqual(MAX_TIMESTAMP.millis(), MAX_TIMESTAMP_MILLIS)

  def test_arithmetic(self):
    self.assertEqual(Timestamp(123) + 456, 579)
    self.assertEqual(Timestamp(123) + Duration(456), 579)
    self.assertEqual(456 + Timestamp(123), 579)
    self.assertEqual(Duration(456) + Timestamp(123), 579)
    self.assertEqual(Timestamp(123) - 456, -333)
    self.assertEqual(Timestamp(123) - Duration(456), -333)
    self.assertEqual(Timestamp(123) - Timestamp(100), 23)

    # Check return types.
    self.assertEqual((Timestamp(123) + 456).__class__, Timestamp)
    self.assertEqual((Duration(456) + Timestamp(123)).__class__, Timestamp)
    self.assertEqual((Timestamp(123) - 456).__class__, Timestamp)
    self.assertEqual((Timestamp(123) - Timestamp(100)).__class__, Duration)

    # Unsupported operations.
    with self.assertRaises(TypeError):
      Timestamp(123) * 456  # pylint: disable=expression-not-assigned
    with self.assertRaises(TypeError):
      -Timestamp(123)  # pylint: disable=expression-not-assigned

  def test_predecessor_successor(self):
    self.assertEqual(Timestamp(10).predecessor(), Timestamp(10, micros=-1))
    self.assertEqual(Timestamp(10).successor(), Timestamp(10, micros=1))

  def test_sort_order(self):
    self.assertEqual([Timestamp(-3), Timestamp(2), Timestamp(292)],
                     sorted([Timestamp(2), Timestamp(292), Timestamp(-3)]))
    self.assertTrue(Timestamp(4) < 5)
    self.assertTrue(Timestamp(4) <= 4)
    self.assertTrue(Timestamp(6) > 5)
    self.assertTrue(Timestamp(5) >= 5)

  def test_str(self):
    self.assertEqual('Timestamp(1.234567)', str(Timestamp(1, micros=234567)))
    self.assertEqual(
        'Timestamp(-1.234567)', str(Timestamp(-1, micros=-234567)))
    self.assertEqual('Timestamp(999999999)', str(Timestamp(999999999)))

  def test_now(self):
    now = Timestamp.now()
    self.assertTrue(isinstance(now, Timestamp))


class DurationTest(unittest.TestCase):
  def test_of(self):
    interval = Duration(123)
    self.assertEqual(id(interval), id(Duration.of(interval)))
    self.assertEqual(interval, Duration.of(123.0))
    with self.assertRaises(TypeError):
      Duration.of(Timestamp(10))

  def test_arithmetic(self):
    self.assertEqual(Duration(123) + 456, 579)
    self.assertEqual(Duration(123) - 456, -333)
    self.assertEqual(-Duration(123), -123)
    self.assertEqual((Duration(123) - Duration(100)).__class__, Duration)

  def test_str(self):
    self.assertEqual('Duration(1.234567)', str(Duration(1, micros=234567)))
    self.assertEqual('Duration(-2)', str(Duration(-2)))


if __name__ == '__main__':
  unittest.main()
