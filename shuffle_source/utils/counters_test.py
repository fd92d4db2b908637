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

"""Unit tests for counters and counter names."""

# pytype: skip-file

import threading
import unittest

from hamcrest import assert_that
from hamcrest import contains_inanyorder
from hamcrest import has_length
from parameterized import parameterized

from shuffle_source.utils import counters
from shuffle_source.utils.counters import CounterName


class CounterNameTest(unittest.TestCase):
  def test_name_string_representation(self):
    counter_name = CounterName('counter_name', 'stage_name', 'step_name')

    # This string representation is utilized by the worker to report progress.
    # Change only if the worker code has also been changed.
    self.assertEqual('stage_name-step_name-counter_name', str(counter_name))
    self.assertIn(
        '<CounterName<stage_name-step_name-counter_name> at 0x',
        repr(counter_name))

  def test_user_and_output_names(self):
    self.assertEqual(
        'user-s2-elements',
        str(CounterName('elements', step_name='s2', origin=CounterName.USER)))
    self.assertEqual(
        's2-out1-elements',
        str(CounterName('elements', step_name='s2', output_index=1)))

  def test_equal_objects(self):
    self.assertEqual(
        CounterName('counter_name', 'stage_name', 'step_name'),
        CounterName('counter_name', 'stage_name', 'step_name'))
    self.assertNotEqual(
        CounterName('counter_name', 'stage_name', 'step_name'),
        CounterName('counter_name', 'stage_name', 'step_nam'))

    # Testing objects with an IOTarget.
    self.assertEqual(
        CounterName(
            'counter_name',
            'stage_name',
            'step_name',
            io_target=counters.shuffle_id('s9')),
        CounterName(
            'counter_name',
            'stage_name',
            'step_name',
            io_target=counters.shuffle_id('s9')))
    self.assertNotEqual(
        CounterName(
            'counter_name',
            'stage_name',
            'step_name',
            io_target=counters.shuffle_id('s')),
        CounterName(
            'counter_name',
            'stage_name',
            'step_name',
            io_target=counters.shuffle_id('s9')))

  def test_hash_two_objects(self):
    self.assertEqual(
        hash(CounterName('counter_name', 'stage_name', 'step_name')),
        hash(CounterName('counter_name', 'stage_name', 'step_name')))
    self.assertNotEqual(
        hash(CounterName('counter_name', 'stage_name', 'step_name')),
        hash(CounterName('counter_name', 'stage_name', 'step_nam')))

  def test_shuffle_id(self):
    self.assertEqual(
        counters.IOTargetName('s5', None), counters.shuffle_id('s5'))


class CounterTest(unittest.TestCase):
  @parameterized.expand([
      ('sum', counters.Counter.SUM, [3, 4, 5], 12),
      ('max', counters.Counter.MAX, [3, 14, 5], 14),
      ('mean', counters.Counter.MEAN, [3, 4, 5], 4),
      ('count', counters.Counter.COUNT, ['a', 'b'], 2),
  ])
  def test_update_and_value(self, unused_name, combine_fn, values, expected):
    counter = counters.CounterFactory().get_counter(
        CounterName('c'), combine_fn)
    for value in values:
      counter.update(value)
    self.assertEqual(expected, counter.value())

  def test_reset(self):
    counter = counters.CounterFactory().get_counter(
        CounterName('c'), counters.Counter.SUM)
    counter.update(10)
    counter.reset()
    self.assertEqual(0, counter.value())
    counter.update(3)
    self.assertEqual(3, counter.value())

  def test_sum_rejects_values_outside_int64(self):
    counter = counters.CounterFactory().get_counter(
        CounterName('c'), counters.Counter.SUM)
    with self.assertRaises(OverflowError):
      counter.update(2**63)

  def test_plain_counter(self):
    counter = counters.Counter(CounterName('c'), counters.Counter.MAX)
    counter.update(2)
    counter.update(1)
    self.assertEqual(2, counter.value())
    self.assertIn('MaxInt64Fn 2', str(counter))


class CounterFactoryTest(unittest.TestCase):
  def test_same_name_returns_same_counter(self):
    factory = counters.CounterFactory()
    first = factory.get_counter(CounterName('c', step_name='s1'),
                                counters.Counter.SUM)
    second = factory.get_counter(CounterName('c', step_name='s1'),
                                 counters.Counter.SUM)
    self.assertIs(first, second)
    self.assertIsInstance(first, counters.AccumulatorCombineFnCounter)

  def test_get_counters_is_a_snapshot(self):
    factory = counters.CounterFactory()
    a = factory.get_counter(CounterName('a'), counters.Counter.SUM)
    b = factory.get_counter(CounterName('b'), counters.Counter.MAX)
    snapshot = factory.get_counters()
    factory.get_counter(CounterName('c'), counters.Counter.COUNT)
    assert_that(snapshot, contains_inanyorder(a, b))
    assert_that(factory.get_counters(), has_length(3))

  def test_reset_all(self):
    factory = counters.CounterFactory()
    counter = factory.get_counter(CounterName('a'), counters.Counter.COUNT)
    counter.update(None)
    factory.reset()
    self.assertEqual(0, counter.value())

  def test_concurrent_get_counter(self):
    factory = counters.CounterFactory()
    results = []

    def get():
      results.append(
          factory.get_counter(CounterName('shared'), counters.Counter.SUM))

    threads = [threading.Thread(target=get) for _ in range(8)]
    for t in threads:
      t.start()
    for t in threads:
      t.join()
    self.assertEqual(1, len(set(id(c) for c in results)))


if __name__ == '__main__':
  unittest.main()
