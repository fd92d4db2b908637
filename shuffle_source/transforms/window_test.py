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

"""Unit tests for the windows carried by shuffled elements."""

# pytype: skip-file

import pickle
import unittest

from shuffle_source.transforms.window import GlobalWindow
from shuffle_source.transforms.window import IntervalWindow
from shuffle_source.utils.timestamp import MAX_TIMESTAMP
from shuffle_source.utils.timestamp import MIN_TIMESTAMP
from shuffle_source.utils.timestamp import Timestamp


class IntervalWindowTest(unittest.TestCase):
  def test_endpoints(self):
    window = IntervalWindow(10, 20)
    self.assertEqual(Timestamp(10), window.start)
    self.assertEqual(Timestamp(20), window.end)
    self.assertEqual(Timestamp(20).predecessor(), window.max_timestamp())

  def test_equality_and_hash(self):
    self.assertEqual(IntervalWindow(0, 10), IntervalWindow(0, 10))
    self.assertNotEqual(IntervalWindow(0, 10), IntervalWindow(0, 11))
    self.assertEqual(
        hash(IntervalWindow(0, 10)), hash(IntervalWindow(0.0, 10.0)))

  def test_ordering_by_end(self):
    windows = [IntervalWindow(5, 30), IntervalWindow(0, 10),
               IntervalWindow(2, 20)]
    self.assertEqual(
        [IntervalWindow(0, 10), IntervalWindow(2, 20), IntervalWindow(5, 30)],
        sorted(windows))

  def test_intersects_and_union(self):
    self.assertTrue(IntervalWindow(0, 10).intersects(IntervalWindow(5, 15)))
    self.assertFalse(IntervalWindow(0, 10).intersects(IntervalWindow(10, 15)))
    self.assertEqual(
        IntervalWindow(0, 15),
        IntervalWindow(0, 10).union(IntervalWindow(5, 15)))

  def test_repr(self):
    self.assertEqual('[1.5, 2.0)', repr(IntervalWindow(1.5, 2)))

  def test_pickle(self):
    window = IntervalWindow(3, 7)
    self.assertEqual(window, pickle.loads(pickle.dumps(window)))


class GlobalWindowTest(unittest.TestCase):
  def test_singleton(self):
    self.assertIs(GlobalWindow(), GlobalWindow())
    self.assertEqual(GlobalWindow(), GlobalWindow())
    self.assertEqual(hash(GlobalWindow()), hash(GlobalWindow()))

  def test_bounds(self):
    self.assertEqual(MIN_TIMESTAMP, GlobalWindow().start)
    self.assertLess(GlobalWindow().end, MAX_TIMESTAMP)

  def test_not_equal_to_interval_window(self):
    self.assertNotEqual(GlobalWindow(), IntervalWindow(0, 10))

  def test_pickle(self):
    self.assertIs(GlobalWindow(), pickle.loads(pickle.dumps(GlobalWindow())))


if __name__ == '__main__':
  unittest.main()
