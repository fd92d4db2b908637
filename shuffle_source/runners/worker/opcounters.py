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

"""Counters collect the progress of the Worker for reporting to the service."""

from typing import Optional

from shuffle_source.utils import counters
from shuffle_source.utils.counters import Counter
from shuffle_source.utils.counters import CounterName

# This module is experimental. No backwards-compatibility guarantees.


class TransformIOCounter(object):
  """Class to track bytes consumed while reading from IO.

  Subclasses should be able to track consumption of IO across steps
  in the same stage - for instance, if a shuffle iterable is passed down to a
  next step.

  This is the progress sink of a shuffle reader: the reader calls
  add_bytes_read once for every entry it decodes.
  """
  def __init__(self, counter_factory):
    """Create a new IO read counter.

    Args:
      counter_factory: A counters.CounterFactory to create byte counters.
    """
    self._counter_factory = counter_factory
    self._latest_step = None  # type: Optional[str]
    self.bytes_read_counter = None  # type: Optional[Counter]

  def update_current_step(self, step_name):
    """Update the current running step.

    Due to the fusion optimization, user code may choose to emit the data
    structure that holds the shuffle iterable. This call updates the current
    step, to attribute the data consumption to the step that is responsible for
    actual consumption.
    """
    if step_name != self._latest_step:
      self._latest_step = step_name
      self._update_counters_for_requesting_step(step_name)

  def _update_counters_for_requesting_step(self, step_name):
    pass

  def add_bytes_read(self, count):
    if count > 0 and self.bytes_read_counter:
      self.bytes_read_counter.update(count)


class NoOpTransformIOCounter(TransformIOCounter):
  """All operations for IO tracking are no-ops."""
  def __init__(self):
    super().__init__(None)

  def update_current_step(self, step_name):
    pass

  def add_bytes_read(self, count):
    pass


class ShuffleReadCounter(TransformIOCounter):
  """Tracks bytes consumed while reading from shuffle.

  The shuffle is identified by the step that wrote it (the declaring step).
  Consumption is attributed to the step currently reading from it, which starts
  out as the step that owns the shuffle source.
  """
  def __init__(self, counter_factory, declaring_step, requesting_step):
    """Create a shuffle read counter.

    Args:
      counter_factory: A counters.CounterFactory to create byte counters.
      declaring_step: The name of the step whose output was shuffled.
      requesting_step: The name of the step reading from the shuffle.
    """
    super().__init__(counter_factory)
    self.declaring_step = declaring_step
    self.entries_read_counter = None  # type: Optional[Counter]
    self.max_entry_size_counter = None  # type: Optional[Counter]
    self.update_current_step(requesting_step)

  def _update_counters_for_requesting_step(self, step_name):
    io_target = counters.shuffle_id(self.declaring_step)
    self.bytes_read_counter = self._counter_factory.get_counter(
        CounterName(
            'read-shuffle-byte-count', step_name=step_name,
            io_target=io_target),
        Counter.SUM)
    self.entries_read_counter = self._counter_factory.get_counter(
        CounterName(
            'read-shuffle-entry-count', step_name=step_name,
            io_target=io_target),
        Counter.COUNT)
    self.max_entry_size_counter = self._counter_factory.get_counter(
        CounterName(
            'read-shuffle-max-entry-bytes',
            step_name=step_name,
            io_target=io_target),
        Counter.MAX)

  def add_bytes_read(self, count):
    super().add_bytes_read(count)
    self.entries_read_counter.update(count)
    self.max_entry_size_counter.update(count)
