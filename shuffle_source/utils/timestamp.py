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

"""Event-time timestamps and durations.

Both types store an integer number of microseconds so that arithmetic on them
stays exact. Values cross the shuffle boundary as milliseconds, which is the
precision the shuffle encoding of a windowed value keeps.

For internal use only; no backwards-compatibility guarantees.
"""

# mypy: disallow-untyped-defs

import time
from typing import Union

# Bounds shared with the shuffle writers, in milliseconds: the range of a
# signed 64-bit count of microseconds, truncated to millis.
MIN_TIMESTAMP_MILLIS = -9223372036854775
MAX_TIMESTAMP_MILLIS = 9223372036854775
# One day before MAX_TIMESTAMP, so that the end of the global window can still
# be exceeded by a watermark hold.
GLOBAL_WINDOW_MAX_TIMESTAMP_MILLIS = MAX_TIMESTAMP_MILLIS - 24 * 60 * 60 * 1000

# types compatible with Timestamp.of()
TimestampTypes = Union[int, float, 'Timestamp']
# types compatible with Duration.of()
DurationTypes = Union[int, float, 'Duration']


class Timestamp(object):
  """Represents a Unix second timestamp with microsecond granularity.

  Can be treated in common timestamp arithmetic operations as a numeric type.
  """
  def __init__(
      self,
      seconds: Union[int, float] = 0,
      micros: Union[int, float] = 0) -> None:
    if not isinstance(seconds, (int, float)):
      raise TypeError(
          'Cannot interpret %s %s as seconds.' % (seconds, type(seconds)))
    if not isinstance(micros, (int, float)):
      raise TypeError(
          'Cannot interpret %s %s as micros.' % (micros, type(micros)))
    self.micros = int(seconds * 1000000) + int(micros)

  @staticmethod
  def of(seconds: TimestampTypes) -> 'Timestamp':
    """Return the Timestamp for the given number of seconds.

    If the input is already a Timestamp, the input itself will be returned.
    """
    if isinstance(seconds, Timestamp):
      return seconds
    elif isinstance(seconds, (int, float)):
      return Timestamp(seconds)
    raise TypeError(
        'Cannot interpret %s %s as Timestamp.' % (seconds, type(seconds)))

  @staticmethod
  def of_millis(millis: int) -> 'Timestamp':
    return Timestamp(micros=millis * 1000)

  @staticmethod
  def now() -> 'Timestamp':
    return Timestamp(seconds=time.time())

  def millis(self) -> int:
    """Returns the timestamp in milliseconds, rounding toward zero."""
    sign = -1 if self.micros < 0 else 1
    return sign * (abs(self.micros) // 1000)

  def predecessor(self) -> 'Timestamp':
    """Returns the largest timestamp smaller than self."""
    return Timestamp(micros=self.micros - 1)

  def successor(self) -> 'Timestamp':
    """Returns the smallest timestamp larger than self."""
    return Timestamp(micros=self.micros + 1)

  def __repr__(self) -> str:
    return 'Timestamp(%s)' % _format_micros(self.micros)

  def __float__(self) -> float:
    # Note that the returned value may have lost precision.
    return self.micros / 1000000

  def __int__(self) -> int:
    return self.micros // 1000000

  def __eq__(self, other: object) -> bool:
    if isinstance(other, (Duration, Timestamp)):
      return self.micros == other.micros
    elif isinstance(other, (int, float)):
      return self.micros == Timestamp.of(other).micros
    return NotImplemented

  def __lt__(self, other: object) -> bool:
    if not isinstance(other, Duration):
      other = Timestamp.of(other)  # type: ignore[arg-type]
    return self.micros < other.micros  # type: ignore[union-attr]

  def __gt__(self, other: object) -> bool:
    return not (self < other or self == other)

  def __le__(self, other: object) -> bool:
    return self < other or self == other

  def __ge__(self, other: object) -> bool:
    return not self < other

  def __hash__(self) -> int:
    return hash(self.micros)

  def __add__(self, other: DurationTypes) -> 'Timestamp':
    other = Duration.of(other)
    return Timestamp(micros=self.micros + other.micros)

  def __radd__(self, other: DurationTypes) -> 'Timestamp':
    return self + other

  def __sub__(
      self, other: Union[DurationTypes,
                         'Timestamp']) -> Union['Timestamp', 'Duration']:
    if isinstance(other, Timestamp):
      return Duration(micros=self.micros - other.micros)
    other = Duration.of(other)
    return Timestamp(micros=self.micros - other.micros)


MIN_TIMESTAMP = Timestamp(micros=MIN_TIMESTAMP_MILLIS * 1000)
MAX_TIMESTAMP = Timestamp(micros=MAX_TIMESTAMP_MILLIS * 1000)


class Duration(object):
  """Represents a second duration with microsecond granularity."""
  def __init__(
      self,
      seconds: Union[int, float] = 0,
      micros: Union[int, float] = 0) -> None:
    self.micros = int(seconds * 1000000) + int(micros)

  @staticmethod
  def of(seconds: DurationTypes) -> 'Duration':
    if isinstance(seconds, Timestamp):
      raise TypeError('Cannot interpret %s as Duration.' % seconds)
    if isinstance(seconds, Duration):
      return seconds
    return Duration(seconds)

  def __repr__(self) -> str:
    return 'Duration(%s)' % _format_micros(self.micros)

  def __float__(self) -> float:
    return self.micros / 1000000

  def __eq__(self, other: object) -> bool:
    if isinstance(other, (Duration, Timestamp)):
      return self.micros == other.micros
    elif isinstance(other, (int, float)):
      return self.micros == Duration.of(other).micros
    return NotImplemented

  def __lt__(self, other: object) -> bool:
    if not isinstance(other, Timestamp):
      other = Duration.of(other)  # type: ignore[arg-type]
    return self.micros < other.micros  # type: ignore[union-attr]

  def __le__(self, other: object) -> bool:
    return self < other or self == other

  def __hash__(self) -> int:
    return hash(self.micros)

  def __neg__(self) -> 'Duration':
    return Duration(micros=-self.micros)

  def __add__(self, other: DurationTypes) -> 'Duration':
    if isinstance(other, Timestamp):
      # defer to Timestamp.__add__
      return NotImplemented
    other = Duration.of(other)
    return Duration(micros=self.micros + other.micros)

  def __sub__(self, other: DurationTypes) -> 'Duration':
    other = Duration.of(other)
    return Duration(micros=self.micros - other.micros)


def _format_micros(micros: int) -> str:
  sign = ''
  if micros < 0:
    sign = '-'
    micros = -micros
  int_part, frac_part = divmod(micros, 1000000)
  if frac_part:
    return '%s%d.%06d' % (sign, int_part, frac_part)
  return '%s%d' % (sign, int_part)
