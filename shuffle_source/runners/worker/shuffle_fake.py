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

"""An in-memory shuffle, for local execution and tests.

For internal use only; no backwards-compatibility guarantees.
"""

import bisect
import logging
import struct
import threading

from shuffle_source.coders.stream import OutputStream
from shuffle_source.options.pipeline_options import ShuffleReaderOptions
from shuffle_source.runners.worker.shuffle import BatchingShuffleEntryReader
from shuffle_source.runners.worker.shuffle import ByteArrayShufflePosition
from shuffle_source.runners.worker.shuffle import ChunkingShuffleBatchReader
from shuffle_source.runners.worker.shuffle import ShuffleEntry
from shuffle_source.runners.worker.shuffle import write_chunk_entry

_LOGGER = logging.getLogger(__name__)

# Order-preserving encoding of byte strings: 0x00 is escaped as 0x00 0xFF, and
# every escaped string is terminated by 0x00 0x01. Concatenations of encoded
# strings therefore sort like tuples of the original strings.
_ESCAPE = b'\x00\xff'
_TERMINATOR = b'\x00\x01'


def _escape(value):
  return value.replace(b'\x00', _ESCAPE)


def _record_position(key, secondary_key, ordinal):
  return (
      _escape(key) + _TERMINATOR + _escape(secondary_key) + _TERMINATOR +
      struct.pack('>Q', ordinal))


class InMemoryShuffle(object):
  """Stores shuffle entries in memory and serves them in chunks.

  Entries are added with put() and become readable after finalize(), which
  sorts them by key and secondary key. Entries with equal keys keep the order
  they were put in.
  """
  def __init__(self, chunk_size_bytes=None):
    if chunk_size_bytes is None:
      chunk_size_bytes = ShuffleReaderOptions.DEFAULT_CHUNK_SIZE_BYTES
    if chunk_size_bytes <= 0:
      raise ValueError(
          'chunk_size_bytes must be positive, got %d' % chunk_size_bytes)
    self.chunk_size_bytes = chunk_size_bytes
    self.finalized = False
    self.items = []
    self.sorted_entries = None
    self._positions = None
    self.lock = threading.Lock()

  @staticmethod
  def key_position(key):
    # type: (bytes) -> bytes

    """Returns the position right before all entries with the given key."""
    return _escape(key)

  def put(self, key, value, secondary_key=b''):
    self.put_entries([(key, secondary_key, value)])

  def put_entries(self, entries):
    """Adds (key, secondary_key, value) triples of bytes."""
    with self.lock:
      if self.finalized:
        raise ValueError('Shuffle already finalized.')
      for key, secondary_key, value in entries:
        for part in (key, secondary_key, value):
          if not isinstance(part, bytes):
            raise TypeError(
                'Shuffle entries hold bytes, got %s' % type(part).__name__)
        self.items.append((key, secondary_key, value))

  def finalize(self):
    with self.lock:
      self.finalized = True
      # sorted() is stable, so entries with equal keys keep their put order.
      ordered = sorted(self.items, key=lambda kv: (kv[0], kv[1]))
      self.sorted_entries = []
      ordinal = 0
      for i, (key, secondary_key, value) in enumerate(ordered):
        if i and ordered[i - 1][:2] == (key, secondary_key):
          ordinal += 1
        else:
          ordinal = 0
        self.sorted_entries.append(
            ShuffleEntry(
                key,
                secondary_key,
                value,
                ByteArrayShufflePosition(
                    _record_position(key, secondary_key, ordinal))))
      self._positions = [e.position.position for e in self.sorted_entries]
    _LOGGER.debug(
        'Finalized in-memory shuffle with %d entries',
        len(self.sorted_entries))

  def _seek(self, position, default):
    # Returns the index of the first entry at or after position.
    if position is None:
      return default
    return bisect.bisect_left(self._positions, position)

  def read_incomplete(self, start_position, end_position):
    """Serves one chunk of the entries in [start_position, end_position).

    Returns the serialized chunk and the position to continue from, or None
    once the range is exhausted. A chunk holds as many entries as fit in the
    chunk byte budget, and at least one.
    """
    if not self.finalized:
      raise ValueError('Shuffle must be finalized before reading.')
    first_index = self._seek(start_position, 0)
    one_past_last_index = self._seek(end_position, len(self.sorted_entries))
    out = OutputStream()
    chunk_bytes = 0
    i = first_index
    while i < one_past_last_index:
      entry = self.sorted_entries[i]
      if i > first_index and chunk_bytes + entry.length > self.chunk_size_bytes:
        break
      write_chunk_entry(out, entry)
      chunk_bytes += entry.length
      i += 1
    next_position = None
    if i < one_past_last_index:
      next_position = self._positions[i]
    return out.get(), next_position

  def entry_reader(self):
    """Returns a ShuffleEntryReader over this shuffle."""
    return BatchingShuffleEntryReader(ChunkingShuffleBatchReader(self))

  def reader_factory(self):
    """Returns a factory serving this shuffle to any shuffle source."""
    def create_reader(unused_config_bytes, unused_options):
      return self.entry_reader()

    return create_reader

  @classmethod
  def from_options(cls, options):
    reader_options = options.view_as(ShuffleReaderOptions)
    return cls(chunk_size_bytes=reader_options.shuffle_read_chunk_size_bytes)
