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

"""Readers for entries stored in shuffle.

A shuffle stores entries sorted by key. Each entry is a key, a secondary key and
a value, all opaque bytes, plus the position the entry was stored at. Readers
are layered: a chunk reader fetches serialized chunks of entries from the
service, ChunkingShuffleBatchReader parses each chunk into a batch of
ShuffleEntry objects, and BatchingShuffleEntryReader flattens the batches into
one lazy sequence of entries over a position range.

For internal use only; no backwards-compatibility guarantees.
"""

import base64
import binascii
import logging
import re
from collections import namedtuple
from functools import total_ordering
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple

from shuffle_source.coders.stream import InputStream
from shuffle_source.coders.stream import OutputStream
from shuffle_source.error import ShufflePositionError
from shuffle_source.error import ShuffleReadError

_LOGGER = logging.getLogger(__name__)

_BASE64_RE = re.compile(r'[A-Za-z0-9_+/-]*={0,2}')

# Standard alphabet characters are read as their URL-safe counterparts.
_TO_URLSAFE = str.maketrans('+/', '-_')


@total_ordering
class ByteArrayShufflePosition(object):
  """A position in shuffle, backed by the raw position bytes.

  Positions order as unsigned byte strings. Their text form is URL-safe
  base64, which is how positions travel in work items and progress reports.
  """
  def __init__(self, position):
    # type: (bytes) -> None
    if not isinstance(position, bytes):
      raise TypeError(
          'Shuffle position must be bytes, got %s' % type(position).__name__)
    self._position = position

  @property
  def position(self):
    # type: () -> bytes
    return self._position

  @staticmethod
  def from_base64(encoded):
    # type: (Optional[str]) -> Optional[ByteArrayShufflePosition]

    """Decodes the text form of a position.

    None stands for an unbounded end of a range and decodes to None. Padding is
    optional and both the URL-safe and the standard alphabet are accepted; any
    other deviation from base64 raises
    ShufflePositionError.
    """
    if encoded is None:
      return None
    if isinstance(encoded, bytes):
      try:
        encoded = encoded.decode('ascii')
      except UnicodeDecodeError as e:
        raise ShufflePositionError(
            'Shuffle position is not ASCII text: %r' % encoded) from e
    if not isinstance(encoded, str):
      raise ShufflePositionError(
          'Shuffle position must be base64 text, got %s' %
          type(encoded).__name__)
    if not _BASE64_RE.fullmatch(encoded):
      raise ShufflePositionError(
          'Shuffle position is not base64: %r' % encoded)
    unpadded = encoded.rstrip('=').translate(_TO_URLSAFE)
    if len(unpadded) % 4 == 1:
      raise ShufflePositionError(
          'Shuffle position has an invalid base64 length: %r' % encoded)
    try:
      decoded = base64.urlsafe_b64decode(
          unpadded + '=' * (-len(unpadded) % 4))
    except (binascii.Error, ValueError) as e:
      raise ShufflePositionError(
          'Could not decode shuffle position %r' % encoded) from e
    return ByteArrayShufflePosition(decoded)

  @staticmethod
  def to_base64(position):
    # type: (Optional[ByteArrayShufflePosition]) -> Optional[str]
    return None if position is None else position.encode_base64()

  def encode_base64(self):
    # type: () -> str
    return base64.urlsafe_b64encode(self._position).decode('ascii')

  def immediate_successor(self):
    # type: () -> ByteArrayShufflePosition

    """Returns the smallest position greater than this one."""
    return ByteArrayShufflePosition(self._position + b'\x00')

  def __eq__(self, other):
    if isinstance(other, ByteArrayShufflePosition):
      return self._position == other._position
    return NotImplemented

  def __lt__(self, other):
    if isinstance(other, ByteArrayShufflePosition):
      # bytes comparison is unsigned and lexicographic.
      return self._position < other._position
    return NotImplemented

  def __hash__(self):
    return hash(self._position)

  def __repr__(self):
    return 'ByteArrayShufflePosition(%s)' % self.encode_base64()


def _position_bytes(position):
  if position is None or isinstance(position, bytes):
    return position
  return position.position


_ShuffleEntry = namedtuple(
    '_ShuffleEntry', ['key', 'secondary_key', 'value', 'position'])


class ShuffleEntry(_ShuffleEntry):
  """One entry read from shuffle.

  Attributes:
    key: the encoded key, bytes.
    secondary_key: the encoded secondary key, bytes; empty unless the shuffle
      sorts values within a key.
    value: the encoded value, bytes.
    position: the ByteArrayShufflePosition the entry was stored at, or None if
      the reader does not know it.
  """
  def __new__(cls, key, secondary_key=b'', value=b'', position=None):
    return super(ShuffleEntry, cls).__new__(
        cls, key, secondary_key, value, position)

  @property
  def length(self):
    # type: () -> int

    """The number of key, secondary key and value bytes in this entry."""
    return len(self.key) + len(self.secondary_key) + len(self.value)

  def __repr__(self):
    return 'ShuffleEntry(key=%r, secondary_key=%r, value=%r, position=%r)' % (
        self.key, self.secondary_key, self.value, self.position)


class ShuffleEntryReader(object):
  """Reads the entries of a shuffle between two positions.

  Positions are raw position bytes, or None for an unbounded side. Whether the
  start and end positions are inclusive is up to the implementation; readers in
  this package serve [start, end).
  """
  def read(self, start_position, end_position):
    # type: (Optional[bytes], Optional[bytes]) -> Iterator[ShuffleEntry]
    raise NotImplementedError

  def close(self):
    pass

  def __enter__(self):
    return self

  def __exit__(self, exception_type, exception_value, traceback):
    self.close()


class ShuffleBatchReader(object):
  """Reads entries of a shuffle one batch at a time."""
  def read(self, start_position, end_position):
    # type: (Optional[bytes], Optional[bytes]) -> Tuple[List[ShuffleEntry], Optional[bytes]]

    """Returns a batch of entries and the position to continue reading from.

    The continuation position is None once the range has been read to the end.
    """
    raise NotImplementedError


class BatchingShuffleEntryReader(ShuffleEntryReader):
  """A ShuffleEntryReader that fetches entries in batches, on demand."""
  def __init__(self, batch_reader):
    # type: (ShuffleBatchReader) -> None
    self._batch_reader = batch_reader

  def read(self, start_position, end_position):
    start_position = _position_bytes(start_position)
    end_position = _position_bytes(end_position)
    position = start_position
    batches = 0
    while True:
      entries, next_position = self._batch_reader.read(position, end_position)
      batches += 1
      _LOGGER.debug(
          'Read batch %d of %d shuffle entries, continuing from %r',
          batches,
          len(entries),
          next_position)
      for entry in entries:
        yield entry
      if next_position is None:
        return
      if not entries and next_position == position:
        raise ShuffleReadError(
            'Shuffle batch reader made no progress at position %r' % position)
      position = next_position


def write_chunk_entry(out, entry):
  # type: (OutputStream, ShuffleEntry) -> None

  """Appends one entry to a chunk in the shuffle chunk format."""
  position = _position_bytes(entry.position) or b''
  for part in (position, entry.key, entry.secondary_key, entry.value):
    out.write_bigendian_int32(len(part))
    out.write(part)


class ChunkingShuffleBatchReader(ShuffleBatchReader):
  """A ShuffleBatchReader that parses the chunks returned by a chunk reader.

  The chunk reader returns, for a position range, a serialized chunk of entries
  and the position to continue reading from::

    chunk, next_start = chunk_reader.read_incomplete(start, end)

  A chunk is a sequence of entries, each the position, key, secondary key and
  value of the entry, every part a big-endian int32 length followed by that
  many bytes.
  """
  def __init__(self, chunk_reader):
    self._chunk_reader = chunk_reader

  def read(self, start_position, end_position):
    chunk, next_position = self._chunk_reader.read_incomplete(
        start_position, end_position)
    return self._parse_chunk(chunk), next_position

  @classmethod
  def _parse_chunk(cls, chunk):
    # type: (bytes) -> List[ShuffleEntry]
    entries = []
    stream = InputStream(chunk)
    while stream.size() > 0:
      record_offset = len(chunk) - stream.size()
      try:
        position = cls._read_part(stream)
        key = cls._read_part(stream)
        secondary_key = cls._read_part(stream)
        value = cls._read_part(stream)
      except ValueError as e:
        raise ShuffleReadError(
            'Malformed shuffle chunk of %d bytes at offset %d' %
            (len(chunk), record_offset)) from e
      entries.append(
          ShuffleEntry(
              key, secondary_key, value, ByteArrayShufflePosition(position)))
    return entries

  @staticmethod
  def _read_part(stream):
    # type: (InputStream) -> bytes
    size = stream.read_bigendian_int32()
    if size < 0:
      raise ValueError('Negative length %d in shuffle chunk' % size)
    return stream.read(size)
