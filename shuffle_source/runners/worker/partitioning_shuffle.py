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

"""A source reading ungrouped key-value elements from a partitioning shuffle.

A partitioning shuffle stores windowed key-value elements that were only
repartitioned by key, not grouped. Every shuffle entry holds one element: the
entry key is the encoded key, and the entry value is the element value encoded
together with the element's timestamp, windows and pane. Reading an entry back
therefore decodes the key with the key coder and everything else with a
windowed value coder over the value type, then puts the two halves back
together into a windowed (key, value) pair.

For internal use only; no backwards-compatibility guarantees.
"""

import logging

from shuffle_source.coders import coders
from shuffle_source.error import CoderConfigurationError
from shuffle_source.error import ReaderPreconditionError
from shuffle_source.error import ShuffleReadError
from shuffle_source.io import iobase
from shuffle_source.options.pipeline_options import PipelineOptions
from shuffle_source.options.pipeline_options import ShuffleReaderOptions
from shuffle_source.runners.worker.opcounters import NoOpTransformIOCounter
from shuffle_source.runners.worker.shuffle import ByteArrayShufflePosition

_LOGGER = logging.getLogger(__name__)


def split_windowed_kv_coder(coder):
  """Splits a coder of windowed (key, value) pairs into two coders.

  Args:
    coder: a WindowedValueCoder wrapping a key-value coder, that is a
      TupleCoder with exactly two components.

  Returns:
    A (key_coder, windowed_value_coder) pair. The windowed value coder encodes
    the value type with the same window coder as the input coder.

  Raises:
    CoderConfigurationError: if the coder does not have this shape.
  """
  if not isinstance(coder, coders.WindowedValueCoder):
    raise CoderConfigurationError(
        'Expected a WindowedValueCoder for the elements of a partitioning '
        'shuffle, got %r' % (coder, ))
  kv_coder = coder.wrapped_value_coder
  if not (isinstance(kv_coder, coders.TupleCoder) and kv_coder.is_kv_coder()):
    raise CoderConfigurationError(
        'Expected the WindowedValueCoder of a partitioning shuffle to wrap a '
        'key-value coder (a TupleCoder with two components), got %r' %
        (kv_coder, ))
  key_coder = kv_coder.key_coder()
  windowed_value_coder = coder.with_value_coder(kv_coder.value_coder())
  _LOGGER.debug(
      'Split %r into key coder %r and value coder %r',
      coder,
      key_coder,
      windowed_value_coder)
  return key_coder, windowed_value_coder


class _EndOfShuffle(object):
  def __repr__(self):
    return 'END_OF_SHUFFLE'

  def __reduce__(self):
    return 'END_OF_SHUFFLE'


# Returned by PartitioningShuffleIterator.try_next() once every entry was read.
END_OF_SHUFFLE = _EndOfShuffle()

_NO_ENTRY = object()


class PartitioningShuffleIterator(object):
  """Decodes the entries of a shuffle range into windowed (key, value) pairs.

  The iterator is forward-only and can be consumed once. Every element it
  returns reports the byte length of its entry to the io counter. If reading or
  decoding an entry fails, the iterator raises ShuffleReadError and keeps
  raising it on every later call.
  """
  def __init__(
      self,
      entries,
      key_coder,
      value_coder,
      io_counter=None,
      log_every_n=0):
    """Initializes a PartitioningShuffleIterator.

    Args:
      entries: an iterator of ShuffleEntry objects, in shuffle order.
      key_coder: the coder of the entry keys.
      value_coder: a WindowedValueCoder of the entry values.
      io_counter: a TransformIOCounter receiving the byte length of every
        entry that was read.
      log_every_n: log a progress line every this many elements; 0 disables
        progress logging.
    """
    self._entries = iter(entries)
    self._key_decoder = key_coder.get_impl().decode
    self._value_decoder = value_coder.get_impl().decode
    self._io_counter = io_counter or NoOpTransformIOCounter()
    self._log_every_n = log_every_n
    self._pending = _NO_ENTRY
    self._exhausted = False
    self._failure = None
    self.elements_read = 0
    self.bytes_read = 0
    self.last_position = None

  def _check_usable(self):
    if self._failure is not None:
      raise ShuffleReadError(
          'Shuffle iterator cannot be used after a failure: %s' %
          self._failure) from self._failure

  def _fail(self, message, cause):
    error = ShuffleReadError('%s: %s' % (message, cause))
    self._failure = error
    raise error from cause

  def _fetch(self):
    # Makes sure the next entry, if any, is in self._pending.
    if self._pending is not _NO_ENTRY or self._exhausted:
      return
    try:
      self._pending = next(self._entries)
    except StopIteration:
      self._exhausted = True
      _LOGGER.debug(
          'Reached the end of the shuffle range after %d elements, %d bytes',
          self.elements_read,
          self.bytes_read)
    except Exception as e:  # pylint: disable=broad-except
      self._fail('Failed to read from shuffle', e)

  def has_next(self):
    """Returns whether another element remains, without consuming it."""
    self._check_usable()
    self._fetch()
    return self._pending is not _NO_ENTRY

  def try_next(self):
    """Returns the next element, or END_OF_SHUFFLE if there are no more."""
    self._check_usable()
    self._fetch()
    if self._pending is _NO_ENTRY:
      return END_OF_SHUFFLE
    entry, self._pending = self._pending, _NO_ENTRY

    try:
      key = self._key_decoder(entry.key)
      windowed_value = self._value_decoder(entry.value)
    except Exception as e:  # pylint: disable=broad-except
      self._fail(
          'Failed to decode shuffle entry %d at position %r' %
          (self.elements_read, entry.position),
          e)

    self._io_counter.add_bytes_read(entry.length)
    self.elements_read += 1
    self.bytes_read += entry.length
    if entry.position is not None:
      self.last_position = entry.position
    if self._log_every_n and self.elements_read % self._log_every_n == 0:
      _LOGGER.debug(
          'Read %d elements, %d bytes from shuffle',
          self.elements_read,
          self.bytes_read)

    # The timestamp, windows and pane come from the value side of the entry.
    return windowed_value.with_value((key, windowed_value.value))

  def next(self):
    return self.__next__()

  def __iter__(self):
    return self

  def __next__(self):
    element = self.try_next()
    if element is END_OF_SHUFFLE:
      raise StopIteration
    return element


class PartitioningShuffleSource(iobase.NativeSource):
  """A source that reads windowed key-value pairs from a partitioning shuffle.

  Attributes:
    config_bytes: the opaque configuration of the shuffle reader.
    start_position: the base64 position the range starts at, or None.
    end_position: the base64 position the range ends at, or None.
    coder: the WindowedValueCoder of the (key, value) elements.
    key_coder: the coder of the entry keys, derived from coder.
    value_coder: the WindowedValueCoder of the entry values, derived from
      coder.
  """
  def __init__(
      self,
      config_bytes,
      start_position,
      end_position,
      coder,
      options=None,
      shuffle_reader_factory=None):
    self.config_bytes = config_bytes
    self.start_position = start_position
    self.end_position = end_position
    self.coder = coder
    self.key_coder, self.value_coder = split_windowed_kv_coder(coder)
    self._start = ByteArrayShufflePosition.from_base64(start_position)
    self._end = ByteArrayShufflePosition.from_base64(end_position)
    self.options = options or PipelineOptions()
    errors = self.options.view_as(ShuffleReaderOptions).validate()
    if errors:
      raise ValueError(
          'Invalid shuffle reader options: %s' % '; '.join(errors))
    self.shuffle_reader_factory = shuffle_reader_factory

  @property
  def start(self):
    """The decoded start position, or None if the range has no start."""
    return self._start

  @property
  def end(self):
    """The decoded end position, or None if the range has no end."""
    return self._end

  def reader(self, shuffle_reader=None, io_counter=None):
    return PartitioningShuffleReader(
        self, shuffle_reader=shuffle_reader, io_counter=io_counter)


class PartitioningShuffleReader(iobase.NativeSourceReader):
  """A reader for a PartitioningShuffleSource.

  A shuffle reader passed in is used as is and left open. Otherwise the reader
  must be used as a context manager: entering it creates a shuffle reader from
  the source's factory and exiting closes it again.
  """
  def __init__(self, shuffle_source, shuffle_reader=None, io_counter=None):
    self.source = shuffle_source
    self.shuffle_reader = shuffle_reader
    self._owns_shuffle_reader = False
    self.io_counter = io_counter or NoOpTransformIOCounter()
    self._iterator = None

  def _check_config(self):
    if not self.source.config_bytes:
      raise ReaderPreconditionError(
          'A partitioning shuffle reader requires a non-empty shuffle reader '
          'config, got %r' % (self.source.config_bytes, ))

  def __enter__(self):
    self._check_config()
    if self.shuffle_reader is None:
      if self.source.shuffle_reader_factory is None:
        raise ReaderPreconditionError(
            'No shuffle reader was given and the source has no shuffle reader '
            'factory to create one.')
      self.shuffle_reader = self.source.shuffle_reader_factory(
          self.source.config_bytes, self.source.options)
      self._owns_shuffle_reader = True
      _LOGGER.debug(
          'Created shuffle reader %r for source %r',
          self.shuffle_reader,
          self.source)
    return self

  def __exit__(self, exception_type, exception_value, traceback):
    if self._owns_shuffle_reader:
      self.shuffle_reader.close()
      self.shuffle_reader = None
      self._owns_shuffle_reader = False

  def __iter__(self):
    self._check_config()
    if self.shuffle_reader is None:
      raise ReaderPreconditionError(
          'No shuffle reader is open. A reader that creates its shuffle reader '
          'from the source factory must be used as a context manager.')
    _LOGGER.debug(
        'Reading shuffle range [%r, %r)',
        self.source.start_position,
        self.source.end_position)
    start = self.source.start
    end = self.source.end
    self._iterator = PartitioningShuffleIterator(
        self.shuffle_reader.read(
            start.position if start is not None else None,
            end.position if end is not None else None),
        self.source.key_coder,
        self.source.value_coder,
        io_counter=self.io_counter,
        log_every_n=self.source.options.view_as(
            ShuffleReaderOptions).shuffle_reader_log_every_n)
    return self._iterator

  @property
  def returns_windowed_values(self):
    return True

  def get_progress(self):
    if self._iterator is None or self._iterator.last_position is None:
      return None
    return iobase.ReaderProgress(
        position=iobase.ReaderPosition(
            shuffle_position=self._iterator.last_position.encode_base64()))
