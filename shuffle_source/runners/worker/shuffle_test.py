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

"""Unit tests for shuffle positions and the layered shuffle entry readers."""

import logging
import unittest
from unittest import mock

from parameterized import parameterized

from shuffle_source.coders.stream import OutputStream
from shuffle_source.error import ShufflePositionError
from shuffle_source.error import ShuffleReadError
from shuffle_source.runners.worker.shuffle import BatchingShuffleEntryReader
from shuffle_source.runners.worker.shuffle import ByteArrayShufflePosition
from shuffle_source.runners.worker.shuffle import ChunkingShuffleBatchReader
from shuffle_source.runners.worker.shuffle import ShuffleEntry
from shuffle_source.runners.worker.shuffle import ShuffleEntryReader
from shuffle_source.runners.worker.shuffle import write_chunk_entry


def _entry(key, value, position, secondary_key=b''):
  return ShuffleEntry(
      key, secondary_key, value, ByteArrayShufflePosition(position))


def _chunk(*entries):
  out = OutputStream()
  for entry in entries:
    write_chunk_entry(out, entry)
  return out.get()


class ByteArrayShufflePositionTest(unittest.TestCase):
  @parameterized.expand([
      ('padded', 'QQ==', b'A'),
      ('unpadded', 'QQ', b'A'),
      ('empty', '', b''),
      ('urlsafe', '-_8=', b'\xfb\xff'),
      ('standard_alphabet', '+/8=', b'\xfb\xff'),
      ('standard_alphabet_unpadded', 'a+8', b'k\xef'),
      ('ascii_bytes', b'Wg==', b'Z'),
      ('longer', 'a2V5LTE', b'key-1'),
  ])
  def test_from_base64(self, unused_name, encoded, expected):
    self.assertEqual(
        ByteArrayShufflePosition(expected),
        ByteArrayShufflePosition.from_base64(encoded))

  def test_from_base64_none_is_unbounded(self):
    self.assertIsNone(ByteArrayShufflePosition.from_base64(None))
    self.assertIsNone(ByteArrayShufflePosition.to_base64(None))

  @parameterized.expand([
      ('bad_characters', 'QQ$='),
      ('inner_space', 'Q Q='),
      ('bad_length', 'QUFBQ'),
      ('single_char', 'Q'),
      ('trailing_newline', 'QQ==\n'),
      ('too_much_padding', 'QQ==='),
      ('inner_padding', 'Q=Q='),
      ('non_ascii_bytes', b'\xff\xfe'),
      ('wrong_type', 17),
  ])
  def test_from_base64_rejects(self, unused_name, encoded):
    with self.assertRaises(ShufflePositionError):
      ByteArrayShufflePosition.from_base64(encoded)

  def test_position_errors_are_value_errors(self):
    with self.assertRaises(ValueError):
      ByteArrayShufflePosition.from_base64('@')

  def test_encode_base64(self):
    self.assertEqual('QQ==', ByteArrayShufflePosition(b'A').encode_base64())
    self.assertEqual(
        '-_8=', ByteArrayShufflePosition.to_base64(
            ByteArrayShufflePosition(b'\xfb\xff')))
    position = ByteArrayShufflePosition(b'\x00\x01\x02\xff')
    self.assertEqual(
        position,
        ByteArrayShufflePosition.from_base64(position.encode_base64()))

  def test_requires_bytes(self):
    with self.assertRaises(TypeError):
      ByteArrayShufflePosition('A')

  def test_ordering_is_unsigned_lexicographic(self):
    positions = [
        ByteArrayShufflePosition(b'\x80'),
        ByteArrayShufflePosition(b'ab'),
        ByteArrayShufflePosition(b''),
        ByteArrayShufflePosition(b'a'),
        ByteArrayShufflePosition(b'\x01'),
    ]
    self.assertEqual(
        [b'', b'\x01', b'a', b'ab', b'\x80'],
        [p.position for p in sorted(positions)])
    self.assertGreater(
        ByteArrayShufflePosition(b'\xff'), ByteArrayShufflePosition(b'\x7f'))

  def test_immediate_successor(self):
    position = ByteArrayShufflePosition(b'a')
    successor = position.immediate_successor()
    self.assertLess(position, successor)
    self.assertLess(successor, ByteArrayShufflePosition(b'a\x00\x00'))
    self.assertLess(successor, ByteArrayShufflePosition(b'b'))

  def test_equality_and_hash(self):
    self.assertEqual(
        ByteArrayShufflePosition(b'k'), ByteArrayShufflePosition(b'k'))
    self.assertNotEqual(ByteArrayShufflePosition(b'k'), b'k')
    self.assertEqual(
        1,
        len({ByteArrayShufflePosition(b'k'), ByteArrayShufflePosition(b'k')}))
    self.assertEqual(
        'ByteArrayShufflePosition(aw==)', repr(ByteArrayShufflePosition(b'k')))


class ShuffleEntryTest(unittest.TestCase):
  def test_defaults_and_length(self):
    entry = ShuffleEntry(b'key')
    self.assertEqual(b'', entry.secondary_key)
    self.assertEqual(b'', entry.value)
    self.assertIsNone(entry.position)
    self.assertEqual(3, entry.length)
    self.assertEqual(10, ShuffleEntry(b'k', b'ss', b'vvvvvvv').length)

  def test_is_a_tuple(self):
    key, secondary_key, value, position = _entry(b'k', b'v', b'p')
    self.assertEqual(
        (b'k', b'', b'v', ByteArrayShufflePosition(b'p')),
        (key, secondary_key, value, position))


class ChunkFormatTest(unittest.TestCase):
  def test_layout(self):
    self.assertEqual(
        b'\x00\x00\x00\x01p'
        b'\x00\x00\x00\x01k'
        b'\x00\x00\x00\x00'
        b'\x00\x00\x00\x02vv',
        _chunk(_entry(b'k', b'vv', b'p')))

  def test_parse(self):
    entries = [
        _entry(b'k1', b'v1', b'p1'),
        _entry(b'k2', b'', b'p2', secondary_key=b's'),
        _entry(b'', b'\x00' * 300, b'p3'),
    ]
    self.assertEqual(
        entries, ChunkingShuffleBatchReader._parse_chunk(_chunk(*entries)))

  def test_parse_empty_chunk(self):
    self.assertEqual([], ChunkingShuffleBatchReader._parse_chunk(b''))

  @parameterized.expand([
      ('truncated_length', 2),
      ('truncated_key', 7),
      ('missing_value', 14),
      ('truncated_value', -1),
  ])
  def test_parse_truncated_chunk(self, unused_name, cut):
    chunk = _chunk(_entry(b'k', b'vv', b'p'))[:cut]
    with self.assertRaisesRegex(ShuffleReadError, 'Malformed shuffle chunk'):
      ChunkingShuffleBatchReader._parse_chunk(chunk)

  def test_parse_negative_length(self):
    with self.assertRaises(ShuffleReadError):
      ChunkingShuffleBatchReader._parse_chunk(b'\xff\xff\xff\xff')

  def test_read_returns_continuation(self):
    chunk_reader = mock.Mock()
    chunk_reader.read_incomplete.return_value = (
        _chunk(_entry(b'k', b'v', b'p')), b'q')
    entries, next_position = ChunkingShuffleBatchReader(chunk_reader).read(
        b'a', b'z')
    chunk_reader.read_incomplete.assert_called_once_with(b'a', b'z')
    self.assertEqual([_entry(b'k', b'v', b'p')], entries)
    self.assertEqual(b'q', next_position)


class BatchingShuffleEntryReaderTest(unittest.TestCase):
  def test_reads_batches_until_done(self):
    batch_reader = mock.Mock()
    batch_reader.read.side_effect = [
        ([_entry(b'a', b'1', b'pa'), _entry(b'b', b'2', b'pb')], b'pc'),
        ([_entry(b'c', b'3', b'pc')], b'pd'),
        ([_entry(b'd', b'4', b'pd')], None),
    ]
    reader = BatchingShuffleEntryReader(batch_reader)
    self.assertEqual(
        [b'a', b'b', b'c', b'd'],
        [e.key for e in reader.read(b'pa', b'pz')])
    self.assertEqual([
        mock.call(b'pa', b'pz'),
        mock.call(b'pc', b'pz'),
        mock.call(b'pd', b'pz'),
    ],
                     batch_reader.read.call_args_list)

  def test_reads_lazily(self):
    batch_reader = mock.Mock()
    batch_reader.read.side_effect = [
        ([_entry(b'a', b'1', b'pa')], b'pb'),
        ([_entry(b'b', b'2', b'pb')], None),
    ]
    entries = BatchingShuffleEntryReader(batch_reader).read(None, None)
    batch_reader.read.assert_not_called()
    self.assertEqual(b'a', next(entries).key)
    self.assertEqual(1, batch_reader.read.call_count)
    self.assertEqual(b'b', next(entries).key)
    self.assertEqual(2, batch_reader.read.call_count)
    with self.assertRaises(StopIteration):
      next(entries)

  def test_accepts_position_objects(self):
    batch_reader = mock.Mock()
    batch_reader.read.return_value = ([], None)
    list(
        BatchingShuffleEntryReader(batch_reader).read(
            ByteArrayShufflePosition(b'a'), None))
    batch_reader.read.assert_called_once_with(b'a', None)

  def test_skips_empty_batches_that_advance(self):
    batch_reader = mock.Mock()
    batch_reader.read.side_effect = [
        ([], b'pb'),
        ([_entry(b'b', b'2', b'pb')], None),
    ]
    self.assertEqual(
        [b'b'],
        [e.key for e in BatchingShuffleEntryReader(batch_reader).read(
            b'pa', None)])

  def test_no_progress_raises(self):
    batch_reader = mock.Mock()
    batch_reader.read.return_value = ([], b'pa')
    with self.assertRaisesRegex(ShuffleReadError, 'no progress'):
      list(BatchingShuffleEntryReader(batch_reader).read(b'pa', None))

  def test_context_manager_closes(self):
    with mock.patch.object(ShuffleEntryReader, 'close') as close:
      with BatchingShuffleEntryReader(mock.Mock()) as reader:
        self.assertIsInstance(reader, BatchingShuffleEntryReader)
      close.assert_called_once_with()


if __name__ == '__main__':
  logging.getLogger().setLevel(logging.INFO)
  unittest.main()
