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

"""Tests for the stream implementations."""
# pytype: skip-file

import math
import unittest

from shuffle_source.coders import stream


class StreamTest(unittest.TestCase):
  # pylint: disable=invalid-name
  InputStream = stream.InputStream
  OutputStream = stream.OutputStream
  ByteCountingOutputStream = stream.ByteCountingOutputStream

  # pylint: enable=invalid-name

  def test_read_write(self):
    out_s = self.OutputStream()
    out_s.write(b'abc')
    out_s.write(b'\0\t\n')
    out_s.write(b'xyz', True)
    out_s.write(b'', True)
    in_s = self.InputStream(out_s.get())
    self.assertEqual(b'abc\0\t\n', in_s.read(6))
    self.assertEqual(b'xyz', in_s.read_all(True))
    self.assertEqual(b'', in_s.read_all(True))

  def test_read_all(self):
    out_s = self.OutputStream()
    out_s.write(b'abc')
    in_s = self.InputStream(out_s.get())
    self.assertEqual(b'abc', in_s.read_all(False))

  def test_read_write_byte(self):
    out_s = self.OutputStream()
    out_s.write_byte(1)
    out_s.write_byte(0)
    out_s.write_byte(0xFF)
    in_s = self.InputStream(out_s.get())
    self.assertEqual(1, in_s.read_byte())
    self.assertEqual(0, in_s.read_byte())
    self.assertEqual(0xFF, in_s.read_byte())

  def run_read_write_var_int64(self, values):
    out_s = self.OutputStream()
    for v in values:
      out_s.write_var_int64(v)
    in_s = self.InputStream(out_s.get())
    for v in values:
      self.assertEqual(v, in_s.read_var_int64())

  def test_small_var_int64(self):
    self.run_read_write_var_int64(range(-10, 30))

  def test_large_var_int64(self):
    self.run_read_write_var_int64([0, 2**63 - 1, -2**63, 2**63 - 3])

  def test_var_int64_too_long(self):
    in_s = self.InputStream(b'\xff' * 10 + b'\x01')
    with self.assertRaisesRegex(ValueError, 'VarLong too long'):
      in_s.read_var_int64()

  def test_read_write_double(self):
    values = 0, 1, -1, 1e100, 1.0 / 3, math.pi, float('inf')
    out_s = self.OutputStream()
    for v in values:
      out_s.write_bigendian_double(v)
    in_s = self.InputStream(out_s.get())
    for v in values:
      self.assertEqual(v, in_s.read_bigendian_double())

  def test_read_write_bigendian_int64(self):
    values = 0, 1, -1, 2**63 - 1, -2**63, int(2**61 * math.pi)
    out_s = self.OutputStream()
    for v in values:
      out_s.write_bigendian_int64(v)
    in_s = self.InputStream(out_s.get())
    for v in values:
      self.assertEqual(v, in_s.read_bigendian_int64())

  def test_read_write_bigendian_uint64(self):
    values = 0, 1, 2**64 - 1, int(2**61 * math.pi)
    out_s = self.OutputStream()
    for v in values:
      out_s.write_bigendian_uint64(v)
    in_s = self.InputStream(out_s.get())
    for v in values:
      self.assertEqual(v, in_s.read_bigendian_uint64())

  def test_read_write_bigendian_int32(self):
    values = 0, 1, -1, 2**31 - 1, -2**31
    out_s = self.OutputStream()
    for v in values:
      out_s.write_bigendian_int32(v)
    in_s = self.InputStream(out_s.get())
    for v in values:
      self.assertEqual(v, in_s.read_bigendian_int32())

  def test_bigendian_int32_layout(self):
    out_s = self.OutputStream()
    out_s.write_bigendian_int32(10)
    self.assertEqual(b'\x00\x00\x00\x0a', out_s.get())

  def test_short_reads_raise(self):
    in_s = self.InputStream(b'ab')
    with self.assertRaisesRegex(ValueError, 'only 2 remain'):
      in_s.read(3)
    self.assertEqual(b'ab', in_s.read(2))
    with self.assertRaises(ValueError):
      in_s.read_byte()
    with self.assertRaises(ValueError):
      self.InputStream(b'\x00\x00').read_bigendian_int32()

  def test_negative_read_raises(self):
    with self.assertRaises(ValueError):
      self.InputStream(b'abc').read(-1)

  def test_byte_counting(self):
    bc_s = self.ByteCountingOutputStream()
    self.assertEqual(0, bc_s.get_count())
    bc_s.write(b'def')
    self.assertEqual(3, bc_s.get_count())
    bc_s.write(b'')
    self.assertEqual(3, bc_s.get_count())
    bc_s.write_byte(10)
    self.assertEqual(4, bc_s.get_count())
    # "nested" also writes the length of the buffer, which in this case is 1.
    bc_s.write(b'2', nested=True)
    self.assertEqual(6, bc_s.get_count())
    large_buffer = b'x' * 200
    # "nested" also writes the length of the buffer, which in this case
    # takes 2 bytes.
    bc_s.write(large_buffer, nested=True)
    self.assertEqual(208, bc_s.get_count())
    with self.assertRaises(NotImplementedError):
      bc_s.get()

  def test_get_varint_size(self):
    for value in [0, 1, 127, 128, 2**14, -1, 2**63 - 1]:
      out_s = self.OutputStream()
      out_s.write_var_int64(value)
      self.assertEqual(len(out_s.get()), stream.get_varint_size(value))


if __name__ == '__main__':
  unittest.main()
