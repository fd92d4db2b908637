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

"""
Partitioning shuffle source
===========================

Reads a range of a partitioning shuffle back as windowed key-value elements.

A partitioning shuffle holds the elements of a collection that was
repartitioned by key but not grouped. Each shuffle entry holds a single
element, split into the encoded key and the encoded value together with the
element's timestamp, windows and pane.

Typical usage
-------------
::

  from shuffle_source import coders
  from shuffle_source.runners.worker.partitioning_shuffle import PartitioningShuffleSource

  coder = coders.WindowedValueCoder(
      coders.TupleCoder([coders.VarIntCoder(), coders.StrUtf8Coder()]))
  source = PartitioningShuffleSource(
      config_bytes, start_position, end_position, coder,
      shuffle_reader_factory=factory)
  with source.reader() as reader:
    for windowed_kv in reader:
      ...
"""

# pylint: disable=wrong-import-position
from shuffle_source import coders
from shuffle_source import version

__version__ = version.__version__
