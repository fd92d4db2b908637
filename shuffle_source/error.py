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

"""Shuffle source error classes."""


class ShuffleSourceError(Exception):
  """Base class for all shuffle source errors."""


class CoderConfigurationError(ShuffleSourceError, ValueError):
  """The element coder of a shuffle source does not have the expected shape.

  Raised at construction time, before any shuffle reader is opened.
  """


class ShufflePositionError(ShuffleSourceError, ValueError):
  """A shuffle position could not be decoded from its text form."""


class ReaderPreconditionError(ShuffleSourceError, ValueError):
  """A shuffle reader was opened without the configuration it requires."""


class ShuffleReadError(ShuffleSourceError, IOError):
  """Reading or decoding a shuffle entry failed.

  The iterator that raised this error must not be used again.
  """
