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

"""Pipeline options obtained from command line parsing."""

import argparse
import json
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Type
from typing import TypeVar

__all__ = [
    'PipelineOptions',
    'ShuffleReaderOptions',
]

PipelineOptionsT = TypeVar('PipelineOptionsT', bound='PipelineOptions')

_LOGGER = logging.getLogger(__name__)


class _OptionsArgumentParser(argparse.ArgumentParser):
  """An ArgumentParser that tolerates ambiguous option prefixes."""

  # The argparse package by default tries to autocomplete option names. This
  # results in an "ambiguous option" error from argparse when an unknown option
  # matching multiple known ones are used. This suppresses that behavior.
  def error(self, message):
    if message.startswith('ambiguous option: '):
      return
    super().error(message)


class PipelineOptions(object):
  """This class and subclasses are used as containers for command line options.

  These classes are wrappers over the standard argparse Python module
  (see https://docs.python.org/3/library/argparse.html).  To define one option
  or a group of options, create a subclass from PipelineOptions.

  Example Usage::

    class XyzOptions(PipelineOptions):

      @classmethod
      def _add_argparse_args(cls, parser):
        parser.add_argument('--abc', default='start')
        parser.add_argument('--xyz', default='end')

  Instances of PipelineOptions or any of its subclass have access to values
  defined by other PipelineOption subclasses (see get_all_options()), and
  can be converted to an instance of another PipelineOptions subclass
  (see view_as()). All views share the underlying data structure that stores
  option key-value pairs.
  """
  def __init__(self, flags=None, **kwargs):
    # type: (Optional[List[str]], **Any) -> None

    """Initialize an options class.

    The initializer will traverse all subclasses, add all their argparse
    arguments and then parse the command line specified by flags. Unlike a
    pipeline launched from a shell, a worker never reads sys.argv: no flags
    means the defaults.

    Args:
      flags: An iterable of command line arguments to be used.
      **kwargs: Add overrides for arguments passed in flags. For overrides
                of arguments, please pass the option names (the dest of each
                flag) instead of flag names.
    """
    # Initializing logging configuration in case the user did not set it up.
    logging.basicConfig()

    # self._flags stores a list of not yet parsed arguments. This list is shared
    # across different views. See: view_as().
    self._flags = list(flags) if flags is not None else []

    parser = _OptionsArgumentParser()
    for cls in type(self).mro():
      if cls == PipelineOptions:
        break
      elif '_add_argparse_args' in cls.__dict__:
        cls._add_argparse_args(parser)  # type: ignore

    # The _visible_options attribute will contain options that were recognized
    # by the parser.
    self._visible_options, _ = parser.parse_known_args(self._flags)

    # Overrides to flag values, plus the values of every option recognized by
    # this class or any view created from it. Shared between views.
    self._all_options = kwargs

    for option_name in self._visible_option_list():
      # Note that options specified in kwargs will not be overwritten.
      if option_name not in self._all_options:
        self._all_options[option_name] = getattr(
            self._visible_options, option_name)

  @classmethod
  def _add_argparse_args(cls, parser):
    # type: (_OptionsArgumentParser) -> None
    # Override this in subclasses to provide options.
    pass

  @classmethod
  def from_dictionary(cls, options):
    """Returns a PipelineOptions from a dictionary of arguments.

    Args:
      options: Dictionary of argument value pairs.

    Returns:
      A PipelineOptions object representing the given arguments.
    """
    flags = []
    for k, v in options.items():
      # A True boolean is passed as a bare flag; a False one is dropped.
      if isinstance(v, bool):
        if v:
          flags.append('--%s' % k)
      elif isinstance(v, list):
        for i in v:
          flags.append('--%s=%s' % (k, i))
      elif isinstance(v, dict):
        flags.append('--%s=%s' % (k, json.dumps(v)))
      elif v is None:
        _LOGGER.warning('Not setting flag with value None: %s', k)
      else:
        flags.append('--%s=%s' % (k, v))

    return cls(flags)

  def get_all_options(self, drop_default=False):
    # type: (bool) -> Dict[str, Any]

    """Returns a dictionary of all defined arguments.

    Returns a dictionary of all defined arguments (arguments that are defined in
    any subclass of PipelineOptions) into a dictionary.

    Args:
      drop_default: If set to true, options that are equal to their default
        values, are not returned as part of the result dictionary.

    Returns:
      Dictionary of all args and values.
    """
    parser = _OptionsArgumentParser()
    for cls in PipelineOptions.__subclasses__():
      cls._add_argparse_args(parser)  # pylint: disable=protected-access

    known_args, unknown_args = parser.parse_known_args(self._flags)
    if unknown_args:
      _LOGGER.warning("Discarding unparseable args: %s", unknown_args)
    result = vars(known_args)

    overrides = self._all_options.copy()
    # Apply the overrides if any
    for k in list(result):
      overrides.pop(k, None)
      if k in self._all_options:
        result[k] = self._all_options[k]
      if drop_default and parser.get_default(k) == result[k]:
        del result[k]

    if overrides:
      _LOGGER.warning("Discarding invalid overrides: %s", overrides)

    return result

  def view_as(self, cls):
    # type: (Type[PipelineOptionsT]) -> PipelineOptionsT

    """Returns a view of current object as provided PipelineOption subclass.

    Example Usage::

      options = PipelineOptions(['--shuffle_reader_log_every_n', '100'])
      reader_options = options.view_as(ShuffleReaderOptions)

    Modifications of values in any view-object will apply to current object
    and other view-objects.
    """
    view = cls(self._flags)

    for option_name in view._visible_option_list():
      # Initialize values of keys defined by a cls, once per key, so that
      # overrides already stored in _all_options are preserved.
      if option_name not in self._all_options:
        self._all_options[option_name] = getattr(
            view._visible_options, option_name)
    # Note that views will still store _all_options of the source object.
    view._all_options = self._all_options
    return view

  def _visible_option_list(self):
    # type: () -> List[str]
    return sorted(
        option for option in dir(self._visible_options) if option[0] != '_')

  def __dir__(self):
    # type: () -> List[str]
    return sorted(
        dir(type(self)) + list(self.__dict__) + self._visible_option_list())

  def __getattr__(self, name):
    # Special methods which may be accessed before the object is
    # fully constructed (e.g. in unpickling).
    if name[:2] == name[-2:] == '__':
      return object.__getattribute__(self, name)
    elif name in self._visible_option_list():
      return self._all_options[name]
    else:
      raise AttributeError(
          "'%s' object has no attribute '%s'" % (type(self).__name__, name))

  def __setattr__(self, name, value):
    if name in ('_flags', '_all_options', '_visible_options'):
      super().__setattr__(name, value)
    elif name in self._visible_option_list():
      self._all_options[name] = value
    else:
      raise AttributeError(
          "'%s' object has no attribute '%s'" % (type(self).__name__, name))

  def __str__(self):
    return '%s(%s)' % (
        type(self).__name__,
        ', '.join(
            '%s=%s' % (option, getattr(self, option))
            for option in self._visible_option_list()))


class ShuffleReaderOptions(PipelineOptions):
  """Options that tune how a worker reads from shuffle."""

  DEFAULT_CHUNK_SIZE_BYTES = 1 << 20

  @classmethod
  def _add_argparse_args(cls, parser):
    parser.add_argument(
        '--shuffle_read_chunk_size_bytes',
        type=int,
        default=cls.DEFAULT_CHUNK_SIZE_BYTES,
        help=(
            'Maximum number of bytes of shuffle entries fetched in a single '
            'chunk. A chunk always holds at least one entry.'))
    parser.add_argument(
        '--shuffle_reader_log_every_n',
        type=int,
        default=0,
        help=(
            'Log a progress line every N elements read from shuffle. '
            'Zero disables progress logging.'))

  def validate(self):
    # type: () -> List[str]

    """Returns a list of problems with the option values, empty if none."""
    errors = []
    if self.shuffle_read_chunk_size_bytes <= 0:
      errors.append(
          'shuffle_read_chunk_size_bytes must be positive, got %d' %
          self.shuffle_read_chunk_size_bytes)
    if self.shuffle_reader_log_every_n < 0:
      errors.append(
          'shuffle_reader_log_every_n must not be negative, got %d' %
          self.shuffle_reader_log_every_n)
    return errors
