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

"""Partitioning shuffle source setup file."""

import os
import sys
import warnings

import setuptools


def get_version():
  global_names = {}
  exec(  # pylint: disable=exec-used
      open(os.path.join(
          os.path.dirname(os.path.abspath(__file__)),
          'shuffle_source/version.py')
          ).read(),
      global_names
  )
  return global_names['__version__']


PACKAGE_NAME = 'shuffle-source'
PACKAGE_VERSION = get_version()
PACKAGE_DESCRIPTION = 'Worker-side reader for partitioning shuffles'
PACKAGE_AUTHOR = 'Apache Software Foundation'
PACKAGE_KEYWORDS = 'shuffle windowing coders'
PACKAGE_LONG_DESCRIPTION = '''
Reads a position range of a partitioning shuffle back as windowed key-value
elements. The element coder is split into a key coder and a windowed value
coder, entries are fetched in chunks through a layered shuffle reader, and
every decoded entry is reported to a byte counter.
'''

python_requires = '>=3.8'

if sys.version_info.major == 3 and sys.version_info.minor >= 14:
  warnings.warn(
      'This version of the shuffle source has not been sufficiently tested '
      'on Python %s.%s. You may encounter bugs or missing features.' %
      (sys.version_info.major, sys.version_info.minor))

if __name__ == '__main__':
  # Keep all dependencies inlined in the setup call, otherwise Dependabot won't
  # be able to parse it.
  setuptools.setup(
      name=PACKAGE_NAME,
      version=PACKAGE_VERSION,
      description=PACKAGE_DESCRIPTION,
      long_description=PACKAGE_LONG_DESCRIPTION,
      author=PACKAGE_AUTHOR,
      keywords=PACKAGE_KEYWORDS,
      packages=setuptools.find_packages(include=['shuffle_source*']),
      install_requires=[],
      python_requires=python_requires,
      # Do NOT use tests_require or setup_requires.
      extras_require={
          'test': [
              'hypothesis>5.0.0,<7.0.0',
              'parameterized>=0.7.1,<0.10.0',
              'pyhamcrest>=1.9,!=1.10.0,<3.0.0',
              'pytest>=7.1.2,<9.0',
          ],
      },
      zip_safe=False,
      classifiers=[
          'Intended Audience :: End Users/Desktop',
          'License :: OSI Approved :: Apache Software License',
          'Operating System :: POSIX :: Linux',
          'Programming Language :: Python :: 3.8',
          'Programming Language :: Python :: 3.9',
          'Programming Language :: Python :: 3.10',
          'Programming Language :: Python :: 3.11',
          'Programming Language :: Python :: 3.12',
          'Topic :: Software Development :: Libraries',
          'Topic :: Software Development :: Libraries :: Python Modules',
      ],
      license='Apache License, Version 2.0',
  )
