# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
libvirtcpi manages virtual machines, disks, networks and stemcells on a
libvirt host through the ``virsh`` and ``qemu-img`` command line tools.

:var __version__: Current version of libvirtcpi
"""

import logging
import os
import codecs
import atexit

try:
    import paramiko  # NOQA
    have_paramiko = True
except ImportError:
    have_paramiko = False

__all__ = [
    '__version__',
    'enable_debug'
]

__version__ = '0.3.0'


def enable_debug(fo):
    """
    Enable library wide debugging to a file-like object.

    Command transcripts of every runner and all records of the
    ``libvirtcpi`` logger are written to ``fo``.

    :param fo: Where to append debugging information
    :type fo: File like object, only write operations are used.
    """
    from libvirtcpi.common.process import BaseRunner
    from libvirtcpi.utils.logging import ExtraLogFormatter

    BaseRunner.log = fo

    handler = logging.StreamHandler(fo)
    handler.setFormatter(ExtraLogFormatter())
    logger = logging.getLogger('libvirtcpi')
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    # Ensure the file handle is closed on exit
    def close_file(fd):
        try:
            fd.close()
        except Exception:
            pass

    atexit.register(close_file, fo)


def _init_once():
    """
    Utility function that is ran once on Library import.

    This checks for the LIBVIRTCPI_DEBUG environment variable, which if it
    exists is where we will log debug information about executed commands.
    """
    path = os.getenv('LIBVIRTCPI_DEBUG')
    if path:
        mode = 'a'

        # Opening those files in append mode will throw "illegal seek"
        # exception there.
        if path in ['/dev/stderr', '/dev/stdout']:
            mode = 'w'

        fo = codecs.open(path, mode, encoding='utf8')
        enable_debug(fo)

        if have_paramiko and hasattr(paramiko.util, 'log_to_file'):
            paramiko.util.log_to_file(filename=path, level=logging.DEBUG)


_init_once()
