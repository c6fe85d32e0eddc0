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
Disk image operations through the ``qemu-img`` tool.
"""

from typing import Any
from typing import Dict

import json

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.types import CommandError
from libvirtcpi.common.process import CommandExecutor
from libvirtcpi.common.process import ExecuteOptions
from libvirtcpi.compute.types import ImageFormat

__all__ = [
    'QemuImage'
]

# qemu-img check: leaked clusters only waste space, the image is usable
CHECK_LEAKS_STATUS = 3


class QemuImage(CommandExecutor):
    """
    Wrapper around ``qemu-img``. Sizes are given in MB.
    """

    name = 'qemu-img'

    def __init__(self, runner, retrier=None, bin_path='qemu-img'):
        super(QemuImage, self).__init__(runner, retrier=retrier,
                                        bin_path=bin_path or 'qemu-img')

    def create(self, path, size_mb, format=ImageFormat.QCOW2):
        self.execute('create', '-f', str(format), path, '%dM' % (size_mb))

    def convert(self, src_path, dst_path, src_format, dst_format):
        self.execute('convert', '-f', str(src_format), '-O', str(dst_format),
                     src_path, dst_path)

    def resize(self, path, size_mb):
        self.execute('resize', path, '%dM' % (size_mb))

    def check(self, path):
        """
        :raises CPIError: when the image is corrupted or can not be checked.
        """
        opts = ExecuteOptions(ignore_non_zero_exit_status=True)

        try:
            result = self.run(['check', path], opts)
        except CommandError as e:
            raise CPIError('Image check failed: %s' % (e.output))

        if result.status not in (0, CHECK_LEAKS_STATUS):
            raise CPIError('Image check failed: %s' % (result.output))

    def info(self, path):
        # type: (str) -> Dict[str, Any]
        output = self.execute('info', '--output=json', path)

        try:
            return json.loads(output)
        except ValueError as e:
            raise CPIError('Parsing image info of %s: %s' % (path, e))

    def virtual_size_mb(self, path):
        # type: (str) -> int
        return int(self.info(path)['virtual-size']) // (1024 * 1024)
