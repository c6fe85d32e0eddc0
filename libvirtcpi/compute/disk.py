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
Persistent disks.
"""

import logging
import posixpath

from libvirtcpi.common.types import CPIError
from libvirtcpi.utils.misc import check_id
from libvirtcpi.utils.misc import generate_id

__all__ = [
    'Disk',
    'DiskFactory'
]

log = logging.getLogger('libvirtcpi.compute.disk')

DISK_FILE_NAME = 'disk.qcow2'


class Disk(object):
    """
    A persistent disk: a directory holding one qcow2 image.
    """

    def __init__(self, id, path, runner):
        self.id = id
        self.path = path
        self.runner = runner

    @property
    def disk_path(self):
        return posixpath.join(self.path, DISK_FILE_NAME)

    def exists(self):
        # type: () -> bool
        try:
            result = self.runner.execute('ls', [self.path])
        except OSError as e:
            raise CPIError("Checking disk '%s': %s" % (self.path, e))

        return result.status == 0

    def delete(self):
        try:
            result = self.runner.execute('rm', ['-rf', self.path])
        except OSError as e:
            raise CPIError("Deleting disk '%s': %s" % (self.path, e))

        if result.status != 0:
            raise CPIError("Deleting disk '%s': %s" %
                           (self.path, result.output))

    def __repr__(self):
        return '<Disk id=%s path=%s>' % (self.id, self.path)


class DiskFactory(object):

    def __init__(self, dir_path, runner, qemu_image):
        self.dir_path = dir_path
        self.runner = runner
        self.qemu_image = qemu_image

    def create(self, size_mb):
        # type: (int) -> Disk
        disk = self.find(generate_id('disk'))

        result = self.runner.execute('mkdir', ['-p', disk.path])
        if result.status != 0:
            raise CPIError("Creating disk directory '%s': %s" %
                           (disk.path, result.output))

        try:
            self.qemu_image.create(disk.disk_path, size_mb)
        except CPIError:
            try:
                disk.delete()
            except CPIError as e:
                log.error('Failed to clean up partially created disk: %s', e)
            raise

        return disk

    def find(self, id):
        # type: (str) -> Disk
        return Disk(id, posixpath.join(self.dir_path, check_id(id)),
                    self.runner)
