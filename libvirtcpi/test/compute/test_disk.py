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

import sys

from mock import patch

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.process import RunnerError
from libvirtcpi.compute.qemu import QemuImage
from libvirtcpi.compute.disk import DiskFactory
from libvirtcpi.utils.retry import NoRetry
from libvirtcpi.test import unittest
from libvirtcpi.test import CPITestCase


class DiskTestCase(CPITestCase):

    def setUp(self):
        super(DiskTestCase, self).setUp()
        self.disks = DiskFactory('/store/disks', self.runner,
                                 QemuImage(self.runner, retrier=NoRetry()))

    @patch('libvirtcpi.compute.disk.generate_id', return_value='disk-1')
    def test_create(self, generate_id):
        disk = self.disks.create(1024)

        self.assertEqual(disk.id, 'disk-1')
        self.assertEqual(disk.disk_path, '/store/disks/disk-1/disk.qcow2')
        self.assertEqual(self.runner.commands('mkdir'),
                         [['-p', '/store/disks/disk-1']])
        self.assertEqual(self.runner.commands('qemu-img'), [
            ['create', '-f', 'qcow2', '/store/disks/disk-1/disk.qcow2',
             '1024M']])

    @patch('libvirtcpi.compute.disk.generate_id', return_value='disk-1')
    def test_create_failure_removes_directory(self, generate_id):
        self.runner.on('qemu-img', ['create'], status=1,
                       output='qemu-img: /store/disks: No space left\n')

        self.assertRaises(CPIError, self.disks.create, 1024)
        self.assertEqual(self.runner.commands('rm'),
                         [['-rf', '/store/disks/disk-1']])

    @patch('libvirtcpi.compute.disk.generate_id', return_value='disk-1')
    def test_create_mkdir_failure(self, generate_id):
        self.runner.on('mkdir', [], status=1, output='Permission denied\n')

        self.assertRaises(CPIError, self.disks.create, 1024)
        self.assertEqual(self.runner.commands('qemu-img'), [])

    def test_exists(self):
        disk = self.disks.find('disk-1')
        self.assertTrue(disk.exists())

        self.runner.on('ls', ['/store/disks/disk-1'], status=2,
                       output='ls: cannot access: No such file\n')
        self.assertFalse(disk.exists())

        self.runner.on('ls', [], error=RunnerError(None, 'connection lost'))
        self.assertRaises(CPIError, disk.exists)

    def test_delete(self):
        disk = self.disks.find('disk-1')
        disk.delete()
        self.assertEqual(self.runner.commands('rm'),
                         [['-rf', '/store/disks/disk-1']])

        self.runner.on('rm', [], status=1, output='Device busy\n')
        self.assertRaises(CPIError, disk.delete)


if __name__ == '__main__':
    sys.exit(unittest.main())
