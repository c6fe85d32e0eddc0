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

from libvirtcpi.common.types import CPIError
from libvirtcpi.compute.types import Controller
from libvirtcpi.compute.portdevices import PortDevice
from libvirtcpi.compute.portdevices import PortDevices
from libvirtcpi.compute.portdevices import device_letters
from libvirtcpi.compute.portdevices import disk_index
from libvirtcpi.test import unittest
from libvirtcpi.test import CPITestCase


class DeviceNameTestCase(unittest.TestCase):

    def test_device_letters(self):
        self.assertEqual(device_letters(0), 'a')
        self.assertEqual(device_letters(25), 'z')
        self.assertEqual(device_letters(26), 'aa')
        self.assertEqual(device_letters(27), 'ab')
        self.assertEqual(device_letters(52), 'ba')

    def test_disk_index(self):
        self.assertEqual(disk_index(0, 0), 0)
        self.assertEqual(disk_index('0', '1'), 1)
        self.assertEqual(disk_index(1, 0), 2)
        self.assertEqual(disk_index(15, 1), 31)
        self.assertRaises(ValueError, disk_index, 1, 2)
        self.assertRaises(ValueError, disk_index, -1, 0)


class PortDeviceTestCase(CPITestCase):

    def setUp(self):
        super(PortDeviceTestCase, self).setUp()
        self.ide = PortDevices(self.driver, 'vm-1', Controller.IDE)
        self.scsi = PortDevices(self.driver, 'vm-1', Controller.SCSI)

    def test_root_and_ephemeral_hints(self):
        self.assertEqual(self.ide.root().hint(), 'hda')
        self.assertEqual(self.ide.ephemeral().hint(), 'hdb')
        self.assertEqual(self.scsi.root().hint(), 'vda')
        self.assertEqual(self.scsi.new(1, 0).hint(), 'vdc')

    def test_hints_are_distinct(self):
        hints = set()
        for port in range(16):
            for device in range(2):
                hints.add(self.ide.new(port, device).hint())

        self.assertEqual(len(hints), 32)

    def test_attach_and_detach_use_hint(self):
        pd = self.scsi.new(1, 1)

        pd.attach('/disks/disk-1/disk.qcow2')
        pd.detach()

        self.assertEqual(self.runner.commands(), [
            ['attach-disk', 'vm-1', '/disks/disk-1/disk.qcow2', pd.hint(),
             '--persistent', '--subdriver', 'qcow2'],
            ['detach-disk', 'vm-1', pd.hint(), '--persistent'],
        ])
        self.assertEqual(pd.hint(), 'vdd')

    def test_empty_fields_are_rejected(self):
        ide = Controller.IDE
        self.assertRaises(ValueError, PortDevice, self.driver, 'vm-1', '',
                          'IDE Controller', 0, 0)
        self.assertRaises(ValueError, PortDevice, self.driver, 'vm-1', ide,
                          '', 0, 0)
        self.assertRaises(ValueError, PortDevice, self.driver, 'vm-1', ide,
                          'IDE Controller', '', 0)
        self.assertRaises(ValueError, PortDevice, self.driver, 'vm-1', ide,
                          'IDE Controller', 0, None)

    def test_controller_must_be_normalized(self):
        self.assertRaises(ValueError, PortDevices, self.driver, 'vm-1', 'IDE')
        self.assertRaises(ValueError, PortDevice, self.driver, 'vm-1', 'sata',
                          'SATA Controller', 0, 0)

    def test_from_dict_accepts_any_case(self):
        pd = self.scsi.from_dict({'controller': 'SCSI',
                                  'name': 'SCSI Controller',
                                  'port': '2', 'device': '0'})
        self.assertEqual(pd, self.scsi.new(2, 0))

    def test_dict_round_trip(self):
        pd = self.ide.new(3, 1)
        self.assertEqual(self.ide.from_dict(pd.to_dict()), pd)
        self.assertEqual(pd.to_dict(), {'controller': 'ide',
                                        'name': 'IDE Controller',
                                        'port': '3', 'device': '1'})

    def test_find_available(self):
        used = [self.ide.new(1, 0), self.ide.new(1, 1)]
        self.assertEqual(self.ide.find_available(used), self.ide.new(2, 0))
        self.assertEqual(self.ide.find_available([]), self.ide.new(1, 0))

    def test_find_available_when_exhausted(self):
        used = [self.ide.new(port, device)
                for port in range(1, 16) for device in range(2)]
        self.assertRaises(CPIError, self.ide.find_available, used)


if __name__ == '__main__':
    sys.exit(unittest.main())
