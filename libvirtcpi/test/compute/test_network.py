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

import netaddr

from libvirtcpi.common.types import CommandError
from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.compute.network import Network
from libvirtcpi.compute.network import NetworkManager
from libvirtcpi.test import unittest
from libvirtcpi.test import CPITestCase

NETWORK_XML = """
<network>
  <name>cf</name>
  <forward mode='nat'/>
  <bridge name='virbr-cf' stp='on' delay='0'/>
  <ip address='192.168.50.1' netmask='255.255.255.0'>
    <dhcp>
      <range start='192.168.50.2' end='192.168.50.254'/>
    </dhcp>
  </ip>
</network>
"""

MISSING_NETWORK_OUTPUT = ("error: failed to get network 'cf'\n"
                          "error: Network not found: no network with "
                          "matching name 'cf'\n")


class NetworkTestCase(unittest.TestCase):

    def test_properties(self):
        network = Network('cf', NETWORK_XML)

        self.assertEqual(network.bridge, 'virbr-cf')
        self.assertEqual(network.cidr, netaddr.IPNetwork('192.168.50.1/24'))

    def test_without_ip(self):
        network = Network('cf', '<network><name>cf</name></network>')
        self.assertIsNone(network.cidr)
        self.assertIsNone(network.bridge)


class NetworkManagerTestCase(CPITestCase):

    def setUp(self):
        super(NetworkManagerTestCase, self).setUp()
        self.manager = NetworkManager(self.driver)

    def test_build_document(self):
        network = Network('cf', self.manager.build_document(
            'cf', cidr='192.168.50.0/24'))

        self.assertIn('mode="nat"', network.xml)
        self.assertEqual(network.bridge, 'virbr-cf')
        self.assertEqual(str(network.cidr), '192.168.50.1/24')
        self.assertIn('start="192.168.50.2"', network.xml)
        self.assertIn('end="192.168.50.254"', network.xml)

    def test_build_document_without_dhcp(self):
        xml = self.manager.build_document('cf', cidr='10.0.0.0/30',
                                          dhcp=False)
        self.assertIn('address="10.0.0.1"', xml)
        self.assertNotIn('dhcp', xml)

    def test_build_document_invalid_cidr(self):
        for cidr in ['not-a-cidr', '10.0.0.0/31', 'fd00::/64']:
            self.assertRaises(InvalidConfigurationError,
                              self.manager.build_document, 'cf', cidr=cidr)

    def test_create(self):
        network = self.manager.create('cf', cidr='192.168.50.0/24')

        self.assertEqual(network.name, 'cf')
        self.assertEqual(self.runner.subcommands(),
                         ['net-define', 'net-autostart', 'net-start'])
        path = self.runner.commands()[0][1]
        self.assertTrue(path.startswith('/tmp/cf-network-'))
        self.assertEqual(self.runner.commands('rm'), [['-f', path]])
        self.assertIn(b'virbr-cf', self.runner.files[path])

    def test_delete(self):
        self.runner.on('virsh', ['net-destroy'], status=1,
                       output="error: network 'cf' is not active\n")

        self.manager.delete('cf')
        self.assertEqual(self.runner.commands(),
                         [['net-destroy', 'cf'], ['net-undefine', 'cf']])

    def test_delete_missing(self):
        self.runner.on('virsh', ['net-'], status=1,
                       output=MISSING_NETWORK_OUTPUT)
        self.manager.delete('cf')

    def test_delete_failure(self):
        self.runner.on('virsh', ['net-undefine'], status=1,
                       output='error: permission denied\n')
        self.assertRaises(CommandError, self.manager.delete, 'cf')

    def test_list(self):
        self.runner.on('virsh', ['net-list'], output='default\ncf\n')
        self.assertEqual(self.manager.list(), ['default', 'cf'])
        self.assertCommand(['net-list', '--all', '--name'])

    def test_find(self):
        self.runner.on('virsh', ['net-dumpxml', 'cf'], output=NETWORK_XML)
        self.assertEqual(self.manager.find('cf').bridge, 'virbr-cf')

        self.runner.on('virsh', ['net-dumpxml', 'cf'], status=1,
                       output=MISSING_NETWORK_OUTPUT)
        self.assertIsNone(self.manager.find('cf'))

    def test_enable(self):
        self.manager.enable('cf')

        self.runner.on('virsh', ['net-start', 'cf'], status=1,
                       output='error: Failed to start network cf\n'
                              'error: Requested operation is not valid: '
                              'network is already active\n')
        self.manager.enable('cf')

        self.runner.on('virsh', ['net-start', 'cf'], status=1,
                       output='error: Failed to start network cf\n')
        self.assertRaises(CommandError, self.manager.enable, 'cf')


if __name__ == '__main__':
    sys.exit(unittest.main())
