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

from mock import Mock

from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.compute.nics import Host
from libvirtcpi.compute.nics import NICs
from libvirtcpi.compute.nics import NetworkSpec
from libvirtcpi.test import unittest
from libvirtcpi.test import CPITestCase


class NetworkSpecTestCase(unittest.TestCase):

    def test_from_dict(self):
        spec = NetworkSpec.from_dict('private', {
            'type': 'manual', 'ip': '10.0.0.5', 'netmask': '255.255.255.0',
            'gateway': '10.0.0.1', 'dns': ['8.8.8.8'],
            'default': ['dns', 'gateway'],
            'cloud_properties': {'type': 'hostonly', 'name': 'vboxnet0'}})

        self.assertEqual(spec.cloud_property_type, 'hostonly')
        self.assertEqual(spec.cloud_property_name, 'vboxnet0')
        self.assertEqual(spec.to_agent_dict()['dns'], ['8.8.8.8'])
        self.assertNotIn('mac', spec.to_agent_dict())

    def test_defaults(self):
        spec = NetworkSpec.from_dict('default', {})
        self.assertEqual(spec.type, 'manual')
        self.assertEqual(spec.cloud_property_type, 'nat')
        self.assertEqual(spec.cloud_property_name, '')


class HostTestCase(unittest.TestCase):

    def test_find_network(self):
        host = Host()

        self.assertEqual(host.find_network(NetworkSpec(
            'a', cloud_properties={'type': 'nat', 'name': 'ignored'})),
            'default')
        self.assertEqual(host.find_network(NetworkSpec(
            'b', cloud_properties={'type': 'natnetwork', 'name': 'cf'})),
            'cf')
        self.assertEqual(host.find_network(NetworkSpec(
            'c', cloud_properties={'type': 'BRIDGED', 'name': 'br0'})),
            'br0')
        self.assertEqual(host.find_network(NetworkSpec(
            'd', cloud_properties={'type': 'hostonly'})), 'default')
        self.assertRaises(InvalidConfigurationError, host.find_network,
                          NetworkSpec('e', cloud_properties={'type': 'vlan'}))

    def test_enable_networks(self):
        manager = Mock()
        specs = [
            NetworkSpec('a', cloud_properties={'type': 'natnetwork',
                                               'name': 'cf'}),
            NetworkSpec('b', cloud_properties={'type': 'bridged',
                                               'name': 'br0'}),
        ]

        Host(manager, auto_enable=False).enable_networks(specs)
        self.assertFalse(manager.enable.called)

        Host(manager, auto_enable=True).enable_networks(specs)
        manager.enable.assert_called_once_with('cf')


class NICsTestCase(CPITestCase):

    def setUp(self):
        super(NICsTestCase, self).setUp()
        self.nics = NICs(self.driver, 'vm-1')

    def test_configure(self):
        specs = [
            NetworkSpec('a'),
            NetworkSpec('b', cloud_properties={'type': 'bridged',
                                               'name': 'br0'}),
        ]

        self.nics.configure(specs, Host())

        commands = self.runner.commands()
        self.assertEqual(len(commands), 2)
        self.assertEqual(commands[0], [
            'attach-interface', 'vm-1', 'network', '--source', 'default',
            '--mac', specs[0].mac, '--model', 'virtio', '--config'])
        self.assertEqual(commands[1][:5], [
            'attach-interface', 'vm-1', 'bridge', '--source', 'br0'])
        self.assertNotEqual(specs[0].mac, specs[1].mac)

    def test_generated_macs_are_locally_administered(self):
        mac = self.nics.add_nic(NetworkSpec('a'), Host())

        self.assertRegex(mac, r'^([0-9a-f]{2}:){5}[0-9a-f]{2}$')
        first = int(mac.split(':')[0], 16)
        self.assertEqual(first & 0x03, 0x02)

    def test_given_mac_is_used(self):
        mac = self.nics.add_nic(NetworkSpec('a'), Host(),
                                mac='52:54:00:00:00:01')
        self.assertEqual(mac, '52:54:00:00:00:01')
        self.assertIn('52:54:00:00:00:01', self.runner.commands()[0])

    def test_too_many_nics(self):
        specs = [NetworkSpec('n%d' % (i)) for i in range(9)]

        with self.assertRaises(InvalidConfigurationError) as ctx:
            self.nics.configure(specs, Host())

        self.assertEqual(str(ctx.exception),
                         'Exceeded maximum # of NICs (8)')
        self.assertEqual(self.runner.calls, [])

    def test_eight_nics_are_allowed(self):
        self.nics.configure([NetworkSpec('n%d' % (i)) for i in range(8)],
                            Host())
        self.assertEqual(len(self.runner.calls), 8)

    def test_remove_nic(self):
        spec = NetworkSpec('b', mac='52:54:00:00:00:02',
                           cloud_properties={'type': 'bridged',
                                             'name': 'br0'})

        self.nics.remove_nic(spec)
        self.assertEqual(self.runner.commands(), [
            ['detach-interface', 'vm-1', 'bridge', '--mac',
             '52:54:00:00:00:02', '--config']])

    def test_remove_nic_requires_mac_and_known_type(self):
        self.assertRaises(InvalidConfigurationError, self.nics.remove_nic,
                          NetworkSpec('a'))
        self.assertRaises(InvalidConfigurationError, self.nics.remove_nic,
                          NetworkSpec('a', mac='52:54:00:00:00:02',
                                      cloud_properties={'type': 'vlan'}))
        self.assertEqual(self.runner.calls, [])

    def domain_xml(self, nic_count):
        document = self.driver.hypervisor.build_document('vm-1', 512, 1)
        for i in range(nic_count):
            document.add_interface('network', 'default',
                                   mac='52:54:00:00:00:%02x' % (i))
        return document.to_xml()

    def test_attach_counts_existing_nics(self):
        self.runner.on('virsh', ['dumpxml', 'vm-1'],
                       output=self.domain_xml(7))

        mac = self.nics.attach(NetworkSpec('h', mac='52:54:00:00:00:10'),
                               Host())

        self.assertEqual(mac, '52:54:00:00:00:10')
        self.assertEqual(self.runner.subcommands(),
                         ['dumpxml', 'attach-interface'])

    def test_attach_beyond_limit(self):
        self.runner.on('virsh', ['dumpxml', 'vm-1'],
                       output=self.domain_xml(8))

        with self.assertRaises(InvalidConfigurationError) as ctx:
            self.nics.attach(NetworkSpec('i'), Host())

        self.assertEqual(str(ctx.exception),
                         'Exceeded maximum # of NICs (8)')
        self.assertNoCommand('attach-interface')


if __name__ == '__main__':
    sys.exit(unittest.main())
