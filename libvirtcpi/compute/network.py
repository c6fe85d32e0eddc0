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
Libvirt virtual networks.
"""

from typing import List
from typing import Optional

import logging

import netaddr
from xml.etree import ElementTree as ET

from libvirtcpi.common.types import CommandError
from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.utils.xml import findtext
from libvirtcpi.utils.xml import to_string

__all__ = [
    'Network',
    'NetworkManager'
]

log = logging.getLogger('libvirtcpi.compute.network')

ALREADY_ACTIVE_PATTERNS = ['is already active']


class Network(object):
    """
    A libvirt network as described by ``net-dumpxml``.
    """

    def __init__(self, name, xml=''):
        self.name = name
        self.xml = xml

    @property
    def bridge(self):
        element = ET.XML(self.xml).find('bridge')
        return element.get('name') if element is not None else None

    @property
    def cidr(self):
        """Return a `netaddr.IPNetwork` instance representing self."""
        children = ET.XML(self.xml).findall('ip')
        if children:
            child = children[0]
            prefix = child.get('netmask') or child.get('prefix')
            return netaddr.IPNetwork('%s/%s' % (child.get('address'), prefix))
        return None

    def __repr__(self):
        return '<Network name="%s" cidr="%s">' % (self.name, self.cidr)


class NetworkManager(object):
    """
    Creates, starts and removes libvirt virtual networks.
    """

    def __init__(self, driver):
        self.driver = driver

    def build_document(self, name, cidr=None, dhcp=True):
        # type: (str, Optional[str], bool) -> str
        """
        Return the ``net-define`` document of a NAT network.

        The first host address of ``cidr`` is given to the bridge, the DHCP
        range covers all remaining host addresses.
        """
        network = ET.Element('network')
        ET.SubElement(network, 'name').text = name
        ET.SubElement(network, 'forward', {'mode': 'nat'})
        ET.SubElement(network, 'bridge', {'name': 'virbr-%s' % (name),
                                          'stp': 'on', 'delay': '0'})

        if cidr:
            try:
                net = netaddr.IPNetwork(cidr).cidr
            except (netaddr.AddrFormatError, ValueError) as e:
                raise InvalidConfigurationError(
                    'Invalid network CIDR "%s": %s' % (cidr, e))

            if net.version != 4 or net.size < 4:
                raise InvalidConfigurationError(
                    'Network CIDR "%s" has no room for hosts' % (cidr))

            ip = ET.SubElement(network, 'ip', {'address': str(net[1]),
                                               'netmask': str(net.netmask)})
            if dhcp:
                dhcp_element = ET.SubElement(ip, 'dhcp')
                ET.SubElement(dhcp_element, 'range',
                              {'start': str(net[2]), 'end': str(net[-2])})

        return to_string(network)

    def create(self, name, cidr=None, dhcp=True):
        # type: (str, Optional[str], bool) -> Network
        xml = self.build_document(name, cidr=cidr, dhcp=dhcp)

        self.driver.define_network(name, xml)
        self.driver.execute('net-autostart', name)
        self.driver.execute('net-start', name)

        return Network(name, xml)

    def delete(self, name):
        # type: (str) -> None
        try:
            self.driver.execute('net-destroy', name)
        except CommandError as e:
            # Inactive networks can not be destroyed, undefine them anyway
            log.debug('Stopping network %s failed: %s', name, e)

        try:
            self.driver.execute('net-undefine', name)
        except CommandError as e:
            if not self.driver.is_missing_resource_err(e.output):
                raise
            log.warning('Network %s is already gone', name)

    def list(self):
        # type: () -> List[str]
        output = self.driver.execute('net-list', '--all', '--name')
        return [line.strip() for line in output.split('\n') if line.strip()]

    def find(self, name):
        # type: (str) -> Optional[Network]
        try:
            xml = self.driver.execute('net-dumpxml', name)
        except CommandError as e:
            if self.driver.is_missing_resource_err(e.output):
                return None
            raise

        return Network(findtext(ET.XML(xml), 'name') or name, xml)

    def enable(self, name):
        # type: (str) -> None
        """
        Start a network, succeeding when it is already running.
        """
        try:
            self.driver.execute('net-start', name)
        except CommandError as e:
            if not any(p in e.output for p in ALREADY_ACTIVE_PATTERNS):
                raise
