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
Network interfaces of VMs.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import logging

from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.compute.types import NetworkType
from libvirtcpi.utils.misc import random_mac
from libvirtcpi.utils.misc import mac_to_string

__all__ = [
    'MAX_NICS',
    'DEFAULT_NETWORK',
    'NetworkSpec',
    'Host',
    'NICs'
]

log = logging.getLogger('libvirtcpi.compute.nics')

MAX_NICS = 8

# Name of the NAT network every libvirt installation ships with
DEFAULT_NETWORK = 'default'

# libvirt interface type per network intent
INTERFACE_TYPES = {
    NetworkType.NAT: 'network',
    NetworkType.NATNETWORK: 'network',
    NetworkType.HOSTONLY: 'network',
    NetworkType.BRIDGED: 'bridge',
}


def interface_type(spec):
    # type: (NetworkSpec) -> str
    net_type = NetworkType.fromstring(spec.cloud_property_type)

    if net_type not in INTERFACE_TYPES:
        raise InvalidConfigurationError(
            'Unknown network type: %s' % (spec.cloud_property_type))

    return INTERFACE_TYPES[net_type]


class NetworkSpec(object):
    """
    One network a VM is placed on, as requested by the orchestrator.

    :param type: ``manual``, ``dynamic`` or ``vip``.
    :param cloud_properties: ``type`` (nat, natnetwork, hostonly or bridged)
                             and ``name`` of the libvirt network.
    """

    def __init__(self, name, type='manual', ip=None, netmask=None,
                 gateway=None, dns=None, default=None, cloud_properties=None,
                 mac=None):
        self.name = name
        self.type = type
        self.ip = ip
        self.netmask = netmask
        self.gateway = gateway
        self.dns = list(dns or [])
        self.default = list(default or [])
        self.cloud_properties = dict(cloud_properties or {})
        self.mac = mac

    @classmethod
    def from_dict(cls, name, data):
        # type: (str, Dict[str, Any]) -> NetworkSpec
        return cls(name, type=data.get('type', 'manual'), ip=data.get('ip'),
                   netmask=data.get('netmask'), gateway=data.get('gateway'),
                   dns=data.get('dns'), default=data.get('default'),
                   cloud_properties=data.get('cloud_properties'),
                   mac=data.get('mac'))

    @property
    def cloud_property_type(self):
        return self.cloud_properties.get('type') or str(NetworkType.NAT)

    @property
    def cloud_property_name(self):
        return self.cloud_properties.get('name') or ''

    def to_agent_dict(self):
        data = {
            'type': self.type,
            'ip': self.ip,
            'netmask': self.netmask,
            'gateway': self.gateway,
            'dns': self.dns,
            'default': self.default,
            'mac': self.mac,
            'cloud_properties': self.cloud_properties,
        }
        return dict((k, v) for k, v in data.items() if v is not None)

    def __repr__(self):
        return ('<NetworkSpec name=%s type=%s ip=%s mac=%s>' %
                (self.name, self.cloud_property_type, self.ip, self.mac))


class Host(object):
    """
    The libvirt host the VMs run on, as far as networking is concerned.

    :param network_manager: Used to start named networks when
                            ``auto_enable`` is set.
    :type network_manager: :class:`NetworkManager`
    """

    def __init__(self, network_manager=None, auto_enable=False):
        self.network_manager = network_manager
        self.auto_enable = auto_enable

    def find_network(self, spec):
        # type: (NetworkSpec) -> str
        """
        Return the libvirt network (or bridge) name for a network intent.
        """
        net_type = NetworkType.fromstring(spec.cloud_property_type)

        if net_type is None:
            raise InvalidConfigurationError(
                'Unknown network type: %s' % (spec.cloud_property_type))

        if net_type == NetworkType.NAT:
            return DEFAULT_NETWORK

        return spec.cloud_property_name or DEFAULT_NETWORK

    def enable_networks(self, specs):
        # type: (List[NetworkSpec]) -> None
        if not self.auto_enable or self.network_manager is None:
            return

        for spec in specs:
            net_type = NetworkType.fromstring(spec.cloud_property_type)
            if INTERFACE_TYPES.get(net_type) != 'network':
                continue

            self.network_manager.enable(self.find_network(spec))


class NICs(object):

    def __init__(self, driver, vm_id):
        self.driver = driver
        self.vm_id = vm_id

    def configure(self, specs, host):
        # type: (List[NetworkSpec], Host) -> None
        """
        Attach one NIC per network and record its MAC on the NetworkSpec.
        """
        if len(specs) > MAX_NICS:
            raise InvalidConfigurationError(
                'Exceeded maximum # of NICs (%d)' % (MAX_NICS))

        for spec in specs:
            spec.mac = self.add_nic(spec, host)

    def add_nic(self, spec, host, mac=None):
        # type: (NetworkSpec, Host, Optional[str]) -> str
        source = host.find_network(spec)
        iface_type = interface_type(spec)
        mac = mac or mac_to_string(random_mac())

        log.debug('Attaching NIC', extra={'_vm': self.vm_id,
                                          '_source': source, '_mac': mac})

        self.driver.execute('attach-interface', self.vm_id, iface_type,
                            '--source', source, '--mac', mac,
                            '--model', 'virtio', '--config')
        return mac

    def attach(self, spec, host):
        # type: (NetworkSpec, Host) -> str
        """
        Attach one more NIC to a defined VM, counting the NICs it already
        has against :data:`MAX_NICS`.

        :return: MAC address of the new NIC.
        """
        existing = self.driver.dump_document(self.vm_id).network_devices
        if len(existing) >= MAX_NICS:
            raise InvalidConfigurationError(
                'Exceeded maximum # of NICs (%d)' % (MAX_NICS))

        return self.add_nic(spec, host, mac=spec.mac)

    def remove_nic(self, spec):
        # type: (NetworkSpec) -> None
        if not spec.mac:
            raise InvalidConfigurationError(
                'Network %s has no MAC address to detach' % (spec.name))

        iface_type = interface_type(spec)

        self.driver.execute('detach-interface', self.vm_id, iface_type,
                            '--mac', spec.mac, '--config')
