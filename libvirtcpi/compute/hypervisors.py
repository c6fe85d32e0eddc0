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
Hypervisor family strategies.

A strategy bundles everything which differs between the libvirt hypervisor
families: the default connection URI, the domain template, the output
patterns used to classify ``virsh`` results and the device naming scheme.
"""

from typing import List

from libvirtcpi.compute.types import Controller
from libvirtcpi.compute.types import HypervisorType
from libvirtcpi.compute.domain import render
from libvirtcpi.compute.domain import LXC_TEMPLATE
from libvirtcpi.compute.domain import VBOX_TEMPLATE
from libvirtcpi.compute.domain import KVM_TEMPLATE
from libvirtcpi.compute.portdevices import disk_index
from libvirtcpi.compute.portdevices import device_letters

__all__ = [
    'Hypervisor',
    'QemuHypervisor',
    'VBoxHypervisor',
    'LXCHypervisor',
    'XenHypervisor',
    'VMwareHypervisor'
]


class Hypervisor(object):
    """
    Base hypervisor family.

    :cvar not_ready_patterns: Output fragments which, together with a
                              non-zero exit status, mean libvirtd is not
                              reachable yet.
    :cvar error_patterns: Output fragments which mean failure even when the
                          exit status is zero.
    :cvar missing_patterns: Output fragments which mean the addressed domain
                            or network does not exist.
    """

    type = None  # type: HypervisorType
    name = None  # type: str
    default_uri = None  # type: str
    domain_type = None  # type: str
    template = KVM_TEMPLATE

    not_ready_patterns = ['error: failed to connect']  # type: List[str]
    error_patterns = ['error:']  # type: List[str]
    missing_patterns = [
        'Domain not found',
        'failed to get domain',
        'no domain with matching',
        'Network not found',
        'failed to get network',
        'no network with matching',
    ]  # type: List[str]

    # Block device prefix per storage controller
    device_prefixes = {
        Controller.IDE: 'hd',
        Controller.SCSI: 'vd',
        Controller.SATA: 'vd',
    }

    # Bus of a disk attached through a storage controller
    disk_buses = {
        Controller.IDE: 'ide',
        Controller.SCSI: 'virtio',
        Controller.SATA: 'virtio',
    }

    def build_document(self, name, memory_mb, vcpus):
        """
        Return a new domain document for this family.

        :param memory_mb: Memory in MB, stored as KiB in the document.
        :rtype: :class:`DomainDocument`
        """
        return render(self.template, name, memory_mb, vcpus,
                      domain_type=self.domain_type)

    def is_missing_resource_err(self, output):
        # type: (str) -> bool
        output = output or ''
        return any(pattern in output for pattern in self.missing_patterns)

    def device_name(self, controller, port, device):
        """
        Return the block device name for a port device address.

        The name is derived from ``port * 2 + device``, so two addresses
        never share a name on the same controller.
        """
        try:
            prefix = self.device_prefixes[Controller(controller)]
        except (KeyError, ValueError):
            raise ValueError('Unexpected storage controller "%s"' %
                             (controller))

        return prefix + device_letters(disk_index(port, device))

    def disk_bus(self, controller):
        return self.disk_buses[Controller(controller)]

    def __repr__(self):
        return '<%s uri=%s>' % (self.__class__.__name__, self.default_uri)


class QemuHypervisor(Hypervisor):
    type = HypervisorType.QEMU
    name = 'QEMU/KVM'
    default_uri = 'qemu:///system'
    domain_type = 'kvm'


class VBoxHypervisor(Hypervisor):
    type = HypervisorType.VBOX
    name = 'VirtualBox'
    default_uri = 'vbox:///session'
    domain_type = 'vbox'
    template = VBOX_TEMPLATE


class LXCHypervisor(Hypervisor):
    type = HypervisorType.LXC
    name = 'Linux Containers'
    default_uri = 'lxc:///'
    domain_type = 'lxc'
    template = LXC_TEMPLATE


class XenHypervisor(Hypervisor):
    type = HypervisorType.XEN
    name = 'Xen'
    default_uri = 'xen:///'
    domain_type = 'xen'


class VMwareHypervisor(Hypervisor):
    type = HypervisorType.VMWARE
    name = 'VMware ESX'
    default_uri = 'vmware:///session'
    domain_type = 'vmware'
