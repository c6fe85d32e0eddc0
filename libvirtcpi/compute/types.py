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
Base types used by other parts of libvirtcpi.compute
"""

from libvirtcpi.common.types import Type

__all__ = [
    'HypervisorType',
    'VMState',
    'Controller',
    'NetworkType',
    'ImageFormat'
]


class HypervisorType(Type):
    """
    Hypervisor families reachable through libvirt.

    :cvar QEMU: QEMU/KVM
    :cvar VBOX: VirtualBox
    :cvar LXC: Linux containers
    :cvar XEN: Xen
    :cvar VMWARE: VMware ESX
    """
    QEMU = 'qemu'
    VBOX = 'vbox'
    LXC = 'lxc'
    XEN = 'xen'
    VMWARE = 'vmware'


class VMState(Type):
    """
    Standard states for a VM

    :cvar RUNNING: VM is running.
    :cvar POWEROFF: VM is defined but shut off.
    :cvar PAUSED: VM is paused.
    :cvar ABORTED: VM crashed.
    :cvar SAVED: VM is suspended by guest power management.
    :cvar MISSING: No domain with this name exists.
    :cvar UNKNOWN: VM state is unknown.
    """
    RUNNING = 'running'
    POWEROFF = 'poweroff'
    PAUSED = 'paused'
    ABORTED = 'aborted'
    SAVED = 'saved'
    MISSING = 'missing'
    UNKNOWN = 'unknown'


class Controller(Type):
    """
    Storage controllers a disk can be attached to.
    """
    IDE = 'ide'
    SCSI = 'scsi'
    SATA = 'sata'


class NetworkType(Type):
    """
    Network intents as given in network cloud properties.
    """
    NAT = 'nat'
    NATNETWORK = 'natnetwork'
    HOSTONLY = 'hostonly'
    BRIDGED = 'bridged'


class ImageFormat(Type):
    QCOW2 = 'qcow2'
    RAW = 'raw'
    VMDK = 'vmdk'
    VDI = 'vdi'
