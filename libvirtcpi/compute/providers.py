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
Provider related utilities
"""

from libvirtcpi.compute.types import HypervisorType
from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.common.providers import get_driver as _get_provider_driver
from libvirtcpi.common.providers import set_driver as _set_provider_driver

__all__ = [
    'HypervisorType',
    'DRIVERS',
    'get_driver',
    'set_driver',
    'get_hypervisor'
]

DRIVERS = {
    HypervisorType.QEMU:
    ('libvirtcpi.compute.hypervisors', 'QemuHypervisor'),
    HypervisorType.VBOX:
    ('libvirtcpi.compute.hypervisors', 'VBoxHypervisor'),
    HypervisorType.LXC:
    ('libvirtcpi.compute.hypervisors', 'LXCHypervisor'),
    HypervisorType.XEN:
    ('libvirtcpi.compute.hypervisors', 'XenHypervisor'),
    HypervisorType.VMWARE:
    ('libvirtcpi.compute.hypervisors', 'VMwareHypervisor'),
}


def get_driver(provider):
    return _get_provider_driver(drivers=DRIVERS, provider=provider)


def set_driver(provider, module, klass):
    return _set_provider_driver(drivers=DRIVERS, provider=provider,
                                module=module, klass=klass)


def get_hypervisor(hypervisor):
    """
    Return the strategy instance for a hypervisor family name.

    :raises InvalidConfigurationError: for an unknown family.
    """
    try:
        cls = get_driver(hypervisor)
    except AttributeError:
        raise InvalidConfigurationError(
            'Unknown hypervisor "%s", expected one of: %s' %
            (hypervisor, ', '.join(sorted(str(k) for k in DRIVERS))))

    return cls()
