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
Disk attachment points of a VM.
"""

from typing import Iterable

from libvirtcpi.common.types import CPIError
from libvirtcpi.compute.types import Controller

__all__ = [
    'disk_index',
    'device_letters',
    'PortDevice',
    'PortDevices'
]

CONTROLLER_NAMES = {
    Controller.IDE: 'IDE Controller',
    Controller.SCSI: 'SCSI Controller',
    Controller.SATA: 'SATA Controller',
}

# Each port has a master (0) and a slave (1) device slot
DEVICES_PER_PORT = 2

# Ports handed out to persistent disks, port 0 holds root and ephemeral
MAX_PORTS = 15


def disk_index(port, device):
    # type: (str, str) -> int
    port, device = int(port), int(device)

    if port < 0 or device not in range(DEVICES_PER_PORT):
        raise ValueError('Invalid port device address %d:%d' %
                         (port, device))

    return port * DEVICES_PER_PORT + device


def device_letters(index):
    # type: (int) -> str
    """
    Return the letter suffix of a block device: a..z, aa..az, ba...
    """
    letters = ''
    index = int(index) + 1

    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord('a') + rem) + letters

    return letters


class PortDevice(object):
    """
    A (controller, port, device) address on a VM.

    The block device name used for attaching, detaching and the hint given
    to the agent all come from :meth:`hint`.
    """

    def __init__(self, driver, vm_id, controller, name, port, device):
        if not controller:
            raise ValueError("Internal inconsistency: PD's controller must "
                             "not be empty")
        if not isinstance(controller, Controller):
            raise ValueError('Unexpected storage controller "%s"' %
                             (controller))
        if not name:
            raise ValueError("Internal inconsistency: PD's name must not be "
                             "empty")
        if port is None or str(port) == '':
            raise ValueError("Internal inconsistency: PD's port must not be "
                             "empty")
        if device is None or str(device) == '':
            raise ValueError("Internal inconsistency: PD's device must not "
                             "be empty")

        self.driver = driver
        self.vm_id = vm_id
        self.controller = controller
        self.name = name
        self.port = str(port)
        self.device = str(device)

        # Rejects addresses which can not be named
        disk_index(self.port, self.device)

    def hint(self):
        # type: () -> str
        return self.driver.hypervisor.device_name(
            self.controller, self.port, self.device)

    def attach(self, path):
        # type: (str) -> None
        self.driver.execute('attach-disk', self.vm_id, path, self.hint(),
                            '--persistent', '--subdriver', 'qcow2')

    def detach(self):
        # type: () -> None
        self.driver.execute('detach-disk', self.vm_id, self.hint(),
                            '--persistent')

    def to_dict(self):
        return {'controller': str(self.controller), 'name': self.name,
                'port': self.port, 'device': self.device}

    def __eq__(self, other):
        return (isinstance(other, PortDevice) and
                (self.controller, self.port, self.device) ==
                (other.controller, other.port, other.device))

    def __hash__(self):
        return hash((str(self.controller), self.port, self.device))

    def __repr__(self):
        return ('<PortDevice controller=%s port=%s device=%s hint=%s>' %
                (self.controller, self.port, self.device, self.hint()))


class PortDevices(object):
    """
    Port device allocation for one VM on one storage controller.
    """

    def __init__(self, driver, vm_id, controller):
        if not isinstance(controller, Controller):
            raise ValueError('Unexpected storage controller "%s"' %
                             (controller))

        self.driver = driver
        self.vm_id = vm_id
        self.controller = controller

    def root(self):
        # type: () -> PortDevice
        return self.new(0, 0)

    def ephemeral(self):
        # type: () -> PortDevice
        return self.new(0, 1)

    def new(self, port, device):
        return PortDevice(self.driver, self.vm_id, self.controller,
                          CONTROLLER_NAMES[self.controller], port, device)

    def from_dict(self, data):
        controller = Controller.fromstring(data.get('controller') or '')
        return PortDevice(self.driver, self.vm_id, controller,
                          data['name'], data['port'], data['device'])

    def find_available(self, used):
        # type: (Iterable[PortDevice]) -> PortDevice
        """
        Return the first free address for a persistent disk.

        :raises CPIError: when every port is taken.
        """
        taken = set((pd.port, pd.device) for pd in used)

        for port in range(1, MAX_PORTS + 1):
            for device in range(DEVICES_PER_PORT):
                if (str(port), str(device)) not in taken:
                    return self.new(port, device)

        raise CPIError('No available port devices on %s' %
                       (CONTROLLER_NAMES[self.controller]))
