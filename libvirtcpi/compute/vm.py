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
Virtual machines and their lifecycle.
"""

from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

import logging
import posixpath

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.types import CommandError
from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.common.steps import Step
from libvirtcpi.common.steps import MultiStep
from libvirtcpi.compute.types import ImageFormat
from libvirtcpi.compute.types import VMState
from libvirtcpi.compute.nics import NICs
from libvirtcpi.compute.store import Store
from libvirtcpi.compute.portdevices import PortDevices
from libvirtcpi.compute.stemcell import PREPARED_SNAPSHOT_NAME
from libvirtcpi.utils.misc import check_id
from libvirtcpi.utils.misc import generate_id

__all__ = [
    'VMProps',
    'VM',
    'VMFactory'
]

log = logging.getLogger('libvirtcpi.compute.vm')

ALREADY_RUNNING_PATTERNS = ['already active', 'is already running']
NOT_RUNNING_PATTERNS = ['domain is not running']

# States in which a domain holds resources and has to be destroyed first
ACTIVE_STATES = (VMState.RUNNING, VMState.PAUSED, VMState.SAVED)

ENV_FILE = 'env.json'
METADATA_FILE = 'metadata.json'
DISKS_FILE = 'disks.json'
ROOT_DISK_FILE = 'root.qcow2'
EPHEMERAL_DISK_FILE = 'ephemeral.qcow2'


class VMProps(object):
    """
    Resources of a VM taken from its cloud properties.

    :param memory: Memory in MB.
    :param cpus: Number of vCPUs.
    :param ephemeral_disk: Size of the ephemeral disk in MB.
    """

    DEFAULT_MEMORY = 512
    DEFAULT_CPUS = 1
    DEFAULT_EPHEMERAL_DISK = 5000

    def __init__(self, memory=DEFAULT_MEMORY, cpus=DEFAULT_CPUS,
                 ephemeral_disk=DEFAULT_EPHEMERAL_DISK):
        # type: (int, int, int) -> None
        self.memory = memory
        self.cpus = cpus
        self.ephemeral_disk = ephemeral_disk

    @classmethod
    def from_dict(cls, cloud_props):
        # type: (Optional[Dict[str, Any]]) -> VMProps
        """
        Build props from cloud properties, applying defaults for absent
        values. Keys which are not resources are ignored.
        """
        cloud_props = cloud_props or {}
        values = {}

        for key, default in [('memory', cls.DEFAULT_MEMORY),
                             ('cpus', cls.DEFAULT_CPUS),
                             ('ephemeral_disk', cls.DEFAULT_EPHEMERAL_DISK)]:
            value = cloud_props.get(key, default)

            try:
                value = int(value)
            except (TypeError, ValueError):
                raise InvalidConfigurationError(
                    'Expected %s to be an integer, got %r' % (key, value))

            if value < 0:
                raise InvalidConfigurationError(
                    'Expected %s to be positive, got %d' % (key, value))

            values[key] = value

        return cls(**values)

    def to_dict(self):
        return {'memory': self.memory, 'cpus': self.cpus,
                'ephemeral_disk': self.ephemeral_disk}

    def __repr__(self):
        return ('<VMProps memory=%d cpus=%d ephemeral_disk=%d>' %
                (self.memory, self.cpus, self.ephemeral_disk))


class VM(object):
    """
    A VM backed by a libvirt domain named after its id.

    Its store keeps the agent env, the metadata and the persistent disks
    attached to it.
    """

    def __init__(self, id, port_devices, store, driver):
        self.id = id
        self.port_devices = port_devices
        self.store = store
        self.driver = driver

    def exists(self):
        # type: () -> bool
        try:
            self.driver.execute('dominfo', self.id)
        except CommandError as e:
            if self.driver.is_missing_resource_err(e.output):
                return False
            raise

        return True

    def state(self):
        # type: () -> VMState
        return self.driver.domain_state(self.id)

    def is_running(self):
        # type: () -> bool
        return self.state() == VMState.RUNNING

    def start(self):
        try:
            self.driver.execute('start', self.id)
        except CommandError as e:
            if any(p in e.output for p in ALREADY_RUNNING_PATTERNS):
                return
            raise

    def stop(self, force=False):
        """
        ``force`` destroys the domain immediately. Otherwise a shutdown is
        requested and this returns without waiting for it.
        """
        self.driver.execute('destroy' if force else 'shutdown', self.id)

    def reboot(self):
        self.driver.execute('reboot', self.id)

    def halt_if_running(self):
        if self.state() not in ACTIVE_STATES:
            return

        try:
            self.driver.execute('destroy', self.id)
        except CommandError as e:
            if not any(p in e.output for p in NOT_RUNNING_PATTERNS):
                raise

    def info(self):
        return self.driver.domain_info(self.id)

    def set_props(self, props):
        # type: (VMProps) -> None
        """
        Apply memory and vCPU count, skipping zero values.

        Memory and vCPUs are applied independently: a failure of one does
        not prevent the other. All failures are reported together.
        """
        failures = []  # type: List[str]

        if props.memory > 0:
            kib = str(props.memory * 1024)
            failures.extend(self._apply([
                ('Setting max memory',
                 ['setmaxmem', self.id, kib, '--config']),
                ('Setting memory', ['setmem', self.id, kib, '--config']),
            ]))

        if props.cpus > 0:
            cpus = str(props.cpus)
            failures.extend(self._apply([
                ('Setting maximum vcpus',
                 ['setvcpus', self.id, cpus, '--config', '--maximum']),
                ('Setting vcpus', ['setvcpus', self.id, cpus, '--config']),
            ]))

        if failures:
            raise CPIError('Setting VM properties: %s' % ('; '.join(failures)))

    def _apply(self, calls):
        for description, args in calls:
            try:
                self.driver.execute(*args)
            except CPIError as e:
                return ['%s: %s' % (description, e)]
        return []

    def set_metadata(self, meta):
        # type: (Dict[str, str]) -> None
        try:
            self.store.put_json(METADATA_FILE, meta)
        except (OSError, TypeError) as e:
            raise CPIError('Saving VM metadata: %s' % (e))

    def configure_nics(self, specs, host):
        NICs(self.driver, self.id).configure(specs, host)

    def configure_agent(self, agent_env):
        # type: (Dict[str, Any]) -> None
        try:
            self.store.put_json(ENV_FILE, agent_env)
        except OSError as e:
            raise CPIError('Updating agent env: %s' % (e))

    def agent_env(self):
        # type: () -> Dict[str, Any]
        try:
            return self.store.get_json(ENV_FILE)
        except OSError as e:
            raise CPIError('Fetching agent env: %s' % (e))

    def reconfigure_agent(self, update):
        # type: (Callable[[Dict[str, Any]], None]) -> None
        """
        Load the agent env, let ``update`` change it and write it back.
        The agent picks the new env up on its next start.
        """
        agent_env = self.agent_env()
        update(agent_env)
        self.configure_agent(agent_env)

    def persistent_disks(self):
        # type: () -> Dict[str, Any]
        """
        Return ``{disk id: port device}`` of the attached persistent disks.
        """
        try:
            data = self.store.get_json(DISKS_FILE)
        except OSError:
            return {}

        return dict((disk_id, self.port_devices.from_dict(pd))
                    for disk_id, pd in data.items())

    def attach_persistent_disk(self, disk):
        """
        :return: Device hint the agent finds the disk under.
        """
        disks = self.persistent_disks()

        if disk.id in disks:
            return disks[disk.id].hint()

        port_device = self.port_devices.find_available(disks.values())
        port_device.attach(disk.disk_path)

        disks[disk.id] = port_device
        self._save_persistent_disks(disks)

        hint = port_device.hint()
        self.reconfigure_agent(
            lambda env: env.setdefault('disks', {}).setdefault(
                'persistent', {}).update({disk.id: hint}))
        return hint

    def detach_persistent_disk(self, disk_id):
        disks = self.persistent_disks()

        if disk_id not in disks:
            raise CPIError('Disk %s is not attached to VM %s' %
                           (disk_id, self.id))

        disks.pop(disk_id).detach()
        self._save_persistent_disks(disks)

        self.reconfigure_agent(
            lambda env: env.setdefault('disks', {}).setdefault(
                'persistent', {}).pop(disk_id, None))

    def detach_persistent_disks(self):
        for disk_id, port_device in sorted(self.persistent_disks().items()):
            try:
                port_device.detach()
            except CommandError as e:
                if not self.driver.is_missing_resource_err(e.output):
                    raise
                log.warning('VM %s is already gone, not detaching %s',
                            self.id, disk_id)

    def delete(self):
        """
        Halt, detach persistent disks, undefine with storage and remove the
        store, in that order.

        :raises StepError: naming the step which failed.
        """
        MultiStep([
            Step('Halting VM', self.halt_if_running),
            Step('Detaching persistent disks', self.detach_persistent_disks),
            Step('Undefining VM', self._undefine),
            Step('Deleting VM store', self.store.delete),
        ]).run()

    def _undefine(self):
        try:
            self.driver.execute('undefine', self.id, '--remove-all-storage')
        except CommandError as e:
            if not self.driver.is_missing_resource_err(e.output):
                raise
            log.warning('VM %s is already undefined', self.id)

    def _save_persistent_disks(self, disks):
        self.store.put_json(DISKS_FILE, dict(
            (disk_id, pd.to_dict()) for disk_id, pd in disks.items()))

    def __repr__(self):
        return '<VM id=%s>' % (self.id)


class VMFactory(object):
    """
    Creates VMs from stemcells.
    """

    def __init__(self, dir_path, storage_controller, driver, runner,
                 qemu_image, host, agent_options):
        self.dir_path = dir_path
        self.storage_controller = storage_controller
        self.driver = driver
        self.runner = runner
        self.qemu_image = qemu_image
        self.host = host
        self.agent_options = agent_options

    def create(self, agent_id, stemcell, props, networks, env=None):
        """
        :param networks: Networks in the order NICs are attached.
        :type networks: ``list`` of :class:`NetworkSpec`

        :raises StepError: naming the step which failed. The partially
                           created VM is deleted first.
        """
        vm = self.find(generate_id('vm'))

        root_path = posixpath.join(vm.store.path, ROOT_DISK_FILE)
        ephemeral_path = posixpath.join(vm.store.path, EPHEMERAL_DISK_FILE)

        MultiStep([
            Step('Creating VM directory', lambda: self._mkdir(vm.store.path),
                 cleanup=vm.delete),
            Step('Reverting stemcell to prepared snapshot',
                 lambda: stemcell.revert(PREPARED_SNAPSHOT_NAME)),
            Step('Cloning stemcell disk',
                 lambda: self.qemu_image.convert(
                     stemcell.disk_path, root_path,
                     ImageFormat.QCOW2, ImageFormat.QCOW2)),
            Step('Creating ephemeral disk',
                 lambda: self.qemu_image.create(ephemeral_path,
                                                props.ephemeral_disk)),
            Step('Defining VM',
                 lambda: self._define(vm, props, root_path, ephemeral_path)),
            Step('Enabling networks',
                 lambda: self.host.enable_networks(networks)),
            Step('Configuring NICs',
                 lambda: vm.configure_nics(networks, self.host)),
            Step('Configuring agent',
                 lambda: vm.configure_agent(
                     self.agent_env(vm, agent_id, networks, env))),
            Step('Starting VM', vm.start),
        ]).run()

        return vm

    def find(self, id):
        # type: (str) -> VM
        check_id(id)
        port_devices = PortDevices(self.driver, id, self.storage_controller)
        store = Store(self.runner, posixpath.join(self.dir_path, id))
        return VM(id, port_devices, store, self.driver)

    def agent_env(self, vm, agent_id, networks, env=None):
        # type: (VM, str, list, Optional[Dict[str, Any]]) -> Dict[str, Any]
        return {
            'agent_id': agent_id,
            'vm': {'name': vm.id, 'id': vm.id},
            'networks': dict((n.name, n.to_agent_dict()) for n in networks),
            'disks': {
                'system': vm.port_devices.root().hint(),
                'ephemeral': vm.port_devices.ephemeral().hint(),
                'persistent': {},
            },
            'mbus': self.agent_options.mbus,
            'ntp': self.agent_options.ntp,
            'blobstore': self.agent_options.blobstore,
            'env': env or {},
        }

    def _mkdir(self, path):
        result = self.runner.execute('mkdir', ['-p', path])
        if result.status != 0:
            raise CPIError("Creating directory '%s': %s" %
                           (path, result.output))

    def _define(self, vm, props, root_path, ephemeral_path):
        hypervisor = self.driver.hypervisor
        bus = hypervisor.disk_bus(self.storage_controller)

        document = hypervisor.build_document(vm.id, props.memory, props.cpus)
        document.add_disk(root_path, vm.port_devices.root().hint(), bus)
        document.add_disk(ephemeral_path, vm.port_devices.ephemeral().hint(),
                          bus)

        self.driver.define(document)
