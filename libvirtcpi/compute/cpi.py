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
Entry point used by the RPC dispatcher: the complete set of lifecycle
operations for one libvirt host.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import logging

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.process import LocalRunner
from libvirtcpi.compute.ssh import SSHRunner
from libvirtcpi.compute.providers import get_hypervisor
from libvirtcpi.compute.drivers.libvirt_driver import LibvirtDriver
from libvirtcpi.compute.qemu import QemuImage
from libvirtcpi.compute.network import NetworkManager
from libvirtcpi.compute.nics import Host
from libvirtcpi.compute.nics import NICs
from libvirtcpi.compute.nics import NetworkSpec
from libvirtcpi.compute.disk import DiskFactory
from libvirtcpi.compute.stemcell import StemcellFactory
from libvirtcpi.compute.vm import VMFactory
from libvirtcpi.compute.vm import VMProps
from libvirtcpi.utils.retry import Retry

__all__ = [
    'LibvirtCPI'
]

log = logging.getLogger('libvirtcpi.compute.cpi')

STEMCELL_FORMATS = ['vsphere-ova', 'vsphere-ovf']
API_VERSION = 2


class LibvirtCPI(object):
    """
    Lifecycle operations for stemcells, VMs and disks.

    :param options: Validated on construction.
    :type options: :class:`FactoryOptions`

    :param runner: Runner to use instead of the one derived from
                   ``options`` (local, or SSH when a host is configured).
    """

    def __init__(self, options, runner=None, retrier=None):
        options.validate()
        self.options = options

        if runner is None:
            if options.host:
                runner = SSHRunner(options.host, options.username,
                                   options.private_key, port=options.port)
            else:
                runner = LocalRunner()

        if retrier is None:
            retrier = Retry(max_attempts=options.retry_attempts,
                            retry_delay=options.retry_delay,
                            backoff=options.retry_backoff)

        self.runner = runner
        self.driver = LibvirtDriver(runner, retrier=retrier,
                                    hypervisor=get_hypervisor(
                                        options.hypervisor),
                                    bin_path=options.bin_path,
                                    uri=options.uri,
                                    tmp_dir=options.tmp_dir)
        self.qemu_image = QemuImage(runner, retrier=retrier,
                                    bin_path=options.qemu_img_path)

        self.networks = NetworkManager(self.driver)
        self.host = Host(self.networks, options.auto_enable_networks)

        self.stemcells = StemcellFactory(options.stemcells_dir(),
                                         options.storage_controller,
                                         self.driver, runner, self.qemu_image)
        self.vms = VMFactory(options.vms_dir(), options.storage_controller,
                             self.driver, runner, self.qemu_image, self.host,
                             options.agent)
        self.disks = DiskFactory(options.disks_dir(), runner, self.qemu_image)

    def initialize(self):
        return self.driver.initialize()

    def close(self):
        self.runner.close()

    def info(self):
        # type: () -> Dict[str, Any]
        return {'stemcell_formats': list(STEMCELL_FORMATS),
                'api_version': API_VERSION}

    def create_stemcell(self, image_path, cloud_props=None):
        # type: (str, Optional[Dict[str, Any]]) -> str
        stemcell = self.stemcells.import_from_path(image_path)
        log.info('Imported stemcell %s', stemcell.id)
        return stemcell.id

    def delete_stemcell(self, stemcell_id):
        self.stemcells.find(stemcell_id).delete()

    def has_stemcell(self, stemcell_id):
        # type: (str) -> bool
        return self.stemcells.find(stemcell_id).exists()

    def create_vm(self, agent_id, stemcell_id, cloud_props, networks,
                  env=None):
        # type: (str, str, Dict[str, Any], Dict[str, Dict[str, Any]], Optional[Dict[str, Any]]) -> str
        """
        :param networks: ``{network name: network settings}``
        """
        stemcell = self.stemcells.find(stemcell_id)
        if not stemcell.exists():
            raise CPIError('Expected to find stemcell %s' % (stemcell_id))

        props = VMProps.from_dict(cloud_props)
        specs = [NetworkSpec.from_dict(name, data)
                 for name, data in (networks or {}).items()]

        vm = self.vms.create(agent_id, stemcell, props, specs, env=env)
        log.info('Created VM %s', vm.id)
        return vm.id

    def delete_vm(self, vm_id):
        self.vms.find(vm_id).delete()

    def has_vm(self, vm_id):
        # type: (str) -> bool
        return self.vms.find(vm_id).exists()

    def start_vm(self, vm_id):
        self.vms.find(vm_id).start()

    def stop_vm(self, vm_id, force=False):
        self.vms.find(vm_id).stop(force=force)

    def reboot_vm(self, vm_id):
        self.vms.find(vm_id).reboot()

    def attach_nic(self, vm_id, network_name, network):
        # type: (str, str, Dict[str, Any]) -> str
        """
        Attach one more NIC to a defined VM. It is used from the next
        start on.

        :return: MAC address of the new NIC.
        """
        spec = NetworkSpec.from_dict(network_name, network)
        self.host.enable_networks([spec])
        return NICs(self.driver, vm_id).attach(spec, self.host)

    def detach_nic(self, vm_id, network_name, network):
        # type: (str, str, Dict[str, Any]) -> None
        """
        :param network: Network settings including the ``mac`` of the NIC.
        """
        spec = NetworkSpec.from_dict(network_name, network)
        NICs(self.driver, vm_id).remove_nic(spec)

    def set_vm_metadata(self, vm_id, meta):
        self.vms.find(vm_id).set_metadata(meta)

    def set_vm_props(self, vm_id, cloud_props):
        """
        Change memory and/or vCPUs of a VM, absent values are left alone.
        """
        props = VMProps(memory=int(cloud_props.get('memory') or 0),
                        cpus=int(cloud_props.get('cpus') or 0),
                        ephemeral_disk=0)
        self.vms.find(vm_id).set_props(props)

    def calculate_vm_cloud_properties(self, requirements):
        # type: (Dict[str, int]) -> Dict[str, int]
        return {
            'memory': requirements.get('ram', VMProps.DEFAULT_MEMORY),
            'cpus': requirements.get('cpu', VMProps.DEFAULT_CPUS),
            'ephemeral_disk': requirements.get(
                'ephemeral_disk_size', VMProps.DEFAULT_EPHEMERAL_DISK),
        }

    def create_disk(self, size_mb, cloud_props=None, vm_id=None):
        # type: (int, Optional[Dict[str, Any]], Optional[str]) -> str
        return self.disks.create(size_mb).id

    def delete_disk(self, disk_id):
        self.disks.find(disk_id).delete()

    def has_disk(self, disk_id):
        # type: (str) -> bool
        return self.disks.find(disk_id).exists()

    def attach_disk(self, vm_id, disk_id):
        # type: (str, str) -> str
        """
        :return: Device hint of the attached disk.
        """
        disk = self.disks.find(disk_id)
        if not disk.exists():
            raise CPIError('Expected to find disk %s' % (disk_id))

        return self.vms.find(vm_id).attach_persistent_disk(disk)

    def detach_disk(self, vm_id, disk_id):
        self.vms.find(vm_id).detach_persistent_disk(disk_id)

    def get_disks(self, vm_id):
        # type: (str) -> List[str]
        return sorted(self.vms.find(vm_id).persistent_disks())
