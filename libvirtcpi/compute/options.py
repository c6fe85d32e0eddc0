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
Configuration of a libvirtcpi installation.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import posixpath

from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.compute.types import Controller
from libvirtcpi.compute.providers import DRIVERS
from libvirtcpi.utils.retry import DEFAULT_ATTEMPTS
from libvirtcpi.utils.retry import DEFAULT_DELAY
from libvirtcpi.utils.retry import DEFAULT_BACKOFF

__all__ = [
    'AgentOptions',
    'FactoryOptions'
]


class AgentOptions(object):
    """
    Settings handed to the agent inside every VM.
    """

    def __init__(self, mbus='', ntp=None, blobstore=None):
        # type: (str, Optional[List[str]], Optional[Dict[str, Any]]) -> None
        self.mbus = mbus
        self.ntp = list(ntp or [])
        self.blobstore = dict(blobstore or {})

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(mbus=data.get('mbus', ''), ntp=data.get('ntp'),
                   blobstore=data.get('blobstore'))

    def validate(self):
        if not self.mbus:
            raise InvalidConfigurationError('Must provide non-empty Mbus')

        if self.blobstore and not self.blobstore.get('provider'):
            raise InvalidConfigurationError(
                'Must provide non-empty Blobstore provider')


class FactoryOptions(object):
    """
    :param hypervisor: Hypervisor family (qemu, vbox, lxc, xen, vmware).
    :param host: Remote libvirt host. Commands run locally when empty.
    :param store_dir: Root of the stemcell, VM and disk directories.
    :param uri: Libvirt connection URI, derived from the hypervisor family
                when empty.
    :param storage_controller: Controller used for root, ephemeral and
                               persistent disks (ide, scsi or sata).
    """

    def __init__(self,
                 store_dir='',  # type: str
                 hypervisor='qemu',  # type: str
                 host='',  # type: str
                 username='',  # type: str
                 private_key='',  # type: str
                 port=22,  # type: int
                 bin_path='virsh',  # type: str
                 qemu_img_path='qemu-img',  # type: str
                 uri='',  # type: str
                 storage_controller='scsi',  # type: str
                 auto_enable_networks=False,  # type: bool
                 tmp_dir='/tmp',  # type: str
                 retry_attempts=DEFAULT_ATTEMPTS,  # type: int
                 retry_delay=DEFAULT_DELAY,  # type: float
                 retry_backoff=DEFAULT_BACKOFF,  # type: float
                 agent=None  # type: Optional[AgentOptions]
                 ):
        self.store_dir = store_dir
        self.hypervisor = hypervisor or 'qemu'
        self.host = host
        self.username = username
        self.private_key = private_key
        self.port = port
        self.bin_path = bin_path or 'virsh'
        self.qemu_img_path = qemu_img_path or 'qemu-img'
        self.uri = uri
        self.storage_controller = storage_controller or 'scsi'
        self.auto_enable_networks = auto_enable_networks
        self.tmp_dir = tmp_dir or '/tmp'
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.agent = agent or AgentOptions()

    @classmethod
    def from_dict(cls, data):
        # type: (Dict[str, Any]) -> FactoryOptions
        """
        Build options from a parsed JSON configuration.
        """
        data = dict(data or {})
        agent = AgentOptions.from_dict(data.pop('agent', None))

        code = cls.__init__.__code__
        known = code.co_varnames[1:code.co_argcount]
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise InvalidConfigurationError(
                'Unknown configuration keys: %s' % (', '.join(unknown)))

        return cls(agent=agent, **data)

    def validate(self):
        if self.hypervisor not in DRIVERS:
            raise InvalidConfigurationError(
                "Invalid hypervisor '%s'. Must be one of: %s" %
                (self.hypervisor, ', '.join(str(k) for k in DRIVERS)))

        if self.host:
            if not self.username:
                raise InvalidConfigurationError(
                    'Must provide non-empty Username')

            if not self.private_key:
                raise InvalidConfigurationError(
                    'Must provide non-empty PrivateKey')

        if not self.store_dir:
            raise InvalidConfigurationError('Must provide non-empty StoreDir')

        controller = Controller.fromstring(str(self.storage_controller or ''))
        if controller is None:
            raise InvalidConfigurationError(
                "Unexpected StorageController '%s'" %
                (self.storage_controller))
        self.storage_controller = controller

        try:
            self.agent.validate()
        except InvalidConfigurationError as e:
            raise InvalidConfigurationError(
                'Validating Agent configuration: %s' % (e))

    def stemcells_dir(self):
        return posixpath.join(self.store_dir, 'stemcells')

    def vms_dir(self):
        return posixpath.join(self.store_dir, 'vms')

    def disks_dir(self):
        return posixpath.join(self.store_dir, 'disks')
