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
Libvirt driver which talks to libvirtd through the ``virsh`` command line
tool.
"""

from typing import Dict
from typing import List
from typing import Optional

import uuid
import logging
import posixpath

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.types import CommandError
from libvirtcpi.common.process import CommandExecutor
from libvirtcpi.compute.types import VMState
from libvirtcpi.compute.domain import DomainDocument
from libvirtcpi.compute.hypervisors import Hypervisor
from libvirtcpi.compute.hypervisors import QemuHypervisor

__all__ = [
    'LibvirtDriver'
]

log = logging.getLogger('libvirtcpi.compute.drivers.libvirt')


class LibvirtDriver(CommandExecutor):
    """
    Libvirt (http://libvirt.org/) driver.

    Every call is made against a fixed connection URI (``virsh -c <uri>``).
    A non-zero exit status together with a "failed to connect" message is
    retried, since libvirtd is often not reachable yet while the host
    boots.
    """

    name = 'Libvirt'
    website = 'http://libvirt.org/'

    STATE_MAP = {
        'running': VMState.RUNNING,
        'idle': VMState.RUNNING,
        'blocked': VMState.RUNNING,
        'in shutdown': VMState.RUNNING,
        'shut off': VMState.POWEROFF,
        'shutoff': VMState.POWEROFF,
        'paused': VMState.PAUSED,
        'crashed': VMState.ABORTED,
        'pmsuspended': VMState.SAVED,
    }

    def __init__(self, runner, retrier=None, hypervisor=None,
                 bin_path='virsh', uri=None, tmp_dir='/tmp'):
        """
        :param runner: Runner executing ``virsh``.
        :type runner: :class:`BaseRunner`

        :param hypervisor: Hypervisor family strategy, QEMU/KVM by default.
        :type hypervisor: :class:`Hypervisor`

        :param uri: Connection URI, the family's default when not given.
        :type uri: ``str``

        :param tmp_dir: Directory for transient domain documents.
        :type tmp_dir: ``str``
        """
        self.hypervisor = hypervisor or QemuHypervisor()  # type: Hypervisor
        self.uri = uri or self.hypervisor.default_uri
        self.tmp_dir = tmp_dir

        super(LibvirtDriver, self).__init__(
            runner, retrier=retrier, bin_path=bin_path or 'virsh',
            not_ready_patterns=self.hypervisor.not_ready_patterns,
            error_patterns=self.hypervisor.error_patterns)

    def _full_args(self, args):
        return ['-c', self.uri] + list(args)

    def is_missing_resource_err(self, output):
        # type: (str) -> bool
        return self.hypervisor.is_missing_resource_err(output)

    def initialize(self):
        """
        Make sure virsh is installed and can reach libvirtd.
        """
        try:
            return self.execute('version')
        except CPIError as e:
            raise CPIError('virsh not available or cannot connect: %s' % (e))

    def define(self, document, name=None):
        # type: (DomainDocument, Optional[str]) -> None
        """
        Define (or redefine) a domain from a document.

        The document is written to a transient file which is removed
        whether the definition succeeds or not.
        """
        self._define_transient('define', name or document.name,
                               document.to_xml())

    def define_network(self, name, xml):
        # type: (str, str) -> None
        self._define_transient('net-define', '%s-network' % (name), xml)

    def domain_state(self, domain_id):
        # type: (str) -> VMState
        try:
            output = self.execute('domstate', domain_id)
        except CommandError as e:
            if self.is_missing_resource_err(e.output):
                return VMState.MISSING
            raise

        return self.parse_state(output)

    @classmethod
    def parse_state(cls, output):
        # type: (str) -> VMState
        state = output.strip().lower()
        # Only the first line holds the state, "--reason" adds more
        state = state.split('\n')[0].split('(')[0].strip()
        return cls.STATE_MAP.get(state, VMState.UNKNOWN)

    def dump_document(self, domain_id):
        # type: (str) -> DomainDocument
        return DomainDocument.parse(self.execute('dumpxml', domain_id))

    def domain_info(self, domain_id):
        # type: (str) -> Dict[str, object]
        document = self.dump_document(domain_id)

        return {
            'name': document.name,
            'uuid': document.uuid,
            'state': self.domain_state(domain_id),
            'memory': document.memory_mb,
            'cpus': document.vcpus,
        }

    def list_domains(self):
        # type: () -> List[str]
        output = self.execute('list', '--all', '--name')
        return [line.strip() for line in output.split('\n') if line.strip()]

    def modify(self, domain_id, memory_mb=None, vcpus=None):
        """
        Change memory and/or vCPU count by redefining the whole document.

        Only ``memory``, ``currentMemory`` and ``vcpu`` change, everything
        else in the dumped document is kept.
        """
        document = self.dump_document(domain_id)

        if memory_mb is not None:
            document.memory_mb = memory_mb
        if vcpus is not None:
            document.vcpus = vcpus

        self.define(document, name=domain_id)
        return document

    def create_snapshot(self, domain_id, snapshot_name, description=None):
        # type: (str, str, Optional[str]) -> str
        args = ['snapshot-create-as', domain_id, snapshot_name]
        if description:
            args.extend(['--description', description])

        self.execute(*args)
        return snapshot_name

    def delete_snapshot(self, domain_id, snapshot_name):
        self.execute('snapshot-delete', domain_id, snapshot_name)

    def revert_snapshot(self, domain_id, snapshot_name):
        self.execute('snapshot-revert', domain_id, snapshot_name)

    def _define_transient(self, subcommand, name, xml):
        path = posixpath.join(self.tmp_dir, '%s-%s.xml' %
                              (name, uuid.uuid4().hex[:8]))

        self.runner.put(path, xml.encode('utf-8'))

        try:
            self.execute(subcommand, path)
        finally:
            self._remove_file(path)

    def _remove_file(self, path):
        try:
            result = self.runner.execute('rm', ['-f', path])
        except OSError as e:
            log.error('Removing transient file %s failed: %s', path, e)
            return

        if result.status != 0:
            log.error('Removing transient file %s failed: %s', path,
                      result.output)

    def __repr__(self):
        return '<LibvirtDriver uri=%s hypervisor=%s>' % (
            self.uri, self.hypervisor.type)
