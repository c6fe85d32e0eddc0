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
Stemcells: imported base images VMs are cloned from.
"""

import os
import shutil
import logging
import tarfile
import tempfile
import posixpath

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.types import CommandError
from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.common.steps import Step
from libvirtcpi.common.steps import MultiStep
from libvirtcpi.compute.types import ImageFormat
from libvirtcpi.compute.domain import render
from libvirtcpi.compute.domain import STEMCELL_TEMPLATE
from libvirtcpi.compute.ovf import DESCRIPTOR_FILE
from libvirtcpi.compute.ovf import MANIFEST_FILE
from libvirtcpi.compute.ovf import DISK_FILE
from libvirtcpi.compute.ovf import switch_controller
from libvirtcpi.utils.misc import check_id
from libvirtcpi.utils.misc import generate_id

__all__ = [
    'PREPARED_SNAPSHOT_NAME',
    'Stemcell',
    'StemcellFactory'
]

log = logging.getLogger('libvirtcpi.compute.stemcell')

# Snapshot VMs are cloned from
PREPARED_SNAPSHOT_NAME = 'prepared-clone'

BUNDLE_FILES = [DISK_FILE, MANIFEST_FILE, DESCRIPTOR_FILE]

IMAGE_FILE = 'image.qcow2'
DOMAIN_FILE = 'domain.xml'

# Resources of the registered template domain
STEMCELL_MEMORY_MB = 1024
STEMCELL_VCPUS = 1


class Stemcell(object):
    """
    An imported stemcell: a defined (never started) domain plus the
    directory holding its disk image.
    """

    def __init__(self, id, path, driver, runner):
        self.id = id
        self.path = path
        self.driver = driver
        self.runner = runner

    @property
    def disk_path(self):
        return posixpath.join(self.path, IMAGE_FILE)

    def prepare(self, snapshot_name):
        # type: (str) -> str
        """
        Snapshot the stemcell domain so VMs can be cloned from a consistent
        point.

        :return: Id of the created snapshot.
        """
        return self.driver.create_snapshot(
            self.id, snapshot_name, description='Prepared for cloning')

    def revert(self, snapshot_name):
        self.driver.revert_snapshot(self.id, snapshot_name)

    def exists(self):
        # type: () -> bool
        try:
            self.driver.execute('dominfo', self.id)
        except CommandError as e:
            if self.driver.is_missing_resource_err(e.output):
                return False
            raise

        return True

    def delete(self):
        try:
            self.driver.execute('undefine', self.id, '--remove-all-storage',
                                '--snapshots-metadata')
        except CommandError as e:
            if not self.driver.is_missing_resource_err(e.output):
                raise CPIError('Undefining stemcell domain: %s' % (e))
            log.warning('Stemcell domain %s is already gone', self.id)

        result = self.runner.execute('rm', ['-rf', self.path])
        if result.status != 0:
            raise CPIError("Deleting stemcell directory '%s': %s" %
                           (self.path, result.output))

    def __repr__(self):
        return '<Stemcell id=%s path=%s>' % (self.id, self.path)


class StemcellFactory(object):
    """
    Imports stemcell bundles (tarballs holding an OVF descriptor, a
    manifest and a VMDK disk).
    """

    def __init__(self, dir_path, storage_controller, driver, runner,
                 qemu_image):
        self.dir_path = dir_path
        self.storage_controller = storage_controller
        self.driver = driver
        self.runner = runner
        self.qemu_image = qemu_image

    def import_from_path(self, image_path):
        # type: (str) -> Stemcell
        """
        Unpack, patch, upload, convert, define and snapshot a stemcell.

        When a step after unpacking fails, the partially registered domain
        and the stemcell directory are removed before the error is raised.

        :raises StepError: naming the step which failed.
        """
        stemcell = self.find(generate_id('sc'))
        tmp_dir = tempfile.mkdtemp(prefix='libvirt-cpi-stemcell-upload')

        steps = MultiStep([
            Step('Unpacking stemcell',
                 lambda: self._unpack(image_path, tmp_dir)),
            Step('Creating stemcell parent',
                 lambda: self._mkdir(stemcell.path),
                 cleanup=lambda: self._remove_dir(stemcell.path)),
            Step('Switching root disk to %s controller' %
                 (str(self.storage_controller).upper()),
                 lambda: switch_controller(tmp_dir, self.storage_controller)),
            Step('Uploading stemcell',
                 lambda: self._upload(tmp_dir, stemcell.path)),
            Step('Converting VMDK to qcow2',
                 lambda: self.qemu_image.convert(
                     posixpath.join(stemcell.path, DISK_FILE),
                     stemcell.disk_path, ImageFormat.VMDK, ImageFormat.QCOW2)),
            Step('Defining stemcell domain',
                 lambda: self._define(stemcell),
                 cleanup=lambda: self._clean_up_partial_import(stemcell.id)),
            Step('Preparing stemcell for future cloning',
                 lambda: stemcell.prepare(PREPARED_SNAPSHOT_NAME)),
        ])

        try:
            steps.run()
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        return stemcell

    def find(self, id):
        # type: (str) -> Stemcell
        return Stemcell(id, posixpath.join(self.dir_path, check_id(id)),
                        self.driver, self.runner)

    def _unpack(self, image_path, dst_dir):
        try:
            with tarfile.open(image_path, 'r:*') as tar:
                members = tar.getmembers()

                for member in members:
                    if not self._is_safe_member(member, dst_dir):
                        raise InvalidConfigurationError(
                            "Unsafe path '%s' in stemcell '%s'" %
                            (member.name, image_path))

                tar.extractall(dst_dir, members=members)
        except (tarfile.TarError, IOError) as e:
            raise CPIError("Unpacking stemcell '%s' to '%s': %s" %
                           (image_path, dst_dir, e))

        for file_name in BUNDLE_FILES:
            if not os.path.isfile(os.path.join(dst_dir, file_name)):
                raise InvalidConfigurationError(
                    "Stemcell '%s' has no %s" % (image_path, file_name))

    def _is_safe_member(self, member, dst_dir):
        if not (member.isfile() or member.isdir()):
            return False

        root = os.path.realpath(dst_dir)
        target = os.path.realpath(os.path.join(dst_dir, member.name))
        return target == root or target.startswith(root + os.sep)

    def _mkdir(self, path):
        result = self.runner.execute('mkdir', ['-p', path])
        if result.status != 0:
            raise CPIError("Creating directory '%s': %s" %
                           (path, result.output))

    def _remove_dir(self, path):
        result = self.runner.execute('rm', ['-rf', path])
        if result.status != 0:
            raise CPIError("Deleting directory '%s': %s" %
                           (path, result.output))

    def _upload(self, src_dir, dst_dir):
        for file_name in BUNDLE_FILES:
            self.runner.upload(os.path.join(src_dir, file_name),
                               posixpath.join(dst_dir, file_name))

    def _define(self, stemcell):
        document = render(STEMCELL_TEMPLATE, stemcell.id, STEMCELL_MEMORY_MB,
                          STEMCELL_VCPUS,
                          domain_type=self.driver.hypervisor.domain_type,
                          disk_path=stemcell.disk_path)

        xml_path = posixpath.join(stemcell.path, DOMAIN_FILE)
        self.runner.put(xml_path, document.to_xml().encode('utf-8'))
        self.driver.execute('define', xml_path)

    def _clean_up_partial_import(self, id):
        try:
            self.driver.execute('undefine', id, '--remove-all-storage')
        except CommandError as e:
            if not self.driver.is_missing_resource_err(e.output):
                raise
            log.warning('Partially imported stemcell %s was never defined',
                        id)
