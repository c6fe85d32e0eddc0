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
Storage controller switching for OVF stemcell bundles.

Switching the root disk controller rewrites the OVF descriptor. The digest
recorded for the descriptor in the manifest is recomputed afterwards,
otherwise the bundle no longer validates.
"""

from typing import Dict
from typing import Tuple

import os
import re
import hashlib
import logging

from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.compute.types import Controller

__all__ = [
    'DESCRIPTOR_FILE',
    'MANIFEST_FILE',
    'DISK_FILE',
    'switch_to_ide',
    'switch_to_sata',
    'manifest_digests',
    'patch_manifest',
    'switch_controller'
]

log = logging.getLogger('libvirtcpi.compute.ovf')

DESCRIPTOR_FILE = 'image.ovf'
MANIFEST_FILE = 'image.mf'
DISK_FILE = 'image-disk1.vmdk'

DIGESTS = {
    'SHA1': hashlib.sha1,
    'SHA256': hashlib.sha256,
    'SHA512': hashlib.sha512,
}

# e.g. "SHA1(image.ovf)= 3f786850e387550fdab836ed7e6dc881de23001b"
MANIFEST_LINE_RE = re.compile(
    r'^(?P<alg>[A-Za-z0-9]+)\((?P<file>[^)]+)\)\s*=\s*(?P<digest>[0-9a-fA-F]+)'
    r'\s*$')

# Parent=x references the Item with InstanceID=x
# http://blogs.vmware.com/vapp/2009/11/virtual-hardware-in-ovf-part-1.html
PARENT_3 = '<rasd:Parent>3</rasd:Parent>'
PARENT_4 = '<rasd:Parent>4</rasd:Parent>'

IDE_DESCRIPTION = '<rasd:Description>IDE Controller</rasd:Description>'
SATA_DESCRIPTION = '<rasd:Description>SATA Controller</rasd:Description>'
IDE_ELEMENT_NAME = '<rasd:ElementName>ideController0</rasd:ElementName>'
SATA_ELEMENT_NAME = '<rasd:ElementName>sataController0</rasd:ElementName>'
IDE_RESOURCE_TYPE = '<rasd:ResourceType>5</rasd:ResourceType>'
SATA_RESOURCE_TYPE = ('<rasd:ResourceSubType>AHCI</rasd:ResourceSubType>'
                      '<rasd:ResourceType>20</rasd:ResourceType>')


def switch_to_ide(contents):
    # type: (str) -> str
    return contents.replace(PARENT_3, PARENT_4, 1)


def switch_to_sata(contents):
    # type: (str) -> str
    """
    Move the root disk to a SATA (AHCI) controller.

    Newer stemcells already ship a SATA controller. For those only the
    parent reference is renumbered back.
    """
    if IDE_DESCRIPTION not in contents:
        return contents.replace(PARENT_4, PARENT_3, 1)

    contents = contents.replace(PARENT_3, PARENT_4, 1)
    contents = contents.replace(IDE_DESCRIPTION, SATA_DESCRIPTION, 1)
    contents = contents.replace(IDE_ELEMENT_NAME, SATA_ELEMENT_NAME, 1)
    contents = contents.replace(IDE_RESOURCE_TYPE, SATA_RESOURCE_TYPE, 1)
    return contents


SWITCHES = {
    Controller.IDE: switch_to_ide,
    Controller.SATA: switch_to_sata,
}


def manifest_digests(manifest):
    # type: (str) -> Dict[str, Tuple[str, str]]
    """
    Return ``{file name: (algorithm, digest)}`` for a manifest.
    """
    digests = {}

    for line in manifest.splitlines():
        if not line.strip():
            continue

        match = MANIFEST_LINE_RE.match(line.strip())
        if not match:
            raise InvalidConfigurationError(
                'Malformed manifest line: %s' % (line))

        digests[match.group('file')] = (match.group('alg').upper(),
                                        match.group('digest').lower())

    return digests


def digest(algorithm, data):
    # type: (str, bytes) -> str
    try:
        return DIGESTS[algorithm.upper()](data).hexdigest()
    except KeyError:
        raise InvalidConfigurationError(
            'Unsupported manifest digest algorithm %s' % (algorithm))


def patch_manifest(manifest, file_name, data):
    # type: (str, str, bytes) -> str
    """
    Replace the digest recorded for ``file_name`` with the digest of
    ``data``, using the algorithm the manifest names for that file.
    """
    lines = []
    patched = False

    for line in manifest.splitlines(True):
        match = MANIFEST_LINE_RE.match(line.strip())

        if match and match.group('file') == file_name:
            ending = line[len(line.rstrip('\r\n')):]
            line = '%s(%s)= %s%s' % (match.group('alg'), file_name,
                                     digest(match.group('alg'), data),
                                     ending)
            patched = True

        lines.append(line)

    if not patched:
        raise InvalidConfigurationError(
            'Manifest has no entry for %s' % (file_name))

    return ''.join(lines)


def switch_controller(dir_path, controller):
    # type: (str, str) -> bool
    """
    Switch the root disk of an unpacked bundle to ``controller``.

    SCSI is what stemcells ship with, nothing is changed for it.

    :return: ``True`` when the descriptor was rewritten.
    """
    switch = SWITCHES.get(Controller.fromstring(str(controller)))
    if switch is None:
        return False

    ovf_path = os.path.join(dir_path, DESCRIPTOR_FILE)
    mf_path = os.path.join(dir_path, MANIFEST_FILE)

    with open(ovf_path, 'rb') as fp:
        contents = fp.read().decode('utf-8')

    patched = switch(contents)
    if patched == contents:
        log.debug('Descriptor already uses %s controller', controller)
        return False

    data = patched.encode('utf-8')

    with open(mf_path, 'rb') as fp:
        manifest = fp.read().decode('utf-8')

    manifest = patch_manifest(manifest, DESCRIPTOR_FILE, data)

    with open(ovf_path, 'wb') as fp:
        fp.write(data)

    with open(mf_path, 'wb') as fp:
        fp.write(manifest.encode('utf-8'))

    return True
