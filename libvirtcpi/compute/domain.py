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
Domain definition documents (libvirt domain XML).
"""

from typing import List
from typing import Optional

from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape

from libvirtcpi.common.types import InvalidConfigurationError
from libvirtcpi.utils.misc import mb_to_kib
from libvirtcpi.utils.misc import kib_to_mb
from libvirtcpi.utils.xml import findtext
from libvirtcpi.utils.xml import findint
from libvirtcpi.utils.xml import findall
from libvirtcpi.utils.xml import ensure_child
from libvirtcpi.utils.xml import to_string

__all__ = [
    'DomainDocument',
    'StorageDevice',
    'NetworkDevice',
    'render',
    'LXC_TEMPLATE',
    'VBOX_TEMPLATE',
    'KVM_TEMPLATE',
    'STEMCELL_TEMPLATE'
]

# Multipliers from a libvirt memory unit to KiB
MEMORY_UNITS = {
    'b': 1.0 / 1024,
    'bytes': 1.0 / 1024,
    'kb': 1000.0 / 1024,
    'k': 1,
    'kib': 1,
    'mb': 1000.0 * 1000 / 1024,
    'm': 1024,
    'mib': 1024,
    'gb': 1000.0 * 1000 * 1000 / 1024,
    'g': 1024 * 1024,
    'gib': 1024 * 1024,
}


class StorageDevice(object):

    def __init__(self, target, bus=None, source=None, device='disk'):
        self.target = target
        self.bus = bus
        self.source = source
        self.device = device

    def __repr__(self):
        return ('<StorageDevice target=%s bus=%s source=%s>' %
                (self.target, self.bus, self.source))


class NetworkDevice(object):

    def __init__(self, type, source=None, mac=None, model=None):
        self.type = type
        self.source = source
        self.mac = mac
        self.model = model

    def __repr__(self):
        return ('<NetworkDevice type=%s source=%s mac=%s>' %
                (self.type, self.source, self.mac))


class DomainDocument(object):
    """
    Wrapper around a parsed domain XML tree.

    Only ``name``, ``uuid``, ``memory``, ``currentMemory``, ``vcpu`` and the
    device lists are modelled. Every other element of the document is kept
    as parsed, so a document can be dumped, changed and redefined without
    losing anything.
    """

    def __init__(self, element):
        # type: (ET.Element) -> None
        if element.tag != 'domain':
            raise InvalidConfigurationError(
                'Expected a domain document, got <%s>' % (element.tag))

        self.element = element

    @classmethod
    def parse(cls, text):
        # type: (str) -> DomainDocument
        try:
            element = ET.fromstring(text.strip())
        except ET.ParseError as e:
            raise InvalidConfigurationError(
                'Parsing domain document: %s' % (e))

        return cls(element)

    def to_xml(self):
        # type: () -> str
        return to_string(self.element)

    @property
    def domain_type(self):
        return self.element.get('type')

    @property
    def name(self):
        return findtext(self.element, 'name')

    @name.setter
    def name(self, value):
        ensure_child(self.element, 'name', index=0).text = value

    @property
    def uuid(self):
        return findtext(self.element, 'uuid')

    @property
    def boot_type(self):
        return findtext(self.element, 'os/type')

    @property
    def memory_kib(self):
        # type: () -> int
        return self._read_kib('memory')

    @property
    def current_memory_kib(self):
        # type: () -> int
        element = self.element.find('currentMemory')
        if element is None:
            return self.memory_kib
        return self._read_kib('currentMemory')

    @property
    def memory_mb(self):
        # type: () -> int
        return kib_to_mb(self.memory_kib)

    @memory_mb.setter
    def memory_mb(self, value):
        # type: (int) -> None
        kib = mb_to_kib(value)

        for tag in ['memory', 'currentMemory']:
            element = ensure_child(self.element, tag)
            element.set('unit', 'KiB')
            element.text = str(kib)

    @property
    def vcpus(self):
        # type: () -> int
        return findint(self.element, 'vcpu', default=1)

    @vcpus.setter
    def vcpus(self, value):
        # type: (int) -> None
        ensure_child(self.element, 'vcpu').text = str(int(value))

    @property
    def storage_devices(self):
        # type: () -> List[StorageDevice]
        devices = []

        for disk in findall(self.element, 'devices/disk'):
            target = disk.find('target')
            source = disk.find('source')
            devices.append(StorageDevice(
                target=target.get('dev') if target is not None else None,
                bus=target.get('bus') if target is not None else None,
                source=source.get('file') if source is not None else None,
                device=disk.get('device', 'disk')))

        return devices

    @property
    def network_devices(self):
        # type: () -> List[NetworkDevice]
        devices = []

        for iface in findall(self.element, 'devices/interface'):
            iface_type = iface.get('type')
            source = iface.find('source')
            mac = iface.find('mac')
            model = iface.find('model')
            devices.append(NetworkDevice(
                type=iface_type,
                source=source.get(iface_type) if source is not None else None,
                mac=mac.get('address') if mac is not None else None,
                model=model.get('type') if model is not None else None))

        return devices

    def add_disk(self, path, target, bus, driver_type='qcow2'):
        # type: (str, str, str, str) -> None
        disk = ET.SubElement(self._devices(), 'disk',
                             {'type': 'file', 'device': 'disk'})
        ET.SubElement(disk, 'driver', {'name': 'qemu', 'type': driver_type})
        ET.SubElement(disk, 'source', {'file': path})
        ET.SubElement(disk, 'target', {'dev': target, 'bus': bus})

    def add_interface(self, type, source, mac=None, model='virtio'):
        # type: (str, str, Optional[str], str) -> None
        iface = ET.SubElement(self._devices(), 'interface', {'type': type})
        if mac:
            ET.SubElement(iface, 'mac', {'address': mac})
        ET.SubElement(iface, 'source', {type: source})
        ET.SubElement(iface, 'model', {'type': model})

    def _devices(self):
        return ensure_child(self.element, 'devices')

    def _read_kib(self, tag):
        element = self.element.find(tag)

        if element is None or not (element.text or '').strip():
            return 0

        unit = element.get('unit', 'KiB').lower()
        if unit not in MEMORY_UNITS:
            raise InvalidConfigurationError(
                'Unknown memory unit "%s" in <%s>' % (unit, tag))

        return int(int(element.text.strip()) * MEMORY_UNITS[unit])

    def __repr__(self):
        return ('<DomainDocument name=%s memory_mb=%d vcpus=%d>' %
                (self.name, self.memory_mb, self.vcpus))


def render(template, name, memory_mb, vcpus, **kwargs):
    # type: (str, str, int, int, **str) -> DomainDocument
    """
    Fill a template below and return the parsed document.

    Text values are escaped, ``memory_mb`` is converted to KiB.
    """
    values = dict((k, _escape(v)) for k, v in kwargs.items())
    values.update({
        'name': _escape(name),
        'memory_kib': mb_to_kib(memory_mb),
        'vcpus': int(vcpus),
    })
    return DomainDocument.parse(template % values)


# Container family
LXC_TEMPLATE = '''
<domain type='lxc'>
  <name>%(name)s</name>
  <memory unit='KiB'>%(memory_kib)d</memory>
  <currentMemory unit='KiB'>%(memory_kib)d</currentMemory>
  <vcpu placement='static'>%(vcpus)d</vcpu>
  <os>
    <type arch='x86_64'>exe</type>
    <init>/sbin/init</init>
  </os>
  <devices>
    <emulator>/usr/lib/libvirt/libvirt_lxc</emulator>
    <console type='pty'/>
  </devices>
</domain>
'''

# VirtualBox has no emulator, timers or memory balloon
VBOX_TEMPLATE = '''
<domain type='vbox'>
  <name>%(name)s</name>
  <memory unit='KiB'>%(memory_kib)d</memory>
  <currentMemory unit='KiB'>%(memory_kib)d</currentMemory>
  <vcpu placement='static'>%(vcpus)d</vcpu>
  <os>
    <type arch='x86_64'>hvm</type>
    <boot dev='hd'/>
  </os>
  <features>
    <acpi/>
    <apic/>
  </features>
  <clock offset='utc'/>
  <on_poweroff>destroy</on_poweroff>
  <on_reboot>restart</on_reboot>
  <on_crash>destroy</on_crash>
  <devices>
    <graphics type='rdp' autoport='yes'/>
  </devices>
</domain>
'''

KVM_TEMPLATE = '''
<domain type='%(domain_type)s'>
  <name>%(name)s</name>
  <memory unit='KiB'>%(memory_kib)d</memory>
  <currentMemory unit='KiB'>%(memory_kib)d</currentMemory>
  <vcpu placement='static'>%(vcpus)d</vcpu>
  <os>
    <type arch='x86_64' machine='pc'>hvm</type>
    <boot dev='hd'/>
  </os>
  <features>
    <acpi/>
    <apic/>
  </features>
  <cpu mode='host-passthrough'/>
  <clock offset='utc'>
    <timer name='rtc' tickpolicy='catchup'/>
    <timer name='pit' tickpolicy='delay'/>
    <timer name='hpet' present='no'/>
  </clock>
  <on_poweroff>destroy</on_poweroff>
  <on_reboot>restart</on_reboot>
  <on_crash>destroy</on_crash>
  <devices>
    <emulator>/usr/bin/qemu-system-x86_64</emulator>
    <controller type='usb' index='0' model='ich9-ehci1'/>
    <controller type='usb' index='0' model='ich9-uhci1'/>
    <controller type='pci' index='0' model='pci-root'/>
    <input type='tablet' bus='usb'/>
    <input type='mouse' bus='ps2'/>
    <input type='keyboard' bus='ps2'/>
    <graphics type='vnc' port='-1' autoport='yes'/>
    <video>
      <model type='cirrus' vram='16384' heads='1'/>
    </video>
    <memballoon model='virtio'/>
  </devices>
</domain>
'''

# Bootable template registered for an imported stemcell
STEMCELL_TEMPLATE = '''
<domain type='%(domain_type)s'>
  <name>%(name)s</name>
  <memory unit='KiB'>%(memory_kib)d</memory>
  <currentMemory unit='KiB'>%(memory_kib)d</currentMemory>
  <vcpu>%(vcpus)d</vcpu>
  <os>
    <type arch='x86_64'>hvm</type>
    <boot dev='hd'/>
  </os>
  <devices>
    <disk type='file' device='disk'>
      <driver name='qemu' type='qcow2'/>
      <source file='%(disk_path)s'/>
      <target dev='vda' bus='virtio'/>
    </disk>
    <interface type='network'>
      <source network='default'/>
      <model type='virtio'/>
    </interface>
  </devices>
</domain>
'''


def _escape(value):
    return escape(str(value), {"'": '&apos;', '"': '&quot;'})
