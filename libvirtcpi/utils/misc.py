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

import os
import uuid

from libvirtcpi.common.types import InvalidConfigurationError

__all__ = [
    "generate_id",
    "check_id",
    "mb_to_kib",
    "kib_to_mb",
    "random_mac",
    "mac_to_string",
]

KIB_PER_MIB = 1024


def generate_id(prefix):
    """
    Return a new resource id such as ``vm-3f2b...``.
    """
    return '%s-%s' % (prefix, uuid.uuid4())


def check_id(id):
    """
    Return ``id`` when it names exactly one entry of a store directory.

    :raises InvalidConfigurationError: for empty ids, ids containing a path
                                       separator, ``.`` and ``..``.
    """
    if not id or '/' in id or id in ('.', '..'):
        raise InvalidConfigurationError('Invalid resource id "%s"' % (id))
    return id


def mb_to_kib(megabytes):
    """
    Convert a size in MB (as used in cloud properties) to the KiB the
    hypervisor expects.
    """
    return int(megabytes) * KIB_PER_MIB


def kib_to_mb(kibibytes):
    return int(kibibytes) // KIB_PER_MIB


def random_mac():
    """
    Return 6 random bytes usable as a MAC address.

    The first byte has the multicast bit cleared and the locally
    administered bit set, so the address is a valid private unicast one.
    """
    buf = bytearray(os.urandom(6))
    buf[0] = (buf[0] & 0xfe) | 0x02
    return bytes(buf)


def mac_to_string(buf):
    return ':'.join('%02x' % b for b in bytearray(buf))
