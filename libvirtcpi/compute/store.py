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
Per resource file storage (``metadata.json``, ``env.json``, ...).
"""

import json
import posixpath

from libvirtcpi.common.types import CPIError

__all__ = [
    'Store'
]


class Store(object):
    """
    Files kept in the directory of a single resource.

    All access goes through the runner so the directory may live on a
    remote libvirt host.
    """

    def __init__(self, runner, path):
        self.runner = runner
        self.path = path

    def put(self, name, contents):
        # type: (str, bytes) -> None
        self.runner.put(self._file(name), contents)

    def get(self, name):
        # type: (str) -> bytes
        return self.runner.get(self._file(name))

    def put_json(self, name, value):
        self.put(name, json.dumps(value, sort_keys=True).encode('utf-8'))

    def get_json(self, name):
        try:
            return json.loads(self.get(name).decode('utf-8'))
        except ValueError as e:
            raise CPIError('Parsing %s: %s' % (self._file(name), e))

    def delete(self):
        result = self.runner.execute('rm', ['-rf', self.path])
        if result.status != 0:
            raise CPIError('Deleting store %s: %s' %
                           (self.path, result.output))

    def _file(self, name):
        return posixpath.join(self.path, name)

    def __repr__(self):
        return '<Store path=%s>' % (self.path)
