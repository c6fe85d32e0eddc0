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

import sys

from libvirtcpi.common.types import CPIError
from libvirtcpi.compute.store import Store
from libvirtcpi.test import unittest
from libvirtcpi.test import MockRunner


class StoreTestCase(unittest.TestCase):

    def setUp(self):
        self.runner = MockRunner()
        self.store = Store(self.runner, '/store/vms/vm-1')

    def test_json_round_trip(self):
        self.store.put_json('metadata.json', {'name': 'web/0', 'index': 0})

        self.assertEqual(self.runner.files['/store/vms/vm-1/metadata.json'],
                         b'{"index": 0, "name": "web/0"}')
        self.assertEqual(self.store.get_json('metadata.json'),
                         {'name': 'web/0', 'index': 0})

    def test_get_missing_file(self):
        self.assertRaises(IOError, self.store.get, 'env.json')

    def test_get_corrupted_json(self):
        self.store.put('env.json', b'{"agent_id": ')
        self.assertRaises(CPIError, self.store.get_json, 'env.json')

    def test_delete(self):
        self.store.delete()
        self.assertEqual(self.runner.commands('rm'),
                         [['-rf', '/store/vms/vm-1']])

        self.runner.on('rm', [], status=1, output='Read-only file system\n')
        self.assertRaises(CPIError, self.store.delete)


if __name__ == '__main__':
    sys.exit(unittest.main())
