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

import errno
import unittest

from libvirtcpi.common.process import BaseRunner
from libvirtcpi.common.process import CommandResult
from libvirtcpi.compute.hypervisors import QemuHypervisor
from libvirtcpi.compute.drivers.libvirt_driver import LibvirtDriver
from libvirtcpi.utils.retry import Retry

__all__ = [
    'unittest',
    'CPITestCase',
    'MockRunner',
    'make_driver'
]

MISSING_DOMAIN_OUTPUT = ("error: failed to get domain 'vm-1'\n"
                         "error: Domain not found: no domain with matching "
                         "name 'vm-1'\n")


class MockRunner(BaseRunner):
    """
    A scripted runner suitable for testing purposes.

    Responses are registered per binary with the leading arguments they
    answer to. The ``-c <uri>`` connection arguments of virsh are ignored
    while matching. Unmatched commands succeed with empty output.

    Files written with put() and upload() are kept in ``files``.
    """

    def __init__(self):
        self.calls = []
        self.files = {}
        self.uploads = []
        self._responses = []

    def on(self, path, args, output='', status=0, error=None, results=None):
        """
        Register a response.

        :param results: List of ``(output, status)`` tuples returned by
                        consecutive calls, the last one repeats.
        :param error: Exception raised instead of returning a result.
        """
        if results is None:
            results = [(output, status)]

        self._responses.insert(0, {'path': path, 'args': list(args),
                                   'results': list(results), 'error': error})

    def execute(self, path, args):
        args = [str(a) for a in args]
        self.calls.append((path, args))
        stripped = strip_connection(args)

        for response in self._responses:
            if response['path'] != path:
                continue
            if stripped[:len(response['args'])] != response['args']:
                continue

            if response['error'] is not None:
                raise response['error']

            results = response['results']
            output, status = results.pop(0) if len(results) > 1 else \
                results[0]
            return CommandResult(output, status)

        return CommandResult('', 0)

    def upload(self, local_path, remote_path):
        with open(local_path, 'rb') as fp:
            self.files[remote_path] = fp.read()
        self.uploads.append((local_path, remote_path))

    def put(self, path, contents):
        self.files[path] = contents

    def get(self, path):
        if path not in self.files:
            raise IOError(errno.ENOENT, 'No such file', path)
        return self.files[path]

    def commands(self, path='virsh'):
        """
        Return the arguments of every call to ``path`` without connection
        arguments.
        """
        return [strip_connection(args) for p, args in self.calls if p == path]

    def subcommands(self, path='virsh'):
        return [args[0] for args in self.commands(path) if args]


def strip_connection(args):
    if len(args) >= 2 and args[0] == '-c':
        return list(args[2:])
    return list(args)


def make_driver(runner, attempts=3, hypervisor=None, uri=None):
    retrier = Retry(max_attempts=attempts, retry_delay=0)
    return LibvirtDriver(runner, retrier=retrier,
                         hypervisor=hypervisor or QemuHypervisor(), uri=uri)


class CPITestCase(unittest.TestCase):

    def setUp(self):
        self.runner = MockRunner()
        self.driver = make_driver(self.runner)

    def assertCommand(self, expected, path='virsh'):
        commands = self.runner.commands(path)
        self.assertIn(list(expected), commands,
                      'expected %r among %r' % (expected, commands))

    def assertNoCommand(self, subcommand, path='virsh'):
        self.assertNotIn(subcommand, self.runner.subcommands(path))
