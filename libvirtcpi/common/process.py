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
Running external programs and classifying their results.
"""

from typing import List
from typing import Optional

import os
import shlex
import shutil
import logging
import subprocess

from libvirtcpi.common.types import CommandError
from libvirtcpi.common.types import CorruptedInstallationError
from libvirtcpi.common.types import RetryableError
from libvirtcpi.utils.retry import Retry

__all__ = [
    'CommandResult',
    'RunnerError',
    'BaseRunner',
    'LocalRunner',
    'ExecuteOptions',
    'CommandExecutor'
]

log = logging.getLogger('libvirtcpi.common.process')

# Exit status of a shell when the binary exists but cannot be executed
CORRUPTED_INSTALLATION_STATUS = 126


class CommandResult(object):
    """
    Combined output and exit status of a finished process.
    """

    def __init__(self, output, status):
        # type: (str, int) -> None
        self.output = output
        self.status = status

    def __eq__(self, other):
        return (isinstance(other, CommandResult) and
                self.output == other.output and self.status == other.status)

    def __repr__(self):
        return '<CommandResult status=%d output=%r>' % (self.status,
                                                        self.output)


class RunnerError(OSError):
    """
    The process could not be started or communicated with.
    """
    pass


class BaseRunner(object):
    """
    Base class for running commands and moving files on the host where
    libvirt runs.

    :cvar log: file-like object command transcripts are written to.
    """

    log = None

    def execute(self, path, args):
        # type: (str, List[str]) -> CommandResult
        """
        Run ``path`` with ``args`` to completion.

        :return: Combined stdout/stderr and the exit status.
        :rtype: :class:`CommandResult`

        :raises RunnerError: when the process can not be started.
        """
        raise NotImplementedError(
            'execute not implemented for this runner')

    def upload(self, local_path, remote_path):
        # type: (str, str) -> None
        raise NotImplementedError(
            'upload not implemented for this runner')

    def put(self, path, contents):
        # type: (str, bytes) -> None
        raise NotImplementedError(
            'put not implemented for this runner')

    def get(self, path):
        # type: (str) -> bytes
        raise NotImplementedError(
            'get not implemented for this runner')

    def close(self):
        pass

    def _log_command(self, command, result):
        if not self.log:
            return

        self.log.write(' '.join(shlex.quote(c) for c in command) + '\n')
        self.log.write("# returncode is %d\n" % result.status)
        self.log.write("# -------- begin output ----------\n")
        self.log.write(result.output)
        self.log.write("# -------- end ----------\n")


class LocalRunner(BaseRunner):
    """
    Runs commands as local processes.
    """

    def execute(self, path, args):
        command = [path] + list(args)

        try:
            p = subprocess.Popen(command, stdin=subprocess.DEVNULL,
                                 stdout=subprocess.PIPE,
                                 stderr=subprocess.STDOUT)
            stdout, _ = p.communicate()
        except OSError as exc:
            raise RunnerError(exc.errno, 'Running %s: %s' % (path, exc))

        result = CommandResult(stdout.decode('utf-8', errors='replace'),
                               p.returncode)
        self._log_command(command, result)
        return result

    def upload(self, local_path, remote_path):
        if os.path.abspath(local_path) == os.path.abspath(remote_path):
            return

        os.makedirs(os.path.dirname(remote_path) or '.', exist_ok=True)
        shutil.copyfile(local_path, remote_path)

    def put(self, path, contents):
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)

        with open(path, 'wb') as fp:
            fp.write(contents)

    def get(self, path):
        with open(path, 'rb') as fp:
            return fp.read()


class ExecuteOptions(object):

    def __init__(self, ignore_non_zero_exit_status=False):
        # type: (bool) -> None
        self.ignore_non_zero_exit_status = ignore_non_zero_exit_status


class CommandExecutor(object):
    """
    Runs a binary through a runner and turns the textual result into
    either the output or an exception.

    * launch failures are retried according to ``retrier``
    * a non-zero exit status whose output matches ``not_ready_patterns`` is
      retried as well
    * exit status 126 raises :class:`CorruptedInstallationError`
    * any other non-zero exit status raises :class:`CommandError` unless
      the caller opted out through :class:`ExecuteOptions`
    * a zero exit status whose output matches ``error_patterns`` still
      raises :class:`CommandError`
    """

    name = 'Command'

    not_ready_patterns = []  # type: List[str]
    error_patterns = ['error:']

    def __init__(self, runner, retrier=None, bin_path=None,
                 not_ready_patterns=None, error_patterns=None):
        # type: (BaseRunner, Optional[Retry], Optional[str], Optional[List[str]], Optional[List[str]]) -> None
        self.runner = runner
        self.retrier = retrier or Retry()
        self.bin_path = bin_path

        if not_ready_patterns is not None:
            self.not_ready_patterns = list(not_ready_patterns)
        if error_patterns is not None:
            self.error_patterns = list(error_patterns)

    def execute(self, *args):
        # type: (*str) -> str
        return self.execute_complex(args, ExecuteOptions())

    def execute_complex(self, args, opts):
        # type: (List[str], ExecuteOptions) -> str
        return self.run(args, opts).output

    def run(self, args, opts):
        # type: (List[str], ExecuteOptions) -> CommandResult
        """
        Like :meth:`execute_complex` but returns the whole
        :class:`CommandResult`, so callers ignoring non-zero exit statuses
        can still look at the status.
        """
        args = [str(a) for a in args]
        full_args = self._full_args(args)

        def run_once():
            try:
                result = self.runner.execute(self.bin_path, full_args)
            except OSError as exc:
                raise RetryableError(
                    exc, value='Executing %s %s: %s' %
                    (self.bin_path, ' '.join(args), exc))

            output = result.output.replace('\r\n', '\n')

            if (result.status != 0 and
                    self._matches(self.not_ready_patterns, output)):
                error = CommandError(args, result.status, output)
                raise RetryableError(
                    error, value='%s not ready: %s' % (self.name, error))

            return CommandResult(output, result.status)

        result = self.retrier.retry(run_once)
        output, status = result.output, result.status

        if status != 0:
            if status == CORRUPTED_INSTALLATION_STATUS:
                raise CorruptedInstallationError(args, status, output)
            errored = not opts.ignore_non_zero_exit_status
        else:
            # Sometimes commands fail but don't return non-zero exit code
            errored = self._matches(self.error_patterns, output)
            if errored:
                log.debug('Error text found in output, assuming error.',
                          extra={'_cmd': ' '.join(args)})

        if errored:
            raise CommandError(args, status, output)

        return result

    def _full_args(self, args):
        # type: (List[str]) -> List[str]
        return list(args)

    def _matches(self, patterns, output):
        # type: (List[str], str) -> bool
        return any(pattern in output for pattern in patterns)
