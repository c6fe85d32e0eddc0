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
Runner which executes commands on a remote libvirt host over SSH.
"""

from typing import List
from typing import Optional

try:
    import paramiko
except ImportError:
    paramiko = None

import io
import time
import shlex
import logging
import posixpath

from libvirtcpi.common.process import BaseRunner
from libvirtcpi.common.process import CommandResult
from libvirtcpi.common.process import RunnerError

__all__ = [
    'SSHRunner'
]

log = logging.getLogger('libvirtcpi.compute.ssh')


class SSHRunner(BaseRunner):
    """
    A runner powered by Paramiko.

    The connection is opened on first use. Every argument is shell quoted,
    stderr is merged into the combined output and files are transferred
    over SFTP.
    """

    # Maximum number of bytes to read at once from a socket
    CHUNK_SIZE = 4096

    # How long to sleep while waiting for command to finish (to prevent busy
    # waiting)
    SLEEP_DELAY = 0.2

    def __init__(self,
                 hostname,  # type: str
                 username,  # type: str
                 private_key,  # type: str
                 port=22,  # type: int
                 timeout=None  # type: Optional[float]
                 ):
        if paramiko is None:
            raise RuntimeError('paramiko is required for remote hosts')

        self.hostname = hostname
        self.username = username
        self.private_key = private_key
        self.port = port
        self.timeout = timeout

        self.client = None
        # This object is lazily created on first SFTP operation
        self.sftp_client = None

    def connect(self):
        if self.client is not None:
            return True

        conninfo = {'hostname': self.hostname,
                    'port': self.port,
                    'username': self.username,
                    'pkey': self._get_pkey_object(self.private_key),
                    'allow_agent': False,
                    'look_for_keys': False}

        if self.timeout:
            conninfo['timeout'] = self.timeout

        extra = {'_hostname': self.hostname, '_port': self.port,
                 '_username': self.username}
        log.debug('Connecting to server', extra=extra)

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(**conninfo)
        except paramiko.SSHException as exc:
            raise RunnerError(None, 'Connecting to %s: %s' %
                              (self.hostname, exc))

        self.client = client
        return True

    def execute(self, path, args):
        # type: (str, List[str]) -> CommandResult
        command = [path] + list(args)
        cmd = ' '.join(shlex.quote(c) for c in command)

        log.debug('Executing command', extra={'_cmd': cmd})

        self.connect()

        try:
            chan = self.client.get_transport().open_session()
            chan.set_combine_stderr(True)
            chan.exec_command(cmd)
        except paramiko.SSHException as exc:
            self.close()
            raise RunnerError(None, 'Running %s: %s' % (path, exc))

        output = self._consume_channel(chan)

        # Receive the exit status code of the command we ran.
        status = chan.recv_exit_status()  # type: int
        chan.close()

        log.debug('Command finished',
                  extra={'_status': status, '_output': output})

        result = CommandResult(output, status)
        self._log_command(command, result)
        return result

    def upload(self, local_path, remote_path):
        log.debug('Uploading file',
                  extra={'_src': local_path, '_dst': remote_path})

        self._mkdir_p(posixpath.dirname(remote_path))
        self._get_sftp_client().put(local_path, remote_path)

    def put(self, path, contents):
        log.debug('Writing file', extra={'_path': path})

        self._mkdir_p(posixpath.dirname(path))

        with self._get_sftp_client().file(path, mode='wb') as fp:
            fp.write(contents)

    def get(self, path):
        log.debug('Reading file', extra={'_path': path})

        with self._get_sftp_client().file(path, mode='rb') as fp:
            return fp.read()

    def close(self):
        if self.sftp_client:
            self.sftp_client.close()
            self.sftp_client = None

        if self.client:
            log.debug('Closing server connection')
            self.client.close()
            self.client = None

    def _mkdir_p(self, path):
        if not path:
            return

        result = self.execute('mkdir', ['-p', path])
        if result.status != 0:
            raise RunnerError(None, 'Creating directory %s: %s' %
                              (path, result.output))

    def _consume_channel(self, chan):
        """
        Read the whole combined output of a channel.

        Data is decoded at the end because a single chunk could contain a
        part of a multi byte UTF-8 character.
        """
        result_bytes = bytearray()

        while True:
            if chan.recv_ready():
                data = chan.recv(self.CHUNK_SIZE)
                if data:
                    result_bytes += data
                    continue

            # We need to check the exit status here, because the command
            # could print some output and exit right before it.
            if chan.exit_status_ready() and not chan.recv_ready():
                break

            # Short sleep to prevent busy waiting
            time.sleep(self.SLEEP_DELAY)

        return result_bytes.decode('utf-8', errors='replace')

    def _get_pkey_object(self, key):
        """
        Try to detect private key type and return paramiko.PKey object.
        """
        key_types = [paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key]

        for cls in key_types:
            try:
                return cls.from_private_key(io.StringIO(key))
            except paramiko.SSHException:
                continue

        raise ValueError('Invalid or unsupported private key')

    def _get_sftp_client(self):
        self.connect()

        if not self.sftp_client:
            self.sftp_client = self.client.open_sftp()

        return self.sftp_client
