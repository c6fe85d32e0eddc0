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

from typing import Optional
from typing import Union
from typing import cast

from enum import Enum

__all__ = [
    "Type",
    "CPIError",
    "CommandError",
    "CorruptedInstallationError",
    "RetryableError",
    "RetryLimitExceededError",
    "InvalidConfigurationError",
    "StepError",
]


class Type(str, Enum):
    @classmethod
    def tostring(cls, value):
        # type: (Union[Enum, str]) -> str
        """Return the string representation of the state object attribute
        :param str value: the state object to turn into string
        :return: the uppercase string that represents the state object
        :rtype: str
        """
        value = cast(Enum, value)
        return str(value._value_).upper()

    @classmethod
    def fromstring(cls, value):
        # type: (str) -> str
        """Return the state object attribute that matches the string
        :param str value: the string to look up
        :return: the state object attribute that matches the string
        :rtype: str
        """
        return getattr(cls, value.upper(), None)

    def __eq__(self, other):
        if isinstance(other, Type):
            return other.value == self.value
        elif isinstance(other, str):
            return self.value == other

        return super(Type, self).__eq__(other)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return self.value

    def __hash__(self):
        return hash(self.value)


class CPIError(Exception):
    """The base class for other libvirtcpi exceptions"""

    output = ''

    def __init__(self, value):
        # type: (str) -> None
        super(CPIError, self).__init__(value)
        self.value = value

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return "<%s %r>" % (self.__class__.__name__, self.value)


class CommandError(CPIError):
    """
    Exception raised when a command finished but its result was classified
    as a failure.

    The full command, exit status and combined output are kept so callers
    can inspect the output (e.g. to detect a missing resource) and
    operators can correlate it with the hypervisor logs.
    """

    def __init__(self, command, status, output, value=None):
        # type: (list, int, str, Optional[str]) -> None
        self.command = list(command)
        self.status = status
        self.output = output

        if value is None:
            value = ("Error executing command:\nCommand: '%s'\n"
                     "Exit code: %d\nOutput: '%s'" %
                     (' '.join(self.command), status, output))

        super(CommandError, self).__init__(value)


class CorruptedInstallationError(CommandError):
    """
    The binary exists but could not be executed (exit status 126).
    """

    def __init__(self, command, status, output):
        # type: (list, int, str) -> None
        value = ("Most likely corrupted installation or missing "
                 "dependencies:\nCommand: '%s'\nExit code: %d\nOutput: '%s'" %
                 (' '.join(command), status, output))
        super(CorruptedInstallationError, self).__init__(
            command, status, output, value=value)


class RetryableError(CPIError):
    """
    Transient condition; the operation which raised it may succeed when
    retried.
    """

    def __init__(self, cause, value=None):
        self.cause = cause
        self.output = getattr(cause, 'output', '') or ''
        super(RetryableError, self).__init__(value or str(cause))


class RetryLimitExceededError(CPIError):
    """
    Raised once the retry policy gave up. ``last_error`` is the last
    transient failure, ``cause`` is what it wrapped.
    """

    def __init__(self, attempts, last_error):
        # type: (int, Exception) -> None
        self.attempts = attempts
        self.last_error = last_error
        self.cause = getattr(last_error, 'cause', last_error)
        self.output = getattr(last_error, 'output', '') or ''
        value = 'Giving up after %d attempt(s): %s' % (attempts, last_error)
        super(RetryLimitExceededError, self).__init__(value)


class InvalidConfigurationError(CPIError):
    """
    Configuration or logic error which retrying can never fix.
    """
    pass


class StepError(CPIError):
    """
    Failure of one step inside a multi-step operation.
    """

    def __init__(self, step, cause):
        # type: (str, Exception) -> None
        self.step = step
        self.cause = cause
        self.output = getattr(cause, 'output', '') or ''
        super(StepError, self).__init__('%s: %s' % (step, cause))
