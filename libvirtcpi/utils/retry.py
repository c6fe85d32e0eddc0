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

import time
from functools import wraps
import logging

from libvirtcpi.common.types import RetryableError
from libvirtcpi.common.types import RetryLimitExceededError

__all__ = [
    "Retry",
    "NoRetry",
]

_logger = logging.getLogger(__name__)

# Constants used by the ``Retry`` class
# All the time values (delay, backoff) are in seconds
DEFAULT_ATTEMPTS = 10  # default number of attempts
DEFAULT_DELAY = 0.5  # default sleep delay used between attempts
DEFAULT_BACKOFF = 1  # retry backup multiplier
RETRY_EXCEPTIONS = (RetryableError,)


class Retry(object):
    def __init__(
        self,
        max_attempts=DEFAULT_ATTEMPTS,
        retry_delay=DEFAULT_DELAY,
        backoff=DEFAULT_BACKOFF,
        retry_exceptions=RETRY_EXCEPTIONS,
    ):
        """
        Wrapper around an operation which re-invokes it while it raises a
        transient error.

        The operation is called at most ``max_attempts`` times. Any exception
        which is not one of ``retry_exceptions`` is raised immediately. When
        the last attempt still fails transiently,
        :class:`RetryLimitExceededError` is raised with the last error
        attached.

        :param max_attempts: maximum number of attempts (at least one).
        :param retry_delay: delay between the attempts.
        :param backoff: multiplier applied to the delay after each attempt.
        :param retry_exceptions: types of exceptions to retry on.

        :Example:

        retry_request = Retry(max_attempts=3, retry_delay=1, backoff=1)
        retry_request(runner.execute)('virsh', ['list'])
        """

        if max_attempts is None:
            max_attempts = DEFAULT_ATTEMPTS
        if retry_delay is None:
            retry_delay = DEFAULT_DELAY
        if backoff is None:
            backoff = DEFAULT_BACKOFF
        if retry_exceptions is None:
            retry_exceptions = RETRY_EXCEPTIONS

        self.max_attempts = max(int(max_attempts), 1)
        self.retry_delay = max(retry_delay, 0)
        self.backoff = backoff
        self.retry_exceptions = retry_exceptions

    def __call__(self, func):
        @wraps(func)
        def retry_loop(*args, **kwargs):
            current_delay = self.retry_delay
            last_exc = None

            for attempt in range(1, self.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    if not self.should_retry(exc):
                        raise

                    last_exc = exc
                    _logger.debug('Attempt %d/%d failed: %s', attempt,
                                  self.max_attempts, exc)

                    if attempt < self.max_attempts:
                        time.sleep(current_delay)
                        current_delay *= self.backoff

            raise RetryLimitExceededError(self.max_attempts, last_exc)

        return retry_loop

    def retry(self, operation):
        """
        Invoke ``operation`` (a callable without arguments) under this
        policy and return its result.
        """
        return self(operation)()

    def should_retry(self, exception):
        return isinstance(exception, tuple(self.retry_exceptions))


class NoRetry(Retry):
    """
    Policy which calls the operation exactly once.
    """

    def __init__(self):
        super(NoRetry, self).__init__(max_attempts=1, retry_delay=0)
