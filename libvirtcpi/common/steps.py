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
Ordered multi-step operations with explicit compensating actions.
"""

from typing import Callable
from typing import List
from typing import Optional

import logging

from libvirtcpi.common.types import StepError

__all__ = [
    'Step',
    'MultiStep'
]

log = logging.getLogger('libvirtcpi.common.steps')


class Step(object):
    """
    A single named unit of work.

    :param name: Human readable description, reported when the step fails.
    :param action: Callable without arguments performing the work.
    :param cleanup: Optional callable undoing the work. It is only invoked
                    when a later step (or this one) fails.
    """

    def __init__(self, name, action, cleanup=None):
        # type: (str, Callable, Optional[Callable]) -> None
        self.name = name
        self.action = action
        self.cleanup = cleanup

    def run(self):
        return self.action()

    def __repr__(self):
        return '<Step name=%s>' % (self.name)


class MultiStep(object):
    """
    Runs a list of steps in order.

    The first failing step aborts the sequence and is raised as
    :class:`StepError`. Before raising, the cleanup actions of the failed
    step and of all completed steps run in reverse order. Cleanup failures
    are logged and never replace the original error.
    """

    def __init__(self, add=None):
        # type: (Optional[List[Step]]) -> None
        self.steps = []  # type: List[Step]
        self.add(add)

    def add(self, add):
        """
        Add a step or a list of steps.

        :type add: :class:`Step` or ``list`` of :class:`Step`
        """
        if add is not None:
            add = add if isinstance(add, (list, tuple)) else [add]
            self.steps.extend(add)

    def run(self):
        attempted = []  # type: List[Step]

        for step in self.steps:
            attempted.append(step)

            try:
                step.run()
            except Exception as exc:
                self._cleanup(attempted)
                raise StepError(step.name, exc)

    def _cleanup(self, steps):
        for step in reversed(steps):
            if step.cleanup is None:
                continue

            try:
                step.cleanup()
            except Exception as exc:
                log.error('Cleaning up after step "%s" failed: %s',
                          step.name, exc)
