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

from mock import Mock

from libvirtcpi.common.types import CPIError
from libvirtcpi.common.types import StepError
from libvirtcpi.common.steps import Step
from libvirtcpi.common.steps import MultiStep
from libvirtcpi.test import unittest


class MultiStepTestCase(unittest.TestCase):

    def test_runs_steps_in_order(self):
        order = []
        steps = MultiStep([Step('one', lambda: order.append(1))])
        steps.add(Step('two', lambda: order.append(2)))
        steps.add([Step('three', lambda: order.append(3))])

        steps.run()
        self.assertEqual(order, [1, 2, 3])

    def test_failure_names_step_and_stops(self):
        last = Mock()
        steps = MultiStep([
            Step('Halting VM', Mock()),
            Step('Undefining VM', Mock(side_effect=CPIError('denied'))),
            Step('Deleting VM store', last),
        ])

        with self.assertRaises(StepError) as ctx:
            steps.run()

        self.assertEqual(ctx.exception.step, 'Undefining VM')
        self.assertEqual(str(ctx.exception), 'Undefining VM: denied')
        self.assertFalse(last.called)

    def test_cleanups_run_in_reverse_order(self):
        order = []
        steps = MultiStep([
            Step('mkdir', Mock(), cleanup=lambda: order.append('rmdir')),
            Step('define', Mock(), cleanup=lambda: order.append('undefine')),
            Step('snapshot', Mock(side_effect=CPIError('no space'))),
        ])

        self.assertRaises(StepError, steps.run)
        self.assertEqual(order, ['undefine', 'rmdir'])

    def test_cleanup_failure_is_logged_not_raised(self):
        steps = MultiStep([
            Step('define', Mock(),
                 cleanup=Mock(side_effect=CPIError('cleanup broke'))),
            Step('snapshot', Mock(side_effect=CPIError('original'))),
        ])

        with self.assertLogs('libvirtcpi.common.steps', level='ERROR') as logs:
            with self.assertRaises(StepError) as ctx:
                steps.run()

        self.assertIsInstance(ctx.exception.cause, CPIError)
        self.assertEqual(str(ctx.exception.cause), 'original')
        self.assertIn('cleanup broke', logs.output[0])

    def test_no_cleanup_on_success(self):
        cleanup = Mock()
        MultiStep([Step('define', Mock(), cleanup=cleanup)]).run()
        self.assertFalse(cleanup.called)


if __name__ == '__main__':
    sys.exit(unittest.main())
