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

import logging

__all__ = [
    'ExtraLogFormatter'
]

DEFAULT_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


class ExtraLogFormatter(logging.Formatter):
    """
    Log formatter which appends every attribute passed through ``extra``
    whose name starts with an underscore, e.g.

        logger.debug('Executing command', extra={'_cmd': 'virsh list'})

    is rendered as ``... Executing command (cmd=virsh list)``.
    """

    def __init__(self, fmt=DEFAULT_FORMAT, datefmt=None):
        super(ExtraLogFormatter, self).__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record):
        custom_attributes = dict([(k, v) for k, v in record.__dict__.items()
                                  if k.startswith('_')])
        msg = super(ExtraLogFormatter, self).format(record)

        if custom_attributes:
            msg = '%s (%s)' % (msg, self._dict_to_str(custom_attributes))

        return msg

    def _dict_to_str(self, dictionary):
        result = ['%s=%s' % (k[1:], str(v))
                  for k, v in sorted(dictionary.items())]
        return ','.join(result)
