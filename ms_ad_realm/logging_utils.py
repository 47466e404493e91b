# Created in August 2021
#
# Author: Azaria Zornberg
#
# Copyright 2021 - 2021 Azaria Zornberg
#
# This file is part of ms_ad_realm
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import logging

_ad_logger = None
_deprecation_logger = None


def configure_log_level(level: str):
    """ Set the log level of the AD realm logger
    :param level: The lowest log severity to be recorded.
    """
    get_logger().setLevel(level)


def disable_logging():
    """ Disable logging entirely for the AD realm logger """
    get_logger().propagate = False


def enable_logging():
    """ Enable logging for the AD realm logger """
    get_logger().propagate = True


def get_logger():
    """ Retrieve the AD realm logger for this package. If it has not been declared, then declare it. """
    global _ad_logger
    if _ad_logger is not None:
        return _ad_logger
    logger = logging.getLogger('ms_ad_realm')
    # by default, only log info+
    logger.setLevel(logging.INFO)
    _ad_logger = logger
    return _ad_logger


def get_deprecation_logger():
    """ Retrieve the logger used for deprecation notices about realm configuration. It is a child of the
    package logger, so it follows the package logger's level and propagation unless configured separately.
    """
    global _deprecation_logger
    if _deprecation_logger is not None:
        return _deprecation_logger
    _deprecation_logger = get_logger().getChild('deprecation')
    return _deprecation_logger
