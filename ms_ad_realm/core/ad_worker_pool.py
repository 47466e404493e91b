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

import asyncio
import threading

# directory interactions are IO-bounded, not CPU-bounded. most of our time is spent waiting on
# replies, so we use a thread pool instead of a process pool
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable

from ms_ad_realm import logging_utils
from ms_ad_realm.environment.constants import (
    DEFAULT_WORKER_POOL_SIZE,
    WORKER_THREAD_NAME_PREFIX,
)

logger = logging_utils.get_logger()


class ADWorkerPool:
    """ A bounded pool of threads that blocking directory operations (connecting, binding, searching)
    are handed off to, so that coroutines awaiting them never block the event loop.
    """

    def __init__(self, max_workers: int = DEFAULT_WORKER_POOL_SIZE):
        if max_workers <= 0:
            raise ValueError('The worker pool size must be positive, not {}'.format(max_workers))
        self.max_workers = max_workers
        self._thread_state = threading.local()
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix=WORKER_THREAD_NAME_PREFIX,
                                            initializer=self._mark_worker_thread)

    def _mark_worker_thread(self):
        self._thread_state.is_worker = True

    def is_worker_thread(self) -> bool:
        """ Returns true if the calling thread is one of this pool's workers """
        return getattr(self._thread_state, 'is_worker', False)

    async def run(self, fn: Callable, *args, **kwargs):
        """ Run a blocking function and return its result.
        If we're already on one of our worker threads (e.g. an event loop is being driven from a worker),
        the function is run inline, since handing it off again would only add a thread hop. Otherwise it's
        handed off to the pool and awaited. Exceptions raised by the function propagate to the caller.
        """
        if self.is_worker_thread():
            return fn(*args, **kwargs)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(fn, *args, **kwargs))

    def shutdown(self, wait: bool = True):
        logger.debug('Shutting down AD worker pool with %s workers', self.max_workers)
        self._executor.shutdown(wait=wait)

    def __repr__(self):
        return 'ADWorkerPool(max_workers={})'.format(self.max_workers)
