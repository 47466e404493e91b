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

import threading

from collections import OrderedDict
from typing import Optional

from ms_ad_realm import logging_utils
from ms_ad_realm.environment.constants import NETBIOS_DOMAIN_CACHE_SIZE

logger = logging_utils.get_logger()


class NetbiosDomainCache:
    """ A bounded, thread-safe map of netbios domain names to the distinguished names of their domains.

    Entries are only ever added with put_if_absent, so once a name is mapped, that mapping is never
    changed; it can only be evicted when the cache is full, least recently used first. There's no expiry,
    because a domain's netbios name doesn't change without a rename, which is rare enough that a restart
    is an acceptable way to pick it up.
    Two callers resolving the same name at the same time may both do the lookup work, but only the first
    value committed is kept.
    """

    def __init__(self, max_size: int = NETBIOS_DOMAIN_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError('The netbios domain cache size must be positive, not {}'.format(max_size))
        self.max_size = max_size
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def get(self, netbios_name: str) -> Optional[str]:
        """ Returns the distinguished name cached for a netbios name, or None if it isn't cached. """
        with self._lock:
            domain_dn = self._entries.get(netbios_name)
            if domain_dn is not None:
                self._entries.move_to_end(netbios_name)
            return domain_dn

    def put_if_absent(self, netbios_name: str, domain_dn: str) -> str:
        """ Commit a mapping unless one already exists for the name.
        :returns: The value now held for the name, which is the existing value if one was already committed.
        """
        if domain_dn is None:
            raise ValueError('Cannot cache a missing distinguished name for netbios name {}'.format(netbios_name))
        with self._lock:
            existing = self._entries.get(netbios_name)
            if existing is not None:
                self._entries.move_to_end(netbios_name)
                return existing
            self._entries[netbios_name] = domain_dn
            if len(self._entries) > self.max_size:
                evicted_name, _ = self._entries.popitem(last=False)
                logger.debug('Evicted netbios name %s from the domain name cache', evicted_name)
            return domain_dn

    def invalidate_all(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, netbios_name: str) -> bool:
        with self._lock:
            return netbios_name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self):
        return 'NetbiosDomainCache(max_size={}, size={})'.format(self.max_size, len(self))
