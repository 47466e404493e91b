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

from ldap3 import Connection
from typing import Dict, List, Optional

from ms_ad_realm import logging_utils
from ms_ad_realm.core.ad_connections import ADConnectionPool, ConnectionHandle, PoolLeaseLimiter
from ms_ad_realm.core.ad_resolvers import ADGroupsResolver, ADMetadataResolver
from ms_ad_realm.core.ad_worker_pool import ADWorkerPool

logger = logging_utils.get_logger()


class LdapSession:

    def __init__(self, user_dn: str, worker_pool: ADWorkerPool, groups_resolver: ADGroupsResolver,
                 metadata_resolver: ADMetadataResolver, connection_handle: ConnectionHandle = None,
                 connection_pool: ADConnectionPool = None, connection_leases: PoolLeaseLimiter = None):
        """ A user that has been found in the directory, along with a way to keep asking the directory
        about them.
        Exactly one of connection_handle and connection_pool should be given. A session made from a pool
        borrows a pooled connection for each lookup. A session made from a handle owns that connection
        until the session is closed.
        :param user_dn: The distinguished name of the user.
        :param worker_pool: The pool of threads that blocking directory lookups run on.
        :param groups_resolver: Used to look up the user's groups.
        :param metadata_resolver: Used to look up extra attributes of the user.
        :param connection_handle: A connection owned by this session.
        :param connection_pool: A pool to borrow connections from.
        :param connection_leases: Limits how many borrowers of the pool there are at once. Waiting for a
                                  lease happens on the event loop rather than on a worker thread.
        """
        if (connection_handle is None) == (connection_pool is None):
            raise ValueError('A session needs exactly one of a connection handle or a connection pool')
        self.user_dn = user_dn
        self.worker_pool = worker_pool
        self.groups_resolver = groups_resolver
        self.metadata_resolver = metadata_resolver
        self._connection_handle = connection_handle
        self._connection_pool = connection_pool
        self._connection_leases = connection_leases

    def get_user_dn(self) -> str:
        return self.user_dn

    def is_pooled(self) -> bool:
        return self._connection_pool is not None

    def is_closed(self) -> bool:
        return self._connection_handle is not None and self._connection_handle.is_released()

    def get_ldap_connection(self) -> Optional[Connection]:
        """ Returns the connection owned by this session, or None for pooled sessions, which don't hold one """
        if self._connection_handle is None:
            return None
        return self._connection_handle.get_ldap_connection()

    def get_connection_pool(self) -> Optional[ADConnectionPool]:
        return self._connection_pool

    async def find_groups(self) -> List[str]:
        """ Returns the distinguished names of all groups the user is a member of, directly or through
        other groups.
        """
        return await self._run_with_connection(self.groups_resolver.resolve)

    async def find_metadata(self) -> Dict[str, object]:
        return await self._run_with_connection(self.metadata_resolver.resolve)

    async def _run_with_connection(self, resolve):
        if self._connection_pool is None:
            if self._connection_handle.is_released():
                raise ValueError('Session for {} has been closed'.format(self.user_dn))
            return await self.worker_pool.run(resolve, self._connection_handle.get_ldap_connection(), self.user_dn)
        if self._connection_leases is not None:
            await self._connection_leases.acquire()
        try:
            ldap_connection = await self.worker_pool.run(self._connection_pool.acquire)
            try:
                return await self.worker_pool.run(resolve, ldap_connection, self.user_dn)
            finally:
                await self.worker_pool.run(self._connection_pool.release, ldap_connection)
        finally:
            if self._connection_leases is not None:
                self._connection_leases.release()

    async def close(self):
        """ Close the session's connection, if it owns one. Closing more than once does nothing. """
        if self._connection_handle is not None and not self._connection_handle.is_released():
            logger.debug('Closing session for %s', self.user_dn)
            await self.worker_pool.run(self._connection_handle.release)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self):
        return 'LdapSession(user_dn={}, pooled={})'.format(self.user_dn, self.is_pooled())

    def __str__(self):
        return self.__repr__()
