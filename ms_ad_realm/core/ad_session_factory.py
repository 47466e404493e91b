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

from typing import Optional

from ms_ad_realm import logging_utils
from ms_ad_realm.core.ad_authenticators import ADAuthenticatorSet
from ms_ad_realm.core.ad_connections import (
    ADConnectionFactory,
    ADConnectionPool,
    ConnectionHandle,
    DirectConnectionHandle,
    PooledConnectionHandle,
    PoolLeaseLimiter,
)
from ms_ad_realm.core.ad_realm_settings import ADRealmSettings
from ms_ad_realm.core.ad_resolvers import ADGroupsResolver, ADMetadataResolver
from ms_ad_realm.core.ad_session import LdapSession
from ms_ad_realm.core.ad_worker_pool import ADWorkerPool
from ms_ad_realm.core.netbios_cache import NetbiosDomainCache

logger = logging_utils.get_logger()


class ADSessionFactory:

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool = None,
                 connection_factory: ADConnectionFactory = None, connection_pool: ADConnectionPool = None,
                 domain_name_cache: NetbiosDomainCache = None):
        """ Authenticates users of an Active Directory realm and creates sessions for them.
        Whether searches use a shared pool of connections or a new connection per authentication is decided
        by the pool enabled setting.
        :param settings: The realm settings.
        :param worker_pool: The threads that blocking directory operations run on. If not specified, a pool
                            sized by the realm settings is created.
        :param connection_factory: Used to open connections. If not specified, one is created from the
                                   realm settings.
        :param connection_pool: The pool to use when pooling is enabled. If not specified and pooling is
                                enabled, one is created from the realm settings.
        :param domain_name_cache: The cache of netbios domain names. If not specified, a new one is created.
        """
        self.settings = settings
        self.worker_pool = worker_pool or ADWorkerPool(settings.worker_pool_size)
        self.connection_factory = connection_factory or ADConnectionFactory(settings)
        self.connection_pool = None
        self.connection_leases = None
        if settings.pool_enabled:
            self.connection_pool = connection_pool or ADConnectionPool(
                self.connection_factory, bind_dn=settings.bind_dn, bind_password=settings.bind_password,
                size=settings.pool_size, initial_size=settings.pool_initial_size,
                acquire_timeout_seconds=settings.tcp_connect_timeout_seconds)
            self.connection_leases = PoolLeaseLimiter(self.connection_pool.size,
                                                      timeout_seconds=settings.tcp_connect_timeout_seconds)
        self.authenticators = ADAuthenticatorSet(settings, self.worker_pool, self.connection_factory,
                                                 domain_name_cache)
        self.groups_resolver = ADGroupsResolver(settings.group_search_base_dn, settings.group_search_scope,
                                                settings.search_time_limit_seconds, settings.ignore_referral_errors)
        self.metadata_resolver = ADMetadataResolver(settings.metadata_attributes, settings.search_time_limit_seconds,
                                                    settings.ignore_referral_errors)
        logger.info('Created AD session factory for domain %s (pooled: %s)', settings.domain_name, self.is_pooled())

    def is_pooled(self) -> bool:
        return self.connection_pool is not None

    def supports_unauthenticated_session(self) -> bool:
        return True

    async def authenticate(self, username: str, password: str) -> LdapSession:
        """ Check a user's password and find their entry in the directory.
        :returns: A session for the user.
        :raises: AuthenticationFailedException if the password was rejected or the user couldn't be found.
        :raises: UsernameFormatException if the username is malformed for its format.
        :raises: DomainConnectException or DomainSearchException if the directory couldn't be used.
        :raises: DuplicateNameException if more than one entry matched the user.
        """
        authenticator = self.authenticators.get_authenticator(username)
        logger.debug('Authenticating %s with %s', username, authenticator)
        handle = await self._acquire_connection_handle()
        try:
            entry = await authenticator.authenticate(handle.get_ldap_connection(), username, password)
        except BaseException:
            await self._release_handle(handle)
            raise
        logger.info('Authenticated %s as %s', username, entry.distinguished_name)
        return await self._create_session(entry.distinguished_name, handle)

    async def resolve_without_credentials(self, username: str) -> Optional[LdapSession]:
        """ Find a user's entry without their password, as the service account or with the pool.
        :returns: A session for the user, or None if the user wasn't found or there's no identity that
                  searches could be done as.
        :raises: UsernameFormatException if the username is malformed for its format.
        :raises: DomainConnectException or DomainSearchException if the directory couldn't be used.
        :raises: DuplicateNameException if more than one entry matched the user.
        """
        if self.connection_pool is None and not self.settings.has_bind_dn():
            logger.debug('Cannot resolve %s without credentials; there is neither a service account nor a '
                         'connection pool', username)
            return None
        authenticator = self.authenticators.get_authenticator(username)
        authenticator.check_username_format(username)
        handle = await self._acquire_connection_handle()
        try:
            if not handle.is_pooled():
                await authenticator.bind_as_service_identity(handle.get_ldap_connection())
            entry = await authenticator.search_for_dn(handle.get_ldap_connection(), username)
        except BaseException:
            await self._release_handle(handle)
            raise
        if entry is None:
            await self._release_handle(handle)
            return None
        return await self._create_session(entry.distinguished_name, handle)

    async def _acquire_connection_handle(self) -> ConnectionHandle:
        if self.connection_pool is not None:
            await self.connection_leases.acquire()
            try:
                ldap_connection = await self.worker_pool.run(self.connection_pool.acquire)
            except BaseException:
                self.connection_leases.release()
                raise
            return PooledConnectionHandle(ldap_connection, self.connection_pool)
        ldap_connection = await self.worker_pool.run(self.connection_factory.open_connection)
        return DirectConnectionHandle(ldap_connection)

    async def _release_handle(self, handle: ConnectionHandle):
        released = await self.worker_pool.run(handle.release)
        if released and handle.is_pooled():
            self.connection_leases.release()

    async def _create_session(self, user_dn: str, handle: ConnectionHandle) -> LdapSession:
        if handle.is_pooled():
            # the connection goes back bound as whoever bound it last; the pool rebinds it when it's next used
            await self._release_handle(handle)
            return LdapSession(user_dn, self.worker_pool, self.groups_resolver, self.metadata_resolver,
                               connection_pool=self.connection_pool, connection_leases=self.connection_leases)
        return LdapSession(user_dn, self.worker_pool, self.groups_resolver, self.metadata_resolver,
                           connection_handle=handle)

    def close(self):
        """ Close the connection pool and stop the worker threads. Sessions created from this factory can't be
        used for lookups afterwards.
        """
        if self.connection_pool is not None:
            self.connection_pool.close()
        self.worker_pool.shutdown()

    def __repr__(self):
        return 'ADSessionFactory(domain={}, pooled={})'.format(self.settings.domain_name, self.is_pooled())
