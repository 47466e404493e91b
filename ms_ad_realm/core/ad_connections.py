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

from collections import deque
from ldap3 import (
    ANONYMOUS,
    Connection,
    FIRST,
    SAFE_RESTARTABLE,
    SIMPLE,
    Server,
    ServerPool,
    Tls,
)
from ldap3.core.exceptions import (
    LDAPBindError,
    LDAPCommunicationError,
    LDAPException,
    LDAPPasswordIsMandatoryError,
)
from ssl import (
    OP_NO_SSLv2,
    OP_NO_SSLv3,
    OP_NO_TLSv1,
    OP_NO_TLSv1_1,
    CERT_NONE,
    CERT_REQUIRED,
)
from typing import List, Optional

# local imports come after imports from other libraries
from ms_ad_realm import logging_utils
from ms_ad_realm.core.ad_realm_settings import ADRealmSettings
from ms_ad_realm.environment.constants import GLOBAL_CATALOG_PORTS
from ms_ad_realm.environment.discovery.discovery_utils import discover_ldap_domain_controllers_in_domain
from ms_ad_realm.environment.ldap.ldap_format_utils import process_ldap3_conn_return_value
from ms_ad_realm.exceptions import DomainConnectException

logger = logging_utils.get_logger()


def bind_connection(ldap_connection: Connection, user: Optional[str], password: Optional[str],
                    controls: list = None) -> bool:
    """ Simple bind (or anonymous bind, if no user is given) an open connection, replacing whatever
    identity it was bound as before.
    :returns: True if the server accepted the credentials, False if it rejected them.
    :raises: DomainConnectException if the server could not be communicated with.
    """
    ldap_connection.user = user
    ldap_connection.password = password
    ldap_connection.authentication = SIMPLE if user else ANONYMOUS
    try:
        bind_resp = ldap_connection.bind(controls=controls)
    except (LDAPBindError, LDAPPasswordIsMandatoryError) as ex:
        logger.debug('Bind as %s was rejected: %s', user, ex)
        return False
    except LDAPCommunicationError as ex:
        raise DomainConnectException('Failed to communicate with the domain while binding as {}: {}'
                                     .format(user, ex))
    except LDAPException as ex:
        raise DomainConnectException('An error was encountered binding as {}: {}'.format(user, ex))
    bound, result, _, _ = process_ldap3_conn_return_value(ldap_connection, bind_resp)
    if not bound:
        logger.debug('Bind as %s was not successful. LDAP result: %s', user, result)
    return bool(bound)


def close_connection_quietly(ldap_connection: Connection):
    """ Unbind and close a connection. Failures are logged rather than raised, since this runs during
    cleanup and must not hide whatever error is already being handled.
    """
    try:
        ldap_connection.unbind()
    except (LDAPException, OSError) as ex:
        logger.warning('Failed to cleanly close connection to %s: %s', ldap_connection.server, ex)


def is_global_catalog_connection(ldap_connection: Connection) -> bool:
    """ Global catalog servers listen on dedicated ports and only hold a partial replica of each domain,
    which doesn't include the partitions container that netbios names are read from.
    """
    return ldap_connection.server.port in GLOBAL_CATALOG_PORTS


def is_connection_secured(ldap_connection: Connection) -> bool:
    return bool(ldap_connection.server.ssl or ldap_connection.tls_started)


class ADConnectionFactory:

    def __init__(self, settings: ADRealmSettings):
        """ Creates ldap3 connections to the domain controllers of a realm.
        Servers come from the realm's urls if any were given, then from DNS discovery if it's enabled, and
        otherwise the domain name itself is used as a server on the default LDAP port.
        """
        self.settings = settings
        ldap_uris = settings.ldap_urls
        if not ldap_uris and settings.discover_ldap_servers:
            ldap_uris = discover_ldap_domain_controllers_in_domain(settings.domain_name)
        if not ldap_uris:
            ldap_uris = [settings.get_default_ldap_url()]
        self.ldap_uris = list(ldap_uris)
        self.tls_setting = self._create_tls_setting()
        self.ldap_servers = [Server(uri, tls=self.tls_setting,
                                    connect_timeout=settings.tcp_connect_timeout_seconds)
                             for uri in self.ldap_uris]

    def _create_tls_setting(self) -> Tls:
        # only check peer certs if we have CAs, and disable all TLS below 1.2
        checking = CERT_REQUIRED if self.settings.ca_certificates_file_path else CERT_NONE
        return Tls(ca_certs_file=self.settings.ca_certificates_file_path,
                   ssl_options=[OP_NO_SSLv2, OP_NO_SSLv3, OP_NO_TLSv1, OP_NO_TLSv1_1],
                   validate=checking)

    def _copy_ldap_server(self, serv: Server) -> Server:
        """ Copies an LDAP Server object. The normal python copy doesn't work on Server objects because
        they have locks in them, and sharing them across connections lets a failure on one connection
        change the state seen by others.
        """
        return Server(serv.host, port=serv.port, use_ssl=serv.ssl, tls=serv.tls,
                      connect_timeout=serv.connect_timeout, get_info=serv.get_info)

    def _open(self, server_or_pool, description: str) -> Connection:
        conn = Connection(server_or_pool, client_strategy=SAFE_RESTARTABLE,
                          receive_timeout=self.settings.tcp_read_timeout_seconds,
                          auto_referrals=False, raise_exceptions=False)
        try:
            conn.open()
        except LDAPException as ex:
            raise DomainConnectException('Failed to open a connection to {}: {}'.format(description, ex))
        logger.debug('Opened connection to %s: %s', description, conn)
        return conn

    def open_connection(self) -> Connection:
        """ Open an unbound connection to the first reachable server of the realm.
        :raises: DomainConnectException if no server can be reached.
        """
        # our servers were either user specified (in which case it's a list of ordered preferences) or
        # were discovered automatically (in which case they're ordered by RTT), so use the FIRST strategy
        copied_servers = [self._copy_ldap_server(serv) for serv in self.ldap_servers]
        server_pool = ServerPool(servers=copied_servers, pool_strategy=FIRST, active=True, exhaust=False)
        return self._open(server_pool, 'AD domain {}'.format(self.settings.domain_name))

    def new_connection(self, host: str, port: int, use_ssl: bool) -> Connection:
        """ Open an unbound connection to a specific host and port, e.g. to reach the same domain controller
        on a different port than the one a connection was established on.
        """
        server = Server(host, port=port, use_ssl=use_ssl, tls=self.tls_setting,
                        connect_timeout=self.settings.tcp_connect_timeout_seconds)
        return self._open(server, '{}:{}'.format(host, port))

    def get_ldap_uris(self) -> List[str]:
        return list(self.ldap_uris)

    def __repr__(self):
        return 'ADConnectionFactory(domain={}, ldap_uris={})'.format(self.settings.domain_name, self.ldap_uris)


class ADConnectionPool:
    """ A bounded pool of connections bound as the realm's service identity, or anonymously if the realm has
    no service identity.

    Borrowers may rebind a connection as someone else before returning it; the pool rebinds it as its own
    identity the next time it's handed out, so every acquired connection starts out as the pool identity.
    All methods block, so callers on an event loop should run them on a worker thread.
    """

    def __init__(self, connection_factory: ADConnectionFactory, bind_dn: str = None, bind_password: str = None,
                 size: int = 20, initial_size: int = 0, acquire_timeout_seconds: float = None):
        if size <= 0:
            raise ValueError('The connection pool size must be positive, not {}'.format(size))
        self.connection_factory = connection_factory
        self.bind_dn = bind_dn
        self.size = size
        self.acquire_timeout_seconds = acquire_timeout_seconds
        self._bind_password = bind_password
        self._idle = deque()
        self._lock = threading.Lock()
        self._leases = threading.BoundedSemaphore(size)
        self._closed = False
        for _ in range(min(initial_size, size)):
            self._idle.append(self._create_pool_connection())
        logger.debug('Created connection pool bound as %s with %s initial connections', bind_dn or 'anonymous',
                     len(self._idle))

    def _create_pool_connection(self) -> Connection:
        conn = self.connection_factory.open_connection()
        if not bind_connection(conn, self.bind_dn, self._bind_password):
            close_connection_quietly(conn)
            raise DomainConnectException('Failed to bind pooled connection as {}. Please check the service '
                                         'account credentials.'.format(self.bind_dn or 'anonymous'))
        return conn

    def _restore_pool_identity(self, conn: Connection) -> Connection:
        if conn.closed:
            return self._create_pool_connection()
        if conn.bound and conn.user == self.bind_dn:
            return conn
        if self.bind_dn is None:
            # there's no way to bind back down to anonymous, so start over
            close_connection_quietly(conn)
            return self._create_pool_connection()
        logger.debug('Rebinding pooled connection last bound as %s', conn.user)
        if not bind_connection(conn, self.bind_dn, self._bind_password):
            close_connection_quietly(conn)
            raise DomainConnectException('Failed to rebind pooled connection as {}. Please check the service '
                                         'account credentials.'.format(self.bind_dn))
        return conn

    def acquire(self) -> Connection:
        """ Take a connection out of the pool, bound as the pool identity. A new connection is opened if no
        idle one is available and the pool isn't at its size limit.
        :raises: DomainConnectException if the pool is closed, if no connection became available within the
                 acquire timeout, or if a connection could not be established.
        """
        if self._closed:
            raise DomainConnectException('The connection pool has been closed')
        if not self._leases.acquire(timeout=self.acquire_timeout_seconds):
            raise DomainConnectException('Timed out waiting for a connection; all {} pooled connections are in use'
                                         .format(self.size))
        try:
            with self._lock:
                conn = self._idle.popleft() if self._idle else None
            if conn is None:
                return self._create_pool_connection()
            return self._restore_pool_identity(conn)
        except BaseException:
            self._leases.release()
            raise

    def release(self, conn: Connection):
        """ Return a connection to the pool. Each acquired connection must be released exactly once. """
        with self._lock:
            closed = self._closed
            if not closed:
                self._idle.append(conn)
        if closed:
            close_connection_quietly(conn)
        self._leases.release()

    def close(self):
        with self._lock:
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
        for conn in idle:
            close_connection_quietly(conn)
        logger.debug('Closed connection pool and %s idle connections', len(idle))

    def is_closed(self) -> bool:
        return self._closed

    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return 'ADConnectionPool(bind_dn={}, size={}, idle={})'.format(self.bind_dn, self.size, self.idle_count())


class PoolLeaseLimiter:
    """ Caps how many coroutines hold a pooled connection at once.

    Waiting for a free connection happens here, on the event loop, so that ADConnectionPool.acquire never
    has to block a worker thread. Worker threads stay free for the bind and search calls of whoever holds
    the pool's connections, which is what lets those connections come back.
    Must only be used from coroutines running on one event loop.
    """

    def __init__(self, size: int, timeout_seconds: float = None):
        if size <= 0:
            raise ValueError('The lease limit must be positive, not {}'.format(size))
        self.size = size
        self.timeout_seconds = timeout_seconds
        # created on first use so that it belongs to the running loop
        self._semaphore = None
        self._leased = 0

    async def acquire(self):
        """ Wait for a lease on a pooled connection.
        :raises: DomainConnectException if no lease became free within the timeout.
        """
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.size)
        try:
            await asyncio.wait_for(self._semaphore.acquire(), self.timeout_seconds)
        except asyncio.TimeoutError:
            raise DomainConnectException('Timed out waiting for a connection; all {} pooled connections are '
                                         'in use'.format(self.size))
        self._leased += 1

    def release(self):
        self._leased -= 1
        self._semaphore.release()

    def in_use(self) -> int:
        return self._leased

    def __repr__(self):
        return 'PoolLeaseLimiter(size={}, in_use={})'.format(self.size, self.in_use())


class ConnectionHandle:
    """ Ownership of a connection for the length of one authentication attempt or session. Releasing the
    handle gives the connection back to wherever it came from, and only the first release does anything.
    """

    def __init__(self, ldap_connection: Connection):
        self._ldap_connection = ldap_connection
        self._released = False
        self._lock = threading.Lock()

    def get_ldap_connection(self) -> Connection:
        return self._ldap_connection

    def is_pooled(self) -> bool:
        raise NotImplementedError()

    def is_released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """ Give the connection back. Returns False if the handle had already been released. """
        with self._lock:
            if self._released:
                return False
            self._released = True
        self._do_release()
        return True

    def _do_release(self):
        raise NotImplementedError()


class DirectConnectionHandle(ConnectionHandle):
    """ A connection opened for a single caller, which is closed on release """

    def is_pooled(self) -> bool:
        return False

    def _do_release(self):
        close_connection_quietly(self._ldap_connection)


class PooledConnectionHandle(ConnectionHandle):
    """ A connection borrowed from a pool, which is given back on release """

    def __init__(self, ldap_connection: Connection, pool: ADConnectionPool):
        super().__init__(ldap_connection)
        self.pool = pool

    def is_pooled(self) -> bool:
        return True

    def _do_release(self):
        self.pool.release(self._ldap_connection)
