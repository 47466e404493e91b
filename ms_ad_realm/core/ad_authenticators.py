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

import warnings

from ldap3 import Connection
from typing import List, Optional

from ms_ad_realm import logging_utils
from ms_ad_realm.core.ad_connections import (
    ADConnectionFactory,
    bind_connection,
    close_connection_quietly,
    is_connection_secured,
    is_global_catalog_connection,
)
from ms_ad_realm.core.ad_realm_settings import ADRealmSettings
from ms_ad_realm.core.ad_search_entry import ADSearchEntry
from ms_ad_realm.core.ad_worker_pool import ADWorkerPool
from ms_ad_realm.core.netbios_cache import NetbiosDomainCache
from ms_ad_realm.environment import constants
from ms_ad_realm.environment.constants import ADSearchScope, ADUsernameDialect
from ms_ad_realm.environment.ldap import ldap_constants
from ms_ad_realm.environment.ldap.ldap_format_utils import (
    create_filter,
    format_default_bind_username,
    split_down_level_username,
    split_user_principal_name,
)
from ms_ad_realm.environment.ldap.ldap_search_utils import search, search_for_entry
from ms_ad_realm.exceptions import (
    AuthenticationFailedException,
    DomainConnectException,
    DomainSearchException,
)

logger = logging_utils.get_logger()

# the same message is used for every way an authentication can fail, so that callers can't tell a wrong
# password apart from an unknown user
AUTHENTICATION_FAILED_MESSAGE = 'Unable to authenticate user {}'


def classify_username(username: str) -> ADUsernameDialect:
    """ Work out which logon name format a username is in. A backslash wins over an @, since a down-level
    account name may itself contain an @.
    """
    if '\\' in username:
        return ADUsernameDialect.DOWN_LEVEL
    if '@' in username:
        return ADUsernameDialect.UPN
    return ADUsernameDialect.DEFAULT


class ADAuthenticator:
    """ Authenticates users whose names are in one format. An authentication binds as the user to check
    their password, then (as the service account, if there is one) searches for the user's entry.
    """
    dialect = None

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool, user_search_filter: str,
                 user_search_base_dn: str = None, user_search_scope: ADSearchScope = None):
        self.settings = settings
        self.worker_pool = worker_pool
        self.user_search_filter = user_search_filter
        self.user_search_base_dn = user_search_base_dn or settings.user_search_base_dn
        self.user_search_scope = user_search_scope or settings.user_search_scope
        self.bind_dn = settings.bind_dn
        self.bind_password = settings.bind_password
        self.time_limit_seconds = settings.search_time_limit_seconds
        self.ignore_referral_errors = settings.ignore_referral_errors

    def bind_username(self, username: str) -> str:
        return username

    def check_username_format(self, username: str):
        """ Raises UsernameFormatException if the username can't be handled by this authenticator """
        pass

    def get_user_search_filter(self) -> str:
        return self.user_search_filter

    async def authenticate(self, ldap_connection: Connection, username: str, password: str) -> ADSearchEntry:
        """ Check a user's password and find their directory entry, using a connection that the caller owns.
        The connection is left bound as whoever bound it last.
        :returns: The user's entry.
        :raises: AuthenticationFailedException if the password was rejected or no entry was found.
        :raises: UsernameFormatException if the username isn't in this authenticator's format.
        :raises: DomainConnectException or DomainSearchException if the directory couldn't be used.
        :raises: DuplicateNameException if more than one entry matched the user.
        """
        self.check_username_format(username)
        if not password:
            # many servers treat a simple bind with an empty password as an anonymous bind and accept it
            logger.debug('Rejecting authentication of %s with an empty password', username)
            raise AuthenticationFailedException(AUTHENTICATION_FAILED_MESSAGE.format(username))

        controls = [(ldap_constants.AUTHORIZATION_IDENTITY_REQUEST_CONTROL_OID, False, None)]
        bound = await self.worker_pool.run(bind_connection, ldap_connection, self.bind_username(username),
                                           password, controls)
        if not bound:
            logger.debug('Bind as %s was rejected', self.bind_username(username))
            raise AuthenticationFailedException(AUTHENTICATION_FAILED_MESSAGE.format(username))

        if self.bind_dn:
            await self.bind_as_service_identity(ldap_connection)

        entry = await self.search_for_dn(ldap_connection, username, password)
        if entry is None:
            logger.debug('Search for user %s by principal name yielded no results', username)
            raise AuthenticationFailedException(AUTHENTICATION_FAILED_MESSAGE.format(username))
        return entry

    async def bind_as_service_identity(self, ldap_connection: Connection):
        bound = await self.worker_pool.run(bind_connection, ldap_connection, self.bind_dn, self.bind_password)
        if not bound:
            raise DomainConnectException('Failed to bind as service account {}. Please check the {} and {} settings'
                                         .format(self.bind_dn, constants.AD_BIND_DN_SETTING,
                                                 constants.AD_BIND_PASSWORD_SETTING))

    async def search_for_dn(self, ldap_connection: Connection, username: str,
                            password: str = None) -> Optional[ADSearchEntry]:
        """ Find the entry for a user on an already bound connection.
        :param password: The user's password, for authenticators that need to open other connections as the user.
        :returns: The entry, or None if there isn't one.
        """
        raise NotImplementedError()

    async def _search_for_entry(self, ldap_connection: Connection, search_base: str, search_scope: ADSearchScope,
                                search_filter: str) -> Optional[ADSearchEntry]:
        return await self.worker_pool.run(search_for_entry, ldap_connection, search_base, search_scope,
                                          search_filter, self.time_limit_seconds, self.ignore_referral_errors,
                                          [ldap_constants.AD_ATTRIBUTE_GET_NO_ATTRS])

    def __repr__(self):
        return '{}(base_dn={}, scope={}, filter={})'.format(type(self).__name__, self.user_search_base_dn,
                                                            self.user_search_scope.value, self.user_search_filter)


class DefaultADAuthenticator(ADAuthenticator):
    """ Authenticates bare account names, e.g. alice. The bind is done as alice@<domain name>, which on AD DS
    works for both sAMAccountName and UPN prefixes. AD LDS only supports the UPN form.
    """
    dialect = ADUsernameDialect.DEFAULT

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool):
        default_filter = ldap_constants.DEFAULT_USER_FILTER_TEMPLATE.format(domain=settings.domain_name)
        super().__init__(settings, worker_pool, settings.user_search_filter or default_filter)
        self.domain_name = settings.domain_name

    def bind_username(self, username: str) -> str:
        return format_default_bind_username(username, self.domain_name)

    async def search_for_dn(self, ldap_connection: Connection, username: str,
                            password: str = None) -> Optional[ADSearchEntry]:
        search_filter = create_filter(self.user_search_filter, username)
        return await self._search_for_entry(ldap_connection, self.user_search_base_dn, self.user_search_scope,
                                            search_filter)


class UpnADAuthenticator(ADAuthenticator):
    """ Authenticates user principal names, e.g. alice@corp.example.com. Filters get the account name as {0}
    and the full principal name as {1}. UPN suffixes that differ from the domain name are only supported by
    filters that use {1}.
    """
    dialect = ADUsernameDialect.UPN

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool):
        super().__init__(settings, worker_pool, settings.upn_user_search_filter or ldap_constants.UPN_USER_FILTER,
                         user_search_scope=ADSearchScope.SUB_TREE)
        if ldap_constants.UPN_ACCOUNT_NAME_PLACEHOLDER in self.user_search_filter:
            message = ('The use of the account name variable {{0}} in the setting [{}] has been deprecated and will '
                       'be removed in a future version!'.format(constants.AD_UPN_USER_SEARCH_FILTER_SETTING))
            logging_utils.get_deprecation_logger().warning(message)
            warnings.warn(message, DeprecationWarning, stacklevel=2)

    def check_username_format(self, username: str):
        split_user_principal_name(username)

    async def search_for_dn(self, ldap_connection: Connection, username: str,
                            password: str = None) -> Optional[ADSearchEntry]:
        account_name, _ = split_user_principal_name(username)
        search_filter = create_filter(self.user_search_filter, account_name, username)
        return await self._search_for_entry(ldap_connection, self.user_search_base_dn, self.user_search_scope,
                                            search_filter)


class DownLevelADAuthenticator(ADAuthenticator):
    """ Authenticates down-level logon names, e.g. CORP\\alice. The netbios domain name is mapped to the
    distinguished name of its domain, and the account is searched for within that domain.
    """
    dialect = ADUsernameDialect.DOWN_LEVEL

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool,
                 connection_factory: ADConnectionFactory, domain_name_cache: NetbiosDomainCache = None):
        super().__init__(settings, worker_pool,
                         settings.down_level_user_search_filter or ldap_constants.DOWN_LEVEL_USER_FILTER,
                         user_search_scope=ADSearchScope.SUB_TREE)
        self.domain_dn = settings.domain_dn
        self.connection_factory = connection_factory
        self.domain_name_cache = domain_name_cache if domain_name_cache is not None else NetbiosDomainCache()

    def check_username_format(self, username: str):
        split_down_level_username(username)

    async def search_for_dn(self, ldap_connection: Connection, username: str,
                            password: str = None) -> Optional[ADSearchEntry]:
        netbios_domain_name, account_name = split_down_level_username(username)
        domain_dn = await self.resolve_netbios_domain_dn(ldap_connection, netbios_domain_name, username, password)
        if domain_dn is None:
            logger.debug('No domain was found with netbios name %s', netbios_domain_name)
            return None
        search_filter = create_filter(self.user_search_filter, account_name)
        return await self._search_for_entry(ldap_connection, domain_dn, self.user_search_scope, search_filter)

    async def resolve_netbios_domain_dn(self, ldap_connection: Connection, netbios_domain_name: str,
                                        username: str = None, password: str = None) -> Optional[str]:
        """ Map a netbios domain name to the distinguished name of the domain.
        Results are cached, so a name that has been resolved before doesn't hit the directory again.
        :returns: The domain's distinguished name, or None if no domain has that netbios name.
        :raises: DomainConnectException or DomainSearchException if the directory couldn't be asked.
        """
        cached_dn = self.domain_name_cache.get(netbios_domain_name)
        if cached_dn is not None:
            logger.debug('Found netbios name %s in cache: %s', netbios_domain_name, cached_dn)
            return cached_dn

        search_filter = create_filter(ldap_constants.NETBIOS_NAME_FILTER_TEMPLATE, netbios_domain_name)
        if is_global_catalog_connection(ldap_connection):
            entries = await self._search_outside_global_catalog(ldap_connection, search_filter, username, password)
        else:
            entries = await self._search_for_naming_contexts(ldap_connection, search_filter)

        for entry in entries:
            if entry.has_attribute(ldap_constants.AD_ATTRIBUTE_NAMING_CONTEXT):
                domain_dn = entry.get(ldap_constants.AD_ATTRIBUTE_NAMING_CONTEXT, unpack_one_item_lists=True)
                committed_dn = self.domain_name_cache.put_if_absent(netbios_domain_name, domain_dn)
                logger.debug('Resolved netbios name %s to %s', netbios_domain_name, committed_dn)
                return committed_dn
        return None

    async def _search_for_naming_contexts(self, ldap_connection: Connection,
                                          search_filter: str) -> List[ADSearchEntry]:
        return await self.worker_pool.run(search, ldap_connection, self.domain_dn, ADSearchScope.SUB_TREE,
                                          search_filter, self.time_limit_seconds, self.ignore_referral_errors,
                                          [ldap_constants.AD_ATTRIBUTE_NAMING_CONTEXT])

    async def _search_outside_global_catalog(self, ldap_connection: Connection, search_filter: str,
                                             username: str, password: str) -> List[ADSearchEntry]:
        # the global catalog doesn't replicate the attributes needed to map a netbios name to a DN, so we
        # connect to the same server on a normal port. only the standard ports are tried; most AD
        # deployments don't use non-standard ones
        use_ssl = is_connection_secured(ldap_connection)
        port = constants.LDAPS_PORT if use_ssl else constants.LDAP_PORT
        if self.bind_dn:
            bind_user, bind_password = self.bind_dn, self.bind_password
        elif password:
            bind_user, bind_password = username, password
        else:
            raise DomainSearchException('Cannot resolve netbios domain names through a global catalog server '
                                        'without either a service account or user credentials to search with')
        host = ldap_connection.server.host
        logger.debug('Connection to %s is to a global catalog; searching for netbios names on port %s instead',
                     host, port)
        search_connection = await self.worker_pool.run(self.connection_factory.new_connection, host, port, use_ssl)
        try:
            bound = await self.worker_pool.run(bind_connection, search_connection, bind_user, bind_password)
            if not bound:
                raise DomainConnectException('Failed to bind as {} to {}:{} while resolving a netbios domain name'
                                             .format(bind_user, host, port))
            return await self._search_for_naming_contexts(search_connection, search_filter)
        finally:
            await self.worker_pool.run(close_connection_quietly, search_connection)


class ADAuthenticatorSet:
    """ One authenticator for each username format, and the rule for picking between them """

    def __init__(self, settings: ADRealmSettings, worker_pool: ADWorkerPool, connection_factory: ADConnectionFactory,
                 domain_name_cache: NetbiosDomainCache = None):
        self.default_authenticator = DefaultADAuthenticator(settings, worker_pool)
        self.upn_authenticator = UpnADAuthenticator(settings, worker_pool)
        self.down_level_authenticator = DownLevelADAuthenticator(settings, worker_pool, connection_factory,
                                                                 domain_name_cache)
        self._authenticators = {
            ADUsernameDialect.DEFAULT: self.default_authenticator,
            ADUsernameDialect.UPN: self.upn_authenticator,
            ADUsernameDialect.DOWN_LEVEL: self.down_level_authenticator,
        }

    def get_authenticator(self, username: str) -> ADAuthenticator:
        return self._authenticators[classify_username(username)]

    def __repr__(self):
        return 'ADAuthenticatorSet({})'.format(list(self._authenticators.values()))
