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

import copy

from typing import Dict, List, Union

from ms_ad_realm import logging_utils
from ms_ad_realm.environment import constants
from ms_ad_realm.environment.constants import ADSearchScope
from ms_ad_realm.environment.ldap.ldap_format_utils import (
    construct_ldap_base_dn_from_domain,
    normalize_bind_dn,
)
from ms_ad_realm.exceptions import InvalidRealmSettingException

logger = logging_utils.get_logger()

_TRUE_STRINGS = {'true', 'yes', 'on', '1'}
_FALSE_STRINGS = {'false', 'no', 'off', '0'}


def _to_bool(key: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise InvalidRealmSettingException('Setting [{}] must be a boolean, not {}'.format(key, value))


def _to_int(key: str, value, minimum: int) -> int:
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise InvalidRealmSettingException('Setting [{}] must be an integer, not {}'.format(key, value))
    if isinstance(value, bool) or int_value < minimum:
        raise InvalidRealmSettingException('Setting [{}] must be an integer of at least {}, not {}'
                                           .format(key, minimum, value))
    return int_value


def _to_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [piece.strip() for piece in value.split(',') if piece.strip()]
    return list(value)


def _to_scope(key: str, value) -> ADSearchScope:
    try:
        return ADSearchScope.resolve(value)
    except ValueError as ex:
        raise InvalidRealmSettingException('Setting [{}] is invalid: {}'.format(key, ex))


class ADRealmSettings:

    def __init__(self, domain_name: str,
                 ldap_urls: Union[str, List[str]] = None,
                 discover_ldap_servers: bool = False,
                 bind_dn: str = None,
                 bind_password: str = None,
                 user_search_base_dn: str = None,
                 user_search_scope: Union[str, ADSearchScope] = None,
                 user_search_filter: str = None,
                 upn_user_search_filter: str = None,
                 down_level_user_search_filter: str = None,
                 pool_enabled: bool = None,
                 pool_size: int = constants.DEFAULT_POOL_SIZE,
                 pool_initial_size: int = constants.DEFAULT_POOL_INITIAL_SIZE,
                 group_search_base_dn: str = None,
                 group_search_scope: Union[str, ADSearchScope] = None,
                 tcp_connect_timeout_seconds: int = constants.DEFAULT_TIMEOUT_SECONDS,
                 tcp_read_timeout_seconds: int = constants.DEFAULT_TIMEOUT_SECONDS,
                 search_time_limit_seconds: int = constants.DEFAULT_TIMEOUT_SECONDS,
                 ignore_referral_errors: bool = True,
                 ca_certificates_file_path: str = None,
                 metadata_attributes: List[str] = None,
                 worker_pool_size: int = constants.DEFAULT_WORKER_POOL_SIZE):
        """ The configuration of an Active Directory realm. Settings are read-only once constructed.
        :param domain_name: The DNS name of the Active Directory domain, e.g. corp.example.com. Required.
        :param ldap_urls: LDAP uris of the domain controllers to use, in order of preference. If not
                          specified, servers are discovered in DNS when discover_ldap_servers is true,
                          and otherwise ldap://<domain_name>:389 is used.
        :param discover_ldap_servers: Whether to discover domain controllers in DNS when no uris are given.
        :param bind_dn: The service account used to search the directory. If it is a bare account name,
                        it is qualified as account@domain_name. If not specified, searches are done as the
                        authenticating user.
        :param bind_password: The password of the service account.
        :param user_search_base_dn: Where to search for users. Defaults to the root of the domain.
        :param user_search_scope: The scope of user searches for bare account names. Defaults to sub_tree.
        :param user_search_filter: The filter for bare account names, with {0} for the account name.
        :param upn_user_search_filter: The filter for user principal names, with {1} for the full name.
                                       {0}, the account name, is deprecated.
        :param down_level_user_search_filter: The filter for DOMAIN\\account names, with {0} for the account.
        :param pool_enabled: Whether to search using a pool of connections bound as the service account.
                             Defaults to true if bind_dn is set and false otherwise.
        :param pool_size: The maximum number of connections in the pool.
        :param pool_initial_size: The number of pool connections to open up front.
        :param group_search_base_dn: Where to search for groups. Defaults to the root of the domain.
        :param group_search_scope: The scope of group searches. Defaults to sub_tree.
        :param tcp_connect_timeout_seconds: How long to wait for a connection to a server to be established.
        :param tcp_read_timeout_seconds: How long to wait for a response on an established connection.
        :param search_time_limit_seconds: The time limit given to the server for each search.
        :param ignore_referral_errors: Whether a search that results in a referral is treated as a success.
        :param ca_certificates_file_path: A path to CA certificates used to verify servers when connecting
                                          over ldaps. If not specified, server certificates are not checked.
        :param metadata_attributes: Additional user attributes to read for session metadata.
        :param worker_pool_size: The number of threads that blocking directory operations run on.
        """
        if not domain_name or not isinstance(domain_name, str):
            raise InvalidRealmSettingException('Missing [{}] setting for active directory'
                                               .format(constants.AD_DOMAIN_NAME_SETTING))
        self.domain_name = domain_name.strip()
        self.domain_dn = construct_ldap_base_dn_from_domain(self.domain_name)
        self.ldap_urls = _to_list(ldap_urls)
        self.discover_ldap_servers = _to_bool(constants.AD_DISCOVER_LDAP_SERVERS_SETTING, discover_ldap_servers)

        self.bind_dn = normalize_bind_dn(bind_dn, self.domain_name) if bind_dn else None
        self.bind_password = bind_password
        if self.bind_dn and bind_password is None:
            raise InvalidRealmSettingException('Setting [{}] is required when [{}] is set'
                                               .format(constants.AD_BIND_PASSWORD_SETTING,
                                                       constants.AD_BIND_DN_SETTING))

        self.user_search_base_dn = user_search_base_dn or self.domain_dn
        self.user_search_scope = _to_scope(constants.AD_USER_SEARCH_SCOPE_SETTING, user_search_scope)
        self.user_search_filter = user_search_filter
        self.upn_user_search_filter = upn_user_search_filter
        self.down_level_user_search_filter = down_level_user_search_filter

        if pool_enabled is None:
            pool_enabled = self.bind_dn is not None
        self.pool_enabled = _to_bool(constants.AD_POOL_ENABLED_SETTING, pool_enabled)
        self.pool_size = _to_int(constants.AD_POOL_SIZE_SETTING, pool_size, 1)
        self.pool_initial_size = _to_int(constants.AD_POOL_INITIAL_SIZE_SETTING, pool_initial_size, 0)
        if self.pool_initial_size > self.pool_size:
            raise InvalidRealmSettingException('Setting [{}] ({}) may not exceed [{}] ({})'
                                               .format(constants.AD_POOL_INITIAL_SIZE_SETTING, self.pool_initial_size,
                                                       constants.AD_POOL_SIZE_SETTING, self.pool_size))

        self.group_search_base_dn = group_search_base_dn or self.domain_dn
        self.group_search_scope = _to_scope(constants.AD_GROUP_SEARCH_SCOPE_SETTING, group_search_scope)

        self.tcp_connect_timeout_seconds = _to_int(constants.AD_TCP_CONNECT_TIMEOUT_SETTING,
                                                   tcp_connect_timeout_seconds, 1)
        self.tcp_read_timeout_seconds = _to_int(constants.AD_TCP_READ_TIMEOUT_SETTING, tcp_read_timeout_seconds, 1)
        self.search_time_limit_seconds = _to_int(constants.AD_SEARCH_TIMEOUT_SETTING, search_time_limit_seconds, 0)
        self.ignore_referral_errors = _to_bool(constants.AD_IGNORE_REFERRAL_ERRORS_SETTING, ignore_referral_errors)
        self.ca_certificates_file_path = ca_certificates_file_path
        self.metadata_attributes = _to_list(metadata_attributes)
        self.worker_pool_size = _to_int(constants.AD_WORKER_POOL_SIZE_SETTING, worker_pool_size, 1)

    @classmethod
    def from_dict(cls, settings: Dict) -> 'ADRealmSettings':
        """ Create settings from a dictionary keyed by realm setting names, such as
        {'domain_name': 'corp.example.com', 'user_search.base_dn': 'OU=People,DC=corp,DC=example,DC=com'}.
        Keys that are absent take their defaults.
        :raises: InvalidRealmSettingException if a key isn't a recognized setting or a value is invalid.
        """
        unknown_keys = set(settings) - set(_SETTING_KEYS_TO_KWARGS)
        if unknown_keys:
            raise InvalidRealmSettingException('Unknown active directory realm settings: {}'
                                               .format(', '.join(sorted(unknown_keys))))
        kwargs = {_SETTING_KEYS_TO_KWARGS[key]: value for key, value in settings.items()}
        if 'domain_name' not in kwargs:
            raise InvalidRealmSettingException('Missing [{}] setting for active directory'
                                               .format(constants.AD_DOMAIN_NAME_SETTING))
        return cls(**kwargs)

    @classmethod
    def get_settings(cls) -> Dict[str, object]:
        """ Returns the names of all recognized realm settings mapped to their defaults. A default of None means
        the setting is either required or derived from other settings.
        """
        return copy.deepcopy(_SETTING_DEFAULTS)

    def has_bind_dn(self) -> bool:
        return self.bind_dn is not None

    def get_default_ldap_url(self) -> str:
        return constants.DEFAULT_LDAP_URL_FORMAT.format(domain=self.domain_name)

    def __repr__(self):
        # never include the bind password
        return ('ADRealmSettings(domain_name={}, ldap_urls={}, bind_dn={}, user_search_base_dn={}, '
                'user_search_scope={}, pool_enabled={}, group_search_base_dn={})'
                .format(self.domain_name, self.ldap_urls, self.bind_dn, self.user_search_base_dn,
                        self.user_search_scope.value, self.pool_enabled, self.group_search_base_dn))

    def __str__(self):
        return self.__repr__()


_SETTING_KEYS_TO_KWARGS = {
    constants.AD_DOMAIN_NAME_SETTING: 'domain_name',
    constants.AD_URL_SETTING: 'ldap_urls',
    constants.AD_DISCOVER_LDAP_SERVERS_SETTING: 'discover_ldap_servers',
    constants.AD_BIND_DN_SETTING: 'bind_dn',
    constants.AD_BIND_PASSWORD_SETTING: 'bind_password',
    constants.AD_USER_SEARCH_BASEDN_SETTING: 'user_search_base_dn',
    constants.AD_USER_SEARCH_SCOPE_SETTING: 'user_search_scope',
    constants.AD_USER_SEARCH_FILTER_SETTING: 'user_search_filter',
    constants.AD_UPN_USER_SEARCH_FILTER_SETTING: 'upn_user_search_filter',
    constants.AD_DOWN_LEVEL_USER_SEARCH_FILTER_SETTING: 'down_level_user_search_filter',
    constants.AD_POOL_ENABLED_SETTING: 'pool_enabled',
    constants.AD_POOL_SIZE_SETTING: 'pool_size',
    constants.AD_POOL_INITIAL_SIZE_SETTING: 'pool_initial_size',
    constants.AD_GROUP_SEARCH_BASEDN_SETTING: 'group_search_base_dn',
    constants.AD_GROUP_SEARCH_SCOPE_SETTING: 'group_search_scope',
    constants.AD_TCP_CONNECT_TIMEOUT_SETTING: 'tcp_connect_timeout_seconds',
    constants.AD_TCP_READ_TIMEOUT_SETTING: 'tcp_read_timeout_seconds',
    constants.AD_SEARCH_TIMEOUT_SETTING: 'search_time_limit_seconds',
    constants.AD_IGNORE_REFERRAL_ERRORS_SETTING: 'ignore_referral_errors',
    constants.AD_SSL_CERTIFICATE_AUTHORITIES_SETTING: 'ca_certificates_file_path',
    constants.AD_METADATA_SETTING: 'metadata_attributes',
    constants.AD_WORKER_POOL_SIZE_SETTING: 'worker_pool_size',
}

_SETTING_DEFAULTS = {
    constants.AD_DOMAIN_NAME_SETTING: None,
    constants.AD_URL_SETTING: [],
    constants.AD_DISCOVER_LDAP_SERVERS_SETTING: False,
    constants.AD_BIND_DN_SETTING: None,
    constants.AD_BIND_PASSWORD_SETTING: None,
    constants.AD_USER_SEARCH_BASEDN_SETTING: None,
    constants.AD_USER_SEARCH_SCOPE_SETTING: ADSearchScope.SUB_TREE.value,
    constants.AD_USER_SEARCH_FILTER_SETTING: None,
    constants.AD_UPN_USER_SEARCH_FILTER_SETTING: None,
    constants.AD_DOWN_LEVEL_USER_SEARCH_FILTER_SETTING: None,
    constants.AD_POOL_ENABLED_SETTING: None,
    constants.AD_POOL_SIZE_SETTING: constants.DEFAULT_POOL_SIZE,
    constants.AD_POOL_INITIAL_SIZE_SETTING: constants.DEFAULT_POOL_INITIAL_SIZE,
    constants.AD_GROUP_SEARCH_BASEDN_SETTING: None,
    constants.AD_GROUP_SEARCH_SCOPE_SETTING: ADSearchScope.SUB_TREE.value,
    constants.AD_TCP_CONNECT_TIMEOUT_SETTING: constants.DEFAULT_TIMEOUT_SECONDS,
    constants.AD_TCP_READ_TIMEOUT_SETTING: constants.DEFAULT_TIMEOUT_SECONDS,
    constants.AD_SEARCH_TIMEOUT_SETTING: constants.DEFAULT_TIMEOUT_SECONDS,
    constants.AD_IGNORE_REFERRAL_ERRORS_SETTING: True,
    constants.AD_SSL_CERTIFICATE_AUTHORITIES_SETTING: None,
    constants.AD_METADATA_SETTING: [],
    constants.AD_WORKER_POOL_SIZE_SETTING: constants.DEFAULT_WORKER_POOL_SIZE,
}
