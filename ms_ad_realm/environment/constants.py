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

import enum

from ldap3 import BASE, LEVEL, SUBTREE


class ADSearchScope(enum.Enum):
    """ This enum maps realm setting names for search scopes to ldap3 scopes """
    BASE = 'base'
    ONE_LEVEL = 'one_level'
    SUB_TREE = 'sub_tree'

    @classmethod
    def resolve(cls, value, default: 'ADSearchScope' = None) -> 'ADSearchScope':
        """ Map a setting value to a scope. Matching is case-insensitive and ignores underscores, so
        'sub_tree', 'SUBTREE' and 'subtree' are all accepted. None or an empty string maps to the default.
        """
        if isinstance(value, ADSearchScope):
            return value
        if not value:
            return default if default is not None else cls.SUB_TREE
        normalized = value.replace('_', '').lower()
        for scope in ADSearchScope:
            if scope.value.replace('_', '') == normalized:
                return scope
        raise ValueError('Unknown search scope {}; must be one of {}'
                         .format(value, ', '.join(scope.value for scope in ADSearchScope)))

    def to_ldap3_scope(self) -> str:
        return _LDAP3_SCOPES[self]


_LDAP3_SCOPES = {
    ADSearchScope.BASE: BASE,
    ADSearchScope.ONE_LEVEL: LEVEL,
    ADSearchScope.SUB_TREE: SUBTREE,
}


class ADUsernameDialect(enum.Enum):
    """ The three forms of username that Active Directory accepts for a logon """
    DEFAULT = 'default'  # a bare account name, e.g. alice
    DOWN_LEVEL = 'down_level'  # DOMAIN\alice
    UPN = 'upn'  # alice@corp.example.com


# ports that domain controllers listen on. the global catalog ports serve a partial, forest-wide
# replica of the directory
LDAP_PORT = 389
LDAPS_PORT = 636
GLOBAL_CATALOG_PORT = 3268
GLOBAL_CATALOG_SSL_PORT = 3269
GLOBAL_CATALOG_PORTS = (GLOBAL_CATALOG_PORT, GLOBAL_CATALOG_SSL_PORT)

DEFAULT_LDAP_URL_FORMAT = 'ldap://{domain}:' + str(LDAP_PORT)

# domain topology essentially never changes while a process is running, so netbios names are cached
# without expiry and only bounded in size
NETBIOS_DOMAIN_CACHE_SIZE = 100

DEFAULT_TIMEOUT_SECONDS = 5
DEFAULT_POOL_SIZE = 20
DEFAULT_POOL_INITIAL_SIZE = 0
DEFAULT_WORKER_POOL_SIZE = 10
WORKER_THREAD_NAME_PREFIX = 'ms_ad_realm_worker'

# realm setting keys
AD_DOMAIN_NAME_SETTING = 'domain_name'
AD_URL_SETTING = 'url'
AD_DISCOVER_LDAP_SERVERS_SETTING = 'discover_ldap_servers'
AD_BIND_DN_SETTING = 'bind_dn'
AD_BIND_PASSWORD_SETTING = 'bind_password'
AD_GROUP_SEARCH_BASEDN_SETTING = 'group_search.base_dn'
AD_GROUP_SEARCH_SCOPE_SETTING = 'group_search.scope'
AD_USER_SEARCH_BASEDN_SETTING = 'user_search.base_dn'
AD_USER_SEARCH_FILTER_SETTING = 'user_search.filter'
AD_UPN_USER_SEARCH_FILTER_SETTING = 'user_search.upn_filter'
AD_DOWN_LEVEL_USER_SEARCH_FILTER_SETTING = 'user_search.down_level_filter'
AD_USER_SEARCH_SCOPE_SETTING = 'user_search.scope'
AD_POOL_ENABLED_SETTING = 'user_search.pool.enabled'
AD_POOL_SIZE_SETTING = 'user_search.pool.size'
AD_POOL_INITIAL_SIZE_SETTING = 'user_search.pool.initial_size'
AD_TCP_CONNECT_TIMEOUT_SETTING = 'timeout.tcp_connect'
AD_TCP_READ_TIMEOUT_SETTING = 'timeout.tcp_read'
AD_SEARCH_TIMEOUT_SETTING = 'timeout.ldap_search'
AD_IGNORE_REFERRAL_ERRORS_SETTING = 'ignore_referral_errors'
AD_SSL_CERTIFICATE_AUTHORITIES_SETTING = 'ssl.certificate_authorities'
AD_METADATA_SETTING = 'metadata'
AD_WORKER_POOL_SIZE_SETTING = 'thread_pool.size'
