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

"""
Tests for realm configuration.
"""

import pytest

from ms_ad_realm.core.ad_realm_settings import ADRealmSettings
from ms_ad_realm.environment.constants import ADSearchScope
from ms_ad_realm.exceptions import InvalidRealmSettingException


class TestDefaults:

    def test_minimal_settings(self):
        settings = ADRealmSettings(domain_name='corp.example.com')
        assert settings.domain_dn == 'DC=corp,DC=example,DC=com'
        assert settings.user_search_base_dn == 'DC=corp,DC=example,DC=com'
        assert settings.group_search_base_dn == 'DC=corp,DC=example,DC=com'
        assert settings.user_search_scope == ADSearchScope.SUB_TREE
        assert settings.group_search_scope == ADSearchScope.SUB_TREE
        assert settings.bind_dn is None
        assert not settings.pool_enabled
        assert settings.search_time_limit_seconds == 5
        assert settings.ignore_referral_errors
        assert settings.metadata_attributes == []
        assert settings.get_default_ldap_url() == 'ldap://corp.example.com:389'

    def test_pooling_defaults_on_with_service_account(self):
        settings = ADRealmSettings(domain_name='corp.example.com', bind_dn='svc', bind_password='secret')
        assert settings.pool_enabled
        assert settings.has_bind_dn()

    def test_bare_service_account_is_qualified(self):
        settings = ADRealmSettings(domain_name='corp.example.com', bind_dn='svc', bind_password='secret')
        assert settings.bind_dn == 'svc@corp.example.com'

    def test_repr_leaves_out_password(self):
        settings = ADRealmSettings(domain_name='corp.example.com', bind_dn='svc', bind_password='secret')
        assert 'secret' not in repr(settings)


class TestFromDict:

    def test_dotted_keys(self):
        settings = ADRealmSettings.from_dict({
            'domain_name': 'corp.example.com',
            'url': 'ldap://dc1.corp.example.com:389, ldap://dc2.corp.example.com:389',
            'user_search.base_dn': 'OU=People,DC=corp,DC=example,DC=com',
            'user_search.scope': 'one_level',
            'user_search.upn_filter': '(&(objectClass=user)(mail={1}))',
            'user_search.pool.enabled': 'false',
            'group_search.scope': 'BASE',
            'timeout.ldap_search': '10',
            'ignore_referral_errors': 'no',
            'metadata': ['mail', 'department'],
        })
        assert settings.ldap_urls == ['ldap://dc1.corp.example.com:389', 'ldap://dc2.corp.example.com:389']
        assert settings.user_search_base_dn == 'OU=People,DC=corp,DC=example,DC=com'
        assert settings.user_search_scope == ADSearchScope.ONE_LEVEL
        assert settings.upn_user_search_filter == '(&(objectClass=user)(mail={1}))'
        assert not settings.pool_enabled
        assert settings.group_search_scope == ADSearchScope.BASE
        assert settings.search_time_limit_seconds == 10
        assert not settings.ignore_referral_errors
        assert settings.metadata_attributes == ['mail', 'department']

    def test_unknown_keys(self):
        with pytest.raises(InvalidRealmSettingException):
            ADRealmSettings.from_dict({'domain_name': 'corp.example.com', 'user_search.fliter': '(cn={0})'})

    def test_missing_domain_name(self):
        with pytest.raises(InvalidRealmSettingException):
            ADRealmSettings.from_dict({'bind_dn': 'svc', 'bind_password': 'secret'})

    def test_schema_lists_every_key(self):
        schema = ADRealmSettings.get_settings()
        for key in ['domain_name', 'group_search.base_dn', 'group_search.scope', 'user_search.base_dn',
                    'user_search.scope', 'user_search.filter', 'user_search.upn_filter',
                    'user_search.down_level_filter', 'user_search.pool.enabled']:
            assert key in schema
        assert schema['user_search.scope'] == 'sub_tree'
        # every default in the schema is accepted
        values = {key: value for key, value in schema.items() if value is not None}
        values['domain_name'] = 'corp.example.com'
        settings = ADRealmSettings.from_dict(values)
        assert settings.pool_size == 20
        assert settings.worker_pool_size == 10


class TestValidation:

    @pytest.mark.parametrize('kwargs', [
        {'domain_name': ''},
        {'domain_name': 'corp.example.com', 'user_search_scope': 'everything'},
        {'domain_name': 'corp.example.com', 'pool_size': 0},
        {'domain_name': 'corp.example.com', 'pool_size': 2, 'pool_initial_size': 3},
        {'domain_name': 'corp.example.com', 'worker_pool_size': -1},
        {'domain_name': 'corp.example.com', 'tcp_connect_timeout_seconds': 'soon'},
        {'domain_name': 'corp.example.com', 'ignore_referral_errors': 'maybe'},
        {'domain_name': 'corp.example.com', 'bind_dn': 'svc'},
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(InvalidRealmSettingException):
            ADRealmSettings(**kwargs)

    @pytest.mark.parametrize('value,expected', [
        ('sub_tree', ADSearchScope.SUB_TREE),
        ('SUBTREE', ADSearchScope.SUB_TREE),
        ('one_level', ADSearchScope.ONE_LEVEL),
        ('base', ADSearchScope.BASE),
        (None, ADSearchScope.SUB_TREE),
    ])
    def test_scope_names(self, value, expected):
        assert ADRealmSettings(domain_name='corp.example.com', user_search_scope=value).user_search_scope == expected
