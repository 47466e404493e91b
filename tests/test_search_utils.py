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
Tests for searching the directory and interpreting search results.
"""

import pytest

from ldap3.core.exceptions import LDAPCommunicationError, LDAPInvalidFilterError

from ms_ad_realm.core.ad_search_entry import ADSearchEntry
from ms_ad_realm.environment.constants import ADSearchScope
from ms_ad_realm.environment.ldap.ldap_constants import NO_SUCH_OBJECT, REFERRAL
from ms_ad_realm.environment.ldap.ldap_search_utils import search, search_for_entry
from ms_ad_realm.exceptions import DomainConnectException, DomainSearchException, DuplicateNameException

from tests.fakes import ALICE_DN, DOMAIN_DN, FakeDirectory, FakeLdapConnection, make_entry

USER_FILTER = '(sAMAccountName=alice)'


@pytest.fixture
def fake_directory():
    return FakeDirectory()


@pytest.fixture
def conn(fake_directory):
    return FakeLdapConnection(fake_directory)


def run_search(conn, ignore_referral_errors=True):
    return search(conn, DOMAIN_DN, ADSearchScope.SUB_TREE, USER_FILTER, 5, ignore_referral_errors, ['mail'])


class TestSearch:

    def test_entries_are_returned(self, fake_directory, conn):
        fake_directory.add_entries(USER_FILTER, make_entry(ALICE_DN, {'mail': ['alice@corp.example.com']}))
        entries = run_search(conn)
        assert entries == [ADSearchEntry(ALICE_DN, {'mail': ['alice@corp.example.com']})]

    def test_search_parameters_are_passed_through(self, fake_directory, conn):
        run_search(conn)
        _, base, search_filter, scope, attributes, time_limit, _ = fake_directory.searches()[0]
        assert (base, search_filter, scope, attributes, time_limit) == (DOMAIN_DN, USER_FILTER, 'SUBTREE',
                                                                        ['mail'], 5)

    def test_search_references_are_dropped(self, fake_directory, conn):
        fake_directory.add_entries(USER_FILTER, make_entry(ALICE_DN),
                                   {'uri': ['ldap://other.example.com/DC=other'], 'type': 'searchResRef'})
        assert [entry.distinguished_name for entry in run_search(conn)] == [ALICE_DN]

    def test_no_such_object_is_an_empty_result(self, fake_directory, conn):
        fake_directory.result_codes_by_filter[USER_FILTER] = NO_SUCH_OBJECT
        assert run_search(conn) == []

    def test_referrals_can_be_ignored(self, fake_directory, conn):
        fake_directory.result_codes_by_filter[USER_FILTER] = REFERRAL
        assert run_search(conn, ignore_referral_errors=True) == []

    def test_referrals_can_be_errors(self, fake_directory, conn):
        fake_directory.result_codes_by_filter[USER_FILTER] = REFERRAL
        with pytest.raises(DomainSearchException):
            run_search(conn, ignore_referral_errors=False)

    def test_error_results_raise(self, fake_directory, conn):
        # insufficient access rights
        fake_directory.result_codes_by_filter[USER_FILTER] = 50
        with pytest.raises(DomainSearchException):
            run_search(conn)

    def test_communication_errors_are_connection_errors(self, fake_directory, conn):
        fake_directory.search_errors_by_filter[USER_FILTER] = LDAPCommunicationError('connection reset')
        with pytest.raises(DomainConnectException):
            run_search(conn)

    def test_other_ldap_errors_are_search_errors(self, fake_directory, conn):
        fake_directory.search_errors_by_filter[USER_FILTER] = LDAPInvalidFilterError('bad filter')
        with pytest.raises(DomainSearchException):
            run_search(conn)


class TestSearchForEntry:

    def test_single_entry(self, fake_directory, conn):
        fake_directory.add_entries(USER_FILTER, make_entry(ALICE_DN))
        entry = search_for_entry(conn, DOMAIN_DN, ADSearchScope.SUB_TREE, USER_FILTER, 5, True)
        assert entry.distinguished_name == ALICE_DN

    def test_no_entry(self, conn):
        assert search_for_entry(conn, DOMAIN_DN, ADSearchScope.SUB_TREE, USER_FILTER, 5, True) is None

    def test_multiple_entries(self, fake_directory, conn):
        fake_directory.add_entries(USER_FILTER, make_entry(ALICE_DN), make_entry('CN=Alice2,' + DOMAIN_DN))
        with pytest.raises(DuplicateNameException):
            search_for_entry(conn, DOMAIN_DN, ADSearchScope.SUB_TREE, USER_FILTER, 5, True)


class TestADSearchEntry:

    def test_attribute_names_are_case_insensitive(self):
        entry = ADSearchEntry(ALICE_DN, {'nCName': 'DC=corp,DC=example,DC=com'})
        assert entry.has_attribute('ncname')
        assert entry.get('NCNAME') == 'DC=corp,DC=example,DC=com'

    def test_single_item_lists_can_be_unpacked(self):
        entry = ADSearchEntry(ALICE_DN, {'mail': ['alice@corp.example.com']})
        assert entry.get('mail') == ['alice@corp.example.com']
        assert entry.get('mail', unpack_one_item_lists=True) == 'alice@corp.example.com'

    def test_empty_attributes_are_absent(self):
        entry = ADSearchEntry(ALICE_DN, {'mail': []})
        assert not entry.has_attribute('mail')
        assert entry.get('title') is None

    def test_raw_attributes(self):
        entry = ADSearchEntry(ALICE_DN, {}, {'tokenGroups': [b'\x01', b'\x02']})
        assert entry.get_raw('tokengroups') == [b'\x01', b'\x02']
        assert entry.get_raw('objectSid') == []
