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
Tests for discovering domain controllers in DNS. DNS and the LDAP ping are faked.
"""

import dns.exception
import dns.resolver
import pytest

from types import SimpleNamespace

from ms_ad_realm.environment.discovery import discovery_utils


class FakeTarget:

    def __init__(self, name):
        self.name = name

    def to_text(self, omit_final_dot=False):
        return self.name if omit_final_dot else self.name + '.'


def srv_record(host, port=389, priority=0, weight=100):
    return SimpleNamespace(target=FakeTarget(host), port=port, priority=priority, weight=weight)


class FakeResolver:
    records = []
    error = None
    queries = []

    def __init__(self):
        self.nameservers = ['127.0.0.53']
        self.timeout = None
        self.lifetime = None

    def resolve(self, record_name, record_type, tcp=False, source=None):
        FakeResolver.queries.append((record_name, tcp, source, self.nameservers))
        if FakeResolver.error is not None:
            raise FakeResolver.error
        return FakeResolver.records


@pytest.fixture
def fake_dns(monkeypatch):
    FakeResolver.records = []
    FakeResolver.error = None
    FakeResolver.queries = []
    monkeypatch.setattr(dns.resolver, 'Resolver', FakeResolver)
    return FakeResolver


@pytest.fixture
def fake_rtts(monkeypatch):
    rtts = {}

    def check(server_host, server_port, source_ip):
        rtt = rtts.get(server_host)
        if rtt is None:
            return None
        return rtt, 'ldap://{}:{}'.format(server_host, server_port)
    monkeypatch.setattr(discovery_utils, '_check_ldap_server_availability_and_rtt', check)
    return rtts


class TestDiscovery:

    def test_servers_are_ordered_by_rtt(self, fake_dns, fake_rtts):
        fake_dns.records = [srv_record('dc1.corp.example.com'), srv_record('dc2.corp.example.com'),
                            srv_record('dc3.corp.example.com')]
        fake_rtts.update({'dc1.corp.example.com': 0.3, 'dc2.corp.example.com': 0.1})
        uris = discovery_utils.discover_ldap_domain_controllers_in_domain('corp.example.com')
        # dc3 is unreachable
        assert uris == ['ldap://dc2.corp.example.com:389', 'ldap://dc1.corp.example.com:389']
        assert fake_dns.queries[0][:2] == ('_ldap._tcp.dc._msdcs.corp.example.com', True)

    def test_site_and_nameservers(self, fake_dns, fake_rtts):
        discovery_utils.discover_ldap_domain_controllers_in_domain('corp.example.com', site='emea',
                                                                   dns_nameservers=['10.0.0.1'])
        record_name, _, _, nameservers = fake_dns.queries[0]
        assert record_name == '_ldap._tcp.emea._sites.dc._msdcs.corp.example.com'
        assert nameservers == ['10.0.0.1']

    def test_server_limit(self, fake_dns, fake_rtts):
        fake_dns.records = [srv_record('dc{}.corp.example.com'.format(i)) for i in range(5)]
        fake_rtts.update({'dc{}.corp.example.com'.format(i): i for i in range(5)})
        uris = discovery_utils.discover_ldap_domain_controllers_in_domain('corp.example.com', server_limit=2)
        assert uris == ['ldap://dc0.corp.example.com:389', 'ldap://dc1.corp.example.com:389']

    def test_duplicate_records_differing_by_case(self, fake_dns, fake_rtts):
        fake_dns.records = [srv_record('dc1.corp.example.com'), srv_record('DC1.corp.example.com')]
        fake_rtts.update({'dc1.corp.example.com': 0.1, 'DC1.corp.example.com': 0.1})
        uris = discovery_utils.discover_ldap_domain_controllers_in_domain('corp.example.com')
        assert uris == ['ldap://dc1.corp.example.com:389']

    def test_dns_failure(self, fake_dns, fake_rtts):
        fake_dns.error = dns.exception.Timeout()
        assert discovery_utils.discover_ldap_domain_controllers_in_domain('corp.example.com') == []

    def test_records_are_ordered_by_priority_then_weight(self, fake_dns):
        fake_dns.records = [srv_record('low-weight', priority=0, weight=10),
                            srv_record('backup', priority=10, weight=100),
                            srv_record('high-weight', priority=0, weight=90)]
        records = discovery_utils._resolve_record_in_dns('_ldap._tcp.dc._msdcs.corp.example.com', None, None, None)
        assert [record[0] for record in records] == ['high-weight', 'low-weight', 'backup']
