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
Pytest configuration and shared fixtures for ms_ad_realm tests.
"""

import pytest

from ms_ad_realm.core.ad_realm_settings import ADRealmSettings
from ms_ad_realm.core.ad_worker_pool import ADWorkerPool

from tests.fakes import (
    ALICE_DN,
    ALICE_PASSWORD,
    DEFAULT_ALICE_FILTER,
    DOMAIN,
    DOWN_LEVEL_ALICE_FILTER,
    SERVICE_DN,
    SERVICE_PASSWORD,
    UPN_ALICE_FILTER,
    FakeConnectionFactory,
    FakeDirectory,
    make_entry,
)


@pytest.fixture
def directory() -> FakeDirectory:
    """A fake domain where alice can log in and can be found by every username format."""
    fake = FakeDirectory()
    fake.add_credentials('alice@corp.example.com', ALICE_PASSWORD)
    fake.add_credentials('CORP\\alice', ALICE_PASSWORD)
    fake.add_credentials(SERVICE_DN, SERVICE_PASSWORD)
    fake.add_entries(DEFAULT_ALICE_FILTER, make_entry(ALICE_DN))
    fake.add_entries(UPN_ALICE_FILTER, make_entry(ALICE_DN))
    fake.add_entries(DOWN_LEVEL_ALICE_FILTER, make_entry(ALICE_DN))
    return fake


@pytest.fixture
def connection_factory(directory) -> FakeConnectionFactory:
    return FakeConnectionFactory(directory)


@pytest.fixture
def worker_pool():
    pool = ADWorkerPool(max_workers=4)
    yield pool
    pool.shutdown()


@pytest.fixture
def settings() -> ADRealmSettings:
    """Settings with no service account, so connections aren't pooled."""
    return ADRealmSettings(domain_name=DOMAIN)


@pytest.fixture
def service_settings() -> ADRealmSettings:
    """Settings with a service account and pooling turned off."""
    return ADRealmSettings(domain_name=DOMAIN, bind_dn=SERVICE_DN, bind_password=SERVICE_PASSWORD,
                           pool_enabled=False)


@pytest.fixture
def pooled_settings() -> ADRealmSettings:
    """Settings with a service account, which turns pooling on by default."""
    return ADRealmSettings(domain_name=DOMAIN, bind_dn=SERVICE_DN, bind_password=SERVICE_PASSWORD, pool_size=2)
