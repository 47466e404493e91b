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
Property-based tests for picking an authenticator from the shape of a username.
"""

from hypothesis import given, strategies as st

from ms_ad_realm.core.ad_authenticators import ADAuthenticatorSet, classify_username
from ms_ad_realm.environment.constants import ADUsernameDialect


class TestClassification:

    @given(username=st.text())
    def test_classification_is_total_and_follows_separators(self, username: str):
        dialect = classify_username(username)
        if '\\' in username:
            assert dialect == ADUsernameDialect.DOWN_LEVEL
        elif '@' in username:
            assert dialect == ADUsernameDialect.UPN
        else:
            assert dialect == ADUsernameDialect.DEFAULT

    @given(username=st.text())
    def test_classification_is_deterministic(self, username: str):
        assert classify_username(username) == classify_username(username)

    @given(prefix=st.text(), middle=st.text(), suffix=st.text())
    def test_backslash_wins_over_at(self, prefix: str, middle: str, suffix: str):
        assert classify_username(prefix + '@' + middle + '\\' + suffix) == ADUsernameDialect.DOWN_LEVEL
        assert classify_username(prefix + '\\' + middle + '@' + suffix) == ADUsernameDialect.DOWN_LEVEL

    def test_examples(self):
        assert classify_username('alice') == ADUsernameDialect.DEFAULT
        assert classify_username('alice@corp.example.com') == ADUsernameDialect.UPN
        assert classify_username('CORP\\alice') == ADUsernameDialect.DOWN_LEVEL
        assert classify_username('') == ADUsernameDialect.DEFAULT


class TestAuthenticatorSet:

    def test_each_format_gets_its_authenticator(self, settings, worker_pool, connection_factory):
        authenticators = ADAuthenticatorSet(settings, worker_pool, connection_factory)
        assert authenticators.get_authenticator('alice') is authenticators.default_authenticator
        assert authenticators.get_authenticator('alice@corp.example.com') is authenticators.upn_authenticator
        assert authenticators.get_authenticator('CORP\\alice') is authenticators.down_level_authenticator
