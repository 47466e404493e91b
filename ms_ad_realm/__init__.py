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

from ms_ad_realm.core.ad_authenticators import (
    ADAuthenticator,
    ADAuthenticatorSet,
    DefaultADAuthenticator,
    DownLevelADAuthenticator,
    UpnADAuthenticator,
    classify_username,
)

from ms_ad_realm.core.ad_connections import (
    ADConnectionFactory,
    ADConnectionPool,
    ConnectionHandle,
    DirectConnectionHandle,
    PooledConnectionHandle,
    PoolLeaseLimiter,
)

from ms_ad_realm.core.ad_realm_settings import ADRealmSettings

from ms_ad_realm.core.ad_resolvers import (
    ADGroupsResolver,
    ADMetadataResolver,
)

from ms_ad_realm.core.ad_search_entry import ADSearchEntry

from ms_ad_realm.core.ad_session import LdapSession

from ms_ad_realm.core.ad_session_factory import ADSessionFactory

from ms_ad_realm.core.ad_worker_pool import ADWorkerPool

from ms_ad_realm.core.netbios_cache import NetbiosDomainCache

from ms_ad_realm.environment.constants import (
    ADSearchScope,
    ADUsernameDialect,
)

from ms_ad_realm.exceptions import *
from ms_ad_realm.logging_utils import (
    configure_log_level,
    disable_logging,
    enable_logging,
    get_logger,
)
