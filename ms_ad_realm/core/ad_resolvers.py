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

from ldap3 import Connection
from typing import Dict, List

from ms_ad_realm import logging_utils
from ms_ad_realm.environment.constants import ADSearchScope
from ms_ad_realm.environment.ldap.ldap_constants import (
    AD_ATTRIBUTE_GET_NO_ATTRS,
    AD_ATTRIBUTE_OBJECT_SID,
    AD_ATTRIBUTE_TOKEN_GROUPS,
    FIND_ANYTHING_FILTER,
)
from ms_ad_realm.environment.ldap.ldap_format_utils import escape_bytestring_for_filter
from ms_ad_realm.environment.ldap.ldap_search_utils import search, search_for_entry

logger = logging_utils.get_logger()


class ADGroupsResolver:
    """ Finds the groups a user is a member of, including nested memberships.

    Active Directory computes the SIDs of all of a user's groups, transitively, in the tokenGroups attribute.
    It can only be read by a base search on the user, so we read it and then look up the groups that
    have those SIDs.
    """

    def __init__(self, group_search_base_dn: str, group_search_scope: ADSearchScope, time_limit_seconds: int,
                 ignore_referral_errors: bool):
        self.group_search_base_dn = group_search_base_dn
        self.group_search_scope = group_search_scope
        self.time_limit_seconds = time_limit_seconds
        self.ignore_referral_errors = ignore_referral_errors

    def resolve(self, ldap_connection: Connection, user_dn: str) -> List[str]:
        """ Returns the distinguished names of the groups the user is in. Blocks on the directory. """
        user_entry = search_for_entry(ldap_connection, user_dn, ADSearchScope.BASE, FIND_ANYTHING_FILTER,
                                      self.time_limit_seconds, self.ignore_referral_errors,
                                      [AD_ATTRIBUTE_TOKEN_GROUPS])
        if user_entry is None:
            logger.debug('User %s was not found when resolving groups', user_dn)
            return []
        group_sids = user_entry.get_raw(AD_ATTRIBUTE_TOKEN_GROUPS)
        if not group_sids:
            return []

        sid_filters = ''.join('({}={})'.format(AD_ATTRIBUTE_OBJECT_SID, escape_bytestring_for_filter(sid))
                              for sid in group_sids)
        group_filter = '(|{})'.format(sid_filters)
        groups = search(ldap_connection, self.group_search_base_dn, self.group_search_scope, group_filter,
                        self.time_limit_seconds, self.ignore_referral_errors, [AD_ATTRIBUTE_GET_NO_ATTRS])
        logger.debug('Found %s groups for user %s from %s group SIDs', len(groups), user_dn, len(group_sids))
        return [group.distinguished_name for group in groups]

    def __repr__(self):
        return 'ADGroupsResolver(base_dn={}, scope={})'.format(self.group_search_base_dn,
                                                               self.group_search_scope.value)


class ADMetadataResolver:
    """ Reads a configured set of extra attributes for a user """

    def __init__(self, attribute_names: List[str], time_limit_seconds: int, ignore_referral_errors: bool):
        self.attribute_names = list(attribute_names)
        self.time_limit_seconds = time_limit_seconds
        self.ignore_referral_errors = ignore_referral_errors

    def resolve(self, ldap_connection: Connection, user_dn: str) -> Dict[str, object]:
        if not self.attribute_names:
            return {}
        user_entry = search_for_entry(ldap_connection, user_dn, ADSearchScope.BASE, FIND_ANYTHING_FILTER,
                                      self.time_limit_seconds, self.ignore_referral_errors, self.attribute_names)
        if user_entry is None:
            return {}
        # attributes the user has no value for are left out
        return {name: user_entry.get(name, unpack_one_item_lists=True) for name in self.attribute_names
                if user_entry.has_attribute(name)}

    def __repr__(self):
        return 'ADMetadataResolver(attributes={})'.format(self.attribute_names)
