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
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException
from typing import List, Optional

from ms_ad_realm import logging_utils
from ms_ad_realm.core.ad_search_entry import ADSearchEntry
from ms_ad_realm.environment.constants import ADSearchScope
from ms_ad_realm.environment.ldap.ldap_constants import (
    NO_SUCH_OBJECT,
    OP_SUCCESS,
    REFERRAL,
)
from ms_ad_realm.environment.ldap.ldap_format_utils import (
    process_ldap3_conn_return_value,
    remove_ad_search_refs,
)
from ms_ad_realm.exceptions import (
    DomainConnectException,
    DomainSearchException,
    DuplicateNameException,
)

logger = logging_utils.get_logger()


def search(ldap_connection: Connection, search_base: str, search_scope: ADSearchScope, search_filter: str,
           time_limit_seconds: int, ignore_referral_errors: bool,
           attributes: List[str] = None) -> List[ADSearchEntry]:
    """ Search the directory and return the real entries found, dropping search references.
    :param ldap_connection: A bound ldap3 connection.
    :param search_base: The distinguished name to search beneath.
    :param search_scope: An ADSearchScope.
    :param search_filter: A complete LDAP filter; build it with create_filter if it has user input in it.
    :param time_limit_seconds: The time limit the server should enforce on the search.
    :param ignore_referral_errors: If true, a referral result is treated as a successful search of
                                   whatever the server could answer locally. Otherwise it's an error.
    :param attributes: The attributes to return for each entry. If not specified, none are returned.
    :returns: A list of ADSearchEntry objects, which is empty if nothing matched.
    :raises: DomainConnectException if the server could not be communicated with.
    :raises: DomainSearchException if the server returned an error for the search.
    """
    logger.debug('Searching %s with scope %s and filter %s for attributes %s', search_base, search_scope.value,
                 search_filter, attributes)
    try:
        res = ldap_connection.search(search_base=search_base,
                                     search_filter=search_filter,
                                     search_scope=search_scope.to_ldap3_scope(),
                                     attributes=attributes,
                                     time_limit=time_limit_seconds)
    except LDAPCommunicationError as ex:
        raise DomainConnectException('Failed to communicate with the domain while searching {} with filter {}: {}'
                                     .format(search_base, search_filter, ex))
    except LDAPException as ex:
        raise DomainSearchException('An error was encountered searching {} with filter {}: {}'
                                    .format(search_base, search_filter, ex))
    _, result, response, _ = process_ldap3_conn_return_value(ldap_connection, res)
    result_code = result['result']
    if result_code == REFERRAL:
        if not ignore_referral_errors:
            raise DomainSearchException('The search of {} with filter {} was referred elsewhere and referral errors '
                                        'are not being ignored. Raw result: {}'.format(search_base, search_filter,
                                                                                        result))
        logger.debug('Ignoring referral returned when searching %s: %s', search_base, result)
    # no such object should be considered an okay search
    elif result_code != OP_SUCCESS and result_code != NO_SUCH_OBJECT:
        raise DomainSearchException('An error was encountered searching {} with filter {}; this may be due to a '
                                    'permission issue or a domain resource availability issue. Raw result: {}'
                                    .format(search_base, search_filter, result))
    entries = [ADSearchEntry(entry['dn'], entry.get('attributes'), entry.get('raw_attributes'))
               for entry in remove_ad_search_refs(response)]
    logger.debug('Search of %s with filter %s found %s entries', search_base, search_filter, len(entries))
    return entries


def search_for_entry(ldap_connection: Connection, search_base: str, search_scope: ADSearchScope, search_filter: str,
                     time_limit_seconds: int, ignore_referral_errors: bool,
                     attributes: List[str] = None) -> Optional[ADSearchEntry]:
    """ Search for a single entry. Takes the same arguments as search.
    :returns: The entry found, or None if nothing matched.
    :raises: DuplicateNameException if more than one entry matched, since picking one would be arbitrary.
    """
    entries = search(ldap_connection, search_base, search_scope, search_filter, time_limit_seconds,
                     ignore_referral_errors, attributes)
    if not entries:
        return None
    if len(entries) > 1:
        raise DuplicateNameException('The search of {} with filter {} should have returned a single entry but '
                                     'returned {}: {}'.format(search_base, search_filter, len(entries),
                                                              [entry.distinguished_name for entry in entries]))
    return entries[0]
