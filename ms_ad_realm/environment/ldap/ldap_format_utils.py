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

import binascii
import re

from ldap3 import Connection
from typing import List, Tuple, Union

from ms_ad_realm import logging_utils
from ms_ad_realm.exceptions import (
    InvalidRealmSettingException,
    UsernameFormatException,
)


logger = logging_utils.get_logger()

_FILTER_PLACEHOLDER_REGEX = re.compile(r'\{(\d+)\}')


def construct_ldap_base_dn_from_domain(domain: str) -> str:
    """
    Given a domain, constructs the base dn.
    """
    domain_split = domain.split('.')
    return ','.join(map(lambda x: 'DC=' + x, domain_split))


def create_filter(filter_template: str, *values: str) -> str:
    """ Build an LDAP filter from a template with positional placeholders like {0} and {1}.
    Each value is escaped before substitution, so usernames can't change the structure of the filter.
    :param filter_template: A filter string such as (&(objectClass=user)(sAMAccountName={0})).
    :param values: The raw values for the placeholders, in placeholder order.
    :returns: The filter string with all placeholders substituted.
    :raises: InvalidRealmSettingException if the template references a placeholder with no value.
    """
    escaped_values = [escape_generic_filter_value(value) for value in values]

    def substitute(match):
        index = int(match.group(1))
        if index >= len(escaped_values):
            raise InvalidRealmSettingException('The filter template {} references placeholder {{{}}} but only {} '
                                               'value(s) are available for it'.format(filter_template, index,
                                                                                     len(escaped_values)))
        return escaped_values[index]
    return _FILTER_PLACEHOLDER_REGEX.sub(substitute, filter_template)


def escape_generic_filter_value(anything: str) -> str:
    """ Escape anything, so that it can be used in ldap queries without confusing the server.
    According to the LDAP spec, there's a set of common characters that need escaping:
    rfc4514 (https://tools.ietf.org/html/rfc4514).

    RFCs that define new LDAP attributes, as well different server types, may require
    additional characters be escaped. Additionally, not all characters need to be escaped.
    For example, many versions of AD do not require commas be escaped, but will be ok if
    they are.
    """
    if anything.isalnum():
        return anything

    def escape_char(char):
        """ Escape a single character."""
        if char in "*()\\/\0 \t\r\n+<>,\";":
            # rfc2254 says the only characters to escape are "*{}\\\0". AD adds "/" to the
            # list, and OpenLDAP adds whitespace. Over-escaping is safe, so just do everything
            # every time.
            return "\\%02x" % ord(char)
        else:
            return char
    return "".join(escape_char(x) for x in anything)


def escape_bytestring_for_filter(byte_str: bytes) -> str:
    """ Escape any bytestring (e.g. SIDs) for use in an LDAP filter.
    It will be converted to a hex string first and then escaped.
    If it is already a string, it will be escaped as if it were a hex string.
    """
    if isinstance(byte_str, bytes):
        hex_str = binascii.hexlify(byte_str).decode('UTF-8')
    else:
        hex_str = byte_str
    hex_escape_char = '\\'
    # 2 hex characters make up 1 byte, and the LDAP syntax for filtering on a bytestring is to escape
    # each byte with a backslash while representing them as hex.
    # see: http://www.ietf.org/rfc/rfc2254.txt
    return hex_escape_char + hex_escape_char.join(hex_str[i:i+2] for i in range(0, len(hex_str), 2))


def format_default_bind_username(username: str, domain_dns_name: str) -> str:
    """ A bare account name is bound as account@domain. On AD DS this works for both sAMAccountName and
    UPN prefixes; AD LDS only supports the UPN form.
    """
    return username + '@' + domain_dns_name


def normalize_bind_dn(bind_dn: str, domain_dns_name: str) -> str:
    """ A service account configured as a bare account name (no DOMAIN\\, @domain, or DN components) is
    qualified with the domain so that it can be used in a simple bind.
    """
    if not bind_dn:
        return bind_dn
    if '\\' in bind_dn or '@' in bind_dn or '=' in bind_dn:
        return bind_dn
    return format_default_bind_username(bind_dn, domain_dns_name)


def process_ldap3_conn_return_value(ldap_connection: Connection, return_value: Union[tuple, bool],
                                    paginated_response=False) -> tuple:
    """ Thread-safe ldap3 connections return a tuple containing a boolean about success,
    the result, the response, and the request. Non-thread-safe ldap3 connections just
    leave the other fields and return a boolean when performing search/bind/etc. and
    leave it up to the caller to manage thread safety.

    This function processes the return value so that it can be used without worrying
    about the return format.
    """
    # thread-safe strategies return response tuples of (success, result, response, request)
    # but paginated searches in the ldap3 library only return the response no matter what, and
    # the thread-safe unpacking is handled internally during accumulation
    if ldap_connection.strategy.thread_safe and not paginated_response:
        success, result, response, req = return_value
    else:
        success = return_value
        result = ldap_connection.result
        response = ldap_connection.response
        req = ldap_connection.request
    return success, result, response, req


def remove_ad_search_refs(response: List[dict]) -> List[dict]:
    """ Many LDAP queries in Active Directory will include a number of generic search references
    to say 'maybe go look here for completeness'. This is especially common in setups where
    there's trusted domains or other domains in the same forest.

    But we only care about real entries, so this is a helper function to remove such references.

    :param response: A list of LDAP search responses.
    :returns: A filtered list, with search references removed.
    """
    if not response:
        return []
    return [entry for entry in response if entry.get('dn')]


def split_down_level_username(username: str) -> Tuple[str, str]:
    """ Split a down-level logon name, DOMAIN\\account, into its netbios domain name and account name.
    :raises: UsernameFormatException if the name isn't exactly two non-empty pieces around a backslash.
    """
    parts = username.split('\\')
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UsernameFormatException('Down-level usernames must be in the format DOMAIN\\account; {} was not'
                                      .format(username))
    return parts[0], parts[1]


def split_user_principal_name(username: str) -> Tuple[str, str]:
    """ Split a user principal name, account@suffix, into its account name and suffix.
    :raises: UsernameFormatException if the name isn't exactly two non-empty pieces around an @.
    """
    parts = username.split('@')
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UsernameFormatException('User principal names must be in the format account@domain; {} was not'
                                      .format(username))
    return parts[0], parts[1]
