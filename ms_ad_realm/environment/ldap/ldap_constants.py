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

# used when only the distinguished name of an entry is wanted
AD_ATTRIBUTE_GET_NO_ATTRS = '1.1'

# keys for common active directory attributes
AD_ATTRIBUTE_OBJECT_SID = 'objectSid'
# the naming context of a partition in CN=Partitions. for a domain partition, this is the domain's root DN
AD_ATTRIBUTE_NAMING_CONTEXT = 'nCName'
# tokenGroups is a constructed attribute holding the SIDs of every group a user is in, transitively.
# it can only be read with a base scope search on the user
AD_ATTRIBUTE_TOKEN_GROUPS = 'tokenGroups'

# filter templates. {0}, {1}, ... are substituted with escaped values by create_filter
NETBIOS_NAME_FILTER_TEMPLATE = '(netbiosname={0})'
DEFAULT_USER_FILTER_TEMPLATE = '(&(objectClass=user)(|(sAMAccountName={{0}})(userPrincipalName={{0}}@{domain})))'
UPN_USER_FILTER = '(&(objectClass=user)(userPrincipalName={1}))'
DOWN_LEVEL_USER_FILTER = '(&(objectClass=user)(sAMAccountName={0}))'
# the account name placeholder in UPN filters only works when UPN suffixes match the domain name
UPN_ACCOUNT_NAME_PLACEHOLDER = '{0}'

# when checking if something simply exists, or getting everything at a level/subtree,
# we use this filter
FIND_ANYTHING_FILTER = '(objectClass=*)'

# LDAP controls
# https://datatracker.ietf.org/doc/html/rfc3829
AUTHORIZATION_IDENTITY_REQUEST_CONTROL_OID = '2.16.840.1.113730.3.4.16'

# LDAP result codes
OP_SUCCESS = 0
REFERRAL = 10
NO_SUCH_OBJECT = 32
