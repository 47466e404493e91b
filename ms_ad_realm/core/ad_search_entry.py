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

import copy

from typing import Dict, Optional


class ADSearchEntry:
    """ A directory entry returned by a search: its distinguished name and the attributes that were
    requested for it. Attribute lookups are case-insensitive, as LDAP attribute names are.
    """

    def __init__(self, dn: str, attributes: Optional[Dict], raw_attributes: Optional[Dict] = None):
        self.distinguished_name = dn
        self.all_attributes = dict(attributes) if attributes else {}
        self.raw_attributes = dict(raw_attributes) if raw_attributes else {}
        self._lowercase_names = {name.lower(): name for name in self.all_attributes}
        self._lowercase_raw_names = {name.lower(): name for name in self.raw_attributes}

    def has_attribute(self, attribute_name: str) -> bool:
        """ Returns true if the attribute was returned for this entry with at least one value """
        name = self._lowercase_names.get(attribute_name.lower())
        if name is None:
            return False
        val = self.all_attributes[name]
        return val is not None and val != [] and val != ''

    def get(self, attribute_name: str, unpack_one_item_lists=False):
        """ Get an attribute of the entry by name """
        name = self._lowercase_names.get(attribute_name.lower())
        if name is None:
            return None
        val = self.all_attributes[name]
        # there's a lot of 1-item lists from the ldap3 library
        if isinstance(val, list) and len(val) == 1 and unpack_one_item_lists:
            return copy.deepcopy(val[0])
        return copy.deepcopy(val)

    def get_raw(self, attribute_name: str) -> list:
        """ Get the undecoded byte values of an attribute, which matters for binary attributes like SIDs """
        name = self._lowercase_raw_names.get(attribute_name.lower())
        if name is None:
            return []
        return list(self.raw_attributes[name])

    def __eq__(self, other):
        if not isinstance(other, ADSearchEntry):
            return False
        return self.distinguished_name == other.distinguished_name and self.all_attributes == other.all_attributes

    def __repr__(self):
        attrs = self.all_attributes.__repr__() if self.all_attributes else 'None'
        return 'ADSearchEntry(dn={dn}, attributes={attrs})'.format(dn=self.distinguished_name, attrs=attrs)

    def __str__(self):
        return self.__repr__()
