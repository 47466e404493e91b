""" Exceptions used within the library """
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


class MsAdRealmException(Exception):
    """ A parent class for all other exceptions so that users can have a catch-all exception for
    functional issues that still doesn't blind them to things like accidentally providing a string
    where a number is needed.
    """
    def __init__(self, exception_str):
        self.message = exception_str
        super().__init__(self.message)


class AuthenticationFailedException(MsAdRealmException):
    """ An exception raised when a user cannot be authenticated. This is deliberately vague about whether
    the credentials were rejected or the user could not be found, so that callers cannot use it to
    enumerate users.
    """
    def __init__(self, exception_str):
        super().__init__(exception_str)


class DomainConnectException(MsAdRealmException):
    """ An exception raised when an error is encountered connecting to or binding with an AD Domain
    for reasons other than the end user's credentials being rejected.
    """
    def __init__(self, exception_str):
        super().__init__(exception_str)


class DomainSearchException(MsAdRealmException):
    """ An exception raised when an error is encountered searching an AD Domain """
    def __init__(self, exception_str):
        super().__init__(exception_str)


class DuplicateNameException(MsAdRealmException):
    """ An exception raised when multiple records are found during an operation that expects to operate on a
    unique object
    """
    def __init__(self, exception_str):
        super().__init__(exception_str)


class InvalidRealmSettingException(MsAdRealmException):
    """ An exception raised when the settings used to configure a realm are missing, of the wrong type,
    or otherwise invalid.
    """
    def __init__(self, exception_str):
        super().__init__(exception_str)


class UsernameFormatException(MsAdRealmException):
    """ An exception raised when a username does not have the shape required by the authentication
    dialect it was classified into (e.g. a down-level name that isn't exactly DOMAIN\\account).
    """
    def __init__(self, exception_str):
        super().__init__(exception_str)
