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

import dns.exception
import dns.resolver
import time

# environmental interactions are lightweight and primarily IO-bounded, not CPU-bounded.
# most of our time is spent waiting on replies, so we use a thread pool instead of a
# process pool
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from dns.rdatatype import SRV, RdataType
from ldap3 import Connection, Server, DSA
from ldap3.core.exceptions import LDAPException
from typing import List, Callable

from ms_ad_realm.environment.discovery.discovery_constants import (
    DNS_TIMEOUT_SECONDS,
    LDAP_DNS_SRV_FORMAT,
    LDAP_PING_TIMEOUT_SECONDS,
    LDAP_SITE_AWARE_DNS_SRV_FORMAT,
)
from ms_ad_realm import logging_utils


logger = logging_utils.get_logger()


def discover_ldap_domain_controllers_in_domain(domain: str, site: str = None, dns_nameservers: List[str] = None,
                                               source_ip: str = None, server_limit: int = None) -> List[str]:
    """ Take in an AD domain and discover the LDAP servers in the domain that are domain
    controllers. Then order them to try and optimize going to the closest/fastest/highest priority
    servers first.
    :param domain: The string dns name of the domain.
    :param site: The string name of a site within the domain. If specified, only controllers within
                 the site will be returned.
    :param dns_nameservers: The nameservers to use for DNS lookups to discover LDAP servers. If not
                            specified, the system DNS nameservers will be used.
    :param source_ip: The source IP to use for DNS queries and when checking RTT to LDAP servers.
    :param server_limit: An integer limit on the number of controllers returned. After sorting by RTT,
                         if specified, only the fastest server_limit controllers will be returned.
    :returns: an ordered list of LDAP uris for the reachable controllers, fastest first.
    """
    logger.info('Discovering LDAP servers for domain %s in DNS', domain)
    ldap_srv = LDAP_DNS_SRV_FORMAT.format(domain=domain)
    if site:
        ldap_srv = LDAP_SITE_AWARE_DNS_SRV_FORMAT.format(site=site, domain=domain)
    all_ldap_records = _resolve_record_in_dns(ldap_srv, SRV, dns_nameservers, source_ip)
    return _order_ldap_servers_by_rtt(all_ldap_records, server_limit, source_ip)


def _resolve_record_in_dns(record_name: str, record_type: RdataType, dns_nameservers: List[str], source_ip: str):
    """ Take a record and record type and resolve it in DNS.

    Returns a list of tuples where each tuple is in the format (host, port, priority, weight)
    sorted by priority and then weight.
    """
    temp_resolver = dns.resolver.Resolver()
    temp_resolver.timeout = DNS_TIMEOUT_SECONDS
    temp_resolver.lifetime = DNS_TIMEOUT_SECONDS
    if dns_nameservers:
        logger.debug('Using the following nameservers for dns lookup instead of the default system ones %s',
                     dns_nameservers)
        temp_resolver.nameservers = dns_nameservers
    # microsoft recommends TCP for DNS results over 512 bytes, which a service record for a large domain
    # easily exceeds, so use tcp directly rather than wait for udp to be truncated
    try:
        resolved_records = temp_resolver.resolve(record_name, record_type, tcp=True,
                                                 source=source_ip)
    except dns.exception.DNSException as dns_ex:
        logger.info('Unable to query DNS for record %s due to: %s', record_name, dns_ex)
        return []

    # (URI, Port, Priority, Weight)
    record_tuples = [(record.target.to_text(omit_final_dot=True), record.port, record.priority, record.weight)
                     for record in resolved_records]
    # lower priority values are preferred, and among equal priorities higher weights are preferred
    record_tuples = sorted(record_tuples, key=lambda record_tuple: (record_tuple[2], -1*record_tuple[3]))
    logger.debug('Records returned in %s lookup for %s ordered by priority and weight: %s',
                 record_type, record_name, record_tuples)
    return record_tuples


def _order_ldap_servers_by_rtt(ldap_server_records: List[tuple], server_limit: int, source_ip: str) -> List[str]:
    """ Take in a list of LDAP server records and determine the reachability and round trip time to each.
    Order them by RTT, fastest first, and drop unreachable servers. If there's more than our limit,
    trim the length based on our limit.
    """
    lookup_rtt_fns = []
    processed_host_port_tuples = set()
    for server_host, server_port, _, _ in ldap_server_records:
        # upgraded domains can end up with duplicate SRV records that differ only by case, but DNS names are
        # case insensitive, so drop the duplicates
        # https://docs.microsoft.com/en-us/troubleshoot/windows-server/networking/dns-registers-duplicate-srv-records-for-dc
        host_port_tuple = (server_host.lower(), server_port)
        if host_port_tuple in processed_host_port_tuples:
            continue
        processed_host_port_tuples.add(host_port_tuple)
        fn = partial(_check_ldap_server_availability_and_rtt, server_host, server_port, source_ip)
        lookup_rtt_fns.append(fn)
    return _process_sort_return_rtt_ordering_results(lookup_rtt_fns, server_limit)


def _process_sort_return_rtt_ordering_results(lookup_rtt_fns: List[Callable],
                                              maximum_result_list_length: int) -> List[str]:
    """ Take in a list of lookup functions that measure round trip time to the server,
    and execute all of them in parallel.

    Each returns a tuple of (round trip time, composed URI), or None. We filter out any
    URIs that could not be reached and sort by round trip time.
    """
    logger.info('Sorting %s LDAP servers by round trip time and removing unreachable servers', len(lookup_rtt_fns))
    if not lookup_rtt_fns:
        return []
    with ThreadPoolExecutor() as executor:
        running_tasks = [executor.submit(lookup_fn) for lookup_fn in lookup_rtt_fns]
        rtt_results = [task.result() for task in running_tasks]
    rtt_uri_tuples = sorted(result_tuple for result_tuple in rtt_results if result_tuple is not None)
    logger.debug('LDAP servers sorted by round trip time to them: %s', rtt_uri_tuples)

    result_list = [uri for _, uri in rtt_uri_tuples]
    if maximum_result_list_length and len(result_list) > maximum_result_list_length:
        result_list = result_list[:maximum_result_list_length]
        logger.info('Trimming list of LDAP servers to the fastest %s to reply due to total number exceeding our '
                    'limit. Remaining servers: %s', maximum_result_list_length, result_list)
    return result_list


def _check_ldap_server_availability_and_rtt(server_host: str, server_port: int, source_ip: str):
    """ Even if an LDAP server is registered in DNS, it might not be reachable for us because of
    network partitions, firewalls, or the server being down.

    This will check if a server is available and return a tuple of the time it took to make that
    check and the URI. It's a quick approximation of how responsive the server is.

    Returns None for any unreachable servers.
    """
    ldap_uri = 'ldap://{}:{}'.format(server_host, server_port)
    # get_info=DSA reads the root DSE, which can be done without binding. this is sometimes called
    # an "LDAP ping"
    server = Server(ldap_uri, get_info=DSA, connect_timeout=LDAP_PING_TIMEOUT_SECONDS)
    conn = Connection(server, source_address=source_ip)
    start = time.time()
    try:
        conn.open()
        end = time.time()
    except LDAPException:
        logger.debug('LDAP server %s was unreachable on port %s', server_host, server_port)
        return None
    finally:
        conn.unbind()
    return end - start, ldap_uri
