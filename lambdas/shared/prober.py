"""DNS-over-TLS health probe for a monitored resolver endpoint."""

import ipaddress
import logging

import dns.exception
import dns.message
import dns.query
import dns.rcode
import dns.resolver

logger = logging.getLogger(__name__)

DOT_PORT = 853


def _is_address(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


class DnsOverTlsProber:
    """Send one A query for a reference name over TLS and report health.

    Healthy iff the TLS exchange completes and the server answers NOERROR.
    Exactly one attempt per call; every failure mode is reported as
    unhealthy and logged, never raised.
    """

    def __init__(self, query_name: str = 'example.com', timeout: float = 5, port: int = DOT_PORT):
        self.query_name = query_name
        self.timeout = timeout
        self.port = port

    def _endpoint(self, target: str) -> tuple:
        """Return (address, tls server name) for a target host or address."""
        if _is_address(target):
            return target, None
        try:
            answer = dns.resolver.resolve(target, 'A', lifetime=self.timeout)
        except dns.resolver.NoAnswer:
            # IPv6-only endpoint
            answer = dns.resolver.resolve(target, 'AAAA', lifetime=self.timeout)
        return answer[0].to_text(), target

    def probe(self, target_name: str) -> bool:
        logger.info('Performing health check for %s', target_name)
        try:
            address, server_name = self._endpoint(target_name)
            query = dns.message.make_query(self.query_name, 'A')
            response = dns.query.tls(query, address, timeout=self.timeout, port=self.port,
                                     server_hostname=server_name)
        except dns.exception.Timeout:
            logger.warning('Health check for %s timed out after %ss', target_name, self.timeout)
            return False
        except Exception as e:
            logger.warning('Health check for %s failed: %s: %s', target_name, type(e).__name__, e)
            return False

        rcode = response.rcode()
        if rcode != dns.rcode.NOERROR:
            logger.warning('Health check for %s returned %s', target_name, dns.rcode.to_text(rcode))
            return False

        logger.info('Health check passed for %s', target_name)
        return True

    __call__ = probe
