"""DNS-over-TLS prober tests.

Tests lambdas/shared/prober.py - every failure mode must come back as
unhealthy instead of raising.
"""

import socket
import ssl
from unittest.mock import MagicMock, patch

import dns.exception
import dns.message
import dns.rcode
import dns.resolver
import pytest

from shared.prober import DnsOverTlsProber


def _answer(query, rcode=dns.rcode.NOERROR):
    response = dns.message.make_response(query)
    response.set_rcode(rcode)
    return response


class TestProbe:
    def test_noerror_is_healthy(self):
        prober = DnsOverTlsProber('example.com', timeout=2)
        with patch('shared.prober.dns.query.tls', side_effect=lambda q, *a, **k: _answer(q)) as tls:
            assert prober.probe('192.0.2.53') is True

        query, address = tls.call_args.args
        assert address == '192.0.2.53'
        assert query.question[0].name.to_text() == 'example.com.'
        assert tls.call_args.kwargs['timeout'] == 2
        assert tls.call_args.kwargs['port'] == 853
        assert tls.call_args.kwargs['server_hostname'] is None

    def test_exactly_one_attempt(self):
        with patch('shared.prober.dns.query.tls', side_effect=dns.exception.Timeout) as tls:
            assert DnsOverTlsProber().probe('192.0.2.53') is False
        assert tls.call_count == 1

    @pytest.mark.parametrize('rcode', [dns.rcode.SERVFAIL, dns.rcode.REFUSED, dns.rcode.NXDOMAIN])
    def test_error_rcode_is_unhealthy(self, rcode):
        with patch('shared.prober.dns.query.tls', side_effect=lambda q, *a, **k: _answer(q, rcode)):
            assert DnsOverTlsProber().probe('192.0.2.53') is False

    @pytest.mark.parametrize('error', [
        ConnectionRefusedError('refused'),
        ssl.SSLError('handshake failure'),
        socket.timeout('timed out'),
        dns.exception.FormError('bad reply'),
    ])
    def test_transport_errors_are_unhealthy(self, error):
        with patch('shared.prober.dns.query.tls', side_effect=error):
            assert DnsOverTlsProber().probe('192.0.2.53') is False

    def test_hostname_resolved_and_used_for_tls(self):
        answer = [MagicMock()]
        answer[0].to_text.return_value = '198.51.100.53'
        with patch('shared.prober.dns.resolver.resolve', return_value=answer) as resolve, \
                patch('shared.prober.dns.query.tls', side_effect=lambda q, *a, **k: _answer(q)) as tls:
            assert DnsOverTlsProber(timeout=3).probe('dns1.example.net') is True

        resolve.assert_called_once_with('dns1.example.net', 'A', lifetime=3)
        assert tls.call_args.args[1] == '198.51.100.53'
        assert tls.call_args.kwargs['server_hostname'] == 'dns1.example.net'

    def test_ipv6_only_hostname_falls_back_to_aaaa(self):
        answer = [MagicMock()]
        answer[0].to_text.return_value = '2001:db8::53'

        def resolve(name, rdtype, lifetime):
            if rdtype == 'A':
                raise dns.resolver.NoAnswer()
            return answer

        with patch('shared.prober.dns.resolver.resolve', side_effect=resolve) as resolver, \
                patch('shared.prober.dns.query.tls', side_effect=lambda q, *a, **k: _answer(q)) as tls:
            assert DnsOverTlsProber(timeout=3).probe('dns6.example.net') is True

        assert [c.args[1] for c in resolver.call_args_list] == ['A', 'AAAA']
        assert tls.call_args.args[1] == '2001:db8::53'
        assert tls.call_args.kwargs['server_hostname'] == 'dns6.example.net'

    def test_hostname_without_addresses_is_unhealthy(self):
        with patch('shared.prober.dns.resolver.resolve', side_effect=dns.resolver.NoAnswer()), \
                patch('shared.prober.dns.query.tls') as tls:
            assert DnsOverTlsProber().probe('empty.example.net') is False
        tls.assert_not_called()

    def test_unresolvable_hostname_is_unhealthy(self):
        with patch('shared.prober.dns.resolver.resolve', side_effect=dns.exception.DNSException('nx')), \
                patch('shared.prober.dns.query.tls') as tls:
            assert DnsOverTlsProber().probe('missing.example.net') is False
        tls.assert_not_called()

    def test_callable(self):
        with patch('shared.prober.dns.query.tls', side_effect=lambda q, *a, **k: _answer(q)):
            assert DnsOverTlsProber()('192.0.2.53') is True
