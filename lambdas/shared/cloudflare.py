"""Minimal Cloudflare v4 DNS records client for one zone."""

import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

API_BASE = 'https://api.cloudflare.com/client/v4'
PER_PAGE = 100


class CloudflareError(Exception):
    """Raised for transport failures, HTTP errors and ``success: false`` replies."""


@dataclass
class RemoteDnsRecord:
    id: str
    name: str
    type: str
    content: str
    ttl: int
    proxied: bool = False

    @classmethod
    def from_api(cls, raw: dict) -> 'RemoteDnsRecord':
        return cls(
            id=raw['id'],
            name=raw['name'],
            type=raw['type'],
            content=raw.get('content', ''),
            ttl=int(raw.get('ttl', 1)),
            proxied=bool(raw.get('proxied', False)),
        )


class CloudflareClient:
    """Thin wrapper over the zone ``dns_records`` endpoints.

    Authenticates with an API token when one is given, otherwise with the
    global API key and account email.
    """

    def __init__(self, zone_id: str, api_token: str = '', api_key: str = '',
                 email: str = '', timeout: float = 10, session=None):
        self.zone_id = zone_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers['Content-Type'] = 'application/json'
        if api_token:
            self.session.headers['Authorization'] = f'Bearer {api_token}'
        else:
            self.session.headers['X-Auth-Key'] = api_key
            self.session.headers['X-Auth-Email'] = email

    @property
    def _records_url(self) -> str:
        return f'{API_BASE}/zones/{self.zone_id}/dns_records'

    def _call(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise CloudflareError(f'{method} {url} failed: {e}') from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.ok or not data.get('success', False):
            errors = data.get('errors') or resp.text[:200]
            raise CloudflareError(f'{method} {url} returned {resp.status_code}: {errors}')
        return data

    def list_records(self) -> list:
        """Return every record in the zone, following page-based pagination."""
        records = []
        page = 1
        while True:
            data = self._call('GET', self._records_url,
                              params={'page': page, 'per_page': PER_PAGE})
            records.extend(RemoteDnsRecord.from_api(r) for r in data.get('result') or [])
            info = data.get('result_info') or {}
            if page >= info.get('total_pages', 1):
                break
            page += 1
        logger.debug('Fetched %d records from zone %s', len(records), self.zone_id)
        return records

    def create_record(self, fqdn: str, value: str, proxied: bool, record_type: str,
                      ttl: int) -> RemoteDnsRecord:
        payload = {
            'type': record_type,
            'name': fqdn,
            'content': value,
            'ttl': ttl,
            'proxied': proxied,
        }
        data = self._call('POST', self._records_url, json=payload)
        return RemoteDnsRecord.from_api(data['result'])

    def update_record(self, record: RemoteDnsRecord) -> RemoteDnsRecord:
        payload = {
            'type': record.type,
            'name': record.name,
            'content': record.content,
            'ttl': record.ttl,
            'proxied': record.proxied,
        }
        data = self._call('PUT', f'{self._records_url}/{record.id}', json=payload)
        return RemoteDnsRecord.from_api(data['result'])

    def delete_record(self, record_id: str) -> None:
        self._call('DELETE', f'{self._records_url}/{record_id}')
