"""Shared fixtures and helpers for DNS failover tests."""

import os
import sys

import pytest
import yaml

# ---------------------------------------------------------------------------
# Path setup: make lambdas/ importable as top-level packages
# ---------------------------------------------------------------------------
_repo_root = os.path.join(os.path.dirname(__file__), '..')
_lambdas_dir = os.path.join(_repo_root, 'lambdas')
sys.path.insert(0, _lambdas_dir)

from shared.changeset import Action, DnsChangeDirective
from shared.cloudflare import RemoteDnsRecord
from shared.monitors import MonitorTarget, Status


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so moto-backed boto3 clients never reach AWS."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'ap-northeast-1')


@pytest.fixture
def repo_root():
    return os.path.abspath(_repo_root)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def upsert(order, fqdn, value, record_type='A', ttl=300):
    return DnsChangeDirective(order=order, action=Action.UPSERT, record_type=record_type,
                              fqdn=fqdn, value=value, ttl=ttl)


def delete(order, fqdn, record_type='A'):
    return DnsChangeDirective(order=order, action=Action.DELETE, record_type=record_type, fqdn=fqdn)


def make_target(name='dns1.example.net', status=Status.NORMAL, instance='i-0123456789abcdef0',
                failover=None, failback=None):
    return MonitorTarget(
        target_name=name,
        status=status,
        standby_instance_id=instance,
        failover_changeset=tuple(failover if failover is not None
                                 else [upsert(1, 'www.example.net', '198.51.100.20')]),
        failback_changeset=tuple(failback if failback is not None
                                 else [upsert(1, 'www.example.net', '203.0.113.10')]),
        status_changed_at='2026-01-01T00:00:00+00:00',
    )


# ---------------------------------------------------------------------------
# In-memory collaborators; every call lands in a shared ``calls`` list so
# tests can assert cross-collaborator ordering.
# ---------------------------------------------------------------------------
class FakeDnsProvider:
    def __init__(self, records=None, calls=None, fail_on=()):
        self.records = list(records or [])
        self.calls = calls if calls is not None else []
        self.fail_on = set(fail_on)
        self._next_id = 100

    def _maybe_fail(self, op):
        if op in self.fail_on:
            raise RuntimeError(f'{op} refused')

    def list_records(self):
        self.calls.append(('list_records',))
        self._maybe_fail('list_records')
        return [RemoteDnsRecord(r.id, r.name, r.type, r.content, r.ttl, r.proxied)
                for r in self.records]

    def create_record(self, fqdn, value, proxied, record_type, ttl):
        self.calls.append(('create_record', fqdn, value, proxied, record_type, ttl))
        self._maybe_fail('create_record')
        self._next_id += 1
        record = RemoteDnsRecord(str(self._next_id), fqdn, record_type, value, ttl, proxied)
        self.records.append(record)
        return record

    def update_record(self, record):
        self.calls.append(('update_record', record.id, record.content, record.ttl))
        self._maybe_fail('update_record')
        for i, existing in enumerate(self.records):
            if existing.id == record.id:
                self.records[i] = RemoteDnsRecord(record.id, record.name, record.type,
                                                  record.content, record.ttl, record.proxied)
        return record

    def delete_record(self, record_id):
        self.calls.append(('delete_record', record_id))
        self._maybe_fail('delete_record')
        self.records = [r for r in self.records if r.id != record_id]


class FakeCompute:
    def __init__(self, calls=None, fail_on=()):
        self.calls = calls if calls is not None else []
        self.fail_on = set(fail_on)

    def start(self, instance_id):
        self.calls.append(('start', instance_id))
        if 'start' in self.fail_on:
            raise RuntimeError('InsufficientInstanceCapacity')
        return 'pending'

    def stop(self, instance_id):
        self.calls.append(('stop', instance_id))
        if 'stop' in self.fail_on:
            raise RuntimeError('IncorrectInstanceState')
        return 'stopping'


class RecordingApplier:
    """Stands in for DnsChangeApplier; records which changeset was applied."""

    def __init__(self, calls=None, results=None):
        self.calls = calls if calls is not None else []
        self.results = results or []

    def apply(self, changeset):
        self.calls.append(('apply', tuple(changeset)))
        return list(self.results)


class RecordingNotifier:
    def __init__(self, calls=None):
        self.calls = calls if calls is not None else []
        self.messages = []

    def notify(self, message, detail=None):
        self.calls.append(('notify', message))
        self.messages.append((message, detail))
        return True


class ScriptedProber:
    def __init__(self, health, calls=None):
        self.health = dict(health)
        self.calls = calls if calls is not None else []

    def probe(self, target_name):
        self.calls.append(('probe', target_name))
        return self.health[target_name]


# ---------------------------------------------------------------------------
# Fixtures — load the example monitor configuration
# ---------------------------------------------------------------------------
@pytest.fixture
def monitor_targets():
    """Load monitors/targets.example.yaml target list."""
    with open(os.path.join(_repo_root, 'monitors', 'targets.example.yaml')) as f:
        return yaml.safe_load(f)['targets']
