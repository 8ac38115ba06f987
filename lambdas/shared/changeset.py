"""DNS change directives and the JSON changeset format.

A changeset is stored on each monitor row as a JSON array:

    [{"order": 1, "action": "upsert", "type": "A",
      "fqdn": "www.example.com", "value": "203.0.113.10", "ttl": 300}]

Structure is validated with jsonschema when the row is loaded. Record types
are not rejected at load time: unsupported ones are flagged here and fail
individually when the changeset is applied.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum

import jsonschema

logger = logging.getLogger(__name__)

# Cloudflare treats ttl=1 as "automatic".
DEFAULT_TTL = 1


class Action(str, Enum):
    UPSERT = 'upsert'
    DELETE = 'delete'


class RecordType(str, Enum):
    A = 'A'
    AAAA = 'AAAA'
    CNAME = 'CNAME'
    TXT = 'TXT'
    MX = 'MX'
    SRV = 'SRV'
    NS = 'NS'
    PTR = 'PTR'
    CAA = 'CAA'


SUPPORTED_RECORD_TYPES = frozenset(t.value for t in RecordType)

DIRECTIVE_SCHEMA = {
    'type': 'object',
    'required': ['order', 'action', 'type', 'fqdn'],
    'properties': {
        'order': {'type': 'integer'},
        'action': {'type': 'string', 'pattern': '^(?i:upsert|delete)$'},
        'type': {'type': 'string', 'minLength': 1},
        'fqdn': {'type': 'string', 'minLength': 1},
        'value': {'type': 'string'},
        'ttl': {'type': 'integer', 'minimum': 1},
    },
    'if': {'properties': {'action': {'pattern': '^(?i:upsert)$'}}},
    'then': {'required': ['value']},
}

CHANGESET_SCHEMA = {
    'type': 'array',
    'items': DIRECTIVE_SCHEMA,
}


class ChangesetError(ValueError):
    """Raised when a stored changeset is not valid JSON or fails the schema."""


@dataclass(frozen=True)
class DnsChangeDirective:
    order: int
    action: Action
    record_type: str
    fqdn: str
    value: str = ''
    ttl: int = DEFAULT_TTL

    @property
    def supported(self) -> bool:
        return self.record_type in SUPPORTED_RECORD_TYPES

    @classmethod
    def from_dict(cls, raw: dict) -> 'DnsChangeDirective':
        """Build a directive from one already-validated changeset entry."""
        return cls(
            order=int(raw['order']),
            action=Action(raw['action'].lower()),
            record_type=raw['type'].strip().upper(),
            fqdn=raw['fqdn'].strip(),
            value=raw.get('value', ''),
            ttl=int(raw.get('ttl', DEFAULT_TTL)),
        )

    def to_dict(self) -> dict:
        return {
            'order': self.order,
            'action': self.action.value,
            'type': self.record_type,
            'fqdn': self.fqdn,
            'value': self.value,
            'ttl': self.ttl,
        }

    def describe(self) -> str:
        return f'#{self.order} {self.action.value} {self.record_type} {self.fqdn}'


def parse_changeset(raw) -> tuple:
    """Parse a stored changeset into directives sorted by ``order``.

    Args:
        raw: JSON text, an already-decoded list, or None/'' for an empty
             changeset.

    Returns:
        Tuple of DnsChangeDirective in ascending ``order``. Directives sharing
        an order keep their stored relative position.

    Raises:
        ChangesetError: If the JSON is malformed or fails the schema.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return ()

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ChangesetError(f'changeset is not valid JSON: {e}') from e
    else:
        data = raw

    try:
        jsonschema.validate(data, CHANGESET_SCHEMA)
    except jsonschema.ValidationError as e:
        path = '/'.join(str(p) for p in e.absolute_path) or '<root>'
        raise ChangesetError(f'changeset invalid at {path}: {e.message}') from e

    directives = [DnsChangeDirective.from_dict(entry) for entry in data]
    directives.sort(key=lambda d: d.order)
    return tuple(directives)


def unsupported_directives(changeset) -> list:
    """Return the directives whose record type cannot be applied."""
    return [d for d in changeset if not d.supported]


def dump_changeset(changeset) -> str:
    """Serialize directives back to the stored JSON format."""
    return json.dumps([d.to_dict() for d in changeset])
