"""DynamoDB-backed monitor targets.

One row per DNS endpoint under management, keyed by TARGET_DNS. Rows are
created out of band (see scripts/seed_monitors.py); this module reads them
and writes back STATUS / STATUS_CHANGED_AT.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from botocore.exceptions import ClientError

from shared.changeset import ChangesetError, parse_changeset, unsupported_directives

logger = logging.getLogger(__name__)

KEY = 'TARGET_DNS'
STATUS = 'STATUS'
FAILOVER_INSTANCE = 'FAILOVER_INSTANCE'
FAILOVER_DNS_JSON = 'FAILOVER_DNS_JSON'
FAILBACK_DNS_JSON = 'FAILBACK_DNS_JSON'
STATUS_CHANGED_AT = 'STATUS_CHANGED_AT'


class Status(str, Enum):
    NORMAL = 'NORMAL'
    FAILED_OVER = 'FAILED_OVER'


# Older rows store the status as "1" (normal) / "0" (failed over).
_LEGACY_STATUS = {'1': Status.NORMAL, '0': Status.FAILED_OVER}


class MonitorLoadError(ValueError):
    """Raised when a table row cannot be turned into a MonitorTarget."""


class MonitorCommitError(Exception):
    """Raised when one or more status writes failed."""


def parse_status(raw) -> Status:
    if raw is None or str(raw).strip() == '':
        return Status.NORMAL
    text = str(raw).strip().upper()
    if text in _LEGACY_STATUS:
        return _LEGACY_STATUS[text]
    try:
        return Status(text)
    except ValueError:
        raise MonitorLoadError(f'unknown status {raw!r}')


@dataclass(frozen=True)
class MonitorTarget:
    target_name: str
    status: Status
    standby_instance_id: str
    failover_changeset: tuple = ()
    failback_changeset: tuple = ()
    status_changed_at: str = ''

    @classmethod
    def from_item(cls, item: dict) -> 'MonitorTarget':
        """Decode a table row.

        Raises:
            MonitorLoadError: On a missing key, unknown status or malformed
                              changeset.
        """
        name = item.get(KEY)
        if not name:
            raise MonitorLoadError(f'row without {KEY}')

        try:
            status = parse_status(item.get(STATUS))
            failover = parse_changeset(item.get(FAILOVER_DNS_JSON))
            failback = parse_changeset(item.get(FAILBACK_DNS_JSON))
        except (MonitorLoadError, ChangesetError) as e:
            raise MonitorLoadError(f'{name}: {e}') from e

        for label, changeset in (('failover', failover), ('failback', failback)):
            for directive in unsupported_directives(changeset):
                logger.warning('%s: %s changeset directive %s uses an unsupported record type',
                               name, label, directive.describe())

        return cls(
            target_name=name,
            status=status,
            standby_instance_id=item.get(FAILOVER_INSTANCE, ''),
            failover_changeset=failover,
            failback_changeset=failback,
            status_changed_at=item.get(STATUS_CHANGED_AT, ''),
        )

    def with_status(self, status: Status, changed_at: str) -> 'MonitorTarget':
        return replace(self, status=status, status_changed_at=changed_at)


@dataclass
class LoadedTargets:
    targets: list
    errors: list  # (target name or '<unknown>', message)


class MonitorStore:

    def __init__(self, table):
        self.table = table

    def scan(self) -> LoadedTargets:
        """Read every row, following LastEvaluatedKey pagination."""
        items = []
        kwargs = {}
        while True:
            resp = self.table.scan(**kwargs)
            items.extend(resp.get('Items', []))
            last_key = resp.get('LastEvaluatedKey')
            if not last_key:
                break
            kwargs['ExclusiveStartKey'] = last_key

        targets = []
        errors = []
        for item in items:
            try:
                targets.append(MonitorTarget.from_item(item))
            except MonitorLoadError as e:
                logger.error('Skipping monitor row: %s', e)
                errors.append((item.get(KEY) or '<unknown>', str(e)))

        logger.info('Fetched %d targets (%d invalid)', len(targets), len(errors))
        return LoadedTargets(targets=targets, errors=errors)

    def commit(self, targets) -> int:
        """Write STATUS / STATUS_CHANGED_AT of each updated target.

        Only the two status attributes are set, so changesets or instance
        ids edited while the pass ran are left as they are. Rows deleted
        during the pass are not recreated. Every target is attempted;
        failed writes are raised together afterwards.

        Returns:
            Number of rows written.

        Raises:
            MonitorCommitError: If any write failed for a reason other than
                                the row having been deleted.
        """
        written = 0
        failed = []
        for target in targets:
            try:
                self.table.update_item(
                    Key={KEY: target.target_name},
                    UpdateExpression='SET #s = :s, #c = :c',
                    ConditionExpression='attribute_exists(#k)',
                    ExpressionAttributeNames={'#s': STATUS, '#c': STATUS_CHANGED_AT, '#k': KEY},
                    ExpressionAttributeValues={
                        ':s': target.status.value,
                        ':c': target.status_changed_at,
                    },
                )
            except ClientError as e:
                if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                    logger.warning('%s was deleted during the pass; status not written', target.target_name)
                    continue
                logger.error('Status write for %s failed: %s', target.target_name, e)
                failed.append(f'{target.target_name}: {e}')
                continue
            written += 1

        if written:
            logger.info('Status updates completed for %d targets', written)
        if failed:
            raise MonitorCommitError('; '.join(failed))
        return written
