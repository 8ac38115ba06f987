#!/usr/bin/env python3
"""Seed the monitor DynamoDB table from a YAML target list.

Each changeset is validated before anything is written. Existing rows are
skipped so their STATUS / STATUS_CHANGED_AT survive a re-seed; pass
--overwrite to replace them (status resets to NORMAL).

Usage:
    python3 scripts/seed_monitors.py --table DA_MONITOR_DNS
    python3 scripts/seed_monitors.py --file monitors/targets.yaml --dry-run
"""

import argparse
import os
import sys
from datetime import datetime, timezone

import boto3
import yaml
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'lambdas'))

from shared.changeset import ChangesetError, dump_changeset, parse_changeset, unsupported_directives
from shared.monitors import Status


def load_targets(path):
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return data.get('targets', [])


def build_item(target):
    """Turn one YAML entry into a table row.

    Raises:
        ChangesetError: If either changeset is malformed.
        KeyError: If 'target' is missing.
    """
    failover = parse_changeset(target.get('failover') or [])
    failback = parse_changeset(target.get('failback') or [])
    bad = unsupported_directives(failover + failback)
    if bad:
        raise ChangesetError('unsupported record type in ' + ', '.join(d.describe() for d in bad))

    return {
        'TARGET_DNS': target['target'],
        'STATUS': Status.NORMAL.value,
        'FAILOVER_INSTANCE': target.get('instance', ''),
        'FAILOVER_DNS_JSON': dump_changeset(failover),
        'FAILBACK_DNS_JSON': dump_changeset(failback),
        'STATUS_CHANGED_AT': datetime.now(timezone.utc).isoformat(),
    }


def seed_item(table, item, overwrite=False):
    kwargs = {} if overwrite else {'ConditionExpression': 'attribute_not_exists(TARGET_DNS)'}
    try:
        table.put_item(Item=item, **kwargs)
        print(f'  {item["TARGET_DNS"]} -> {item["FAILOVER_INSTANCE"] or "(no standby)"}')
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            print(f'  {item["TARGET_DNS"]} -> already exists, skipping')
            return False
        raise


def main():
    parser = argparse.ArgumentParser(description='Seed DynamoDB monitor table')
    parser.add_argument('--table', default=os.environ.get('MONITOR_TABLE', 'DA_MONITOR_DNS'),
                        help='DynamoDB table name')
    parser.add_argument('--region', default=os.environ.get('AWS_REGION', 'ap-northeast-1'),
                        help='AWS region')
    parser.add_argument('--file', default='monitors/targets.yaml', help='Path to targets YAML')
    parser.add_argument('--overwrite', action='store_true', help='Replace existing rows')
    parser.add_argument('--dry-run', action='store_true', help='Validate and print without writing')
    args = parser.parse_args()

    targets = load_targets(args.file)
    print(f'Loaded {len(targets)} targets from {args.file}')

    items = []
    for target in targets:
        try:
            items.append(build_item(target))
        except (ChangesetError, KeyError) as e:
            print(f'  ERROR in {target.get("target", "<unnamed>")}: {e}', file=sys.stderr)
    if len(items) != len(targets):
        sys.exit(1)

    if args.dry_run:
        for item in items:
            print(f'  [DRY RUN] {item["TARGET_DNS"]} -> {item["FAILOVER_INSTANCE"] or "(no standby)"}')
        return

    dynamodb = boto3.resource('dynamodb', region_name=args.region)
    table = dynamodb.Table(args.table)

    created = 0
    for item in items:
        if seed_item(table, item, overwrite=args.overwrite):
            created += 1

    print(f'Done: {created} written, {len(items) - created} already existed in {args.table}')


if __name__ == '__main__':
    main()
