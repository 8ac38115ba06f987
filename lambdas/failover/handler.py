"""DNS failover Lambda handler.

Invoked on a schedule (EventBridge). Each invocation is one reconciliation
pass: scan the monitor table, probe every target over DNS-over-TLS, fail over
or fail back as needed, and persist status changes in one batch.

The optional event key ``targets`` restricts the pass to the named targets.
Nothing raised inside a pass escapes this handler.
"""

import logging
import os
import sys

import boto3
from botocore.config import Config

# Add parent dir to path for shared modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shared.cloudflare import CloudflareClient
from shared.compute import Ec2Compute
from shared.config import load_settings
from shared.dns_applier import DnsChangeApplier
from shared.monitors import MonitorStore
from shared.notify import LogNotifier, build_notifier
from shared.prober import DnsOverTlsProber
from failover.reconcile import ReconciliationPass
from failover.state_machine import FailoverStateMachine

logger = logging.getLogger(__name__)


def build_pass(settings, session=None) -> tuple:
    """Create the collaborators for one pass.

    Returns:
        (MonitorStore, notifier, ReconciliationPass)
    """
    session = session or boto3.session.Session(region_name=settings.region)
    aws_config = Config(
        connect_timeout=settings.http_timeout,
        read_timeout=settings.http_timeout,
        retries={'max_attempts': 3, 'mode': 'standard'},
    )

    store = MonitorStore(session.resource('dynamodb', config=aws_config).Table(settings.monitor_table))
    sns = session.client('sns', config=aws_config) if settings.notify_topic_arn else None
    notifier = build_notifier(settings, sns_client=sns)

    cloudflare = CloudflareClient(
        settings.cloudflare_zone_id,
        api_token=settings.cloudflare_api_token,
        api_key=settings.cloudflare_api_key,
        email=settings.cloudflare_email,
        timeout=settings.http_timeout,
    )
    state_machine = FailoverStateMachine(
        applier=DnsChangeApplier(cloudflare),
        compute=Ec2Compute(session.client('ec2', config=aws_config)),
        notifier=notifier,
    )
    prober = DnsOverTlsProber(settings.probe_query_name, timeout=settings.probe_timeout)
    return store, notifier, ReconciliationPass(prober, state_machine, store, notifier)


def _select(loaded, names):
    """Restrict loaded targets and load errors to the requested names.

    A single name may be passed as a plain string.
    """
    if not names:
        return loaded.targets, loaded.errors
    if isinstance(names, str):
        names = [names]
    wanted = set(names)
    missing = wanted - {t.target_name for t in loaded.targets} - {n for n, _ in loaded.errors}
    for name in sorted(missing):
        logger.warning('Requested target %s is not in the monitor table', name)
    targets = [t for t in loaded.targets if t.target_name in wanted]
    errors = [(n, m) for n, m in loaded.errors if n in wanted]
    return targets, errors


def lambda_handler(event, context):
    """Run one reconciliation pass and return its summary."""
    event = event or {}
    notifier = LogNotifier()
    logger.info('=== Failover reconciliation pass started ===')

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)

        store, notifier, reconciler = build_pass(settings)
        loaded = store.scan()
        targets, errors = _select(loaded, event.get('targets'))

        summary = reconciler.run(targets, errors)
    except Exception as e:
        logger.exception('Unhandled exception in failover handler')
        notifier.notify('[FATAL] Failover reconciliation pass aborted', f'{type(e).__name__}: {e}')
        return {'status': 'error', 'message': f'{type(e).__name__}: {e}'}

    result = summary.as_dict()
    logger.info('=== Failover reconciliation pass completed: %d targets, %d failures ===',
                len(result['targets']), result['failures'])
    return result
