"""Failover / failback decisions for a single monitor target.

    NORMAL      + healthy   -> no-op
    NORMAL      + unhealthy -> failover: start standby, apply failover DNS
    FAILED_OVER + unhealthy -> no-op
    FAILED_OVER + healthy   -> failback: apply failback DNS, stop standby

Failover starts the standby before DNS points at it; failback moves DNS off
the standby before stopping it. Once a transition starts its new status is
always staged, whatever happens to the individual steps. Failed DNS
directives are reported and the remaining steps still run. A step that
raises (compute call, record listing) is reported and ends the transition,
so the standby is never stopped after DNS could not be read or written.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from shared.dns_applier import failed_results
from shared.monitors import Status

logger = logging.getLogger(__name__)

NOOP = 'noop'
FAILOVER = 'failover'
FAILBACK = 'failback'

STAGE_COMPUTE = 'COMPUTE'
STAGE_DNS = 'DNS'


def decide(status: Status, healthy: bool) -> str:
    if status == Status.NORMAL:
        return NOOP if healthy else FAILOVER
    return FAILBACK if healthy else NOOP


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransitionResult:
    target_name: str
    action: str
    updated: object = None
    failed_stage: str = ''
    error: str = ''

    @property
    def ok(self) -> bool:
        return not self.failed_stage

    @property
    def changed(self) -> bool:
        return self.updated is not None


class FailoverStateMachine:

    def __init__(self, applier, compute, notifier, clock=_utc_now):
        self.applier = applier
        self.compute = compute
        self.notifier = notifier
        self.clock = clock

    def evaluate(self, target, healthy: bool) -> TransitionResult:
        """Run whatever transition (target.status, healthy) calls for.

        No-op combinations make no external call at all.
        """
        action = decide(target.status, healthy)
        if action == NOOP:
            if target.status == Status.NORMAL:
                logger.info('%s healthy: no action required', target.target_name)
            else:
                logger.info('%s still unhealthy: remaining failed over', target.target_name)
            return TransitionResult(target.target_name, NOOP)

        logger.info('%s triggered for %s', action.upper(), target.target_name)
        if action == FAILOVER:
            new_status = Status.FAILED_OVER
            steps = [
                (STAGE_COMPUTE, lambda: self._start(target)),
                (STAGE_DNS, lambda: self._apply(target.failover_changeset)),
            ]
        else:
            new_status = Status.NORMAL
            steps = [
                (STAGE_DNS, lambda: self._apply(target.failback_changeset)),
                (STAGE_COMPUTE, lambda: self._stop(target)),
            ]

        failures = []
        for stage, step in steps:
            error, fatal = self._run_step(step)
            if not error:
                continue
            logger.error('%s for %s failed at %s: %s', action, target.target_name, stage, error)
            self.notifier.notify(
                f'[ERROR] {action.capitalize()} failed for {target.target_name} at {stage}',
                error,
            )
            failures.append((stage, error))
            if fatal:
                break

        changed_at = self.clock().isoformat()
        updated = target.with_status(new_status, changed_at)
        logger.info('Status of %s staged as %s', target.target_name, new_status.value)
        if failures:
            return TransitionResult(
                target.target_name, action, updated=updated,
                failed_stage=','.join(stage for stage, _ in failures),
                error='; '.join(error for _, error in failures),
            )
        self.notifier.notify(f'{action.capitalize()} executed for {target.target_name} at {changed_at}')
        return TransitionResult(target.target_name, action, updated=updated)

    @staticmethod
    def _run_step(step):
        """Run one stage; return (error, fatal). error is '' on success."""
        try:
            return step() or '', False
        except Exception as e:
            return f'{type(e).__name__}: {e}', True

    def _apply(self, changeset) -> str:
        failures = failed_results(self.applier.apply(changeset))
        if not failures:
            return ''
        return '; '.join(f'{r.directive.describe()}: {r.error}' for r in failures)

    def _start(self, target) -> str:
        if not target.standby_instance_id:
            logger.info('%s has no standby instance; skipping start', target.target_name)
            return ''
        self.compute.start(target.standby_instance_id)
        return ''

    def _stop(self, target) -> str:
        if not target.standby_instance_id:
            logger.info('%s has no standby instance; skipping stop', target.target_name)
            return ''
        self.compute.stop(target.standby_instance_id)
        return ''
