"""One reconciliation pass over every monitor target.

Targets are processed sequentially, which also keeps DNS changesets from
racing each other. Every status staged by the state machine, including those
of transitions that only partly succeeded, is committed at the end of the
pass; a commit failure does not undo DNS, compute or notification side
effects already performed.
"""

import logging
from dataclasses import dataclass, field

from failover.state_machine import FailoverStateMachine

logger = logging.getLogger(__name__)

INVALID = 'invalid'
FAILED = 'failed'

STAGE_LOAD = 'LOAD'
STAGE_UNEXPECTED = 'UNEXPECTED'
STAGE_COMMIT = 'COMMIT'


@dataclass
class PassSummary:
    outcomes: list = field(default_factory=list)
    committed: int = 0
    commit_error: str = ''

    def record(self, target: str, outcome: str, status: str = '', stage: str = '',
               error: str = '', healthy=None) -> None:
        entry = {'target': target, 'outcome': outcome}
        if healthy is not None:
            entry['healthy'] = healthy
        if status:
            entry['status'] = status
        if stage:
            entry['stage'] = stage
            entry['error'] = error
        self.outcomes.append(entry)

    @property
    def failures(self) -> list:
        return [o for o in self.outcomes if o['outcome'] in (FAILED, INVALID)]

    def as_dict(self) -> dict:
        return {
            'status': 'error' if self.commit_error else 'ok',
            'targets': self.outcomes,
            'committed': self.committed,
            'commit_error': self.commit_error,
            'failures': len(self.failures),
        }


class ReconciliationPass:

    def __init__(self, prober, state_machine: FailoverStateMachine, store, notifier):
        self.prober = prober
        self.state_machine = state_machine
        self.store = store
        self.notifier = notifier

    def run(self, targets, load_errors=()) -> PassSummary:
        """Probe and evaluate every target, then commit status changes.

        Args:
            targets: MonitorTarget rows read at the start of the pass.
            load_errors: (name, message) pairs for rows that failed to decode.
        """
        summary = PassSummary()

        for name, message in load_errors:
            summary.record(name, INVALID, stage=STAGE_LOAD, error=message)
            self.notifier.notify(f'[ERROR] Monitor {name} could not be loaded', message)

        pending = []
        for target in targets:
            try:
                updated = self._reconcile_target(target, summary)
            except Exception as e:
                logger.exception('Unexpected failure while reconciling %s', target.target_name)
                error = f'{type(e).__name__}: {e}'
                summary.record(target.target_name, FAILED, status=target.status.value,
                               stage=STAGE_UNEXPECTED, error=error)
                self.notifier.notify(f'[ERROR] Reconciliation failed for {target.target_name}', error)
                continue
            if updated is not None:
                pending.append(updated)

        self._commit(pending, summary)
        return summary

    def _reconcile_target(self, target, summary: PassSummary):
        logger.info('--- Checking target: %s (status=%s) ---', target.target_name, target.status.value)
        healthy = bool(self.prober.probe(target.target_name))
        logger.info('Health check result for %s: %s', target.target_name,
                    'HEALTHY' if healthy else 'UNHEALTHY')

        result = self.state_machine.evaluate(target, healthy)
        status = result.updated.status.value if result.changed else target.status.value
        if not result.ok:
            summary.record(target.target_name, FAILED, status=status,
                           stage=result.failed_stage, error=result.error, healthy=healthy)
        else:
            summary.record(target.target_name, result.action, status=status, healthy=healthy)
        return result.updated

    def _commit(self, pending: list, summary: PassSummary) -> None:
        if not pending:
            logger.info('No status changes to persist')
            return
        logger.info('Committing status updates for %d targets', len(pending))
        try:
            summary.committed = self.store.commit(pending)
        except Exception as e:
            logger.exception('Status commit failed')
            summary.commit_error = f'{type(e).__name__}: {e}'
            names = ', '.join(t.target_name for t in pending)
            self.notifier.notify(f'[ERROR] Status commit failed for {names}', summary.commit_error)
