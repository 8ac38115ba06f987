"""Apply an ordered changeset against the DNS provider.

Best-effort: each directive produces its own DirectiveResult and a failure
never stops the directives after it. There is no rollback.

The provider's record list is fetched once per apply() and never refreshed,
so a record created by one directive is invisible to later directives in the
same changeset. Changesets touching the same (fqdn, type) must not be applied
concurrently.
"""

import logging
from dataclasses import dataclass

from shared.changeset import Action

logger = logging.getLogger(__name__)

CREATED = 'created'
UPDATED = 'updated'
DELETED = 'deleted'
SKIPPED = 'skipped'
FAILED = 'failed'


@dataclass(frozen=True)
class DirectiveResult:
    directive: object
    outcome: str
    error: str = ''

    @property
    def failed(self) -> bool:
        return self.outcome == FAILED


def failed_results(results) -> list:
    return [r for r in results if r.failed]


def _find_record(snapshot, fqdn: str, record_type: str):
    """First record matching (fqdn, type); duplicates beyond it are ignored."""
    return next((r for r in snapshot if r.name == fqdn and r.type == record_type), None)


class DnsChangeApplier:

    def __init__(self, provider):
        self.provider = provider

    def apply(self, changeset) -> list:
        """Reconcile each directive in ascending order.

        Args:
            changeset: Iterable of DnsChangeDirective.

        Returns:
            One DirectiveResult per directive, in application order. Empty
            list for an empty changeset.

        Raises:
            Exception: Only if the initial record listing fails; nothing has
                       been mutated at that point.
        """
        directives = sorted(changeset, key=lambda d: d.order)
        if not directives:
            logger.info('No DNS changes to process')
            return []

        snapshot = self.provider.list_records()
        logger.info('Applying %d DNS changes against %d existing records',
                    len(directives), len(snapshot))

        results = []
        for directive in directives:
            result = self._apply_one(snapshot, directive)
            if result.failed:
                logger.error('DNS change %s failed: %s', directive.describe(), result.error)
            else:
                logger.info('DNS change %s: %s', directive.describe(), result.outcome)
            results.append(result)
        return results

    def _apply_one(self, snapshot, directive) -> DirectiveResult:
        if not directive.supported:
            return DirectiveResult(directive, FAILED,
                                   f'Unsupported record type: {directive.record_type}')

        existing = _find_record(snapshot, directive.fqdn, directive.record_type)

        try:
            if directive.action == Action.UPSERT:
                if existing is not None:
                    existing.content = directive.value
                    existing.ttl = directive.ttl
                    self.provider.update_record(existing)
                    return DirectiveResult(directive, UPDATED)
                self.provider.create_record(directive.fqdn, directive.value, False,
                                            directive.record_type, directive.ttl)
                return DirectiveResult(directive, CREATED)

            if existing is None:
                logger.info('Record not found for deletion: %s %s',
                            directive.record_type, directive.fqdn)
                return DirectiveResult(directive, SKIPPED)
            self.provider.delete_record(existing.id)
            return DirectiveResult(directive, DELETED)
        except Exception as e:
            return DirectiveResult(directive, FAILED, str(e))
