"""Status migration planning and execution for column saves."""

import logging
import uuid
from typing import Iterable, Optional

from ..exceptions import MigrationOutcome, MigrationPartialFailure
from ..schemas.kanban import KanbanColumn
from .email import EmailService

logger = logging.getLogger(__name__)


# Prefix of the intermediate status used to break rename cycles (a -> b, b -> a)
TEMP_STATUS_PREFIX = "__migrating-"


def snapshot_statuses(columns: Iterable[KanbanColumn]) -> dict[str, str]:
    """Map column id -> status; ids are the only key stable across a rename."""
    return {c.id: c.status for c in columns}


def plan_status_migrations(
    previous: dict[str, str],
    columns: Iterable[KanbanColumn],
    requested: Optional[dict[str, str]] = None,
) -> list[tuple[str, str]]:
    """
    Compute the ordered ``(old_status, new_status)`` pairs for a save.

    ``previous`` is the id -> status snapshot taken before the save.
    ``requested`` holds caller-supplied renames; they are applied first and
    are overridden by renames derived from the snapshot. Entries whose target
    is not a status of the new column set are dropped. A status mapped twice
    keeps the last mapping and logs a warning.
    """
    columns = list(columns)
    new_statuses = {c.status for c in columns}
    plan: dict[str, str] = {}

    def record(old_status: str, new_status: str) -> None:
        if not old_status or old_status == new_status:
            return
        if old_status in plan and plan[old_status] != new_status:
            logger.warning(
                f"Conflicting migrations for status '{old_status}': "
                f"'{plan[old_status]}' replaced by '{new_status}'"
            )
        plan[old_status] = new_status

    for old_status, new_status in (requested or {}).items():
        if new_status not in new_statuses:
            logger.warning(
                f"Ignoring migration '{old_status}' -> '{new_status}': "
                f"no column has status '{new_status}'"
            )
            continue
        record(old_status, new_status)

    for column in columns:
        prior = previous.get(column.id)
        if prior is not None:
            record(prior, column.status)

    return order_migrations(plan)


def order_migrations(plan: dict[str, str]) -> list[tuple[str, str]]:
    """
    Order renames so that no email is moved twice.

    A rename into a status that is itself being renamed away must wait for
    that rename. Cycles are broken with a temporary status.
    """
    pending = dict(plan)
    ordered: list[tuple[str, str]] = []

    while pending:
        progressed = False
        for old_status, new_status in list(pending.items()):
            if new_status not in pending:
                ordered.append((old_status, new_status))
                del pending[old_status]
                progressed = True

        if not progressed:
            old_status, new_status = next(iter(pending.items()))
            temp_status = f"{TEMP_STATUS_PREFIX}{uuid.uuid4().hex[:12]}"
            ordered.append((old_status, temp_status))
            del pending[old_status]
            pending[temp_status] = new_status

    return ordered


def group_cycles(plan: list[tuple[str, str]]) -> list[list[tuple[str, str]]]:
    """
    Split an ordered plan into units applied together.

    A rename cycle, from the entry parking a status in a temporary status
    to the entry moving the parked emails out, forms one unit. Every other
    entry is a unit of its own.
    """
    groups: list[list[tuple[str, str]]] = []
    cycle: Optional[list[tuple[str, str]]] = None
    temp_status = None

    for old_status, new_status in plan:
        if cycle is None:
            if new_status.startswith(TEMP_STATUS_PREFIX):
                cycle = [(old_status, new_status)]
                temp_status = new_status
            else:
                groups.append([(old_status, new_status)])
            continue
        cycle.append((old_status, new_status))
        if old_status == temp_status:
            groups.append(cycle)
            cycle = None

    if cycle:
        groups.append(cycle)
    return groups


class StatusMigrationExecutor:
    """Applies a migration plan to an owner's emails."""

    def __init__(self, emails: EmailService):
        self.emails = emails

    async def _apply_single(
        self, owner_id: str, old_status: str, new_status: str
    ) -> MigrationOutcome:
        outcome = MigrationOutcome(old_status=old_status, new_status=new_status)
        try:
            outcome.matched = await self.emails.bulk_rewrite_status(
                owner_id, old_status, new_status
            )
            logger.info(f"Migrated {outcome.matched} emails: '{old_status}' -> '{new_status}'")
        except Exception as e:
            outcome.error = str(e) or e.__class__.__name__
            logger.error(
                f"Status migration '{old_status}' -> '{new_status}' failed for "
                f"owner {owner_id}: {e}"
            )
        return outcome

    async def _apply_cycle(
        self, owner_id: str, cycle: list[tuple[str, str]]
    ) -> list[MigrationOutcome]:
        """
        Run a rename cycle inside one savepoint.

        Either every hop lands or none does, so no email is left behind in
        the temporary status. Hops out of the temporary status are reported
        under the status that was parked.
        """
        original, temp_status = cycle[0]
        outcomes = [
            MigrationOutcome(
                old_status=original if old_status == temp_status else old_status,
                new_status=new_status,
            )
            for old_status, new_status in cycle
        ]

        try:
            async with self.emails.savepoint():
                for outcome, (old_status, new_status) in zip(outcomes, cycle):
                    outcome.matched = await self.emails.bulk_rewrite_status(
                        owner_id, old_status, new_status
                    )
        except Exception as e:
            error = str(e) or e.__class__.__name__
            for outcome in outcomes:
                outcome.matched = 0
                outcome.error = f"rolled back with its rename cycle: {error}"
            logger.error(
                f"Rename cycle through '{original}' rolled back for owner {owner_id}: {e}"
            )
            return outcomes

        for outcome in outcomes:
            if not outcome.new_status.startswith(TEMP_STATUS_PREFIX):
                logger.info(
                    f"Migrated {outcome.matched} emails: "
                    f"'{outcome.old_status}' -> '{outcome.new_status}'"
                )
        return outcomes

    async def apply(
        self, owner_id: str, plan: list[tuple[str, str]]
    ) -> list[MigrationOutcome]:
        """
        Apply the plan in order.

        A failed entry does not undo the others, except within a rename cycle,
        which is all or nothing. An entry moving emails into a status that
        still holds emails of a failed entry is skipped, so buckets are never
        merged. Raises MigrationPartialFailure (carrying all outcomes) once the
        plan has been worked through if any entry failed.
        """
        outcomes: list[MigrationOutcome] = []
        # statuses whose emails did not move
        unmigrated: set[str] = set()

        for group in group_cycles(plan):
            blocked = [new for _, new in group if new in unmigrated]
            if blocked:
                for old_status, new_status in group:
                    outcome = MigrationOutcome(
                        old_status=old_status,
                        new_status=new_status,
                        error=f"skipped, '{blocked[0]}' still holds unmigrated emails",
                    )
                    outcomes.append(outcome)
                    unmigrated.add(old_status)
                logger.warning(
                    f"Skipping status migration of '{group[0][0]}' for owner {owner_id}: "
                    f"'{blocked[0]}' still holds unmigrated emails"
                )
                continue

            if len(group) == 1:
                group_outcomes = [await self._apply_single(owner_id, *group[0])]
            else:
                group_outcomes = await self._apply_cycle(owner_id, group)

            for outcome in group_outcomes:
                if not outcome.ok:
                    unmigrated.add(outcome.old_status)
            outcomes.extend(group_outcomes)

        if any(not o.ok for o in outcomes):
            raise MigrationPartialFailure(outcomes)

        return outcomes


def summarize_outcomes(outcomes: list[MigrationOutcome]) -> dict[str, int]:
    """
    Matched counts keyed by user-visible old status.

    Parking hops of a rename cycle are not counted, and failed entries are
    left out.
    """
    return {
        o.old_status: o.matched
        for o in outcomes
        if o.ok and not o.new_status.startswith(TEMP_STATUS_PREFIX)
    }
