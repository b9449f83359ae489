"""
Reconciliation planning: diff this run's findings against the active
action items of one location.

The plan is computed purely in memory from two inputs, the fired outputs
and the location's currently active items, before any write happens:

- resolve: open items whose rule did not fire this run. in_progress items
  are never auto-resolved; a person is working on them.
- update: fired outputs that already have an active item for their rule.
  The item keeps its id and status; only content fields change.
- create: fired outputs with no active item for their rule.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from franchise_ops.features.action_engine.domain import (
    ACTIVE_STATUSES,
    ActionItem,
    ActionItemOutput,
)


@dataclass(frozen=True, slots=True)
class ReconciliationPlan:
    resolve: tuple[ActionItem, ...] = ()
    update: tuple[tuple[ActionItem, ActionItemOutput], ...] = ()
    create: tuple[ActionItemOutput, ...] = ()

    @property
    def fired_rule_ids(self) -> frozenset[str]:
        return frozenset(
            [output.rule_id for _, output in self.update] + [o.rule_id for o in self.create]
        )

    @property
    def is_empty(self) -> bool:
        return not (self.resolve or self.update or self.create)


def plan_reconciliation(
    outputs: Sequence[ActionItemOutput],
    active_items: Sequence[ActionItem],
) -> ReconciliationPlan:
    fired: dict[str, ActionItemOutput] = {}
    for output in outputs:
        fired.setdefault(output.rule_id, output)

    existing: dict[str, ActionItem] = {}
    for item in active_items:
        if item.status in ACTIVE_STATUSES:
            # First one wins; callers pass items newest first
            existing.setdefault(item.rule_id, item)

    resolve = tuple(
        item
        for item in active_items
        if item.status == "open" and item.rule_id not in fired
    )

    update = []
    create = []
    for rule_id, output in fired.items():
        if rule_id in existing:
            update.append((existing[rule_id], output))
        else:
            create.append(output)

    return ReconciliationPlan(resolve=resolve, update=tuple(update), create=tuple(create))
