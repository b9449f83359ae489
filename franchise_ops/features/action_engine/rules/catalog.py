"""
Rule registry for the action engine.

A rule is a pure predicate over an EvaluationContext that returns a
Finding or None. Rules register under a stable rule id; that id is the
deduplication key of the action items they produce, so it must never
change once a rule has shipped.

Usage:
    catalog = RuleCatalog()

    @catalog.rule("LEAD_001")
    def uncontacted_leads(ctx: EvaluationContext) -> Finding | None:
        ...
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass

from franchise_ops.features.action_engine.domain import (
    ActionItemOutput,
    EvaluationContext,
    Finding,
    RuleOutcome,
)

RulePredicate = Callable[[EvaluationContext], Finding | None]


@dataclass(frozen=True, slots=True)
class Rule:
    rule_id: str
    predicate: RulePredicate

    def evaluate(self, ctx: EvaluationContext) -> RuleOutcome:
        """Run the predicate, turning any exception into an error outcome."""
        try:
            finding = self.predicate(ctx)
        except Exception as e:
            return RuleOutcome(rule_id=self.rule_id, error=f"{type(e).__name__}: {e}")

        if finding is None:
            return RuleOutcome(rule_id=self.rule_id)

        if not isinstance(finding, Finding):
            return RuleOutcome(
                rule_id=self.rule_id,
                error=f"returned {type(finding).__name__} instead of Finding",
            )

        return RuleOutcome(
            rule_id=self.rule_id,
            output=ActionItemOutput.from_finding(self.rule_id, finding),
        )


class RuleCatalog:
    """Ordered collection of uniquely-identified rules."""

    def __init__(self, rules: list[Rule] | None = None):
        self._rules: dict[str, Rule] = {}
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: Rule) -> Rule:
        if not rule.rule_id or not rule.rule_id.strip():
            raise ValueError("Rule id must be a non-empty string")
        if rule.rule_id in self._rules:
            raise ValueError(f"Duplicate rule id '{rule.rule_id}'")
        self._rules[rule.rule_id] = rule
        return rule

    def register(self, rule_id: str, predicate: RulePredicate) -> Rule:
        return self.add(Rule(rule_id=rule_id, predicate=predicate))

    def rule(self, rule_id: str) -> Callable[[RulePredicate], RulePredicate]:
        """Decorator form of register(); returns the predicate unchanged."""

        def decorator(predicate: RulePredicate) -> RulePredicate:
            self.register(rule_id, predicate)
            return predicate

        return decorator

    def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    @property
    def rule_ids(self) -> list[str]:
        return list(self._rules)

    def evaluate(self, ctx: EvaluationContext) -> list[RuleOutcome]:
        return [rule.evaluate(ctx) for rule in self._rules.values()]

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


# Catalog the shipped rule modules register into
default_catalog = RuleCatalog()
