"""
Rule Chains

Ordered predicate → outcome rules evaluated first-match-wins.
Precedence is the order of the list, not nested branching.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar

SubjectT = TypeVar("SubjectT")
OutcomeT = TypeVar("OutcomeT")


@dataclass(frozen=True)
class Rule(Generic[SubjectT, OutcomeT]):
    """
    A named rule.

    `when` decides whether the rule applies; `then` is either a fixed
    outcome or a callable computing it from the subject.
    """
    name: str
    when: Callable[[SubjectT], bool]
    then: OutcomeT | Callable[[SubjectT], OutcomeT]

    def outcome(self, subject: SubjectT) -> OutcomeT:
        if callable(self.then):
            return self.then(subject)
        return self.then


@dataclass(frozen=True)
class RuleMatch(Generic[OutcomeT]):
    """Which rule fired and what it produced."""
    rule: str
    outcome: OutcomeT


class RuleChain(Generic[SubjectT, OutcomeT]):
    """First-match-wins evaluation over an ordered list of rules."""

    def __init__(
        self,
        rules: Sequence[Rule[SubjectT, OutcomeT]],
        default: Optional[OutcomeT] = None,
        default_name: str = "default",
    ):
        self.rules = list(rules)
        self.default = default
        self.default_name = default_name

    @property
    def names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def evaluate(self, subject: SubjectT) -> Optional[RuleMatch[OutcomeT]]:
        """Return the first matching rule's outcome, the default, or None."""
        for rule in self.rules:
            if rule.when(subject):
                return RuleMatch(rule=rule.name, outcome=rule.outcome(subject))
        if self.default is None:
            return None
        return RuleMatch(rule=self.default_name, outcome=self.default)
