# services/rules.py
"""
Ordered rule lists.

Every heuristic in the engine is an explicit (predicate, extractor) pair with
a name. A list of rules is evaluated in order and the first rule that both
applies and extracts something wins, so a coverage gap shows up as a missing
rule instead of a branch buried in one long function.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar

C = TypeVar("C")
T = TypeVar("T")


def always(_ctx) -> bool:
    return True


@dataclass(frozen=True)
class Rule(Generic[C, T]):
    name: str
    extract: Callable[[C], Optional[T]]
    applies: Callable[[C], bool] = always

    def run(self, ctx: C) -> Optional[T]:
        if not self.applies(ctx):
            return None
        return self.extract(ctx)


@dataclass(frozen=True)
class RuleMatch(Generic[T]):
    rule: str
    value: T


def first_match(rules: Iterable[Rule], ctx) -> Optional[RuleMatch]:
    for rule in rules:
        value = rule.run(ctx)
        if value is not None:
            return RuleMatch(rule=rule.name, value=value)
    return None
