"""Keyword classifier: tag each state with a presentation category."""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from enum import Enum


class StateCategory(str, Enum):
    PRIMARY_MOTION = "primary-motion"
    CONFLICT = "conflict"
    RESPONSE = "response"
    HIGHLIGHTED = "highlighted"
    OTHER = "other"


@dataclass(frozen=True)
class KeywordRule:
    """Assign ``category`` when the lowercased name contains any keyword."""
    category: StateCategory
    keywords: tuple[str, ...]

    def matches(self, lowered_name: str) -> bool:
        return any(k in lowered_name for k in self.keywords)


RESPONSE_KEYWORDS = (
    "hit", "hitreact", "stun", "stunned", "death", "dead", "knockback", "flinch",
)
CONFLICT_KEYWORDS = (
    "attack", "attacking", "combo", "block", "blocking", "dodge", "dodging",
    "cast", "casting",
)
PRIMARY_MOTION_KEYWORDS = (
    "idle", "walk", "run", "sprint", "jump", "jumpstart", "jumploop", "fall",
    "falling", "land", "landing", "locomotion", "swimming", "climbing",
)

# Order matters: reactions win over combat, combat over locomotion.
DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(StateCategory.RESPONSE, RESPONSE_KEYWORDS),
    KeywordRule(StateCategory.CONFLICT, CONFLICT_KEYWORDS),
    KeywordRule(StateCategory.PRIMARY_MOTION, PRIMARY_MOTION_KEYWORDS),
)


def classify(name: str, has_annotation: bool = False,
             rules: tuple[KeywordRule, ...] | list[KeywordRule] = DEFAULT_RULES,
             ) -> StateCategory:
    """Return the category of the first rule matching ``name``.

    Falls back to HIGHLIGHTED for annotated states and OTHER otherwise.
    """
    lowered = name.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule.category
    if has_annotation:
        return StateCategory.HIGHLIGHTED
    return StateCategory.OTHER


def extend_rules(rules: tuple[KeywordRule, ...], category: StateCategory,
                 keywords: list[str] | tuple[str, ...]) -> tuple[KeywordRule, ...]:
    """Return a new rule table with extra keywords for ``category``.

    An existing rule for the category keeps its priority slot; otherwise the
    new rule is appended with the lowest priority.
    """
    extra = tuple(k.lower() for k in keywords)
    result = []
    found = False
    for rule in rules:
        if rule.category == category:
            result.append(KeywordRule(category, rule.keywords + extra))
            found = True
        else:
            result.append(rule)
    if not found:
        result.append(KeywordRule(category, extra))
    return tuple(result)


def category_counts(states) -> dict[StateCategory, int]:
    """Count states per category; every category is present in the result."""
    counts = Counter(s.category for s in states)
    return {c: counts.get(c, 0) for c in StateCategory}
