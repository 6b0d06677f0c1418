"""Registry of security rules."""

import logging
from typing import Any

from npmscore.core.errors import DuplicateRuleError, InvalidRuleError

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Name-keyed, insertion-ordered collection of rules.

    Any object with a non-empty string `name` and a callable `evaluate`
    satisfies the rule contract. Names are unique; registering a name twice
    raises instead of replacing the existing rule.

    The registry must not be modified while scoring calls that use it are
    in flight.
    """

    def __init__(self) -> None:
        # dicts keep insertion order, which fixes report ordering
        self._rules: dict[str, Any] = {}

    def register(self, rule: Any) -> None:
        """Register a rule.

        Raises:
            InvalidRuleError: If the object does not satisfy the rule contract.
            DuplicateRuleError: If a rule with the same name is registered.
        """
        if rule is None:
            raise InvalidRuleError("Rule must be an object")

        name = getattr(rule, "name", None)
        if not name or not isinstance(name, str):
            raise InvalidRuleError("Rule must have a name property")

        if not callable(getattr(rule, "evaluate", None)):
            raise InvalidRuleError(f'Rule "{name}" must have an evaluate function')

        if name in self._rules:
            raise DuplicateRuleError(name)

        self._rules[name] = rule
        logger.debug(f"Registered rule {name}")

    def unregister(self, name: str) -> None:
        """Remove a rule by name. Unknown names are ignored."""
        self._rules.pop(name, None)

    def get(self, name: str) -> Any | None:
        """Get a rule by name, or None if it is not registered."""
        return self._rules.get(name)

    def get_active_rules(self) -> list[Any]:
        """All registered rules in registration order."""
        return list(self._rules.values())

    def has(self, name: str) -> bool:
        return name in self._rules

    def size(self) -> int:
        return len(self._rules)

    def clear(self) -> None:
        self._rules.clear()

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __iter__(self):
        return iter(self.get_active_rules())
