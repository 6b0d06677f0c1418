import pytest

from npmscore.core.base_rule import BaseRule
from npmscore.core.errors import DuplicateRuleError, InvalidRuleError
from npmscore.core.registry import RuleRegistry
from npmscore.models.schemas import RuleResult


class _Rule(BaseRule):
    async def evaluate(self, metadata):
        return RuleResult()


def test_register_and_lookup():
    registry = RuleRegistry()
    rule = _Rule("one", 10)
    registry.register(rule)

    assert registry.has("one")
    assert "one" in registry
    assert registry.get("one") is rule
    assert registry.size() == 1
    assert len(registry) == 1


def test_get_unknown_returns_none():
    assert RuleRegistry().get("missing") is None


def test_duplicate_name_rejected():
    registry = RuleRegistry()
    first = _Rule("dup")
    registry.register(first)

    with pytest.raises(DuplicateRuleError) as exc:
        registry.register(_Rule("dup"))

    assert exc.value.name == "dup"
    assert registry.get("dup") is first
    assert registry.size() == 1


@pytest.mark.parametrize(
    "candidate",
    [
        None,
        object(),
        type("NoEvaluate", (), {"name": "x"})(),
        type("NotCallable", (), {"name": "x", "evaluate": 3})(),
        type("EmptyName", (), {"name": "", "evaluate": lambda self, m: None})(),
    ],
)
def test_invalid_rules_rejected(candidate):
    with pytest.raises(InvalidRuleError):
        RuleRegistry().register(candidate)


def test_duck_typed_rule_accepted():
    class Plain:
        name = "plain"

        def evaluate(self, metadata):
            return None

    registry = RuleRegistry()
    registry.register(Plain())
    assert registry.has("plain")


def test_registration_order_preserved():
    registry = RuleRegistry()
    for name in ["c", "a", "b"]:
        registry.register(_Rule(name))

    assert [r.name for r in registry.get_active_rules()] == ["c", "a", "b"]
    assert [r.name for r in registry] == ["c", "a", "b"]


def test_unregister_is_idempotent():
    registry = RuleRegistry()
    registry.register(_Rule("a"))

    registry.unregister("a")
    registry.unregister("a")
    registry.unregister("never-registered")

    assert not registry.has("a")
    assert registry.size() == 0


def test_size_and_has_stay_consistent():
    registry = RuleRegistry()
    registry.register(_Rule("a"))
    registry.register(_Rule("b"))
    registry.unregister("a")
    registry.register(_Rule("a"))

    assert registry.size() == 2
    assert [r.name for r in registry.get_active_rules()] == ["b", "a"]

    registry.clear()
    assert registry.size() == 0
    assert not registry.has("a") and not registry.has("b")

    registry.register(_Rule("a"))
    assert registry.size() == 1
