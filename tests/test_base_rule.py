import asyncio

import pytest

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.core.errors import InvalidRuleError
from npmscore.models.schemas import PackageMetadata, RiskLevel


def test_name_required():
    with pytest.raises(InvalidRuleError):
        BaseRule("")


def test_defaults():
    rule = BaseRule("example")
    assert rule.name == "example"
    assert rule.weight == 0
    assert rule.enabled
    assert rule.config == {}


def test_name_is_read_only():
    rule = BaseRule("example")
    with pytest.raises(AttributeError):
        rule.name = "other"


def test_enable_disable():
    rule = BaseRule("example", 5)
    rule.disable()
    assert not rule.is_enabled()
    rule.enable()
    assert rule.is_enabled()


def test_base_evaluate_not_implemented():
    rule = BaseRule("example")
    with pytest.raises(NotImplementedError):
        asyncio.run(rule.evaluate(PackageMetadata(name="x")))


def test_disabled_result_is_neutral():
    result = BaseRule("example", 10).disabled_result()
    assert result.deduction == 0
    assert result.bonus == 0
    assert result.risk_level == RiskLevel.NONE
    assert result.details["reason"] == "Rule is disabled"


def test_metadata():
    rule = BaseRule("example", 7, "Does things")
    assert rule.get_metadata() == {
        "name": "example",
        "weight": 7,
        "description": "Does things",
        "enabled": True,
    }


@pytest.mark.parametrize(
    "risk, expected",
    [
        (0, (0, RiskLevel.NONE)),
        (0.75, (0, RiskLevel.NONE)),
        (1, (5, RiskLevel.LOW)),
        (1.5, (5, RiskLevel.LOW)),
        (2, (7, RiskLevel.MEDIUM)),
        (3, (10, RiskLevel.HIGH)),
        (12, (10, RiskLevel.HIGH)),
    ],
)
def test_tiered_deduction(risk, expected):
    assert tiered_deduction(10, risk) == expected


def test_tiered_deduction_floors_partial_weights():
    assert tiered_deduction(5, 1) == (2, RiskLevel.LOW)
    assert tiered_deduction(5, 2) == (3, RiskLevel.MEDIUM)


def test_round_risk():
    assert round_risk(1.26) == 1.3
    assert round_risk(0.5 * 3) == 1.5
