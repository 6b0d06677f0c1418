import json

import pytest
from rich.console import Console
from typer.testing import CliRunner

from npmscore import __version__, cli
from npmscore.core.errors import PackageNotFoundError
from npmscore.core.score_bands import band_for
from npmscore.models.schemas import Finding, RiskLevel, RuleReport, RuleResult, ScoreResult

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    # Keep table cells on one line so output assertions are stable
    monkeypatch.setattr(cli, "console", Console(width=200))


def _result(score):
    report = RuleReport(
        rule_name="external-network-call",
        weight=20,
        result=RuleResult(
            deduction=100 - score,
            risk_level=RiskLevel.HIGH,
            details={"findings": [Finding(type="lifecycle-script", description="3 network indicator(s) in postinstall script")]},
        ),
    )
    return ScoreResult(
        score=score,
        band=band_for(score),
        rule_results=[report],
        package_name="evil-pkg",
        package_version="6.6.6",
    )


@pytest.fixture
def fake_pipeline(monkeypatch):
    """Replace the scoring pipeline with one returning a canned result."""

    class FakePipeline:
        result = _result(46)
        error = None
        calls = []

        def __init__(self, settings):
            self.settings = settings

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            return None

        async def score(self, name, version=None):
            FakePipeline.calls.append((name, version, self.settings))
            if FakePipeline.error is not None:
                raise FakePipeline.error
            return FakePipeline.result

    monkeypatch.setattr(cli, "ScoringPipeline", FakePipeline)
    for var in ("NPM_SECURITY_SCORE_THRESHOLD", "NPM_SECURITY_SCORE_BASE_SCORE"):
        monkeypatch.delenv(var, raising=False)
    return FakePipeline


def test_score_below_threshold_fails(fake_pipeline):
    result = runner.invoke(cli.app, ["score", "evil-pkg"])

    assert result.exit_code == 1
    assert "evil-pkg" in result.output
    assert "external-network-call" in result.output
    assert "Failed" in result.output


def test_score_passes_with_lower_threshold(fake_pipeline):
    result = runner.invoke(cli.app, ["score", "evil-pkg", "--threshold", "40"])
    assert result.exit_code == 0
    assert fake_pipeline.calls[-1][2].threshold == 40


def test_score_passes_when_safe(fake_pipeline):
    fake_pipeline.result = _result(95)
    result = runner.invoke(cli.app, ["score", "evil-pkg"])
    assert result.exit_code == 0
    assert "Safe" in result.output


def test_version_option_is_forwarded(fake_pipeline):
    runner.invoke(cli.app, ["score", "evil-pkg", "-V", "1.2.3"])
    assert fake_pipeline.calls[-1][:2] == ("evil-pkg", "1.2.3")


def test_json_output(fake_pipeline):
    result = runner.invoke(cli.app, ["score", "evil-pkg", "--json"])

    payload = json.loads(result.stdout)
    assert payload["score"] == 46
    assert payload["band"]["key"] == "BLOCK"
    assert payload["band"]["action"] == "block"
    assert payload["rule_results"][0]["rule_name"] == "external-network-call"
    assert result.exit_code == 1


def test_output_file(fake_pipeline, tmp_path):
    target = tmp_path / "score.json"
    runner.invoke(cli.app, ["score", "evil-pkg", "--output", str(target)])
    assert json.loads(target.read_text())["package_name"] == "evil-pkg"


def test_config_file_threshold(fake_pipeline, tmp_path):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"threshold": 30}))

    result = runner.invoke(cli.app, ["score", "evil-pkg", "--config", str(config)])
    assert result.exit_code == 0


def test_bad_config_exits_2(fake_pipeline, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("threshold: 30")

    result = runner.invoke(cli.app, ["score", "evil-pkg", "-c", str(config)])
    assert result.exit_code == 2
    assert "YAML" in result.output
    assert fake_pipeline.calls == []


def test_unknown_package_exits_2(fake_pipeline):
    fake_pipeline.error = PackageNotFoundError("nope")
    result = runner.invoke(cli.app, ["score", "nope"])
    assert result.exit_code == 2
    assert "not found" in result.output


def test_bands_command():
    result = runner.invoke(cli.app, ["bands"])
    assert result.exit_code == 0
    for label in ("Safe", "Review Recommended", "High Risk", "Block"):
        assert label in result.output


def test_version_command():
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output
