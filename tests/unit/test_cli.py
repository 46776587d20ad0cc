"""
Test suite for the weighted-routing CLI.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from weighted_routing import __version__
from weighted_routing.cli import cli


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.mark.unit
class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("synth", "plan", "validate"):
            assert command in result.output


@pytest.mark.unit
class TestSynth:
    """Test template synthesis."""

    def test_synth_reference_topology(self, runner, temp_dir):
        out = temp_dir / "build"
        result = runner.invoke(cli, ["synth", "--output", str(out)])

        assert result.exit_code == 0, result.output
        path = out / "WeightedRoutingStack.template.json"
        template = json.loads(path.read_text())
        assert "RouteGroupserviceBVirtualRouter" in template["Resources"]
        assert f"Resources: {len(template['Resources'])}" in result.output

    def test_synth_yaml_from_config_dir(self, runner, config_dir, temp_dir):
        out = temp_dir / "build"
        result = runner.invoke(
            cli,
            ["synth", "--config-dir", str(config_dir), "--output", str(out), "--format", "yaml"],
        )

        assert result.exit_code == 0, result.output
        template = yaml.safe_load((out / "WeightedRoutingStack.template.yaml").read_text())
        assert template["AWSTemplateFormatVersion"] == "2010-09-09"

    def test_synth_environment_override(self, runner, config_dir, temp_dir):
        (config_dir / "staging.yaml").write_text(yaml.safe_dump({"stack": {"name": "Staging"}}))
        out = temp_dir / "build"
        result = runner.invoke(
            cli,
            ["synth", "-c", str(config_dir), "-e", "staging", "-o", str(out)],
        )

        assert result.exit_code == 0, result.output
        assert (out / "Staging.template.json").exists()

    def test_synth_invalid_config(self, runner, config_dir, temp_dir):
        (config_dir / "development.yaml").write_text(yaml.safe_dump({"expose": ["ghost"]}))
        result = runner.invoke(
            cli, ["synth", "-c", str(config_dir), "-e", "development", "-o", str(temp_dir)]
        )

        assert result.exit_code == 1
        assert "ghost" in result.output
        assert not list(temp_dir.glob("*.template.*"))

    def test_synth_unknown_format(self, runner, temp_dir):
        result = runner.invoke(cli, ["synth", "-o", str(temp_dir), "--format", "toml"])
        assert result.exit_code == 2


@pytest.mark.unit
class TestPlanAndValidate:
    """Test read-only commands."""

    def test_plan(self, runner):
        result = runner.invoke(cli, ["plan"])

        assert result.exit_code == 0, result.output
        assert "serviceB_v1" in result.output
        assert "80%" in result.output
        assert "20%" in result.output
        assert "Front doors: serviceA" in result.output

    def test_validate(self, runner, config_dir):
        result = runner.invoke(cli, ["validate", "--config-dir", str(config_dir)])
        assert result.exit_code == 0, result.output
        assert "is valid" in result.output

    def test_validate_reports_errors(self, runner, temp_dir):
        (temp_dir / "base.yaml").write_text(
            yaml.safe_dump({"groups": [{"name": "serviceA", "routes": []}]})
        )
        result = runner.invoke(cli, ["validate", "--config-dir", str(temp_dir)])

        assert result.exit_code == 1
        assert "at least one route" in result.output

    def test_missing_config_dir(self, runner, temp_dir):
        result = runner.invoke(cli, ["validate", "--config-dir", str(temp_dir / "missing")])
        assert result.exit_code == 2
