"""Tests for the waitkit CLI."""

import json
import pytest
import yaml
from click.testing import CliRunner

from waitkit import __version__
from waitkit.cli import main

from conftest import stacks


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def outcomes_file(tmp_path):
    """Write a list of recorded outcomes and return its path."""
    def _write(outcomes, name="outcomes.json"):
        path = tmp_path / name
        path.write_text(json.dumps(outcomes))
        return str(path)
    return _write


@pytest.fixture
def custom_dir(tmp_path, model_data):
    directory = tmp_path / "custom"
    directory.mkdir()
    (directory / "ec2.yaml").write_text(yaml.safe_dump(model_data))
    return directory


# =============================================================================
# init
# =============================================================================


def test_init_creates_files(runner, waitkit_home):
    result = runner.invoke(main, ["init"])
    assert result.exit_code == 0
    assert "Initialized waitkit config" in result.output

    cfg = yaml.safe_load((waitkit_home / "config.yaml").read_text())
    assert cfg["include_builtin"] is True
    assert cfg["definitions_dirs"] == [str(waitkit_home / "definitions")]
    assert (waitkit_home / "definitions").is_dir()


def test_init_does_not_overwrite_without_force(runner, waitkit_home):
    waitkit_home.mkdir(parents=True)
    (waitkit_home / "config.yaml").write_text("include_builtin: false\n")

    result = runner.invoke(main, ["init"])
    assert result.exit_code == 1
    assert "Config already exists" in result.output
    assert (waitkit_home / "config.yaml").read_text() == "include_builtin: false\n"


def test_init_force_overwrites(runner, waitkit_home):
    waitkit_home.mkdir(parents=True)
    (waitkit_home / "config.yaml").write_text("include_builtin: false\n")

    result = runner.invoke(main, ["init", "--force"])
    assert result.exit_code == 0
    assert yaml.safe_load((waitkit_home / "config.yaml").read_text())["include_builtin"] is True


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_invalid_config(runner, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"logging": {"format": "xml"}}))

    result = runner.invoke(main, ["--config", str(path), "waiters", "list"])
    assert result.exit_code == 1
    assert "Config error" in result.output


# =============================================================================
# waiters
# =============================================================================


class TestWaiters:
    """waiters list / waiters show."""

    def test_list_builtin(self, runner):
        result = runner.invoke(main, ["waiters", "list"])
        assert result.exit_code == 0
        assert "StackCreateComplete" in result.output
        assert "DescribeStacks" in result.output

    def test_list_custom_dir(self, runner, custom_dir):
        result = runner.invoke(main, ["-d", str(custom_dir), "waiters", "list", "--operation", "HeadBucket"])
        assert result.exit_code == 0
        assert "BucketExists" in result.output
        assert "StackCreateComplete" not in result.output

    def test_list_from_config(self, runner, tmp_path, custom_dir):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"definitions_dirs": [str(custom_dir)], "include_builtin": False}))

        result = runner.invoke(main, ["--config", str(path), "waiters", "list"])
        assert result.exit_code == 0
        assert "InstanceRunning" in result.output
        assert "StackExists" not in result.output

    def test_list_empty(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"include_builtin": False}))

        result = runner.invoke(main, ["--config", str(path), "waiters", "list"])
        assert result.exit_code == 0
        assert "No waiter definitions found" in result.output

    def test_show_yaml(self, runner):
        result = runner.invoke(main, ["waiters", "show", "StackExists"])
        assert result.exit_code == 0
        assert "Waiter: StackExists" in result.output
        assert "Hash: " in result.output
        assert "maxAttempts: 20" in result.output

    def test_show_json(self, runner):
        result = runner.invoke(main, ["waiters", "show", "StackExists", "--format", "json"])
        assert result.exit_code == 0
        body = result.output[result.output.index("{"):]
        assert json.loads(body)["operation"] == "DescribeStacks"

    def test_show_unknown(self, runner):
        result = runner.invoke(main, ["waiters", "show", "Nope"])
        assert result.exit_code == 1
        assert "Waiter definition not found: Nope" in result.output


# =============================================================================
# validate
# =============================================================================


class TestValidate:
    """validate PATH."""

    def test_valid_file(self, runner, custom_dir):
        result = runner.invoke(main, ["validate", str(custom_dir / "ec2.yaml")])
        assert result.exit_code == 0
        assert "2 waiter(s) valid" in result.output

    def test_valid_directory(self, runner, custom_dir):
        result = runner.invoke(main, ["validate", str(custom_dir)])
        assert result.exit_code == 0
        assert "2 waiter(s) valid" in result.output

    def test_invalid_file(self, runner, tmp_path, model_data):
        model_data["waiters"]["BucketExists"]["maxAttempts"] = 0
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(model_data))

        result = runner.invoke(main, ["validate", str(path)])
        assert result.exit_code == 1
        assert "maxAttempts must be a positive integer" in result.output


# =============================================================================
# simulate
# =============================================================================


class TestSimulate:
    """simulate NAME --outcomes FILE."""

    def test_success(self, runner, outcomes_file):
        path = outcomes_file([
            {"response": stacks("CREATE_IN_PROGRESS")},
            {"response": stacks("CREATE_COMPLETE")},
        ])
        result = runner.invoke(main, ["simulate", "StackCreateComplete", "--outcomes", path])

        assert result.exit_code == 0
        assert "attempt 1: retry" in result.output
        assert "attempt 2: success" in result.output
        assert "StackCreateComplete succeeded after 2 attempt(s)" in result.output

    def test_yaml_outcomes(self, runner, tmp_path):
        path = tmp_path / "outcomes.yaml"
        path.write_text(yaml.safe_dump([
            {"error": "ValidationError", "message": "Stack does not exist"},
            {"response": stacks("CREATE_IN_PROGRESS"), "status_code": 200},
        ]))
        result = runner.invoke(main, ["simulate", "StackExists", "--outcomes", str(path)])
        assert result.exit_code == 0
        assert "succeeded after 2 attempt(s)" in result.output

    def test_failure(self, runner, outcomes_file):
        path = outcomes_file([{"response": stacks("ROLLBACK_COMPLETE")}])
        result = runner.invoke(main, ["simulate", "StackCreateComplete", "--outcomes", path])
        assert result.exit_code == 2
        assert "terminal failure state" in result.output

    def test_unexpected_error(self, runner, outcomes_file):
        path = outcomes_file([{"error": "AccessDenied"}])
        result = runner.invoke(main, ["simulate", "StackCreateComplete", "--outcomes", path])
        assert result.exit_code == 2
        assert "unexpected error AccessDenied" in result.output

    def test_attempts_exhausted(self, runner, outcomes_file):
        path = outcomes_file([{"response": stacks("CREATE_IN_PROGRESS")}])
        result = runner.invoke(
            main, ["simulate", "StackCreateComplete", "--outcomes", path, "--max-attempts", "3"],
        )
        assert result.exit_code == 3
        assert result.output.count("attempt ") >= 3
        assert "max attempts exceeded" in result.output

    def test_config_default_max_attempts(self, runner, tmp_path, outcomes_file):
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({"default_max_attempts": 2}))
        path = outcomes_file([{"response": stacks("CREATE_IN_PROGRESS")}])

        result = runner.invoke(main, ["--config", str(config), "simulate", "StackCreateComplete", "--outcomes", path])
        assert result.exit_code == 3
        assert "after 2 attempt(s)" in result.output

    def test_unknown_waiter(self, runner, outcomes_file):
        path = outcomes_file([{"response": {}}])
        result = runner.invoke(main, ["simulate", "Nope", "--outcomes", path])
        assert result.exit_code == 1

    def test_invalid_outcome_entry(self, runner, outcomes_file):
        path = outcomes_file([{"value": 1}])
        result = runner.invoke(main, ["simulate", "StackExists", "--outcomes", path])
        assert result.exit_code == 1
        assert "Invalid outcomes file" in result.output

    def test_non_mapping_outcome_entry(self, runner, outcomes_file):
        path = outcomes_file(["error"])
        result = runner.invoke(main, ["simulate", "StackExists", "--outcomes", path])
        assert result.exit_code == 1
        assert "✗ Invalid outcomes file" in result.output
        assert "must be a mapping" in result.output

    def test_malformed_yaml_outcomes(self, runner, tmp_path):
        path = tmp_path / "outcomes.yaml"
        path.write_text("- {response: [\n")
        result = runner.invoke(main, ["simulate", "StackExists", "--outcomes", str(path)])
        assert result.exit_code == 1
        assert "✗ Invalid outcomes file" in result.output
        assert not isinstance(result.exception, yaml.YAMLError)

    def test_malformed_json_outcomes(self, runner, tmp_path):
        path = tmp_path / "outcomes.json"
        path.write_text("[{\"response\": ")
        result = runner.invoke(main, ["simulate", "StackExists", "--outcomes", str(path)])
        assert result.exit_code == 1
        assert "✗ Invalid outcomes file" in result.output
