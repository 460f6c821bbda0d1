"""Tests for aumai-prescription CLI and settings."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from pydantic import ValidationError

from aumai_prescription.cli import main
from aumai_prescription.config import EngineSettings, get_settings


def make_scenario_json() -> dict:
    return {
        "task_id": 7,
        "observed": ["a", "b"],
        "rules": [
            {"groups": [["a"]], "result": "x", "intermediate": True},
            {"groups": [["x", "b"], ["a"]], "result": "m1", "intermediate": False},
            {"groups": [["zzz"]], "result": "m2", "intermediate": False},
        ],
    }


def make_duplicate_json() -> dict:
    data = make_scenario_json()
    data["rules"].append({"groups": [["a"]], "result": "m1", "intermediate": False})
    return data


def make_plan_text() -> str:
    return "x :- a. % intermediate\nm1 :- x | b, a.\n"


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCLIVersion:
    def test_cli_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_cli_help(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0


class TestEvaluateCommand:
    def test_reference_task(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["evaluate", "--task-id", "1"])
        assert result.exit_code == 0
        assert "tranquilizers" in result.output
        assert "* tranquilizers" in result.output

    def test_json_output(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["evaluate", "--task-id", "1", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["final_scores"] == {"tranquilizers": 3, "vitamins": 2}
        assert data["derived"] == ["broken bones", "low blood pressure"]
        assert data["best"] == ["tranquilizers"]

    def test_scenario_file(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("s.json").write_text(json.dumps(make_scenario_json()))
            result = runner.invoke(main, ["evaluate", "--scenario", "s.json", "--json"])
            assert result.exit_code == 0
            data = json.loads(result.stdout)
            assert data["final_scores"] == {"m1": 2}
            assert data["used_evidence"] == {"m1": ["a", "b"]}

    def test_requires_exactly_one_source(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["evaluate"])
        assert result.exit_code == 2

    def test_unknown_task(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["evaluate", "--task-id", "99"])
        assert result.exit_code == 1

    def test_invalid_json(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("bad.json").write_text("NOT VALID JSON")
            result = runner.invoke(main, ["evaluate", "--scenario", "bad.json"])
            assert result.exit_code == 1

    def test_missing_file(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["evaluate", "--scenario", "nonexistent.json"])
        assert result.exit_code != 0

    def test_strict_rejects_duplicates(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("dup.json").write_text(json.dumps(make_duplicate_json()))
            result = runner.invoke(main, ["evaluate", "--scenario", "dup.json"])
            assert result.exit_code == 1

    def test_lenient_allows_duplicates(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("dup.json").write_text(json.dumps(make_duplicate_json()))
            result = runner.invoke(
                main, ["evaluate", "--scenario", "dup.json", "--lenient", "--json"]
            )
            assert result.exit_code == 0
            assert json.loads(result.stdout)["final_scores"] == {"m1": 1}

    def test_strict_validation_disabled_by_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUMAI_PRESCRIPTION_STRICT_VALIDATION", "false")
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("dup.json").write_text(json.dumps(make_duplicate_json()))
            result = runner.invoke(main, ["evaluate", "--scenario", "dup.json"])
            assert result.exit_code == 0

    def test_no_eligible_medicine(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            data = make_scenario_json()
            data["observed"] = []
            Path("s.json").write_text(json.dumps(data))
            result = runner.invoke(main, ["evaluate", "--scenario", "s.json"])
            assert result.exit_code == 0
            assert "No eligible medicine." in result.output


class TestAdviseCommand:
    def test_advise_reference_task(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["advise", "--task-id", "1", "--seed", "3"])
        assert result.exit_code == 0
        assert "AI recommends tranquilizers." in result.output

    def test_advise_nothing_eligible(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            data = make_scenario_json()
            data["observed"] = []
            Path("s.json").write_text(json.dumps(data))
            result = runner.invoke(main, ["advise", "--scenario", "s.json"])
            assert result.exit_code == 0
            assert "No medicine can be recommended." in result.output


class TestGradeCommand:
    def test_best(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["grade", "--task-id", "1", "--answer", "tranquilizers"])
        assert result.exit_code == 0
        assert "BEST: tranquilizers" in result.output

    def test_suboptimal(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["grade", "--task-id", "1", "--answer", "vitamins"])
        assert "SUBOPTIMAL" in result.output

    def test_no_answer(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["grade", "--task-id", "1"])
        assert result.exit_code == 0
        assert "WRONG: (no answer)" in result.output


class TestCompileCommand:
    def test_compile_text_to_json(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("plan.txt").write_text(make_plan_text())
            result = runner.invoke(
                main,
                ["compile", "--input", "plan.txt", "--observed", "a, b", "--output", "s.json"],
            )
            assert result.exit_code == 0
            data = json.loads(Path("s.json").read_text())
            assert data["observed"] == ["a", "b"]
            assert data["rules"][0]["intermediate"] is True
            assert data["rules"][1]["groups"] == [["x", "b"], ["a"]]

    def test_compile_default_output_path(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("plan.txt").write_text(make_plan_text())
            result = runner.invoke(main, ["compile", "--input", "plan.txt"])
            assert result.exit_code == 0
            assert Path("plan.json").exists()
            assert "2 rule(s)" in result.output

    def test_compile_bad_plan(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("plan.txt").write_text("this is not a rule\n")
            result = runner.invoke(main, ["compile", "--input", "plan.txt"])
            assert result.exit_code == 1

    def test_compile_missing_input(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["compile", "--input", "nonexistent.txt"])
        assert result.exit_code != 0


class TestValidateCommand:
    def test_clean(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("s.json").write_text(json.dumps(make_scenario_json()))
            result = runner.invoke(main, ["validate", "--scenario", "s.json"])
            assert result.exit_code == 0
            assert "OK: 3 rule(s)" in result.output

    def test_duplicates_reported(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("dup.json").write_text(json.dumps(make_duplicate_json()))
            result = runner.invoke(main, ["validate", "--scenario", "dup.json"])
            assert result.exit_code == 1
            assert "duplicates an earlier result" in result.output


class TestTasksCommand:
    def test_lists_reference_tasks(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["tasks"])
        assert result.exit_code == 0
        assert "Task 4: seizures, slurred speech, sleepy, bloating" in result.output
        assert "(migraine) and (thirsty) and (bloating) and (low blood pressure) -> tranquilizers" in result.output


class TestEngineSettings:
    def test_defaults(self) -> None:
        settings = EngineSettings()
        assert settings.log_level == "WARNING"
        assert settings.seed is None
        assert settings.strict_validation is True

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUMAI_PRESCRIPTION_SEED", "7")
        monkeypatch.setenv("AUMAI_PRESCRIPTION_LOG_LEVEL", "debug")
        settings = EngineSettings()
        assert settings.seed == 7
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(log_level="LOUD")

    def test_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(combination_warning_threshold=0)
