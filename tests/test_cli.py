"""CLI tests using click's CliRunner with the mailbox layer monkeypatched."""

from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from notcoal.cli import cli, split_match
from notcoal.core.errors import MailboxError
from notcoal.core.logging import configure_logging

RULES = """
[{
    "name": "money",
    "desc": "Money stuff",
    "rules": [{"from": "bank"}],
    "op": {"add": "money", "rm": "inbox"}
}]
"""

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    """Commands reconfigure logging onto the runner's streams; undo that."""
    yield
    configure_logging(log_level="WARNING")


@pytest.fixture
def rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules.json"
    path.write_text(RULES)
    return path


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Replace both mailbox entry points and record their arguments."""
    recorded: list[dict[str, Any]] = []

    def _filter(db_path, query_tag, filters, *, timeout):
        recorded.append(
            {"db_path": db_path, "query_tag": query_tag, "filters": filters, "timeout": timeout}
        )
        return 3

    def _dry(db_path, query_tag, filters, *, timeout):
        recorded.append(
            {"db_path": db_path, "query_tag": query_tag, "filters": filters, "timeout": timeout}
        )
        return 1, ["abc@example.com: money"]

    monkeypatch.setattr("notcoal.cli.filter_with_path", _filter)
    monkeypatch.setattr("notcoal.cli.filter_dry_with_path", _dry)
    return recorded


# ---------------------------------------------------------------------------
# Tests: filter
# ---------------------------------------------------------------------------


def test_filter_uses_config_values(config_file: Path, rules_file: Path, calls):
    """Without overrides the tag, database and timeout come from the config."""
    result = runner.invoke(cli, ["filter", "--config", str(config_file), "--rules", str(rules_file)])

    assert result.exit_code == 0, result.output
    assert "3 filter match(es)" in result.output
    assert len(calls) == 1
    assert calls[0]["query_tag"] == "inbox-new"
    assert calls[0]["db_path"] == Path("/var/mail/notmuch")
    assert calls[0]["timeout"] == 2.0
    assert [f.resolved_name() for f in calls[0]["filters"]] == ["money"]


def test_filter_command_line_overrides(config_file: Path, rules_file: Path, tmp_path: Path, calls):
    result = runner.invoke(
        cli,
        [
            "filter",
            "-c",
            str(config_file),
            "-r",
            str(rules_file),
            "--db",
            str(tmp_path / "db"),
            "-t",
            "unsorted",
        ],
    )

    assert result.exit_code == 0, result.output
    assert calls[0]["query_tag"] == "unsorted"
    assert calls[0]["db_path"] == tmp_path / "db"


def test_filter_reports_engine_error(config_file: Path, rules_file: Path, monkeypatch):
    def _fail(*args, **kwargs):
        raise MailboxError("database is locked", operation="open")

    monkeypatch.setattr("notcoal.cli.filter_with_path", _fail)

    result = runner.invoke(cli, ["filter", "-c", str(config_file), "-r", str(rules_file)])

    assert result.exit_code == 1
    assert "database is locked" in result.output


def test_filter_missing_rules_file(config_file: Path, tmp_path: Path, calls):
    result = runner.invoke(
        cli, ["filter", "-c", str(config_file), "-r", str(tmp_path / "nope.json")]
    )

    assert result.exit_code == 1
    assert "Failed to read rule file" in result.output
    assert calls == []


def test_filter_invalid_config(temp_config_dir: Path, rules_file: Path, calls):
    bad = temp_config_dir / "config.yaml"
    bad.write_text("filtering:\n  colour: blue\n")

    result = runner.invoke(cli, ["filter", "-c", str(bad), "-r", str(rules_file)])

    assert result.exit_code == 1
    assert "Config error" in result.output
    assert calls == []


def test_filter_interrupted(config_file: Path, rules_file: Path, monkeypatch):
    def _interrupt(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr("notcoal.cli.filter_with_path", _interrupt)

    result = runner.invoke(cli, ["filter", "-c", str(config_file), "-r", str(rules_file)])

    assert result.exit_code == 130


# ---------------------------------------------------------------------------
# Tests: dry-run
# ---------------------------------------------------------------------------


def test_dry_run_lists_matches(config_file: Path, rules_file: Path, calls):
    result = runner.invoke(cli, ["dry-run", "-c", str(config_file), "-r", str(rules_file)])

    assert result.exit_code == 0, result.output
    assert "abc@example.com" in result.output
    assert "money" in result.output
    assert "nothing was changed" in result.output
    assert calls[0]["query_tag"] == "inbox-new"


def test_split_match_keeps_separator_in_filter_name():
    assert split_match("abc@example.com: Bank: statements") == (
        "abc@example.com",
        "Bank: statements",
    )


def test_dry_run_filter_name_with_separator(config_file: Path, rules_file: Path, monkeypatch):
    monkeypatch.setattr(
        "notcoal.cli.filter_dry_with_path",
        lambda *args, **kwargs: (1, ["abc@example.com: Bank: statements"]),
    )

    result = runner.invoke(cli, ["dry-run", "-c", str(config_file), "-r", str(rules_file)])

    assert result.exit_code == 0, result.output
    assert "Bank: statements" in result.output


# ---------------------------------------------------------------------------
# Tests: validate-rules / validate-config
# ---------------------------------------------------------------------------


def test_validate_rules_ok(rules_file: Path):
    result = runner.invoke(cli, ["validate-rules", str(rules_file)])

    assert result.exit_code == 0, result.output
    assert "money" in result.output
    assert "1 filter(s) compiled" in result.output


def test_validate_rules_bad_pattern(tmp_path: Path):
    path = tmp_path / "rules.json"
    path.write_text('[{"rules": [{"subject": "(oops"}], "op": {}}]')

    result = runner.invoke(cli, ["validate-rules", str(path)])

    assert result.exit_code == 1
    assert "(oops" in result.output


def test_validate_config_ok(config_file: Path):
    result = runner.invoke(cli, ["validate-config", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "Configuration valid" in result.output


def test_validate_config_missing(tmp_path: Path):
    result = runner.invoke(cli, ["validate-config", "-c", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Load error" in result.output
