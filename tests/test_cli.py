import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from zam.cli import main
from zam.models import Alias
from zam.storage import AliasStorage

from conftest import CREATED


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, db_path):
    def _invoke(*args, **kwargs):
        return runner.invoke(main, ["--db", str(db_path), *args], **kwargs)

    return _invoke


def stored(db_path):
    with AliasStorage(db_path) as storage:
        return storage.list_records()


def test_cli_add(invoke, db_path):
    result = invoke("add", "ll", "ls -la", "List files")

    assert result.exit_code == 0
    assert "✔ Added alias: ll = 'ls -la'" in result.output
    [alias] = stored(db_path)
    assert (alias.alias, alias.command, alias.description, alias.shell) == ("ll", "ls -la", "List files", "")
    assert alias.date_created == alias.date_updated


def test_cli_add__shell_and_no_description(invoke, db_path):
    result = invoke("add", "gs", "git status", "--shell", "zsh")

    assert result.exit_code == 0
    [alias] = stored(db_path)
    assert alias.description == ""
    assert alias.shell == "zsh"


def test_cli_add__duplicate(invoke, db_path):
    invoke("add", "ll", "ls -la", "List files")

    result = invoke("add", "ll", "ls -l", "Other")

    assert result.exit_code == 1
    assert "Error adding alias: Alias 'll' already exists" in result.output
    assert [a.command for a in stored(db_path)] == ["ls -la"]


def test_cli_update(invoke, db_path):
    invoke("add", "gs", "git status")
    [before] = stored(db_path)

    result = invoke("update", "gs", "git status -sb")

    assert result.exit_code == 0
    assert "✔ Updated alias: gs = 'git status -sb'" in result.output
    [after] = stored(db_path)
    assert after.command == "git status -sb"
    assert after.description == before.description
    assert after.date_created == before.date_created
    assert after.date_updated >= before.date_updated


def test_cli_update__missing(invoke):
    result = invoke("update", "gs", "git status -sb")

    assert result.exit_code == 1
    assert "Error updating alias: Alias 'gs' does not exist" in result.output


def test_cli_remove(invoke, db_path):
    invoke("add", "ll", "ls -la")

    result = invoke("remove", "ll")

    assert result.exit_code == 0
    assert "✔ Removed alias: ll" in result.output
    assert stored(db_path) == []


def test_cli_remove__missing_is_not_an_error(invoke):
    result = invoke("remove", "ll")

    assert result.exit_code == 0
    assert "nothing to remove" in result.output


def test_cli_remove__confirm_declined(invoke, db_path, isolated_home):
    config_dir = isolated_home / ".config" / "zam"
    config_dir.mkdir(parents=True)
    (config_dir / "config.json").write_text(json.dumps({"confirm_delete": True}))
    invoke("add", "ll", "ls -la")

    result = invoke("remove", "ll", input="n\n")

    assert result.exit_code == 0
    assert len(stored(db_path)) == 1


def test_cli_aliases__eval_lines_sorted(invoke):
    for name, command in (("zeta", "echo z"), ("alpha", "echo a"), ("mike", "echo m")):
        invoke("add", name, command)

    result = invoke("aliases")

    assert result.exit_code == 0
    assert result.output == "alias alpha='echo a'\nalias mike='echo m'\nalias zeta='echo z'\n"


def test_cli_display(invoke):
    invoke("add", "ll", "ls -la", "List files")

    result = invoke("display")

    assert result.exit_code == 0
    for text in ("alias", "command", "description", "ll", "ls -la", "List files"):
        assert text in result.output


def test_cli_display__empty(invoke):
    result = invoke("display")

    assert result.exit_code == 0
    assert "No aliases found." in result.output


def test_cli_export_import(invoke, runner, db_path, tmp_path):
    invoke("add", "ll", "ls -la", "List files")
    target = tmp_path / "aliases.csv"

    result = invoke("export", str(target))

    assert result.exit_code == 0
    assert "✔ Exported 1 aliases to aliases.csv" in result.output
    assert len(target.read_text().splitlines()) == 2

    other_db = tmp_path / "other.db"
    result = runner.invoke(main, ["--db", str(other_db), "import", str(target)])

    assert result.exit_code == 0
    assert "✔ Imported 1 aliases from aliases.csv" in result.output
    with AliasStorage(other_db) as storage:
        assert storage.list_all() == [a.display() for a in stored(db_path)]


def test_cli_export__stdout(invoke):
    invoke("add", "ll", "ls -la", "List files")

    result = invoke("export")

    assert result.exit_code == 0
    assert result.output.startswith("alias,command,description,date_updated\nll,ls -la,List files,")


def test_cli_export__yaml(invoke, tmp_path):
    invoke("add", "ll", "ls -la", "List files")
    target = tmp_path / "aliases.yaml"

    result = invoke("export", str(target), "--format", "yaml")

    assert result.exit_code == 0
    assert "date_created" in target.read_text()


def test_cli_import__duplicate(invoke, db_path, tmp_path):
    with AliasStorage(db_path) as storage:
        storage.add(Alias("gs", "git status", date_created=CREATED))
    source = tmp_path / "aliases.csv"
    source.write_text(
        "alias,command,description,date_updated\n"
        "ll,ls -la,List files,2024-01-15T10:30:00Z\n"
        "gs,git status -sb,,2024-01-15T10:30:00Z\n"
    )

    result = invoke("import", str(source))

    assert result.exit_code == 1
    assert "Error importing aliases: Alias 'gs' already exists" in result.output
    assert [a.alias for a in stored(db_path)] == ["gs", "ll"]


def test_cli_import__atomic(invoke, db_path, tmp_path):
    with AliasStorage(db_path) as storage:
        storage.add(Alias("gs", "git status", date_created=CREATED))
    source = tmp_path / "aliases.csv"
    source.write_text(
        "alias,command,description,date_updated\n"
        "ll,ls -la,List files,2024-01-15T10:30:00Z\n"
        "gs,git status -sb,,2024-01-15T10:30:00Z\n"
    )

    result = invoke("import", str(source), "--atomic")

    assert result.exit_code == 1
    assert [a.alias for a in stored(db_path)] == ["gs"]


def test_cli_import__dry_run(invoke, db_path, tmp_path):
    source = tmp_path / "aliases.csv"
    source.write_text("alias,command,description,date_updated\nll,ls -la,List files,2024-01-15T10:30:00Z\n")

    result = invoke("import", str(source), "--dry-run")

    assert result.exit_code == 0
    assert "ll = 'ls -la'" in result.output
    assert stored(db_path) == []


def test_cli_import__malformed(invoke, tmp_path):
    source = tmp_path / "aliases.csv"
    source.write_text("alias,command,description,date_updated\nll,ls -la,List files,soon\n")

    result = invoke("import", str(source))

    assert result.exit_code == 1
    assert "Error importing aliases: line 2" in result.output


def test_cli_database_unavailable(runner, tmp_path):
    corrupt = tmp_path / "corrupt.db"
    corrupt.write_bytes(b"this is not a sqlite database" * 100)

    result = runner.invoke(main, ["--db", str(corrupt), "aliases"])

    assert result.exit_code == 1
    assert "Error initializing database" in result.output


def test_cli_uses_environment_database(runner, tmp_path, monkeypatch):
    db_file = tmp_path / "env.db"
    monkeypatch.setenv("ZAM_DATABASE_FILE", str(db_file))

    result = runner.invoke(main, ["add", "ll", "ls -la"])

    assert result.exit_code == 0
    assert [a.alias for a in stored(db_file)] == ["ll"]


def test_cli_config__set_and_show(runner, isolated_home, db_path):
    result = runner.invoke(main, ["--db", str(db_path), "config", "show_dates", "false"])

    assert result.exit_code == 0
    saved = json.loads((isolated_home / ".config" / "zam" / "config.json").read_text())
    assert saved["show_dates"] is False

    result = runner.invoke(main, ["--db", str(db_path), "config"])
    assert "show_dates = False" in result.output


def test_cli_config__unknown_key(invoke):
    result = invoke("config", "colour", "red")

    assert result.exit_code == 1
    assert "Unknown setting: colour" in result.output


@patch("zam.cli.AliasStorage.close")
def test_cli_closes_storage(mock_close, invoke):
    invoke("aliases")

    mock_close.assert_called_once()


def test_cli_help_does_not_open_database(invoke, db_path, isolated_home):
    result = invoke("add", "--help")

    assert result.exit_code == 0
    assert "Add a new alias" in result.output
    assert not db_path.exists()


def test_cli_config_does_not_open_database(runner, isolated_home):
    result = runner.invoke(main, ["config"])

    assert result.exit_code == 0
    assert not (isolated_home / ".config" / "zam" / "zam.db").exists()
