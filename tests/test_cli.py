import pytest
from typer.testing import CliRunner

from sticky_notes.cli import app
from sticky_notes.config import get_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("STICKY_NOTES_CONFIG", str(tmp_path / "absent.json"))
    monkeypatch.setenv("STICKY_NOTES_DB_ROOT", str(tmp_path))
    monkeypatch.setenv("STICKY_NOTES_DB_PATH", "cli.db")
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def test_add_list_show_delete():
    res = runner.invoke(app, ["add", "-t", "Buy milk", "-c", "two litres", "-g", "home,errand"])
    assert res.exit_code == 0, res.output
    assert "Created" in res.output

    res = runner.invoke(app, ["list", "--tags", "home"])
    assert res.exit_code == 0
    assert "Buy milk" in res.output

    res = runner.invoke(app, ["show", "1"])
    assert res.exit_code == 0
    assert "two litres" in res.output

    res = runner.invoke(app, ["delete", "1"])
    assert res.exit_code == 0
    res = runner.invoke(app, ["show", "1"])
    assert res.exit_code == 1
    assert "NotFoundError" in res.output


def test_export_to_file(cli_env):
    runner.invoke(app, ["add", "-t", "One"])
    runner.invoke(app, ["add", "-t", "Two"])
    target = cli_env / "out.md"

    res = runner.invoke(app, ["export", "1", "2", "--to", str(target)])
    assert res.exit_code == 0, res.output
    assert target.read_text(encoding="utf-8").startswith("# Exported Notes")


def test_conversations_tags_and_migrate():
    runner.invoke(app, ["add", "-t", "a", "--conversation", "chat", "-g", "x"])

    res = runner.invoke(app, ["conversations"])
    assert "chat" in res.output

    res = runner.invoke(app, ["tags"])
    assert "x" in res.output

    res = runner.invoke(app, ["migrate"])
    assert res.exit_code == 0
    assert "up to date" in res.output
