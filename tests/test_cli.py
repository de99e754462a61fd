"""CLI tests against a throwaway local store (no remote configured)."""

import json

import pytest
from typer.testing import CliRunner

from itemkeeper.cli import app

from test_config import ENV_VARS


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()

    def invoke(*args, input=None):
        return runner.invoke(app, ["--store", str(tmp_path), *args], input=input)

    return invoke


def _ids(run, *group):
    result = run("--json", *group, "list")
    assert result.exit_code == 0, result.output
    return [r["id"] for r in json.loads(result.stdout)]


def test_add_and_list(run):
    result = run("add", "passport", "desk drawer")
    assert result.exit_code == 0, result.output
    assert "passport: desk drawer" in result.output

    result = run("list")
    assert "passport: desk drawer" in result.output


def test_list_empty(run):
    result = run("list")
    assert result.exit_code == 0
    assert "No items recorded yet" in result.output


def test_find(run):
    run("add", "passport", "desk drawer")
    run("add", "keys", "hook")

    result = run("find", "DRAWER")
    assert "passport" in result.output
    assert "keys" not in result.output

    result = run("find", "umbrella")
    assert "Nothing found" in result.output


def test_say_uses_keyword_parsing(run):
    result = run("say", "I put my passport in the desk drawer")
    assert result.exit_code == 0, result.output
    assert "Recorded passport" in result.output

    result = run("say", "where is my passport")
    assert "passport: in the desk drawer" in result.output


def test_tag(run):
    run("add", "passport", "desk drawer")

    result = run("tag", "passport", "travel")
    assert "Tagged 1 items" in result.output
    assert "[travel]" in run("list").output


def test_delete_restore_cycle(run):
    run("add", "umbrella", "hall")
    [record_id] = _ids(run)

    result = run("del", "umbrella")
    assert result.exit_code == 0
    assert _ids(run) == []
    assert _ids(run, "bin") == [record_id]

    result = run("bin", "restore", record_id)
    assert result.exit_code == 0
    assert "Restored umbrella" in result.output
    assert _ids(run) == [record_id]
    assert _ids(run, "bin") == []


def test_delete_nothing_fails(run):
    result = run("del", "umbrella")
    assert result.exit_code == 1


def test_bin_purge_and_empty(run):
    run("add", "umbrella", "hall")
    run("add", "keys", "hook")
    run("del", "umbrella")
    run("del", "keys")
    first, second = _ids(run, "bin")

    assert run("bin", "purge", first).exit_code == 0
    assert run("bin", "purge", first).exit_code == 1

    result = run("bin", "empty", "-y")
    assert "1 entries" in result.output
    assert _ids(run, "bin") == []


def test_stats(run):
    run("add", "keys", "hook")
    result = run("stats")
    assert "Total items: 1" in result.output


def test_sync_requires_remote(run):
    result = run("sync", "push")
    assert result.exit_code == 1
    assert "sync needs" in result.output


def test_export_import(run, tmp_path):
    run("add", "keys", "hook")
    backup = tmp_path / "backup.json"

    assert run("data", "export", str(backup)).exit_code == 0
    assert json.loads(backup.read_text())["records"][0]["item"] == "keys"

    assert run("data", "clear", "-y").exit_code == 0
    assert _ids(run) == []

    result = run("data", "import", str(backup), "-y")
    assert result.exit_code == 0, result.output
    assert "Imported 1 records" in result.output
    assert len(_ids(run)) == 1


def test_import_rejects_bad_file(run, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"records": []}))

    result = run("data", "import", str(bad), "-y")
    assert result.exit_code == 1
    assert "recycleBin" in result.output


def test_data_info(run):
    run("add", "keys", "hook")
    result = run("--json", "data", "info")
    info = json.loads(result.stdout)
    assert info["records_count"] == 1
    assert info["is_available"] is True
