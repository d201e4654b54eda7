"""
Tests for the command-line interface.
"""

import json

import pytest

from release_tracker import cli


@pytest.fixture
def env(monkeypatch, tmp_path, github):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("USE_FIRESTORE", raising=False)
    monkeypatch.delenv("GAE_ENV", raising=False)
    monkeypatch.setattr(cli, "build_client", lambda config: github)
    return github


def run(capsys, *argv):
    code = cli.main(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_no_command_prints_help(capsys):
    code, out, _ = run(capsys)

    assert code == 1
    assert "release-tracker" in out


def test_track_list_show_and_remove(env, capsys):
    env.add_repository("octo/widgets", releases=["v1", "v2"])

    code, out, _ = run(capsys, "track", "octo/widgets")
    assert code == 0
    repository = json.loads(out)
    assert repository["fullName"] == "octo/widgets"
    assert len(repository["releases"]) == 2

    code, out, _ = run(capsys, "list")
    assert code == 0
    listed = json.loads(out)
    assert [repo["id"] for repo in listed] == [repository["id"]]
    assert "releases" not in listed[0]

    code, out, _ = run(capsys, "show", repository["id"])
    assert json.loads(out)["hasUnseenReleases"] is True

    code, out, _ = run(capsys, "remove", repository["id"])
    assert code == 0
    assert repository["id"] in out

    code, _, err = run(capsys, "show", repository["id"])
    assert code == 1
    assert "not found" in err


def test_sync_single_and_all(env, capsys):
    env.add_repository("octo/widgets", releases=["v1"])
    _, out, _ = run(capsys, "track", "octo/widgets")
    repository_id = json.loads(out)["id"]
    env.set_releases("octo/widgets", ["v1", "v2"])

    code, out, _ = run(capsys, "sync", repository_id)
    assert code == 0
    assert len(json.loads(out)["releases"]) == 2

    code, out, _ = run(capsys, "sync")
    assert code == 0
    assert json.loads(out) == {"succeeded": ["octo/widgets"], "failed": {}}


def test_seen_commands(env, capsys):
    env.add_repository("octo/widgets", releases=["v1", "v2"])
    _, out, _ = run(capsys, "track", "octo/widgets")
    repository = json.loads(out)

    code, out, _ = run(capsys, "seen", "--release", repository["releases"][0]["id"])
    assert code == 0
    assert json.loads(out)["seen"] is True

    code, out, _ = run(capsys, "seen", "--repository", repository["id"])
    assert code == 0
    assert json.loads(out)["hasUnseenReleases"] is False


def test_bad_full_name(env, capsys):
    code, _, err = run(capsys, "track", "widgets")

    assert code == 1
    assert "owner/name" in err


def test_remove_unknown(env, capsys):
    code, _, err = run(capsys, "remove", "nope")

    assert code == 1
    assert "not found" in err


def test_invalid_configuration(env, monkeypatch, capsys):
    monkeypatch.setenv("SYNC_INTERVAL_MINUTES", "never")

    code, _, err = run(capsys, "list")

    assert code == 1
    assert "SYNC_INTERVAL_MINUTES" in err


def test_server_command_passes_options(env, monkeypatch):
    seen = {}

    def fake_run_server(port=None, enable_background_sync=True, config=None):
        seen.update(port=port, background=enable_background_sync, config=config)

    monkeypatch.setattr("release_tracker.server.run_server", fake_run_server)

    assert cli.main(["server", "--port", "9999", "--no-background-sync"]) == 0
    assert seen["port"] == 9999
    assert seen["background"] is False
    assert seen["config"] is not None
