from __future__ import annotations

import json

from typer.testing import CliRunner

from codecollab.cli import app
from codecollab.collab import FileTree

runner = CliRunner()


def test_default_tree_command_prints_tree_and_hash():
    result = runner.invoke(app, ["default-tree"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert set(payload["tree"]) == {"src", "package.json"}
    assert payload["hash"] == FileTree().fingerprint()


def test_fingerprint_command_matches_room_hash(tmp_path):
    snapshot = tmp_path / "snapshot.json"
    snapshot.write_text(json.dumps(FileTree().snapshot(), indent=4), encoding="utf-8")

    result = runner.invoke(app, ["fingerprint", str(snapshot)])
    assert result.exit_code == 0
    assert result.stdout.strip() == FileTree().fingerprint()


def test_fingerprint_command_rejects_malformed_snapshot(tmp_path):
    snapshot = tmp_path / "bad.json"
    snapshot.write_text(json.dumps({"a": {"type": "symlink"}}), encoding="utf-8")

    result = runner.invoke(app, ["fingerprint", str(snapshot)])
    assert result.exit_code == 2
