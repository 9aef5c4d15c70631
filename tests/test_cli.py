"""CLI tests for patch-coverage."""

import json
from pathlib import Path

import pytest

import cli
from patch_coverage.test_runner import TestRunResult

COVERAGE_RELPATH = "results/unit/coverage/coverage-final.json"
SOURCE = """\
export function f(n: number) {
  if (n > 0) {
    return n;
  }
  return 0;
}
"""


def _make_repo(tmp_path: Path, counts: dict) -> str:
    """Repo with one changed file and its coverage artifact; returns the diff."""
    (tmp_path / "package.json").write_text("{}")
    rel = "packages/core/src/f.ts"
    source = tmp_path / rel
    source.parent.mkdir(parents=True)
    source.write_text(SOURCE)

    artifact = tmp_path / "packages" / "core" / COVERAGE_RELPATH
    artifact.parent.mkdir(parents=True)
    artifact.write_text(json.dumps({
        str(source): {
            "path": str(source),
            "statementMap": {
                str(n): {"start": {"line": n}, "end": {"line": n}} for n in counts
            },
            "s": {str(n): c for n, c in counts.items()},
            "branchMap": {},
            "b": {},
        }
    }))
    return f"--- a/{rel}\n+++ b/{rel}\n@@ -0,0 +1,6 @@\n"


@pytest.fixture
def fake_collaborators(monkeypatch):
    """Replace git and the test command; returns the state they share."""
    state = {"diff": "", "success": True, "calls": []}

    class FakeDiff:
        def __init__(self, repo_root, base="main"):
            state["base"] = base

        def diff(self):
            return state["diff"]

    class FakeRunner:
        def __init__(self, command, cwd=None):
            pass

        def run(self, package=None):
            state["calls"].append(package)
            return TestRunResult(state["success"], ["FAIL x.test.ts"], ["stack trace"])

    monkeypatch.setattr("patch_coverage.orchestrator.GitDiffProvider", FakeDiff)
    monkeypatch.setattr("patch_coverage.orchestrator.TestRunner", FakeRunner)
    return state


def _run(monkeypatch, *args):
    monkeypatch.setattr("sys.argv", ["patch-coverage", *args])
    return cli.main()


def test_main_no_args_prints_help(capsys, monkeypatch):
    exit_code = _run(monkeypatch)

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "coverage" in out
    assert "Quick start" in out


def test_missing_workspace(monkeypatch, tmp_path, fake_collaborators):
    monkeypatch.setattr("patch_coverage.find_workspace_root", lambda *a, **k: None)
    assert _run(monkeypatch, "coverage", "--root", str(tmp_path)) == 1


def test_nothing_to_check(capsys, monkeypatch, tmp_path, fake_collaborators):
    (tmp_path / "package.json").write_text("{}")

    exit_code = _run(monkeypatch, "coverage", "--root", str(tmp_path))

    assert exit_code == 0
    assert "No changes detected compared to main branch." in capsys.readouterr().out
    assert fake_collaborators["calls"] == []


def test_uncovered_lines_reported(capsys, monkeypatch, tmp_path, fake_collaborators):
    fake_collaborators["diff"] = _make_repo(tmp_path, {1: 1, 2: 1, 3: 0, 5: 1})

    exit_code = _run(monkeypatch, "coverage", "--root", str(tmp_path))
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "Coverage: 75.00% (3/4 lines covered)" in out
    assert "Uncovered lines in patch:" in out
    assert "  packages/core/src/f.ts" in out
    assert "    3  │ return n;" in out


def test_threshold_failure(capsys, monkeypatch, tmp_path, fake_collaborators):
    fake_collaborators["diff"] = _make_repo(tmp_path, {1: 1, 2: 1, 3: 0, 5: 1})

    exit_code = _run(monkeypatch, "coverage", "--root", str(tmp_path), "--threshold", "80")
    captured = capsys.readouterr()

    assert exit_code == 1
    assert "Patch coverage 75.00% is below the threshold of 80%" in captured.err
    assert "short by 5.00%" in captured.err


def test_threshold_met(capsys, monkeypatch, tmp_path, fake_collaborators):
    fake_collaborators["diff"] = _make_repo(tmp_path, {1: 1, 2: 1, 3: 1, 5: 1})

    exit_code = _run(
        monkeypatch, "coverage", "--root", str(tmp_path), "--threshold", "80", "--filter", "core"
    )
    out = capsys.readouterr().out

    assert exit_code == 0
    assert fake_collaborators["calls"] == ["core"]
    assert "Package 'core' coverage 100.00% meets the threshold of 80%" in out


def test_test_failure_surfaces_output(capsys, monkeypatch, tmp_path, fake_collaborators):
    fake_collaborators["diff"] = _make_repo(tmp_path, {1: 1})
    fake_collaborators["success"] = False

    exit_code = _run(monkeypatch, "coverage", "--root", str(tmp_path))
    captured = capsys.readouterr()

    assert exit_code == 1
    assert "FAIL x.test.ts" in captured.out
    assert "stack trace" in captured.err


def test_json_output(capsys, monkeypatch, tmp_path, fake_collaborators):
    fake_collaborators["diff"] = _make_repo(tmp_path, {1: 1, 2: 1, 3: 0, 5: 1})

    exit_code = _run(
        monkeypatch, "coverage", "--root", str(tmp_path), "--format", "json", "--base", "develop"
    )
    data = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert fake_collaborators["base"] == "develop"
    assert data["covered"] == 3
    assert data["total"] == 4
    assert data["uncovered"] == {"packages/core/src/f.ts": [3]}
