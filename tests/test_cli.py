"""
Tests for the chcsplit command line.
"""

import subprocess
import sys

import pytest

from chcsplit.cli import EXIT_ERROR, EXIT_SAT, EXIT_UNSAT, main


@pytest.fixture(autouse=True)
def _no_local_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def test_cli_exists():
    """The module is runnable."""
    result = subprocess.run(
        [sys.executable, "-m", "chcsplit", "--help"],
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    assert "solve" in result.stdout
    assert "info" in result.stdout


def test_solve_safe(counter_file, capsys):
    assert main(["solve", str(counter_file)]) == EXIT_SAT
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "sat"
    assert any(line.startswith("  P: ") for line in out[1:])
    assert "  Q: True" not in out


def test_solve_unsafe(unsafe_file, capsys):
    assert main(["solve", str(unsafe_file), "--no-split-sort"]) == EXIT_UNSAT
    assert capsys.readouterr().out.strip() == "unsat"


def test_solve_without_splitting(unsafe_file, capsys):
    assert main(["solve", str(unsafe_file), "--no-split"]) == EXIT_UNSAT


def test_check_only(counter_file, capsys):
    assert main(["solve", str(counter_file), "--check-only", "--split-step"]) == EXIT_SAT
    assert capsys.readouterr().out.strip() == "sat (no model requested)"


def test_info(counter_file, capsys):
    assert main(["info", str(counter_file)]) == EXIT_SAT
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "instance counter"
    assert "  pred P (Int)" in out
    assert out[-1] == "split order: #4, #3"

    assert main(["info", str(counter_file), "--no-split-sort"]) == EXIT_SAT
    assert capsys.readouterr().out.splitlines()[-1] == "split order: #3, #4"


def test_missing_file(tmp_path, capsys):
    assert main(["solve", str(tmp_path / "nonexistent.smt2")]) == EXIT_ERROR
    err = capsys.readouterr().err
    assert err.startswith("error: ")
    assert "no such file" in err.lower()


def test_malformed_problem(tmp_path, capsys):
    bad = tmp_path / "bad.smt2"
    bad.write_text("(assert (P 0))\n")
    assert main(["info", str(bad)]) == EXIT_ERROR
    assert "cannot parse" in capsys.readouterr().err


def test_bad_config(counter_file, tmp_path, capsys):
    config = tmp_path / "custom.yml"
    config.write_text("logging:\n  level: loud\n")
    assert main(["solve", str(counter_file), "--config", str(config)]) == EXIT_ERROR
    assert "loud" in capsys.readouterr().err
