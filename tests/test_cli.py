"""End-to-end tests for the pricegate CLI.

Tests cover:
- init / gate-create / gate-cost / gate-show / gate-list
- pass, balance and passages
- tick and height on the store-persisted clock
- JSON error envelopes and exit codes
"""

import json
import sys
from io import StringIO
from pathlib import Path

import pytest

from pricegate.cli import main


class CLIRunner:
    """Simple CLI runner that captures stdout/stderr."""

    def invoke(self, args: list[str]) -> "CLIResult":
        """Run CLI with given args and capture output."""
        old_stdout = sys.stdout
        old_stderr = sys.stderr
        sys.stdout = captured_out = StringIO()
        sys.stderr = captured_err = StringIO()

        try:
            exit_code = main(args)
        except SystemExit as e:
            exit_code = e.code if e.code is not None else 0
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

        return CLIResult(
            exit_code=exit_code,
            stdout=captured_out.getvalue(),
            stderr=captured_err.getvalue(),
        )


class CLIResult:
    """Result from CLI invocation."""

    def __init__(self, exit_code: int, stdout: str, stderr: str):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


@pytest.fixture
def cli_runner():
    """Create a CLI runner."""
    return CLIRunner()


@pytest.fixture
def store(tmp_path: Path, cli_runner: CLIRunner) -> str:
    """Initialize a store holding one gate (floor 100, decay 1, x2)."""
    root = str(tmp_path / "store")
    assert cli_runner.invoke(["init", root]).exit_code == 0
    result = cli_runner.invoke([
        "gate-create", "--store", root,
        "--floor", "100", "--decay", "1", "--num", "2", "--den", "1",
        "--beneficiary", "treasury",
    ])
    assert result.exit_code == 0
    assert "Created gate: 1" in result.stdout
    return root


class TestInit:
    """Tests for the init command."""

    def test_init_verbose(self, tmp_path: Path, cli_runner: CLIRunner):
        root = str(tmp_path / "s")
        result = cli_runner.invoke(["init", root, "--word-bits", "0", "-v"])

        assert result.exit_code == 0
        assert "Initialized store" in result.stdout
        assert "unbounded" in result.stdout

    def test_init_twice_fails(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["init", store])

        assert result.exit_code == 1
        assert "already exists" in result.stderr

    def test_no_command_prints_help(self, cli_runner: CLIRunner):
        result = cli_runner.invoke([])

        assert result.exit_code == 0
        assert "pricegate" in result.stdout


class TestGateCommands:
    """Tests for gate creation and inspection."""

    def test_cost_starts_at_floor(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["gate-cost", "1", "--store", store])

        assert result.exit_code == 0
        assert result.stdout.strip() == "100"

    def test_show_json(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["gate-show", "1", "--store", store, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["gate_id"] == 1
        assert data["beneficiary"] == "treasury"
        assert data["cost"] == 100

    def test_show_missing_gate(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["gate-show", "9", "--store", store, "--json"])

        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "GATE_NOT_FOUND"

    def test_list(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["gate-list", "--store", store, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["count"] == 1
        assert data["gates"][0]["cost"] == 100

    def test_create_negative_rejected(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke([
            "gate-create", "--store", store,
            "--floor", "-1", "--decay", "1", "--num", "2", "--den", "1",
            "--beneficiary", "treasury", "--json",
        ])

        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "INVALID_ARGUMENT"

    def test_missing_store(self, tmp_path: Path, cli_runner: CLIRunner):
        result = cli_runner.invoke([
            "gate-cost", "1", "--store", str(tmp_path / "nope"), "--json",
        ])

        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "STORE_NOT_FOUND"


class TestPassCommand:
    """Tests for pass, tick and the passage log."""

    def test_scenario(self, store: str, cli_runner: CLIRunner):
        """Pay the floor, let it decay, pay again."""
        result = cli_runner.invoke([
            "pass", "1", "--store", store, "--payment", "100", "--payer", "alice",
        ])
        assert result.exit_code == 0
        assert "Next price: 200" in result.stdout

        assert cli_runner.invoke(["tick", "--store", store, "--blocks", "50"]).stdout.strip() == "50"
        assert cli_runner.invoke(["height", "--store", store]).stdout.strip() == "50"
        assert cli_runner.invoke(["gate-cost", "1", "--store", store]).stdout.strip() == "150"

        result = cli_runner.invoke([
            "pass", "1", "--store", store, "--payment", "175", "--json",
        ])
        assert result.exit_code == 0
        passage = json.loads(result.stdout)
        assert passage["cost"] == 150
        assert passage["paid"] == 175
        assert passage["next_price"] == 300

        assert cli_runner.invoke(["balance", "treasury", "--store", store]).stdout.strip() == "275"

        result = cli_runner.invoke(["passages", "--store", store, "--json"])
        log = json.loads(result.stdout)
        assert [p["sequence"] for p in log] == [1, 2]
        assert log[0]["payer"] == "alice"
        assert log[1]["time"] == 50

    def test_cost_at_explicit_height(self, store: str, cli_runner: CLIRunner):
        cli_runner.invoke(["tick", "--store", store, "--blocks", "10"])
        cli_runner.invoke(["pass", "1", "--store", store, "--payment", "100"])

        result = cli_runner.invoke(["gate-cost", "1", "--store", store, "--at", "40"])
        assert result.stdout.strip() == "170"

        result = cli_runner.invoke([
            "gate-cost", "1", "--store", store, "--at", "5", "--json",
        ])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "INVALID_ARGUMENT"

    def test_insufficient_payment(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke([
            "pass", "1", "--store", store, "--payment", "99", "--json",
        ])

        assert result.exit_code == 1
        error = json.loads(result.stderr)["error"]
        assert error["code"] == "INSUFFICIENT_PAYMENT"
        assert error["details"]["cost"] == "100"
        assert cli_runner.invoke(["passages", "--store", store]).stdout.strip() == "No passages found."

    def test_pass_missing_gate(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke([
            "pass", "4", "--store", store, "--payment", "1", "--json",
        ])

        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "GATE_NOT_FOUND"

    def test_id_beyond_key_width(self, store: str, cli_runner: CLIRunner):
        wide = str(2**64)
        result = cli_runner.invoke(["gate-cost", wide, "--store", store])
        assert result.exit_code == 0
        assert result.stdout.strip() == "0"

        result = cli_runner.invoke([
            "pass", wide, "--store", store, "--payment", "5", "--json",
        ])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "GATE_NOT_FOUND"

    def test_pass_zero_denominator(self, store: str, cli_runner: CLIRunner):
        cli_runner.invoke([
            "gate-create", "--store", store,
            "--floor", "1", "--decay", "0", "--num", "2", "--den", "0",
            "--beneficiary", "treasury",
        ])
        result = cli_runner.invoke([
            "pass", "2", "--store", store, "--payment", "1", "--json",
        ])

        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "PRICING_ERROR"

    def test_negative_tick_rejected(self, store: str, cli_runner: CLIRunner):
        result = cli_runner.invoke(["tick", "--store", store, "--blocks", "-3"])

        assert result.exit_code == 1
        assert "--blocks" in result.stderr
