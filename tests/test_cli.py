"""Tests for CLI commands.

These tests verify that all CLI commands are properly registered and callable,
and that commands return the expected exit codes.
"""

import importlib
import inspect

import pytest
import yaml

from primoco_actual.runner.main import cmd_import, create_cli, main

from conftest import FakeActualClient

# The package re-exports main(), so fetch the module itself
runner = importlib.import_module("primoco_actual.runner.main")

pytestmark = pytest.mark.usefixtures("clean_env")


@pytest.fixture
def config_file(tmp_path, sample_export_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "actual": {
                    "base_url": "http://actual.test:5007",
                    "api_key": "k",
                    "sync_id": "budget-1",
                },
                "import": {"csv_path": str(sample_export_path)},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def patched_client(monkeypatch):
    """Route create_client to an in-memory ledger."""
    client = FakeActualClient()
    monkeypatch.setattr(runner, "create_client", lambda config: client)
    return client


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        """Verify all expected commands are registered."""
        parser = create_cli()

        for command in ("import", "sync", "init"):
            args = parser.parse_args([command])
            assert args.command == command

    def test_import_defaults(self):
        """Import command defaults to config values."""
        args = create_cli().parse_args(["import"])

        assert args.csv is None
        assert args.force_duplicates is False
        assert args.mark_cleared is False
        assert args.dry_run is False

    def test_import_all_options_together(self):
        args = create_cli().parse_args(
            ["-v", "import", "export.csv", "--force-duplicates", "--mark-cleared", "--dry-run"]
        )

        assert args.verbose is True
        assert str(args.csv) == "export.csv"
        assert args.force_duplicates is True
        assert args.mark_cleared is True
        assert args.dry_run is True

    def test_cmd_import_signature(self):
        params = list(inspect.signature(cmd_import).parameters)
        assert params == ["config", "dry_run"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestInitCommand:
    """Tests for `init`."""

    def test_writes_config(self, tmp_path):
        path = tmp_path / "config.yaml"

        assert main(["-c", str(path), "init"]) == 0
        assert "actual:" in path.read_text(encoding="utf-8")

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("keep: me\n", encoding="utf-8")

        assert main(["-c", str(path), "init"]) == 1
        assert path.read_text(encoding="utf-8") == "keep: me\n"


class TestImportCommand:
    """Tests for `import`."""

    def test_invalid_config(self, tmp_path, capsys):
        assert main(["-c", str(tmp_path / "missing.yaml"), "import"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_missing_source_file(self, config_file, tmp_path, patched_client):
        code = main(["-c", str(config_file), "import", str(tmp_path / "nope.csv")])

        assert code == 1
        assert patched_client.calls == []

    def test_dry_run_does_not_contact_ledger(self, config_file, patched_client, capsys):
        code = main(["-c", str(config_file), "import", "--dry-run"])

        assert code == 0
        assert patched_client.calls == []
        assert "DRY RUN" in capsys.readouterr().out

    def test_import_success(self, config_file, patched_client, capsys):
        code = main(["-c", str(config_file), "import", "--mark-cleared"])

        assert code == 0
        assert patched_client.shut_down is True
        postings = [p for batches in patched_client.imported.values() for b in batches for p in b]
        assert len(postings) == 5
        assert all(p["cleared"] for p in postings)
        assert "Import Complete" in capsys.readouterr().out

    def test_unknown_budget_fails(self, config_file, patched_client, capsys):
        patched_client.budgets = [{"groupId": "other-budget"}]

        assert main(["-c", str(config_file), "import"]) == 1
        assert patched_client.shut_down is True
        assert "import_postings" not in patched_client.calls

    def test_missing_income_group_fails(self, config_file, patched_client):
        patched_client.groups = []

        assert main(["-c", str(config_file), "import"]) == 1
        assert "import_postings" not in patched_client.calls

    def test_duplicate_report(self, tmp_path, config_file, patched_client, capsys):
        row = "03.01.2024;Expense;-1,00;Food;;Giro;;;"
        csv_path = tmp_path / "dupes.csv"
        csv_path.write_text(
            "Date;Entry Type;Value;Category;Person;Account;Counter Account;Group;Note\n"
            f"{row}\n{row}\n",
            encoding="utf-8",
        )

        assert main(["-c", str(config_file), "import", str(csv_path)]) == 0
        out = capsys.readouterr().out
        assert "1 duplicate transactions detected" in out
        assert "Duplicate rows:     1" in out

        assert main(["-c", str(config_file), "import", str(csv_path), "--force-duplicates"]) == 0
        assert "1 duplicates forcefully imported." in capsys.readouterr().out


class TestSyncCommand:
    """Tests for `sync`."""

    def test_sync_without_source(self, tmp_path, patched_client):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump({"actual": {"api_key": "k", "sync_id": "budget-1"}}), encoding="utf-8"
        )

        assert main(["-c", str(path), "sync"]) == 0
        assert patched_client.calls == ["list_budgets", "sync"]
        assert patched_client.shut_down is True

    def test_sync_no_budgets(self, config_file, patched_client):
        patched_client.budgets = []
        assert main(["-c", str(config_file), "sync"]) == 1
